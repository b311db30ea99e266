from .analyzer import analyze
from .snapshot import SnapshotBuilder
from .targets import TargetAllocationService
from .planner import RebalancePlanner
from .execution import PlanExecutionCoordinator
from .models import TargetAllocationInput, WorkingDeviation

__version__ = "1.0.0"

__all__ = [
    "analyze",
    "SnapshotBuilder",
    "TargetAllocationService",
    "RebalancePlanner",
    "PlanExecutionCoordinator",
    "TargetAllocationInput",
    "WorkingDeviation",
    "__version__",
]
