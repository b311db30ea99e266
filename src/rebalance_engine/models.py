from dataclasses import dataclass
from typing import Optional
from wallet_connector_base import WalletModel


class TargetAllocationInput(WalletModel):
    """Target row as submitted by a user, before validation"""
    token_id: str
    symbol: str
    target_percentage: float
    threshold_percentage: Optional[float] = None


@dataclass
class WorkingDeviation:
    """Mutable planner-local copy of a deviation"""
    token_id: str
    symbol: str
    deviation: float
    threshold: float
