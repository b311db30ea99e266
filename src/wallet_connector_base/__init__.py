from .base_client import (
    PriceOracle,
    BalanceSource,
    SwapQuoter,
    TransactionStatusChecker,
)
from .base_store import PortfolioStore
from .models import (
    WalletModel,
    # Holdings and portfolio models
    TokenHolding,
    PortfolioEntry,
    PortfolioSnapshot,
    OwnerRecord,
    # Target and analysis models
    TargetAllocation,
    Deviation,
    DeviationReport,
    # Quote and plan models
    SwapQuote,
    SwapAction,
    PlanStatus,
    RebalancePlan,
    # Result models
    CreatePlanResult,
    RebalanceCheckResult,
    SwapInstruction,
    TxConfirmationStatus,
    ConfirmSwapResult,
    TransactionLogEntry,
)
from .exceptions import (
    RebalancerError,
    InputValidationError,
    UpstreamUnavailableError,
    BalanceFetchError,
    NotFoundError,
    PlanNotFoundError,
    OwnerNotFoundError,
    PlanAlreadyFinalizedError,
    QuoteExpiredError,
    ConfirmationTimeoutError,
    StoreError,
)

__version__ = "1.0.0"

__all__ = [
    "PriceOracle",
    "BalanceSource",
    "SwapQuoter",
    "TransactionStatusChecker",
    "PortfolioStore",
    "WalletModel",
    "TokenHolding",
    "PortfolioEntry",
    "PortfolioSnapshot",
    "OwnerRecord",
    "TargetAllocation",
    "Deviation",
    "DeviationReport",
    "SwapQuote",
    "SwapAction",
    "PlanStatus",
    "RebalancePlan",
    "CreatePlanResult",
    "RebalanceCheckResult",
    "SwapInstruction",
    "TxConfirmationStatus",
    "ConfirmSwapResult",
    "TransactionLogEntry",
    "RebalancerError",
    "InputValidationError",
    "UpstreamUnavailableError",
    "BalanceFetchError",
    "NotFoundError",
    "PlanNotFoundError",
    "OwnerNotFoundError",
    "PlanAlreadyFinalizedError",
    "QuoteExpiredError",
    "ConfirmationTimeoutError",
    "StoreError",
    "__version__",
]
