from datetime import datetime
from enum import Enum
from typing import List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WalletModel(BaseModel):
    """Base model; serialises to camelCase at the API boundary"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Holdings and portfolio models
class TokenHolding(WalletModel):
    """Token balance for one mint, in human units"""
    token_id: str
    symbol: str
    balance: float
    decimals: int = Field(ge=0, le=255)

class PortfolioEntry(WalletModel):
    """Valued holding inside a portfolio snapshot"""
    token_id: str
    symbol: str
    balance: float
    decimals: int = Field(ge=0, le=255)
    price_usd: float
    value_usd: float
    percentage: float

class PortfolioSnapshot(WalletModel):
    """Valued, percentage-weighted view of a wallet"""
    owner_id: str
    as_of: datetime
    total_value_usd: float
    entries: List[PortfolioEntry] = Field(default_factory=list)

    def entry_for(self, token_id: str) -> Optional[PortfolioEntry]:
        for entry in self.entries:
            if entry.token_id == token_id:
                return entry
        return None

class OwnerRecord(WalletModel):
    """A wallet that has connected to the service"""
    owner_id: str
    created_at: datetime


# Target allocation and analysis models
class TargetAllocation(WalletModel):
    """User-declared target weight for one token"""
    owner_id: str
    token_id: str
    symbol: str
    target_percentage: float = Field(ge=0.0, le=100.0)
    threshold_percentage: float = Field(default=5.0, gt=0.0)

class Deviation(WalletModel):
    """Signed distance of a token from its target (positive = overweight)"""
    token_id: str
    symbol: str
    current_percentage: float
    target_percentage: float
    threshold_percentage: float
    deviation: float
    needs_rebalance: bool

class DeviationReport(WalletModel):
    """Result of comparing a snapshot against a target set"""
    needs_rebalance: bool
    deviations: List[Deviation] = Field(default_factory=list)


# Quote and plan models
class SwapQuote(WalletModel):
    """Executable exchange quote; amounts are in smallest token units"""
    input_token_id: str
    output_token_id: str
    in_amount: int
    out_amount: int
    output_decimals: Optional[int] = None
    price_impact_percent: Optional[float] = None
    payload: str  # Opaque, re-submitted to build instructions
    quoted_at: datetime
    expires_at: datetime

class SwapAction(WalletModel):
    """One pairwise swap inside a rebalance plan; amounts in human units"""
    from_token_id: str
    from_symbol: str
    to_token_id: str
    to_symbol: str
    from_amount: float
    to_amount: float
    price_impact_percent: float = 0.0
    swap_value_usd: float = 0.0
    quote_payload: str
    quote_expires_at: datetime
    execution_signature: Optional[str] = None
    confirmed_at: Optional[datetime] = None

    @property
    def is_confirmed(self) -> bool:
        return self.execution_signature is not None

class PlanStatus(str, Enum):
    """Plan lifecycle: pending -> executed | failed"""
    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"

class RebalancePlan(WalletModel):
    """Ordered swaps that move a portfolio toward its targets"""
    plan_id: str
    owner_id: str
    status: PlanStatus = PlanStatus.PENDING
    total_value_usd: float
    swaps: List[SwapAction] = Field(default_factory=list)
    estimated_slippage: float = 0.0
    created_at: datetime
    expires_at: datetime

    def swap_for_signature(self, tx_signature: str) -> Optional[int]:
        for index, swap in enumerate(self.swaps):
            if swap.execution_signature == tx_signature:
                return index
        return None

    @property
    def all_swaps_confirmed(self) -> bool:
        return all(swap.is_confirmed for swap in self.swaps)


# Result models
class CreatePlanResult(WalletModel):
    """Result of a plan request; plan is None when already balanced"""
    needs_rebalance: bool
    plan: Optional[RebalancePlan] = None
    deviations: List[Deviation] = Field(default_factory=list)
    message: Optional[str] = None

class RebalanceCheckResult(WalletModel):
    """Read-only rebalance status for an owner"""
    needs_rebalance: bool
    deviations: List[Deviation] = Field(default_factory=list)
    current_portfolio: List[PortfolioEntry] = Field(default_factory=list)
    total_value: float
    message: Optional[str] = None

class SwapInstruction(WalletModel):
    """Unsigned swap instruction set for one plan swap"""
    plan_id: str
    swap_index: int
    from_token_id: str
    to_token_id: str
    payload: dict

class TxConfirmationStatus:
    """Normalized transaction statuses"""
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"
    PENDING = "pending"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"

    SUCCESS_STATES = (CONFIRMED, FINALIZED)

class ConfirmSwapResult(WalletModel):
    """Outcome of confirming one swap signature"""
    plan_id: str
    tx_signature: str
    swap_index: Optional[int] = None
    outcome: Literal['confirmed', 'already_confirmed', 'failed', 'timeout']
    tx_status: Optional[str] = None
    plan_status: PlanStatus

class TransactionLogEntry(WalletModel):
    """Audit record written for every confirmed swap"""
    owner_id: str
    plan_id: str
    tx_signature: str
    swap_index: int
    status: str = 'success'
    type: str = 'rebalance'
    created_at: datetime
