from datetime import datetime
from typing import List, Optional
from pydantic import Field

from wallet_connector_base import WalletModel


class OwnerSweepResult(WalletModel):
    """Outcome of checking one wallet during a sweep"""
    owner_id: str
    success: bool
    needs_rebalance: Optional[bool] = None
    total_value: Optional[float] = None
    expired_plans: int = 0
    error: Optional[str] = None

class SweepResult(WalletModel):
    """Outcome of one background sweep over every wallet with targets"""
    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped: bool = False
    owners: List[OwnerSweepResult] = Field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.owners if not o.success)

    @property
    def attention_count(self) -> int:
        return sum(1 for o in self.owners if o.needs_rebalance)
