from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from .models import (
    OwnerRecord,
    PortfolioSnapshot,
    TargetAllocation,
    RebalancePlan,
    PlanStatus,
    TransactionLogEntry,
)

class PortfolioStore(ABC):
    """Abstract persistence for owners, portfolios, targets and plans"""

    # Owners
    @abstractmethod
    async def ensure_owner(self, owner_id: str) -> OwnerRecord:
        """Create the owner record if missing and return it"""
        pass

    @abstractmethod
    async def get_owner(self, owner_id: str) -> Optional[OwnerRecord]:
        pass

    @abstractmethod
    async def list_owners_with_targets(self) -> List[str]:
        """Owner ids that currently have a non-empty target set"""
        pass

    # Portfolio write-through cache
    @abstractmethod
    async def upsert_portfolio(self, snapshot: PortfolioSnapshot):
        """Upsert every entry keyed by (owner_id, token_id) in one atomic write"""
        pass

    @abstractmethod
    async def get_portfolio(self, owner_id: str) -> Optional[PortfolioSnapshot]:
        """Last persisted snapshot, if any"""
        pass

    # Targets
    @abstractmethod
    async def replace_targets(self, owner_id: str, targets: List[TargetAllocation]):
        """Delete the owner's target set and insert the new one atomically"""
        pass

    @abstractmethod
    async def get_targets(self, owner_id: str) -> List[TargetAllocation]:
        pass

    # Plans
    @abstractmethod
    async def save_plan(self, plan: RebalancePlan):
        pass

    @abstractmethod
    async def get_plan(self, plan_id: str) -> Optional[RebalancePlan]:
        pass

    @abstractmethod
    async def list_plans(self, owner_id: str, status: Optional[PlanStatus] = None) -> List[RebalancePlan]:
        pass

    @abstractmethod
    async def transition_plan_status(
        self,
        plan_id: str,
        expected: PlanStatus,
        new_status: PlanStatus
    ) -> bool:
        """Compare-and-swap the plan status; False when the current status is not expected"""
        pass

    @abstractmethod
    async def record_swap_confirmation(
        self,
        plan_id: str,
        swap_index: int,
        tx_signature: str,
        confirmed_at: datetime
    ) -> bool:
        """Attach a signature to a pending plan's swap; False if the swap or signature is already used"""
        pass

    # Audit and signals
    @abstractmethod
    async def append_transaction_log(self, entry: TransactionLogEntry):
        pass

    @abstractmethod
    async def get_transaction_log(self, owner_id: str) -> List[TransactionLogEntry]:
        pass

    @abstractmethod
    async def set_attention(self, owner_id: str, needs_rebalance: bool, checked_at: datetime):
        """Record the latest sweep verdict for an owner"""
        pass

    async def close(self):
        """Release connections"""
        pass
