"""In-process PortfolioStore for local runs and tests"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from wallet_connector_base import (
    PortfolioStore,
    OwnerRecord,
    PortfolioSnapshot,
    PortfolioEntry,
    TargetAllocation,
    RebalancePlan,
    PlanStatus,
    TransactionLogEntry,
)


class InMemoryPortfolioStore(PortfolioStore):
    """
    Dict-backed store guarded by a single asyncio.Lock.

    Every read returns a deep copy so callers can never mutate stored state.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._lock = asyncio.Lock()
        self._owners: Dict[str, OwnerRecord] = {}
        self._portfolio_rows: Dict[Tuple[str, str], PortfolioEntry] = {}
        self._snapshots: Dict[str, PortfolioSnapshot] = {}
        self._targets: Dict[str, List[TargetAllocation]] = {}
        self._plans: Dict[str, RebalancePlan] = {}
        self._transaction_log: Dict[str, List[TransactionLogEntry]] = {}
        self._attention: Dict[str, Tuple[bool, datetime]] = {}

    async def ensure_owner(self, owner_id: str) -> OwnerRecord:
        async with self._lock:
            if owner_id not in self._owners:
                self._owners[owner_id] = OwnerRecord(owner_id=owner_id, created_at=datetime.now(timezone.utc))
                self.logger.info(f"Registered new wallet {owner_id}")
            return self._owners[owner_id].model_copy(deep=True)

    async def get_owner(self, owner_id: str) -> Optional[OwnerRecord]:
        async with self._lock:
            owner = self._owners.get(owner_id)
            return owner.model_copy(deep=True) if owner else None

    async def list_owners_with_targets(self) -> List[str]:
        async with self._lock:
            return sorted(owner_id for owner_id, targets in self._targets.items() if targets)

    async def upsert_portfolio(self, snapshot: PortfolioSnapshot):
        async with self._lock:
            for entry in snapshot.entries:
                self._portfolio_rows[(snapshot.owner_id, entry.token_id)] = entry.model_copy(deep=True)
            self._snapshots[snapshot.owner_id] = snapshot.model_copy(deep=True)

    async def get_portfolio(self, owner_id: str) -> Optional[PortfolioSnapshot]:
        async with self._lock:
            snapshot = self._snapshots.get(owner_id)
            return snapshot.model_copy(deep=True) if snapshot else None

    async def replace_targets(self, owner_id: str, targets: List[TargetAllocation]):
        async with self._lock:
            self._targets[owner_id] = [t.model_copy(deep=True) for t in targets]

    async def get_targets(self, owner_id: str) -> List[TargetAllocation]:
        async with self._lock:
            return [t.model_copy(deep=True) for t in self._targets.get(owner_id, [])]

    async def save_plan(self, plan: RebalancePlan):
        async with self._lock:
            self._plans[plan.plan_id] = plan.model_copy(deep=True)

    async def get_plan(self, plan_id: str) -> Optional[RebalancePlan]:
        async with self._lock:
            plan = self._plans.get(plan_id)
            return plan.model_copy(deep=True) if plan else None

    async def list_plans(self, owner_id: str, status: Optional[PlanStatus] = None) -> List[RebalancePlan]:
        async with self._lock:
            plans = [
                p.model_copy(deep=True) for p in self._plans.values()
                if p.owner_id == owner_id and (status is None or p.status == status)
            ]
        return sorted(plans, key=lambda p: p.created_at)

    async def transition_plan_status(self, plan_id: str, expected: PlanStatus, new_status: PlanStatus) -> bool:
        async with self._lock:
            plan = self._plans.get(plan_id)
            if plan is None or plan.status != expected:
                return False
            plan.status = new_status
            return True

    async def record_swap_confirmation(self, plan_id: str, swap_index: int,
                                       tx_signature: str, confirmed_at: datetime) -> bool:
        async with self._lock:
            plan = self._plans.get(plan_id)
            if plan is None or plan.status != PlanStatus.PENDING:
                return False
            if not 0 <= swap_index < len(plan.swaps):
                return False
            if plan.swaps[swap_index].is_confirmed or plan.swap_for_signature(tx_signature) is not None:
                return False

            plan.swaps[swap_index].execution_signature = tx_signature
            plan.swaps[swap_index].confirmed_at = confirmed_at
            return True

    async def append_transaction_log(self, entry: TransactionLogEntry):
        async with self._lock:
            self._transaction_log.setdefault(entry.owner_id, []).append(entry.model_copy(deep=True))

    async def get_transaction_log(self, owner_id: str) -> List[TransactionLogEntry]:
        async with self._lock:
            return [e.model_copy(deep=True) for e in self._transaction_log.get(owner_id, [])]

    async def set_attention(self, owner_id: str, needs_rebalance: bool, checked_at: datetime):
        async with self._lock:
            self._attention[owner_id] = (needs_rebalance, checked_at)

    async def get_attention(self, owner_id: str) -> Optional[Tuple[bool, datetime]]:
        async with self._lock:
            return self._attention.get(owner_id)

    async def get_portfolio_row(self, owner_id: str, token_id: str) -> Optional[PortfolioEntry]:
        """Last upserted row for one token, including tokens no longer held"""
        async with self._lock:
            row = self._portfolio_rows.get((owner_id, token_id))
            return row.model_copy(deep=True) if row else None
