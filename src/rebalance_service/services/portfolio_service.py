import logging
from typing import Callable, List, Optional

from wallet_connector_base import (
    PortfolioStore,
    PortfolioSnapshot,
    RebalanceCheckResult,
    TransactionLogEntry,
    InputValidationError,
)
from rebalance_engine import SnapshotBuilder, analyze


class PortfolioService:
    """Wallet connection, current portfolio and read-only rebalance checks"""

    def __init__(self, snapshot_builder: SnapshotBuilder, store: PortfolioStore,
                 owner_validator: Callable[[str], bool],
                 logger: Optional[logging.Logger] = None):
        self.snapshot_builder = snapshot_builder
        self.store = store
        self.owner_validator = owner_validator
        self.logger = logger or logging.getLogger(__name__)

    def _validate_owner(self, owner_id: str):
        if not owner_id:
            raise InputValidationError("Public key is required")
        if not self.owner_validator(owner_id):
            raise InputValidationError("Invalid public key format")

    async def connect(self, owner_id: str) -> PortfolioSnapshot:
        """Register the wallet if it is new and return its first snapshot"""
        self._validate_owner(owner_id)
        owner = await self.store.ensure_owner(owner_id)
        self.logger.info(f"Wallet {owner.owner_id} connected (since {owner.created_at.isoformat()})")
        return await self.snapshot_builder.build_snapshot(owner_id)

    async def get_portfolio(self, owner_id: str) -> PortfolioSnapshot:
        self._validate_owner(owner_id)
        return await self.snapshot_builder.build_snapshot(owner_id)

    async def check_rebalance(self, owner_id: str) -> RebalanceCheckResult:
        """Fresh snapshot compared against the stored targets; nothing is planned"""
        self._validate_owner(owner_id)
        snapshot = await self.snapshot_builder.build_snapshot(owner_id)
        targets = await self.store.get_targets(owner_id)
        report = analyze(snapshot, targets)

        message = None
        if not targets:
            message = "No target allocation set"
        elif not report.needs_rebalance:
            message = "Portfolio is already balanced"

        return RebalanceCheckResult(
            needs_rebalance=report.needs_rebalance,
            deviations=report.deviations,
            current_portfolio=snapshot.entries,
            total_value=snapshot.total_value_usd,
            message=message
        )

    async def get_transaction_log(self, owner_id: str) -> List[TransactionLogEntry]:
        self._validate_owner(owner_id)
        return await self.store.get_transaction_log(owner_id)
