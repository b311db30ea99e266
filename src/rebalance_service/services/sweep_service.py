"""Sweep Service - Periodic drift check of every wallet with a target allocation"""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app_config import SchedulerConfig
from wallet_connector_base import PortfolioStore, PlanStatus
from rebalance_engine import SnapshotBuilder, PlanExecutionCoordinator, analyze
from ..models import OwnerSweepResult, SweepResult
from .notification_service import NotificationService


class RebalanceSweepService:
    """
    Runs the portfolio sweep on a fixed interval.

    Each sweep refreshes the persisted portfolio of every wallet with
    targets, records whether it needs attention, settles stale pending
    plans and notifies the owner. A failure on one wallet is logged and
    reported in the result; the sweep carries on with the next wallet.
    Only one sweep runs at a time: a tick that finds one in progress is
    skipped entirely.
    """

    def __init__(self, snapshot_builder: SnapshotBuilder, store: PortfolioStore,
                 coordinator: PlanExecutionCoordinator,
                 notification_service: NotificationService,
                 scheduler_config: SchedulerConfig,
                 logger: Optional[logging.Logger] = None):
        self.snapshot_builder = snapshot_builder
        self.store = store
        self.coordinator = coordinator
        self.notification_service = notification_service
        self.scheduler_config = scheduler_config
        self.logger = logger or logging.getLogger(__name__)
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False
        self._sweep_in_progress = False

    @property
    def sweep_in_progress(self) -> bool:
        return self._sweep_in_progress

    async def start(self):
        """Start the scheduler."""
        if not self.scheduler_config.enabled:
            self.logger.info("Portfolio sweep is disabled in configuration")
            return

        interval = self.scheduler_config.sweep_interval_seconds
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_sweep,
            IntervalTrigger(seconds=interval),
            id='portfolio_sweep',
            name='Portfolio Sweep',
            max_instances=1,
            coalesce=True
        )

        self.scheduler.start()
        self.running = True
        self.logger.info(f"Scheduler started - portfolio sweep every {interval}s")

    async def stop(self):
        """Stop the scheduler gracefully."""
        if self.scheduler and self.running:
            self.scheduler.shutdown(wait=False)
            self.running = False
            self.logger.info("Scheduler stopped")

    async def run_sweep(self) -> SweepResult:
        started_at = datetime.now(timezone.utc)

        if self._sweep_in_progress:
            self.logger.warning("Previous portfolio sweep still running, skipping")
            return SweepResult(started_at=started_at, finished_at=started_at, skipped=True)

        self._sweep_in_progress = True
        try:
            result = SweepResult(started_at=started_at)
            owner_ids = await self.store.list_owners_with_targets()
            self.logger.info(f"Checking {len(owner_ids)} wallets with target allocations")

            for owner_id in owner_ids:
                result.owners.append(await self._check_owner(owner_id))

            result.finished_at = datetime.now(timezone.utc)
            self.logger.info(
                f"Portfolio sweep complete: {len(result.owners)} checked, "
                f"{result.attention_count} need rebalancing, {result.failed_count} failed"
            )
            return result
        finally:
            self._sweep_in_progress = False

    async def _check_owner(self, owner_id: str) -> OwnerSweepResult:
        try:
            snapshot = await self.snapshot_builder.build_snapshot(owner_id)
            targets = await self.store.get_targets(owner_id)
            report = analyze(snapshot, targets)

            await self.store.set_attention(owner_id, report.needs_rebalance, datetime.now(timezone.utc))
            expired_plans = await self._settle_pending_plans(owner_id)

            if report.needs_rebalance:
                self.logger.info(f"Wallet {owner_id} needs rebalancing")
                await self.notification_service.send_attention_notification(
                    owner_id, snapshot.total_value_usd, report.deviations
                )

            return OwnerSweepResult(
                owner_id=owner_id,
                success=True,
                needs_rebalance=report.needs_rebalance,
                total_value=snapshot.total_value_usd,
                expired_plans=expired_plans
            )
        except Exception as e:
            self.logger.error(f"Error checking wallet {owner_id}: {e}")
            await self.notification_service.send_sweep_failure(owner_id, str(e))
            return OwnerSweepResult(owner_id=owner_id, success=False, error=str(e))

    async def _settle_pending_plans(self, owner_id: str) -> int:
        """Finalize pending plans; returns how many ended failed (expired or without swaps)"""
        expired = 0
        for plan in await self.store.list_plans(owner_id, PlanStatus.PENDING):
            settled = await self.coordinator.finalize_plan(plan.plan_id)
            if settled.status == PlanStatus.FAILED:
                expired += 1
        return expired
