"""Greedy pairwise rebalance planning"""

import asyncio
import logging
import math
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from app_config import AppConfig, get_config
from wallet_connector_base import (
    SwapQuoter,
    PortfolioStore,
    PortfolioSnapshot,
    DeviationReport,
    SwapAction,
    SwapQuote,
    RebalancePlan,
    PlanStatus,
    CreatePlanResult,
    InputValidationError,
)
from .analyzer import analyze
from .models import WorkingDeviation
from .snapshot import SnapshotBuilder


class RebalancePlanner:
    """
    Turn threshold breaches into an ordered list of quoted swaps.

    Every oversupplied token (in target order) is matched against every
    undersupplied token (in target order). Each recorded swap moves the
    running deviations of both tokens, so later pairs see the effect of
    earlier ones. Plan creation is serialised per owner.
    """

    def __init__(self, snapshot_builder: SnapshotBuilder, swap_quoter: SwapQuoter,
                 store: PortfolioStore, config: Optional[AppConfig] = None,
                 decimals_lookup: Optional[Callable[[str], Optional[int]]] = None,
                 owner_validator: Optional[Callable[[str], bool]] = None,
                 logger: Optional[logging.Logger] = None):
        self.snapshot_builder = snapshot_builder
        self.swap_quoter = swap_quoter
        self.store = store
        self.config = config or get_config()
        self.decimals_lookup = decimals_lookup
        self.owner_validator = owner_validator
        self.logger = logger or logging.getLogger(__name__)
        self._owner_locks = defaultdict(asyncio.Lock)

    async def create_plan(self, owner_id: str) -> CreatePlanResult:
        """
        Build and persist a pending plan, or report that the portfolio is balanced.

        Raises:
            InputValidationError: If the owner key is missing or malformed
        """
        if not owner_id:
            raise InputValidationError("Owner public key is required")
        if self.owner_validator and not self.owner_validator(owner_id):
            raise InputValidationError("Invalid public key format")

        waiting = self._owner_locks[owner_id].locked()
        if waiting:
            self.logger.debug(f"Plan creation for {owner_id} waiting for an in-flight plan")

        async with self._owner_locks[owner_id]:
            snapshot = await self.snapshot_builder.build_snapshot(owner_id)
            targets = await self.store.get_targets(owner_id)
            report = analyze(snapshot, targets)

            if not report.needs_rebalance:
                self.logger.info(f"Portfolio {owner_id} is already balanced")
                return CreatePlanResult(
                    needs_rebalance=False,
                    deviations=report.deviations,
                    message='Portfolio is already balanced'
                )

            swaps = await self.plan_swaps(snapshot, report)

            created_at = datetime.now(timezone.utc)
            plan = RebalancePlan(
                plan_id=str(uuid.uuid4()),
                owner_id=owner_id,
                status=PlanStatus.PENDING,
                total_value_usd=snapshot.total_value_usd,
                swaps=swaps,
                estimated_slippage=self.estimate_slippage(swaps),
                created_at=created_at,
                expires_at=created_at + timedelta(seconds=self.config.planner.plan_ttl_seconds)
            )

            await self.store.save_plan(plan)
            self._log_plan(plan)

            return CreatePlanResult(
                needs_rebalance=True,
                plan=plan,
                deviations=report.deviations
            )

    async def plan_swaps(self, snapshot: PortfolioSnapshot, report: DeviationReport) -> List[SwapAction]:
        """
        Run the greedy matching over a private copy of the deviations.

        A pair without a route (no quote, timeout or quoter error) is skipped
        without touching the running deviations.
        """
        total_value = snapshot.total_value_usd
        if total_value <= 0:
            self.logger.warning(f"Portfolio {snapshot.owner_id} has no value, nothing to swap")
            return []

        working = [
            WorkingDeviation(
                token_id=d.token_id,
                symbol=d.symbol,
                deviation=d.deviation,
                threshold=d.threshold_percentage
            )
            for d in report.deviations
        ]
        oversupply = [w for w in working if w.deviation > w.threshold]
        undersupply = [w for w in working if w.deviation < -w.threshold]

        epsilon = self.config.planner.min_deviation_percent
        swaps = []

        for over in oversupply:
            over_entry = snapshot.entry_for(over.token_id)
            if not over_entry or over_entry.price_usd <= 0:
                self.logger.warning(f"No priced holding for oversupplied {over.symbol}, skipping")
                continue

            over_price = over_entry.price_usd
            excess_value = (over.deviation / 100) * total_value
            self.logger.debug(
                f"{over.symbol} over target by {over.deviation:.2f}% "
                f"(${excess_value:,.2f}, {excess_value / over_price:.6f} {over.symbol})"
            )

            for under in undersupply:
                if abs(under.deviation) < epsilon:
                    continue

                needed_value = (abs(under.deviation) / 100) * total_value
                swap_value = min(excess_value, needed_value)
                swap_amount = swap_value / over_price
                raw_amount = math.floor(swap_amount * 10 ** over_entry.decimals)

                if raw_amount <= 0:
                    self.logger.debug(f"Swap {over.symbol} -> {under.symbol} rounds to zero units, skipping")
                    continue

                quote = await self._get_quote(over, under, raw_amount)
                if quote is None:
                    continue

                to_amount = quote.out_amount / 10 ** self._output_decimals(snapshot, under.token_id, quote)
                swaps.append(SwapAction(
                    from_token_id=over.token_id,
                    from_symbol=over.symbol,
                    to_token_id=under.token_id,
                    to_symbol=under.symbol,
                    from_amount=swap_amount,
                    to_amount=to_amount,
                    price_impact_percent=self._price_impact(quote, snapshot, under.token_id,
                                                            swap_value, to_amount),
                    swap_value_usd=swap_value,
                    quote_payload=quote.payload,
                    quote_expires_at=quote.expires_at
                ))

                shift = (swap_value / total_value) * 100
                over.deviation -= shift
                under.deviation += shift

        return swaps

    async def _get_quote(self, over: WorkingDeviation, under: WorkingDeviation,
                         raw_amount: int) -> Optional[SwapQuote]:
        timeout = self.config.swap_quoter.quote_timeout_seconds
        try:
            quote = await asyncio.wait_for(
                self.swap_quoter.get_quote(over.token_id, under.token_id, raw_amount),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            self.logger.warning(f"Quote {over.symbol} -> {under.symbol} timed out after {timeout}s")
            return None
        except Exception as e:
            self.logger.warning(f"Quote {over.symbol} -> {under.symbol} failed: {e}")
            return None

        if quote is None:
            self.logger.info(f"No route for {over.symbol} -> {under.symbol} ({raw_amount} units)")
        return quote

    def _output_decimals(self, snapshot: PortfolioSnapshot, token_id: str, quote: SwapQuote) -> int:
        entry = snapshot.entry_for(token_id)
        if entry:
            return entry.decimals
        if quote.output_decimals is not None:
            return quote.output_decimals
        if self.decimals_lookup:
            decimals = self.decimals_lookup(token_id)
            if decimals is not None:
                return decimals
        return self.config.planner.default_token_decimals

    @staticmethod
    def _price_impact(quote: SwapQuote, snapshot: PortfolioSnapshot, to_token_id: str,
                      swap_value: float, to_amount: float) -> float:
        """Quoted impact is authoritative; otherwise estimate from USD values"""
        if quote.price_impact_percent is not None:
            return quote.price_impact_percent

        to_entry = snapshot.entry_for(to_token_id)
        if not to_entry or to_entry.price_usd <= 0 or swap_value <= 0:
            return 0.0

        received_value = to_amount * to_entry.price_usd
        return max(0.0, (swap_value - received_value) / swap_value * 100)

    @staticmethod
    def estimate_slippage(swaps: List[SwapAction]) -> float:
        """Mean price impact of the recorded swaps, 0.0 when there are none"""
        if not swaps:
            return 0.0
        return sum(s.price_impact_percent for s in swaps) / len(swaps)

    def _log_plan(self, plan: RebalancePlan):
        self.logger.info(f"====== REBALANCE PLAN {plan.plan_id} ======")
        self.logger.info(f"Owner: {plan.owner_id}")
        self.logger.info(f"Portfolio Value: ${plan.total_value_usd:,.2f}")

        if not plan.swaps:
            self.logger.warning("No swaps could be quoted - plan is empty")
        for swap in plan.swaps:
            self.logger.info(
                f"  SWAP {swap.from_amount:,.6f} {swap.from_symbol} -> "
                f"{swap.to_amount:,.6f} {swap.to_symbol} "
                f"(${swap.swap_value_usd:,.2f}, impact {swap.price_impact_percent:.3f}%)"
            )

        self.logger.info(f"Estimated slippage: {plan.estimated_slippage:.3f}%")
        self.logger.info("=" * 40)
