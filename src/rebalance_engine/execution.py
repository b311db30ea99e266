"""Plan execution coordination: instruction building, confirmation and finalization"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import List, Optional

from app_config import AppConfig, get_config
from wallet_connector_base import (
    SwapQuoter,
    TransactionStatusChecker,
    PortfolioStore,
    RebalancePlan,
    PlanStatus,
    SwapInstruction,
    ConfirmSwapResult,
    TransactionLogEntry,
    TxConfirmationStatus,
    InputValidationError,
    PlanNotFoundError,
    PlanAlreadyFinalizedError,
    QuoteExpiredError,
    ConfirmationTimeoutError,
)


class PlanExecutionCoordinator:
    """
    Drive a pending plan to a terminal state.

    The coordinator never signs or broadcasts. It hands out unsigned
    instructions, watches signatures reported by the client and moves the
    plan status with compare-and-swap writes, so concurrent finalizers
    cannot both win.
    """

    def __init__(self, store: PortfolioStore, swap_quoter: SwapQuoter,
                 tx_status_checker: TransactionStatusChecker,
                 config: Optional[AppConfig] = None,
                 logger: Optional[logging.Logger] = None):
        self.store = store
        self.swap_quoter = swap_quoter
        self.tx_status_checker = tx_status_checker
        self.config = config or get_config()
        self.logger = logger or logging.getLogger(__name__)
        self._plan_locks = defaultdict(asyncio.Lock)

    async def get_plan(self, plan_id: str, owner_id: Optional[str] = None) -> RebalancePlan:
        """
        Load a plan, optionally scoped to its owner.

        Raises:
            PlanNotFoundError: If the plan does not exist or belongs to someone else
        """
        plan = await self.store.get_plan(plan_id)
        if plan is None or (owner_id is not None and plan.owner_id != owner_id):
            raise PlanNotFoundError(f"Rebalance plan {plan_id} not found")
        return plan

    async def prepare_execution(self, plan_id: str, owner_id: Optional[str] = None) -> List[SwapInstruction]:
        """
        Build unsigned instructions for every unconfirmed swap of a pending plan.

        Raises:
            PlanNotFoundError: Unknown plan or owner mismatch
            PlanAlreadyFinalizedError: Plan is executed or failed
            QuoteExpiredError: A stored quote is stale or rejected by the quoter
        """
        plan = await self.get_plan(plan_id, owner_id)
        if plan.status != PlanStatus.PENDING:
            raise PlanAlreadyFinalizedError(f"Plan {plan_id} is already {plan.status.value}")

        now = datetime.now(timezone.utc)
        pending_swaps = [(i, s) for i, s in enumerate(plan.swaps) if not s.is_confirmed]

        for index, swap in pending_swaps:
            if swap.quote_expires_at <= now:
                self.logger.warning(
                    f"Quote for swap {index} of plan {plan_id} ({swap.from_symbol} -> {swap.to_symbol}) "
                    f"expired at {swap.quote_expires_at.isoformat()}"
                )
                raise QuoteExpiredError(
                    f"Quote for {swap.from_symbol} -> {swap.to_symbol} has expired, create a new plan"
                )

        instructions = []
        for index, swap in pending_swaps:
            payload = await self.swap_quoter.build_instructions(swap.quote_payload, plan.owner_id)
            instructions.append(SwapInstruction(
                plan_id=plan.plan_id,
                swap_index=index,
                from_token_id=swap.from_token_id,
                to_token_id=swap.to_token_id,
                payload=payload
            ))

        self.logger.info(f"Prepared {len(instructions)} swap instructions for plan {plan_id}")
        return instructions

    async def confirm_swap(self, plan_id: str, tx_signature: str,
                           owner_id: Optional[str] = None,
                           swap_index: Optional[int] = None) -> ConfirmSwapResult:
        """
        Wait for a reported signature and attach it to one swap of the plan.

        A signature already recorded on the plan is reported as
        already_confirmed without any write. Failed or timed-out signatures
        leave the plan pending.
        """
        if not tx_signature:
            raise InputValidationError("Transaction signature is required")

        async with self._plan_locks[plan_id]:
            plan = await self.get_plan(plan_id, owner_id)

            existing_index = plan.swap_for_signature(tx_signature)
            if existing_index is not None:
                self.logger.info(f"Signature {tx_signature} already recorded on plan {plan_id}")
                return self._result(plan, tx_signature, existing_index, 'already_confirmed',
                                    TxConfirmationStatus.CONFIRMED)

            if plan.status != PlanStatus.PENDING:
                raise PlanAlreadyFinalizedError(f"Plan {plan_id} is already {plan.status.value}")

            index = self._select_swap(plan, swap_index)

            try:
                tx_status = await self.wait_for_confirmation(tx_signature)
            except ConfirmationTimeoutError as e:
                self.logger.warning(f"Plan {plan_id}: {e}")
                return self._result(plan, tx_signature, index, 'timeout', e.last_status)

            if tx_status not in TxConfirmationStatus.SUCCESS_STATES:
                self.logger.error(f"Plan {plan_id}: transaction {tx_signature} ended in status '{tx_status}'")
                return self._result(plan, tx_signature, index, 'failed', tx_status)

            confirmed_at = datetime.now(timezone.utc)
            recorded = await self.store.record_swap_confirmation(plan_id, index, tx_signature, confirmed_at)
            if not recorded:
                return await self._resolve_lost_write(plan_id, tx_signature, index)

            await self.store.append_transaction_log(TransactionLogEntry(
                owner_id=plan.owner_id,
                plan_id=plan_id,
                tx_signature=tx_signature,
                swap_index=index,
                created_at=confirmed_at
            ))
            swap = plan.swaps[index]
            self.logger.info(
                f"Plan {plan_id}: swap {index} ({swap.from_symbol} -> {swap.to_symbol}) "
                f"confirmed by {tx_signature}"
            )

            plan = await self.finalize_plan(plan_id)
            return self._result(plan, tx_signature, index, 'confirmed', tx_status)

    async def wait_for_confirmation(self, tx_signature: str, timeout: Optional[float] = None) -> str:
        """
        Poll a signature until it leaves the pending state.

        Returns:
            The first non-pending normalized status

        Raises:
            ConfirmationTimeoutError: If still pending when the window closes
        """
        if timeout is None:
            timeout = self.config.execution.confirmation_timeout_seconds
        interval = self.config.execution.confirmation_poll_interval_seconds

        start_time = datetime.now()
        while True:
            try:
                status = await self.tx_status_checker.check(tx_signature)
            except Exception as e:
                self.logger.warning(f"Status check for {tx_signature} failed: {e}")
                status = TxConfirmationStatus.UNKNOWN

            self.logger.debug(f"Transaction {tx_signature} status: '{status}'")
            if status != TxConfirmationStatus.PENDING:
                return status

            if (datetime.now() - start_time).total_seconds() >= timeout:
                raise ConfirmationTimeoutError(
                    f"Transaction {tx_signature} not confirmed within {timeout}s",
                    last_status=status
                )
            await asyncio.sleep(interval)

    async def finalize_plan(self, plan_id: str, owner_id: Optional[str] = None) -> RebalancePlan:
        """
        Move a pending plan to executed (all swaps confirmed) or failed (expired).

        A plan without swaps had no route for any pair and fails at once.
        A plan that is neither complete nor expired stays pending and can be
        resumed. Executed and failed plans are returned untouched.
        """
        plan = await self.get_plan(plan_id, owner_id)
        if plan.status != PlanStatus.PENDING:
            return plan

        if not plan.swaps:
            new_status = PlanStatus.FAILED
        elif plan.all_swaps_confirmed:
            new_status = PlanStatus.EXECUTED
        elif datetime.now(timezone.utc) >= plan.expires_at:
            new_status = PlanStatus.FAILED
        else:
            confirmed = sum(1 for s in plan.swaps if s.is_confirmed)
            self.logger.debug(f"Plan {plan_id} still pending ({confirmed}/{len(plan.swaps)} swaps confirmed)")
            return plan

        if await self.store.transition_plan_status(plan_id, PlanStatus.PENDING, new_status):
            if new_status == PlanStatus.EXECUTED:
                self.logger.info(f"Plan {plan_id} executed ({len(plan.swaps)} swaps)")
            elif not plan.swaps:
                self.logger.warning(f"Plan {plan_id} has no swaps, marked failed")
            else:
                self.logger.warning(f"Plan {plan_id} expired with unconfirmed swaps, marked failed")
        else:
            self.logger.debug(f"Plan {plan_id} was finalized concurrently")

        return await self.get_plan(plan_id)

    async def abort_plan(self, plan_id: str, owner_id: Optional[str] = None) -> RebalancePlan:
        """Mark a pending plan failed on request"""
        plan = await self.get_plan(plan_id, owner_id)
        if plan.status != PlanStatus.PENDING:
            raise PlanAlreadyFinalizedError(f"Plan {plan_id} is already {plan.status.value}")

        if not await self.store.transition_plan_status(plan_id, PlanStatus.PENDING, PlanStatus.FAILED):
            plan = await self.get_plan(plan_id)
            raise PlanAlreadyFinalizedError(f"Plan {plan_id} is already {plan.status.value}")

        self.logger.info(f"Plan {plan_id} aborted")
        return await self.get_plan(plan_id)

    def _select_swap(self, plan: RebalancePlan, swap_index: Optional[int]) -> int:
        if swap_index is not None:
            if not 0 <= swap_index < len(plan.swaps):
                raise InputValidationError(
                    f"Swap index {swap_index} out of range for plan with {len(plan.swaps)} swaps"
                )
            if plan.swaps[swap_index].is_confirmed:
                raise InputValidationError(f"Swap {swap_index} of plan {plan.plan_id} is already confirmed")
            return swap_index

        for index, swap in enumerate(plan.swaps):
            if not swap.is_confirmed:
                return index
        raise InputValidationError(f"Plan {plan.plan_id} has no unconfirmed swaps")

    async def _resolve_lost_write(self, plan_id: str, tx_signature: str, index: int) -> ConfirmSwapResult:
        # Conditional write rejected: another writer got there first
        plan = await self.get_plan(plan_id)
        existing_index = plan.swap_for_signature(tx_signature)
        if existing_index is not None:
            return self._result(plan, tx_signature, existing_index, 'already_confirmed',
                                TxConfirmationStatus.CONFIRMED)
        if plan.status != PlanStatus.PENDING:
            raise PlanAlreadyFinalizedError(f"Plan {plan_id} is already {plan.status.value}")
        raise InputValidationError(f"Swap {index} of plan {plan_id} is already confirmed")

    @staticmethod
    def _result(plan: RebalancePlan, tx_signature: str, swap_index: Optional[int],
                outcome: str, tx_status: Optional[str]) -> ConfirmSwapResult:
        return ConfirmSwapResult(
            plan_id=plan.plan_id,
            tx_signature=tx_signature,
            swap_index=swap_index,
            outcome=outcome,
            tx_status=tx_status,
            plan_status=plan.status
        )
