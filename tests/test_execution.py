import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from wallet_connector_base import (
    RebalancePlan,
    SwapAction,
    PlanStatus,
    TxConfirmationStatus,
    InputValidationError,
    PlanNotFoundError,
    PlanAlreadyFinalizedError,
    QuoteExpiredError,
)
from rebalance_engine import PlanExecutionCoordinator
from fakes import OWNER, OTHER_OWNER, SOL, USDC, USDT, FakeSwapQuoter, FakeStatusChecker, make_config


def _swap(to_token_id=USDC, to_symbol="USDC", quote_expires_in=120):
    return SwapAction(
        from_token_id=SOL,
        from_symbol="SOL",
        to_token_id=to_token_id,
        to_symbol=to_symbol,
        from_amount=1.0,
        to_amount=100.0,
        swap_value_usd=100.0,
        quote_payload=f'{{"inputMint": "{SOL}", "outputMint": "{to_token_id}"}}',
        quote_expires_at=datetime.now(timezone.utc) + timedelta(seconds=quote_expires_in)
    )


def _save_plan(store, swaps=None, status=PlanStatus.PENDING, expires_in=3600):
    created_at = datetime.now(timezone.utc)
    plan = RebalancePlan(
        plan_id=str(uuid.uuid4()),
        owner_id=OWNER,
        status=status,
        total_value_usd=1000.0,
        swaps=[_swap()] if swaps is None else swaps,
        created_at=created_at,
        expires_at=created_at + timedelta(seconds=expires_in)
    )
    asyncio.run(store.save_plan(plan))
    return plan


class TestPrepareExecution:
    def test_builds_instructions_for_unconfirmed_swaps(self, store, coordinator, swap_quoter):
        plan = _save_plan(store, [_swap(), _swap(USDT, "USDT")])
        asyncio.run(store.record_swap_confirmation(plan.plan_id, 0, "sig-0", datetime.now(timezone.utc)))

        instructions = asyncio.run(coordinator.prepare_execution(plan.plan_id, OWNER))

        assert [i.swap_index for i in instructions] == [1]
        assert instructions[0].to_token_id == USDT
        assert instructions[0].payload["userPublicKey"] == OWNER
        assert swap_quoter.instruction_calls == [(plan.swaps[1].quote_payload, OWNER)]

    def test_unknown_plan(self, coordinator):
        with pytest.raises(PlanNotFoundError):
            asyncio.run(coordinator.prepare_execution("missing", OWNER))

    def test_other_owners_plan_is_not_found(self, store, coordinator):
        plan = _save_plan(store)

        with pytest.raises(PlanNotFoundError):
            asyncio.run(coordinator.prepare_execution(plan.plan_id, OTHER_OWNER))

    def test_finalized_plan_is_rejected(self, store, coordinator):
        plan = _save_plan(store, status=PlanStatus.EXECUTED)

        with pytest.raises(PlanAlreadyFinalizedError):
            asyncio.run(coordinator.prepare_execution(plan.plan_id, OWNER))

    def test_stale_quote_raises_quote_expired(self, store, coordinator, swap_quoter):
        plan = _save_plan(store, [_swap(), _swap(USDT, "USDT", quote_expires_in=-1)])

        with pytest.raises(QuoteExpiredError):
            asyncio.run(coordinator.prepare_execution(plan.plan_id, OWNER))

        assert swap_quoter.instruction_calls == []

    def test_quoter_rejection_raises_quote_expired(self, store, status_checker, config, prices):
        coordinator = PlanExecutionCoordinator(store, FakeSwapQuoter(prices, reject_instructions=True),
                                               status_checker, config=config)
        plan = _save_plan(store)

        with pytest.raises(QuoteExpiredError):
            asyncio.run(coordinator.prepare_execution(plan.plan_id, OWNER))


class TestConfirmSwap:
    def test_confirmation_records_signature_and_finalizes(self, store, coordinator):
        plan = _save_plan(store)

        result = asyncio.run(coordinator.confirm_swap(plan.plan_id, "sig-1", OWNER))

        assert result.outcome == 'confirmed'
        assert result.swap_index == 0
        assert result.plan_status == PlanStatus.EXECUTED
        stored = asyncio.run(store.get_plan(plan.plan_id))
        assert stored.swaps[0].execution_signature == "sig-1"
        assert stored.swaps[0].confirmed_at is not None
        log = asyncio.run(store.get_transaction_log(OWNER))
        assert [(e.plan_id, e.tx_signature, e.status, e.type) for e in log] == [
            (plan.plan_id, "sig-1", "success", "rebalance")
        ]

    def test_partial_confirmation_keeps_plan_pending(self, store, coordinator):
        plan = _save_plan(store, [_swap(), _swap(USDT, "USDT")])

        first = asyncio.run(coordinator.confirm_swap(plan.plan_id, "sig-1", OWNER))
        assert first.plan_status == PlanStatus.PENDING

        second = asyncio.run(coordinator.confirm_swap(plan.plan_id, "sig-2", OWNER))
        assert second.swap_index == 1
        assert second.plan_status == PlanStatus.EXECUTED

    def test_repeated_signature_is_idempotent(self, store, coordinator, status_checker):
        plan = _save_plan(store)

        first = asyncio.run(coordinator.confirm_swap(plan.plan_id, "sig-1", OWNER))
        second = asyncio.run(coordinator.confirm_swap(plan.plan_id, "sig-1", OWNER))

        assert first.outcome == 'confirmed'
        assert second.outcome == 'already_confirmed'
        assert second.swap_index == 0
        assert second.plan_status == PlanStatus.EXECUTED
        assert status_checker.calls == ["sig-1"]
        assert len(asyncio.run(store.get_transaction_log(OWNER))) == 1

    def test_concurrent_duplicate_confirmations(self, store, coordinator):
        plan = _save_plan(store, [_swap(), _swap(USDT, "USDT")])

        async def confirm_twice():
            return await asyncio.gather(
                coordinator.confirm_swap(plan.plan_id, "sig-1", OWNER),
                coordinator.confirm_swap(plan.plan_id, "sig-1", OWNER),
            )

        outcomes = sorted(r.outcome for r in asyncio.run(confirm_twice()))

        assert outcomes == ['already_confirmed', 'confirmed']
        stored = asyncio.run(store.get_plan(plan.plan_id))
        assert [s.execution_signature for s in stored.swaps] == ["sig-1", None]
        assert len(asyncio.run(store.get_transaction_log(OWNER))) == 1

    def test_pending_signature_times_out_and_plan_stays_pending(self, store, swap_quoter, config):
        checker = FakeStatusChecker(default=TxConfirmationStatus.PENDING)
        coordinator = PlanExecutionCoordinator(store, swap_quoter, checker, config=config)
        plan = _save_plan(store)

        result = asyncio.run(coordinator.confirm_swap(plan.plan_id, "sig-1", OWNER))

        assert result.outcome == 'timeout'
        assert result.tx_status == TxConfirmationStatus.PENDING
        assert result.plan_status == PlanStatus.PENDING
        assert asyncio.run(store.get_plan(plan.plan_id)).swaps[0].execution_signature is None

    @pytest.mark.parametrize("status", [TxConfirmationStatus.FAILED, TxConfirmationStatus.NOT_FOUND])
    def test_failed_signature_is_reported(self, store, swap_quoter, config, status):
        coordinator = PlanExecutionCoordinator(store, swap_quoter, FakeStatusChecker(default=status), config=config)
        plan = _save_plan(store)

        result = asyncio.run(coordinator.confirm_swap(plan.plan_id, "sig-1", OWNER))

        assert result.outcome == 'failed'
        assert result.tx_status == status
        assert asyncio.run(store.get_plan(plan.plan_id)).status == PlanStatus.PENDING
        assert asyncio.run(store.get_transaction_log(OWNER)) == []

    def test_polls_until_confirmed(self, store, swap_quoter):
        config = make_config(execution={"confirmation_timeout_seconds": 5,
                                        "confirmation_poll_interval_seconds": 0.1})
        checker = FakeStatusChecker({"sig-1": [TxConfirmationStatus.PENDING, TxConfirmationStatus.PENDING,
                                               TxConfirmationStatus.FINALIZED]})
        coordinator = PlanExecutionCoordinator(store, swap_quoter, checker, config=config)
        plan = _save_plan(store)

        result = asyncio.run(coordinator.confirm_swap(plan.plan_id, "sig-1", OWNER))

        assert result.outcome == 'confirmed'
        assert result.tx_status == TxConfirmationStatus.FINALIZED
        assert len(checker.calls) == 3

    def test_explicit_swap_index(self, store, coordinator):
        plan = _save_plan(store, [_swap(), _swap(USDT, "USDT")])

        result = asyncio.run(coordinator.confirm_swap(plan.plan_id, "sig-9", OWNER, swap_index=1))

        assert result.swap_index == 1
        stored = asyncio.run(store.get_plan(plan.plan_id))
        assert [s.execution_signature for s in stored.swaps] == [None, "sig-9"]

    def test_swap_index_out_of_range(self, store, coordinator):
        plan = _save_plan(store)

        with pytest.raises(InputValidationError):
            asyncio.run(coordinator.confirm_swap(plan.plan_id, "sig-1", OWNER, swap_index=3))

    def test_new_signature_on_finalized_plan_is_rejected(self, store, coordinator):
        plan = _save_plan(store, status=PlanStatus.FAILED)

        with pytest.raises(PlanAlreadyFinalizedError):
            asyncio.run(coordinator.confirm_swap(plan.plan_id, "sig-1", OWNER))


class TestFinalizeAndAbort:
    def test_zero_swap_plan_finalizes_to_failed(self, store, coordinator):
        plan = _save_plan(store, swaps=[])

        assert asyncio.run(coordinator.finalize_plan(plan.plan_id)).status == PlanStatus.FAILED

    def test_unexpired_partial_plan_stays_pending(self, store, coordinator):
        plan = _save_plan(store, [_swap(), _swap(USDT, "USDT")])
        asyncio.run(store.record_swap_confirmation(plan.plan_id, 0, "sig-0", datetime.now(timezone.utc)))

        assert asyncio.run(coordinator.finalize_plan(plan.plan_id)).status == PlanStatus.PENDING

    def test_expired_plan_with_unconfirmed_swaps_fails(self, store, coordinator):
        plan = _save_plan(store, expires_in=-1)

        assert asyncio.run(coordinator.finalize_plan(plan.plan_id)).status == PlanStatus.FAILED

    def test_finalized_plan_is_returned_untouched(self, store, coordinator):
        plan = _save_plan(store, status=PlanStatus.EXECUTED, expires_in=-1)

        assert asyncio.run(coordinator.finalize_plan(plan.plan_id)).status == PlanStatus.EXECUTED

    def test_abort_marks_pending_plan_failed(self, store, coordinator):
        plan = _save_plan(store)

        aborted = asyncio.run(coordinator.abort_plan(plan.plan_id, OWNER))

        assert aborted.status == PlanStatus.FAILED
        with pytest.raises(PlanAlreadyFinalizedError):
            asyncio.run(coordinator.abort_plan(plan.plan_id, OWNER))

    def test_status_transition_happens_once(self, store):
        plan = _save_plan(store)

        first = asyncio.run(store.transition_plan_status(plan.plan_id, PlanStatus.PENDING, PlanStatus.EXECUTED))
        second = asyncio.run(store.transition_plan_status(plan.plan_id, PlanStatus.PENDING, PlanStatus.FAILED))

        assert (first, second) == (True, False)
        assert asyncio.run(store.get_plan(plan.plan_id)).status == PlanStatus.EXECUTED
