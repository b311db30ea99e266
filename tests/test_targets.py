import asyncio

import pytest

from wallet_connector_base import InputValidationError
from rebalance_engine import TargetAllocationService, TargetAllocationInput
from solana_connector import validate_public_key
from fakes import OWNER, SOL, USDC, USDT


def _row(token_id, symbol, target, threshold=None):
    return TargetAllocationInput(token_id=token_id, symbol=symbol,
                                 target_percentage=target, threshold_percentage=threshold)


@pytest.fixture
def target_service(store, config):
    return TargetAllocationService(store, config=config, owner_validator=validate_public_key)


class TestSaveTargets:
    def test_saves_valid_target_set(self, target_service, store):
        saved = asyncio.run(target_service.save_targets(OWNER, [
            _row(SOL, "SOL", 60, 3), _row(USDC, "USDC", 40)
        ]))

        assert [t.token_id for t in saved] == [SOL, USDC]
        assert saved[0].threshold_percentage == 3
        assert saved[1].threshold_percentage == 5.0
        assert asyncio.run(store.get_targets(OWNER)) == saved
        assert asyncio.run(store.list_owners_with_targets()) == [OWNER]

    def test_sum_off_by_half_percent_is_rejected(self, target_service, store):
        with pytest.raises(InputValidationError, match="sum to 100"):
            asyncio.run(target_service.save_targets(OWNER, [
                _row(SOL, "SOL", 50), _row(USDC, "USDC", 49.5)
            ]))

        assert asyncio.run(store.get_targets(OWNER)) == []

    def test_sum_within_tolerance_is_accepted(self, target_service):
        saved = asyncio.run(target_service.save_targets(OWNER, [
            _row(SOL, "SOL", 33.334), _row(USDC, "USDC", 33.333), _row(USDT, "USDT", 33.333)
        ]))

        assert len(saved) == 3

    def test_save_replaces_previous_set(self, target_service, store):
        asyncio.run(target_service.save_targets(OWNER, [_row(SOL, "SOL", 50), _row(USDC, "USDC", 50)]))
        asyncio.run(target_service.save_targets(OWNER, [_row(USDT, "USDT", 100)]))

        assert [t.token_id for t in asyncio.run(store.get_targets(OWNER))] == [USDT]

    @pytest.mark.parametrize("rows, message", [
        ([], "At least one"),
        ([_row(SOL, "SOL", 50), _row(SOL, "SOL", 50)], "Duplicate"),
        ([_row(SOL, "SOL", 120), _row(USDC, "USDC", -20)], "between 0 and 100"),
        ([_row(SOL, "SOL", 50, -1), _row(USDC, "USDC", 50)], "must be positive"),
    ])
    def test_invalid_rows_are_rejected(self, target_service, store, rows, message):
        with pytest.raises(InputValidationError, match=message):
            asyncio.run(target_service.save_targets(OWNER, rows))

        assert asyncio.run(store.get_targets(OWNER)) == []

    def test_malformed_owner_is_rejected(self, target_service):
        with pytest.raises(InputValidationError, match="public key"):
            asyncio.run(target_service.save_targets("not-a-key!", [_row(SOL, "SOL", 100)]))


class TestGetTargets:
    def test_returns_saved_targets_in_order(self, target_service):
        asyncio.run(target_service.save_targets(OWNER, [_row(USDC, "USDC", 40), _row(SOL, "SOL", 60)]))

        targets = asyncio.run(target_service.get_targets(OWNER))

        assert [t.token_id for t in targets] == [USDC, SOL]

    def test_malformed_owner_is_rejected(self, target_service):
        with pytest.raises(InputValidationError, match="Invalid public key format"):
            asyncio.run(target_service.get_targets("not-a-key!"))
