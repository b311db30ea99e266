import pytest

from app_config import set_config
from rebalance_engine import SnapshotBuilder, RebalancePlanner, PlanExecutionCoordinator
from rebalance_service.stores import InMemoryPortfolioStore
from fakes import (
    OWNER,
    SOL,
    USDC,
    FakeBalanceSource,
    FakePriceOracle,
    FakeSwapQuoter,
    FakeStatusChecker,
    holding,
    make_config,
)


@pytest.fixture
def config():
    return set_config(make_config())


@pytest.fixture
def prices():
    return {SOL: 100.0, USDC: 1.0}


@pytest.fixture
def store():
    return InMemoryPortfolioStore()


@pytest.fixture
def balance_source():
    # 6 SOL @ 100 + 400 USDC = 1000 USD, 60% / 40%
    return FakeBalanceSource({OWNER: [holding(SOL, 6.0), holding(USDC, 400.0)]})


@pytest.fixture
def price_oracle(prices):
    return FakePriceOracle(prices)


@pytest.fixture
def swap_quoter(prices):
    return FakeSwapQuoter(prices)


@pytest.fixture
def status_checker():
    return FakeStatusChecker()


@pytest.fixture
def snapshot_builder(balance_source, price_oracle, store):
    return SnapshotBuilder(balance_source, price_oracle, store)


@pytest.fixture
def planner(snapshot_builder, swap_quoter, store, config):
    return RebalancePlanner(snapshot_builder, swap_quoter, store, config=config)


@pytest.fixture
def coordinator(store, swap_quoter, status_checker, config):
    return PlanExecutionCoordinator(store, swap_quoter, status_checker, config=config)
