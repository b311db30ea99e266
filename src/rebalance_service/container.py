"""
Service container using dependency-injector for the rebalancer service
"""
from dependency_injector import containers, providers

from app_config import get_config
from rebalance_engine import (
    SnapshotBuilder,
    TargetAllocationService,
    RebalancePlanner,
    PlanExecutionCoordinator,
)
from solana_connector import (
    SolanaRpcClient,
    SolanaBalanceSource,
    SolanaTransactionStatusChecker,
    PythPriceOracle,
    JupiterSwapQuoter,
    validate_public_key,
    decimals_for,
)
from .stores import RedisPortfolioStore, InMemoryPortfolioStore
from .services import NotificationService, PortfolioService, RebalanceSweepService


class ServiceContainer(containers.DeclarativeContainer):
    """DI Container for the rebalancer service"""

    # Configuration (load_config must have run before first access)
    app_config = providers.Singleton(get_config)

    # Solana collaborators
    rpc_client = providers.Singleton(
        SolanaRpcClient,
        config=app_config
    )

    balance_source = providers.Singleton(
        SolanaBalanceSource,
        rpc=rpc_client
    )

    tx_status_checker = providers.Singleton(
        SolanaTransactionStatusChecker,
        rpc=rpc_client
    )

    price_oracle = providers.Singleton(
        PythPriceOracle,
        config=app_config
    )

    swap_quoter = providers.Singleton(
        JupiterSwapQuoter,
        config=app_config
    )

    # Persistence, selected by store.backend
    store = providers.Selector(
        providers.Callable(lambda config: config.store.backend, app_config),
        redis=providers.Singleton(
            RedisPortfolioStore,
            store_config=app_config.provided.store
        ),
        memory=providers.Singleton(
            InMemoryPortfolioStore
        )
    )

    # Rebalance engine
    snapshot_builder = providers.Singleton(
        SnapshotBuilder,
        balance_source=balance_source,
        price_oracle=price_oracle,
        store=store
    )

    target_service = providers.Singleton(
        TargetAllocationService,
        store=store,
        config=app_config,
        owner_validator=providers.Object(validate_public_key)
    )

    planner = providers.Singleton(
        RebalancePlanner,
        snapshot_builder=snapshot_builder,
        swap_quoter=swap_quoter,
        store=store,
        config=app_config,
        decimals_lookup=providers.Object(decimals_for),
        owner_validator=providers.Object(validate_public_key)
    )

    coordinator = providers.Singleton(
        PlanExecutionCoordinator,
        store=store,
        swap_quoter=swap_quoter,
        tx_status_checker=tx_status_checker,
        config=app_config
    )

    # Application services
    portfolio_service = providers.Singleton(
        PortfolioService,
        snapshot_builder=snapshot_builder,
        store=store,
        owner_validator=providers.Object(validate_public_key)
    )

    notification_service = providers.Singleton(
        NotificationService,
        notifications_config=app_config.provided.notifications
    )

    sweep_service = providers.Singleton(
        RebalanceSweepService,
        snapshot_builder=snapshot_builder,
        store=store,
        coordinator=coordinator,
        notification_service=notification_service,
        scheduler_config=app_config.provided.scheduler
    )
