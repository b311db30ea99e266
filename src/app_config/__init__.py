"""Application configuration management for the Solana portfolio rebalancer."""

from .models import (
    AppConfig,
    SolanaConfig,
    PriceOracleConfig,
    SwapQuoterConfig,
    PlannerConfig,
    ExecutionConfig,
    SchedulerConfig,
    StoreConfig,
    NotificationsConfig,
    LoggingConfig,
    APIConfig,
)
from .loader import load_config, get_config, set_config

__all__ = [
    "AppConfig",
    "SolanaConfig",
    "PriceOracleConfig",
    "SwapQuoterConfig",
    "PlannerConfig",
    "ExecutionConfig",
    "SchedulerConfig",
    "StoreConfig",
    "NotificationsConfig",
    "LoggingConfig",
    "APIConfig",
    "load_config",
    "get_config",
    "set_config",
]
