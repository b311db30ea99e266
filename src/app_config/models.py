"""Pydantic models for application configuration with validation."""

import re
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator


class SolanaConfig(BaseModel):
    """Solana JSON-RPC connection configuration."""

    rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        description="Solana JSON-RPC endpoint"
    )
    commitment: Literal["processed", "confirmed", "finalized"] = Field(
        default="confirmed",
        description="Commitment level used for balance reads"
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        ge=1.0,
        le=120.0,
        description="Timeout for a single RPC request"
    )


class PriceOracleConfig(BaseModel):
    """Pyth Hermes price oracle configuration."""

    api_url: str = Field(
        default="https://hermes.pyth.network/v2",
        description="Base URL of the Pyth Hermes API"
    )
    cache_ttl_seconds: int = Field(
        default=30,
        ge=0,
        le=300,
        description="How long a fetched price is reused before refresh"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Timeout for a single price request"
    )


class SwapQuoterConfig(BaseModel):
    """Jupiter aggregator configuration."""

    api_url: str = Field(
        default="https://quote-api.jup.ag/v6",
        description="Base URL of the Jupiter swap API"
    )
    slippage_bps: int = Field(
        default=50,
        ge=1,
        le=5000,
        description="Allowed slippage in basis points (50 = 0.5%)"
    )
    quote_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Timeout for a single quote request; a timeout counts as no route"
    )
    quote_ttl_seconds: int = Field(
        default=120,
        ge=10,
        le=3600,
        description="How long a stored quote may be re-submitted for execution"
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        ge=1.0,
        le=60.0,
        description="Timeout for swap-instruction requests"
    )


class PlannerConfig(BaseModel):
    """Rebalance planner parameters."""

    default_threshold_percent: float = Field(
        default=5.0,
        gt=0.0,
        le=100.0,
        description="Tolerance band used when a target omits its threshold"
    )
    allocation_sum_tolerance: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Allowed difference between the target sum and 100%"
    )
    min_deviation_percent: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Undersupplied tokens closer than this to target are treated as satisfied"
    )
    default_token_decimals: int = Field(
        default=9,
        ge=0,
        le=18,
        description="Decimals assumed for a token whose mint decimals are unknown"
    )
    plan_ttl_seconds: int = Field(
        default=3600,
        ge=60,
        le=604800,
        description="Pending plans older than this fail on finalize or sweep"
    )


class ExecutionConfig(BaseModel):
    """Plan execution and confirmation settings."""

    confirmation_timeout_seconds: float = Field(
        default=30.0,
        ge=0.0,
        le=600.0,
        description="Maximum time to wait for a signature to reach confirmed state"
    )
    confirmation_poll_interval_seconds: float = Field(
        default=2.0,
        ge=0.1,
        le=30.0,
        description="Delay between signature status checks"
    )


class SchedulerConfig(BaseModel):
    """Background portfolio sweep configuration."""

    enabled: bool = Field(
        default=True,
        description="Enable/disable the periodic portfolio sweep"
    )
    sweep_interval_seconds: int = Field(
        default=300,
        ge=10,
        le=86400,
        description="Interval between sweeps of all owners with targets"
    )


class StoreConfig(BaseModel):
    """Persistence store configuration."""

    backend: Literal["redis", "memory"] = Field(
        default="redis",
        description="Store backend; memory is intended for local runs"
    )
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, ge=1, le=65535, description="Redis port")
    redis_db: int = Field(default=0, ge=0, le=15, description="Redis database index")
    key_prefix: str = Field(
        default="rebalancer",
        description="Prefix applied to every Redis key"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a Redis operation before giving up"
    )
    retry_delay_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=10.0,
        description="Delay between Redis retries"
    )

    @field_validator("key_prefix")
    @classmethod
    def validate_key_prefix(cls, v: str) -> str:
        """Validate the prefix is a plain identifier usable inside Redis keys."""
        if not re.match(r'^[A-Za-z0-9_\-]+$', v):
            raise ValueError(
                f"Invalid key prefix '{v}'. Use letters, digits, '_' or '-'"
            )
        return v


class NotificationsConfig(BaseModel):
    """ntfy notifications for portfolios that need attention."""

    enabled: bool = Field(default=False, description="Send ntfy notifications")
    ntfy_url: str = Field(default="https://ntfy.sh", description="ntfy server")
    channel: str = Field(default="", description="ntfy topic name")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level"
    )
    format: Literal["text", "json"] = Field(
        default="text",
        description="Log line format"
    )
    file_path: Optional[str] = Field(
        default=None,
        description="When set, logs are also written here with daily rotation"
    )
    backup_count: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Rotated log files to keep"
    )


class APIConfig(BaseModel):
    """HTTP API configuration."""

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")
    environment: Literal["development", "production"] = Field(
        default="production",
        description="In production internal error detail is never returned"
    )
    allowed_origins: List[str] = Field(
        default_factory=lambda: ["*"],
        description="CORS allowed origins"
    )


class AppConfig(BaseModel):
    """Root application configuration."""

    solana: SolanaConfig = Field(
        default_factory=SolanaConfig,
        description="Solana RPC settings"
    )
    price_oracle: PriceOracleConfig = Field(
        default_factory=PriceOracleConfig,
        description="Price oracle settings"
    )
    swap_quoter: SwapQuoterConfig = Field(
        default_factory=SwapQuoterConfig,
        description="Swap quoter settings"
    )
    planner: PlannerConfig = Field(
        default_factory=PlannerConfig,
        description="Rebalance planner parameters"
    )
    execution: ExecutionConfig = Field(
        default_factory=ExecutionConfig,
        description="Plan execution settings"
    )
    scheduler: SchedulerConfig = Field(
        default_factory=SchedulerConfig,
        description="Background sweep settings"
    )
    store: StoreConfig = Field(
        default_factory=StoreConfig,
        description="Persistence store settings"
    )
    notifications: NotificationsConfig = Field(
        default_factory=NotificationsConfig,
        description="Needs-attention notifications"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings"
    )
    api: APIConfig = Field(
        default_factory=APIConfig,
        description="HTTP API settings"
    )
