"""Configuration loader with validation and singleton access."""

import logging
import yaml
from pathlib import Path
from typing import Optional

from .models import AppConfig

logger = logging.getLogger(__name__)

# Global config singleton
_config: Optional[AppConfig] = None


def load_config(config_path: str | Path) -> AppConfig:
    """
    Load and validate configuration from YAML file.

    Args:
        config_path: Path to config.yaml file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config validation fails
        yaml.YAMLError: If YAML parsing fails
    """
    global _config

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raw_config = {}

    try:
        _config = AppConfig(**raw_config)
    except Exception as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ValueError(f"Invalid configuration: {e}") from e

    # Log loaded configuration for audit trail
    logger.info("Configuration loaded successfully:")
    logger.info(f"  Solana RPC: {_config.solana.rpc_url} ({_config.solana.commitment})")
    logger.info(f"  Price oracle: {_config.price_oracle.api_url}")
    logger.info(f"  Price cache TTL: {_config.price_oracle.cache_ttl_seconds}s")
    logger.info(f"  Swap quoter: {_config.swap_quoter.api_url}")
    logger.info(f"  Slippage: {_config.swap_quoter.slippage_bps} bps")
    logger.info(f"  Quote timeout: {_config.swap_quoter.quote_timeout_seconds}s")
    logger.info(f"  Quote TTL: {_config.swap_quoter.quote_ttl_seconds}s")
    logger.info(f"  Default threshold: {_config.planner.default_threshold_percent}%")
    logger.info(f"  Plan TTL: {_config.planner.plan_ttl_seconds}s")
    logger.info(f"  Confirmation timeout: {_config.execution.confirmation_timeout_seconds}s")
    logger.info(f"  Sweep interval: {_config.scheduler.sweep_interval_seconds}s "
                f"({'enabled' if _config.scheduler.enabled else 'disabled'})")
    logger.info(f"  Store backend: {_config.store.backend}")

    return _config


def set_config(config: AppConfig) -> AppConfig:
    """Install an already-built configuration as the process-wide config."""
    global _config
    _config = config
    return _config


def get_config() -> AppConfig:
    """
    Get the current loaded configuration.

    Returns:
        Current AppConfig instance

    Raises:
        RuntimeError: If config hasn't been loaded yet
    """
    if _config is None:
        raise RuntimeError(
            "Configuration not loaded. Call load_config() first."
        )
    return _config
