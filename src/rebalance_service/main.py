"""
Rebalancer Service entry point

Loads configuration, configures logging, wires the service container and
serves the HTTP API with uvicorn.
"""
import logging
import os
import sys
from pathlib import Path

import uvicorn

from app_config import load_config
from .api import create_app
from .container import ServiceContainer
from .logger import configure_root_logger

logger = logging.getLogger(__name__)


def build_app():
    """Load configuration from CONFIG_PATH and return the wired application"""
    config_path = Path(os.getenv('CONFIG_PATH', 'config.yaml'))
    config = load_config(config_path)
    configure_root_logger(config.logging)

    container = ServiceContainer()
    return create_app(container), config


def run():
    try:
        app, config = build_app()
    except Exception as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    logger.info(f"Starting rebalancer API on {config.api.host}:{config.api.port}")
    uvicorn.run(app, host=config.api.host, port=config.api.port, log_config=None)


if __name__ == "__main__":
    run()
