"""
Main entry point for the inventory tracker API.

This module configures logging, initializes the database and serves the
HTTP API with uvicorn.
"""

import logging
import sys

import uvicorn

from invtrack.api import create_app
from invtrack.services.database import close_connections, initialize_app_database
from invtrack.utils.config import get_config


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stdout,
    )


def main():
    """Initialize the database and start the API server."""
    config = get_config()
    configure_logging(config.log_level)

    logger = logging.getLogger(__name__)
    logger.info(f"Starting {config.app_name} v{config.app_version} ({config.environment})")

    try:
        initialize_app_database()
    except Exception:
        logger.exception("Failed to initialize database")
        return 1

    try:
        uvicorn.run(create_app(), host=config.api_host, port=config.api_port)
    finally:
        close_connections()
    return 0


if __name__ == "__main__":
    sys.exit(main())
