"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across build, receipt, transfer and
other inventory operations.

Usage:
    from invtrack.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    # Log successful operation
    log_operation(
        logger,
        operation="create_build_transaction",
        outcome="success",
        transaction_id="...",
        sku_id="...",
    )

    # Log validation failure
    log_operation(
        logger,
        operation="create_build_transaction",
        outcome="insufficient_inventory",
        level=logging.WARNING,
        sku_id="...",
        short_components=["..."],
    )
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance with the 'invtrack.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'invtrack.services.build_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"invtrack.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "create_build_transaction")
        outcome: Outcome description (e.g., "success", "insufficient_inventory", "error")
        level: Log level (default: INFO)
        **context: Additional context fields (entity IDs, error details, etc.)
            Common fields:
            - company_id: Tenant the operation ran for
            - transaction_id: ID of created transaction
            - sku_id / bom_version_id: Build target and resolved BOM
            - error: Error message if outcome is "error"
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
