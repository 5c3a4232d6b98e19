"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across receiving, batch creation,
production runs and traces.

Usage:
    from bakery_trace.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="create_intermediate_batch",
        outcome="success",
        batch_id=12,
        lot_count=3,
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
        Logger instance with the 'bakery_trace.services' prefix.

    Example:
        >>> logger = get_service_logger("bakery_trace.services.trace_service")
        >>> logger.name
        'bakery_trace.services.trace_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"bakery_trace.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The message is "<operation>: <outcome>"; the context is passed via the
    'extra' parameter for structured logging.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "trace_forward")
        outcome: Outcome description (e.g., "success", "empty_match")
        level: Log level (default: INFO). Use DEBUG for verbose/frequent logs.
        **context: Additional context fields (entity IDs, match counts, etc.)
            Common fields:
            - batch_id / production_run_id / lot_id: created or affected entity
            - query / query_kind: trace query inputs
            - run_count / batch_count / lot_count: trace result sizes
            - error: Error message if outcome is "error"
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
