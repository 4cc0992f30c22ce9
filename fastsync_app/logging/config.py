"""
Centralized logging configuration for the fasting-state core.

All components log through structlog so that store mutations, sync traffic
and ticker transitions share one structured, key-value format.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the entire application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON format; otherwise human-readable
        include_timestamp: Include timestamp in log output
        include_caller: Include caller information (filename, line number)
        extra_processors: Additional structlog processors to include
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s"
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_state_logger(name: str) -> FilteringBoundLogger:
    """Logger bound to the fasting-state subsystem (store, stream, ticker)."""
    return get_logger(name).bind(subsystem="fasting_state")


def get_sync_logger(name: str) -> FilteringBoundLogger:
    """Logger bound to the cross-device sync subsystem."""
    return get_logger(name).bind(subsystem="cross_device_sync")


def log_session_change(
    logger: FilteringBoundLogger,
    operation: str,
    before: Any,
    after: Any,
    origin: str = "local",
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a fasting session mutation with standardized format.

    Args:
        logger: Structlog logger instance
        operation: Store operation that produced the change
        before: Session snapshot prior to the mutation
        after: Session snapshot after the mutation
        origin: "local" for user actions, "remote" for paired-device updates
        context: Additional context data
    """
    bound_logger = logger.bind(
        operation=operation,
        origin=origin,
        was_fasting=before.is_fasting,
        is_fasting=after.is_fasting,
        start_time_millis=after.start_time_millis,
        fasting_goal_id=after.fasting_goal_id,
        last_updated_millis=after.last_updated_millis,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if before.is_fasting != after.is_fasting:
        bound_logger.info("Fasting state changed")
    else:
        bound_logger.debug("Fasting session updated")
