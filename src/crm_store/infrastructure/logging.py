"""Structured logging for the record store.

Every module logs through structlog with an event name plus key-value
fields, e.g. ``logger.info("customer_added", customer_id=7)``. Fields bound
with operation_context() are merged into every line logged inside it.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from crm_store.infrastructure.config import ObservabilityConfig


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Minimum level name, e.g. "INFO" or "DEBUG"
        log_format: "json" for one JSON object per line, anything else for
            human-readable console output
    """
    numeric_level = getattr(logging, level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_logging_from_config(config: ObservabilityConfig) -> None:
    """Configure logging from the observability section of the config."""
    setup_logging(level=config.log_level, log_format=config.log_format)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Return a structlog logger, optionally with fields already bound.

    Args:
        name: Usually ``__name__`` of the calling module
        **initial_context: Fields added to every event from this logger
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


@contextmanager
def operation_context(operation: str, **context: Any) -> Iterator[None]:
    """Bind ``operation`` and extra fields to every log line in the block.

    Example:
        >>> with operation_context("get_customer", customer_id=7):
        ...     logger.info("customer_loaded")
    """
    with structlog.contextvars.bound_contextvars(operation=operation, **context):
        yield
