"""Logging infrastructure.

Basic usage:
    import logging

    from nested_set.infra.logging import set_log_context, setup_logging

    setup_logging()
    logger = logging.getLogger(__name__)

    set_log_context(tree="Category")
    logger.info("Rebuilding")  # Includes tree=Category

    # Lazy evaluation for expensive debug output
    from nested_set.infra.logging import get_lazy_logger

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Statement: {stmt}")
"""

from nested_set.infra.logging.config import configure_logging, setup_logging
from nested_set.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    remove_from_log_context,
    set_log_context,
)
from nested_set.infra.logging.formatters import JSONFormatter
from nested_set.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "log_context",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
]
