"""Process-wide logging setup and reconciliation log helpers."""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

from backend.utils.config import get_settings


_LOGGER_INITIALIZED = False
_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; later calls are no-ops."""

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(level=resolved_level, format=_LOG_FORMAT, stream=sys.stdout)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def format_context(**context: Any) -> str:
    """Render keyword context as sorted ``key=value`` pairs for grep-able log lines."""
    return " ".join(f"{key}={context[key]!r}" for key in sorted(context))


def log_inconsistency(logger: logging.Logger, operation: str, **context: Any) -> None:
    """Record a write sequence that did not complete so it can be reconciled later."""
    logger.error("Inconsistent write aborted | operation=%s %s", operation, format_context(**context))
