"""
Structured logging for the data-access layer.

Library code never configures logging; it only emits events through
log_info(), log_warning() and log_exception(). Each event carries a
`context` string naming the emitting operation (e.g. "sql/pagination")
plus arbitrary metadata as key-value pairs.

Applications call configure_logging() once at startup to choose the
level and renderer (JSON for production, console otherwise).
"""

import logging
import sys
from typing import Any

import structlog

_configured = False


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure stdlib logging and structlog processors.

    Safe to call more than once; only the first call has an effect.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
        json_output: Render events as JSON lines instead of console text
    """
    global _configured
    if _configured:
        return

    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stdout)
    logging.getLogger("psycopg").setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )
    _configured = True


def get_logger(context: str | None = None, **meta: Any):
    """Return a structlog logger, bound to `context` when given."""
    logger = structlog.get_logger("inventra")
    if context:
        meta = {"context": context, **meta}
    return logger.bind(**meta) if meta else logger


def log_info(message: str, context: str | None = None, **meta: Any) -> None:
    get_logger(context).info(message, **meta)


def log_warning(message: str, context: str | None = None, **meta: Any) -> None:
    get_logger(context).warning(message, **meta)


def log_exception(
    error: BaseException, message: str, context: str | None = None, **meta: Any
) -> None:
    """
    Log a failure together with the exception that caused it.

    The error type and message are added to the event so they survive
    renderers that drop tracebacks.
    """
    get_logger(context).error(
        message,
        error_type=type(error).__name__,
        error=str(error),
        exc_info=error,
        **meta,
    )
