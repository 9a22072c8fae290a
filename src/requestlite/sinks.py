"""Diagnostic sinks for verbose requests."""

from __future__ import annotations

import logging
import typing as t

from .errors import ValidationError

_logger = logging.getLogger("requestlite")


@t.runtime_checkable
class DebugSink(t.Protocol):
    """Anything that can receive a ``debug(key, value)`` checkpoint."""

    def debug(self, key: str, value: t.Any) -> None:  # noqa: D102
        ...


class LoggingSink:
    """Forward verbose checkpoints to a standard ``logging.Logger``."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        """Initialize the sink.

        Args:
            logger: Destination logger. Defaults to the ``requestlite`` logger.

        """
        self.logger = logger or _logger

    def debug(self, key: str, value: t.Any) -> None:
        """Log ``value`` under ``key`` at DEBUG level."""
        self.logger.debug("%s %s", key, value)


def as_sink(logger: object) -> DebugSink:
    """Convert the ``logger`` option into a sink.

    Args:
        logger: None for the default sink, a ``logging.Logger``, or any object
            with a callable ``debug(key, value)``.

    Returns:
        DebugSink: The sink to use for verbose diagnostics.

    Raises:
        ValidationError: If ``logger`` has no callable ``debug``.

    """
    if logger is None:
        return LoggingSink()
    # Logger.debug treats its first argument as a format string
    if isinstance(logger, logging.Logger):
        return LoggingSink(logger)
    if not callable(getattr(logger, "debug", None)):
        msg = f"logger must provide a callable debug(key, value), got {type(logger).__name__}"
        raise ValidationError(msg)
    return t.cast("DebugSink", logger)
