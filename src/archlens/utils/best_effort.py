"""Wrapper for side calls whose failure must not affect a run.

Progress sinks and similar observers are supplied by the caller and may
raise. ``best_effort`` runs them, logs any exception at warning level and
returns either the call's value or a ``Discarded`` record.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Discarded:
    """Marker returned when a best-effort call raised.

    Attributes:
        label: Name of the side call
        error: The exception it raised
    """

    label: str
    error: Exception


def best_effort(label: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T | Discarded:
    """Call ``func`` and swallow (but log) any exception it raises.

    Args:
        label: Name of the side call, used in the log message
        func: Callable to run
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        The call's return value, or Discarded if it raised
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        logger.warning(f"Ignoring failure in {label}: {e}")
        return Discarded(label, e)


def guarded(label: str, func: Callable[..., Any] | None) -> Callable[..., None]:
    """Return a callable that forwards to ``func`` through best_effort.

    A missing ``func`` yields a no-op.
    """

    def call(*args: Any, **kwargs: Any) -> None:
        if func is not None:
            best_effort(label, func, *args, **kwargs)

    return call
