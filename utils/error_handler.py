"""
Error types and fail-closed handling for recurrence rules.

A corrupt stored rule must degrade only the entity that owns it, never the
whole calendar or task list being rendered.
"""

import logging
from functools import wraps
from typing import Callable

logger = logging.getLogger(__name__)


class RecurrenceError(ValueError):
    """Base exception for recurrence rule problems"""
    def __init__(self, message: str, code: str = "RECURRENCE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class RecurrenceParseError(RecurrenceError):
    """Raised when a stored recurrence blob cannot be decoded"""
    def __init__(self, message: str, code: str = "MALFORMED_RECURRENCE"):
        super().__init__(message, code)


def fail_closed(default: Callable):
    """
    Decorator that turns recurrence failures into a degraded result.

    Args:
        default: Zero-argument factory for the fallback value (e.g. ``list``)
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except (RecurrenceError, ValueError, TypeError, ArithmeticError) as e:
                logger.error(f"Recurrence failure in {func.__name__}: {e}")
                return default()

        return wrapper
    return decorator
