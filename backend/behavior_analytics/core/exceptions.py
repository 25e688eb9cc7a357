"""
Typed failures raised by the ingestion and reporting layers.
The HTTP boundary decides how each one is rendered.
"""
import functools
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from behavior_analytics.core.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


class AnalyticsError(Exception):
    """A report could not be computed."""

    def __init__(self, report: str, message: str) -> None:
        super().__init__(f"{report}: {message}")
        self.report = report
        self.message = message


class EventPublishError(Exception):
    """An event could not be handed to the message broker."""

    def __init__(self, topic: str, message: str) -> None:
        super().__init__(f"{topic}: {message}")
        self.topic = topic
        self.message = message


class InvalidDateRangeError(ValueError):
    """Report date parameters are malformed or out of order."""


def report_operation(report: str) -> Callable[[F], F]:
    """
    Wrap an async report method so every failure is logged once and
    surfaces as AnalyticsError.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except AnalyticsError:
                raise
            except Exception as e:
                logger.error(
                    "Report failed",
                    report=report,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise AnalyticsError(report, str(e)) from e

        return wrapper  # type: ignore[return-value]

    return decorator
