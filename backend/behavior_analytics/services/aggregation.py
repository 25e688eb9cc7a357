"""
Shared building blocks for the report services: date ranges, dense day
buckets, rates, and session reconstruction over raw behavior events.
"""
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from typing import Generic, Optional, TypeVar
from zoneinfo import ZoneInfo

from behavior_analytics.core.coercion import to_float, to_int
from behavior_analytics.core.config import settings
from behavior_analytics.core.exceptions import InvalidDateRangeError
from behavior_analytics.models.behavior_event import BehaviorEvent
from behavior_analytics.schemas.events import MEANINGFUL_INTERACTIONS, EventType

__all__ = [
    "DateRange",
    "DayBuckets",
    "Session",
    "average",
    "day_buckets",
    "is_bounce",
    "local_day",
    "percentage",
    "reconstruct_sessions",
    "report_zone",
    "returning_sessions",
    "to_float",
    "to_int",
]

T = TypeVar("T")

BOUNCE_MAX_SECONDS = 10


@lru_cache
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def report_zone() -> ZoneInfo:
    """The calendar used for day buckets and local hours."""
    return _zone(settings.report_timezone)


def _aware(value: datetime, tz: ZoneInfo) -> datetime:
    return value.replace(tzinfo=tz) if value.tzinfo is None else value


def local_day(ts: datetime, tz: Optional[ZoneInfo] = None) -> date:
    """Report-timezone calendar day of a timestamp. Naive timestamps are UTC."""
    tz = tz or report_zone()
    return _aware(ts, timezone.utc).astimezone(tz).date()


@dataclass(frozen=True)
class DateRange:
    """Half-open interval [start, end) of timezone-aware datetimes."""

    start: datetime
    end: datetime

    @classmethod
    def of(cls, start: datetime, end: datetime, tz: Optional[ZoneInfo] = None) -> "DateRange":
        """Build a range; naive bounds are read in the report timezone."""
        tz = tz or report_zone()
        start, end = _aware(start, tz), _aware(end, tz)
        if start > end:
            raise InvalidDateRangeError("startDate must not be after endDate")
        return cls(start, end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def local_days(self, tz: Optional[ZoneInfo] = None) -> list[date]:
        """Every local calendar day with at least one instant in the range."""
        if self.end <= self.start:
            return []
        tz = tz or report_zone()
        first = self.start.astimezone(tz).date()
        last = (self.end - timedelta(microseconds=1)).astimezone(tz).date()
        return [first + timedelta(days=n) for n in range((last - first).days + 1)]

    def previous(self) -> "DateRange":
        """The equally long window that ends where this one starts."""
        return DateRange(self.start - self.duration, self.start)


class DayBuckets(Generic[T]):
    """
    One bucket per local calendar day of a range, in date order.

    Buckets exist for every day whether or not anything lands in them;
    timestamps falling on other days are ignored.
    """

    def __init__(
        self,
        date_range: DateRange,
        factory: Callable[[str], T],
        tz: Optional[ZoneInfo] = None,
    ) -> None:
        self.tz = tz or report_zone()
        self._buckets: dict[date, T] = {
            day: factory(day.isoformat()) for day in date_range.local_days(self.tz)
        }

    def get(self, ts: Optional[datetime]) -> Optional[T]:
        """Bucket for a timestamp's local day, or None outside the range."""
        if ts is None:
            return None
        return self._buckets.get(local_day(ts, self.tz))

    def for_day(self, day: date) -> Optional[T]:
        return self._buckets.get(day)

    def values(self) -> list[T]:
        return list(self._buckets.values())

    def __len__(self) -> int:
        return len(self._buckets)


def day_buckets(
    date_range: DateRange,
    factory: Callable[[str], T],
    tz: Optional[ZoneInfo] = None,
) -> DayBuckets[T]:
    """Dense per-day buckets for a range, each created by `factory(label)`."""
    return DayBuckets(date_range, factory, tz)


def percentage(part: float, whole: float, digits: int = 1) -> float:
    """`part / whole` as a rounded percentage; 0 when `whole` is 0."""
    if not whole:
        return 0.0
    return round(part / whole * 100, digits)


def average(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


@dataclass
class Session:
    """Events sharing a session id within an analysis window."""

    session_id: str
    events: list[BehaviorEvent] = field(default_factory=list)
    interactions: set[str] = field(default_factory=set)
    customer_ids: set[int] = field(default_factory=set)

    @property
    def start(self) -> datetime:
        return self.events[0].created_at

    @property
    def end(self) -> datetime:
        return self.events[-1].created_at

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    @property
    def is_returning(self) -> bool:
        return bool(self.customer_ids)

    def first(self, event_type: EventType) -> Optional[BehaviorEvent]:
        """Earliest event of a kind in this session."""
        for event in self.events:
            if event.event_type == event_type.value:
                return event
        return None

    def count(self, event_type: EventType) -> int:
        return sum(1 for event in self.events if event.event_type == event_type.value)

    def has(self, event_type: EventType) -> bool:
        return self.first(event_type) is not None


def reconstruct_sessions(events: Iterable[BehaviorEvent]) -> dict[str, Session]:
    """
    Group events by session id, in order of first appearance.

    Events without a session id are skipped. Each session's events are
    ordered by timestamp (ties keep input order).
    """
    sessions: dict[str, Session] = {}
    for event in events:
        if not event.session_id:
            continue
        session = sessions.get(event.session_id)
        if session is None:
            session = sessions[event.session_id] = Session(event.session_id)
        session.events.append(event)
        if event.event_type in MEANINGFUL_INTERACTIONS:
            session.interactions.add(event.event_type)
        if event.customer_id is not None:
            session.customer_ids.add(event.customer_id)

    for session in sessions.values():
        session.events.sort(key=lambda e: e.created_at)
    return sessions


def is_bounce(session: Session) -> bool:
    """
    Negligible engagement: only product views, or a very short visit with
    at most one kind of meaningful interaction.
    """
    if session.interactions == {EventType.PRODUCT_VIEWED.value}:
        return True
    return session.duration_seconds < BOUNCE_MAX_SECONDS and len(session.interactions) <= 1


def returning_sessions(events: Iterable[BehaviorEvent]) -> set[str]:
    """Session ids with at least one authenticated event."""
    return {e.session_id for e in events if e.session_id and e.customer_id is not None}
