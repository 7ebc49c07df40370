# SPDX-License-Identifier: MIT
"""Temporal gate: derived match-day predicates over wall-clock time.

Nothing here is stored. Each predicate is a pure function of ``now`` and the
calendar of one unit (a gameweek), recomputed on every query. All instants
are compared in UTC; naive timestamps are taken to be UTC already.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Protocol

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .constants import AFTER_DAY_CUTOFF_HOUR, SELECTION_LOCK_OFFSET_MINUTES
from .enums import ValidationErrorCode
from .errors import ValidationError
from .logging_config import get_detail_logger
from .models import TemporalWindow


detail_logger = get_detail_logger()

_DATETIME_ADAPTER = TypeAdapter(datetime)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_to_date(value: datetime) -> date:
    """Calendar date of ``value`` in UTC."""
    return to_utc(value).date()


def parse_timestamp(value: str | datetime | None, name: str = "deadline_time") -> datetime:
    """Parse an upstream timestamp into an aware UTC datetime.

    Raises:
        ValidationError: With code DEADLINE if the value is missing or
            cannot be parsed
    """
    if isinstance(value, datetime):
        return to_utc(value)
    if value is None or not str(value).strip():
        raise ValidationError(
            f"Missing {name}",
            ValidationErrorCode.DEADLINE,
            details={"field": name, "value": value},
        )
    try:
        return to_utc(_DATETIME_ADAPTER.validate_python(value))
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {name}: {value!r}",
            ValidationErrorCode.DEADLINE,
            cause=e,
            details={"field": name, "value": value},
        ) from e


@dataclass(frozen=True)
class CalendarEvent:
    """One scheduled match of a unit."""

    kickoff_time: datetime | None
    started: bool | None = False
    finished: bool = False


@dataclass(frozen=True)
class Calendar:
    """Every match of one unit plus the unit's selection deadline."""

    unit_key: str
    events: Sequence[CalendarEvent] = field(default_factory=tuple)
    deadline_time: str | datetime | None = None

    def kickoffs(self) -> list[datetime]:
        return [to_utc(e.kickoff_time) for e in self.events if e.kickoff_time is not None]


def after_event_day(kickoff: datetime, cutoff_hour: int = AFTER_DAY_CUTOFF_HOUR) -> date:
    """Date on which the match day of ``kickoff`` is over.

    A kickoff before the cutoff hour belongs to the night of the previous
    day, so its own date is the after-day; any later kickoff rolls over to
    the next date.
    """
    kickoff = to_utc(kickoff)
    if kickoff.hour < cutoff_hour:
        return kickoff.date()
    return kickoff.date() + timedelta(days=1)


def event_days(calendar: Calendar) -> list[date]:
    """Sorted distinct match dates of the unit."""
    return sorted({k.date() for k in calendar.kickoffs()})


def after_event_days(
    calendar: Calendar, cutoff_hour: int = AFTER_DAY_CUTOFF_HOUR
) -> list[date]:
    """Sorted distinct after-days of the unit."""
    return sorted({after_event_day(k, cutoff_hour) for k in calendar.kickoffs()})


def is_event_day(calendar: Calendar, now: datetime) -> bool:
    return normalize_to_date(now) in set(event_days(calendar))


def is_after_event_day(
    calendar: Calendar, now: datetime, cutoff_hour: int = AFTER_DAY_CUTOFF_HOUR
) -> bool:
    """Whether every match day of the unit is over.

    True once ``now`` has reached the cutoff hour of the latest after-day.
    A unit without scheduled kickoffs is never after its match days.
    """
    days = after_event_days(calendar, cutoff_hour)
    if not days:
        return False
    boundary = datetime.combine(days[-1], time(hour=cutoff_hour), tzinfo=timezone.utc)
    return to_utc(now) >= boundary


def is_event_in_progress(calendar: Calendar, now: datetime) -> bool:
    now = to_utc(now)
    return any(
        e.kickoff_time is not None
        and to_utc(e.kickoff_time) <= now
        and bool(e.started)
        and not e.finished
        for e in calendar.events
    )


def is_selection_locked(
    calendar: Calendar,
    now: datetime,
    lock_offset_minutes: int = SELECTION_LOCK_OFFSET_MINUTES,
) -> bool:
    """Whether team selection is closed for the unit.

    The deadline is parsed on every call so a malformed value is always
    reported, even outside match days.

    Raises:
        ValidationError: If the deadline is missing or malformed
    """
    deadline = parse_timestamp(calendar.deadline_time)
    if not is_event_day(calendar, now):
        return False
    return to_utc(now) > deadline + timedelta(minutes=lock_offset_minutes)


def compute_window(
    calendar: Calendar,
    now: datetime,
    cutoff_hour: int = AFTER_DAY_CUTOFF_HOUR,
    lock_offset_minutes: int = SELECTION_LOCK_OFFSET_MINUTES,
) -> TemporalWindow:
    """Evaluate all four predicates against one instant."""
    return TemporalWindow(
        unit_key=calendar.unit_key,
        evaluated_at=to_utc(now),
        is_event_day=is_event_day(calendar, now),
        is_after_event_day=is_after_event_day(calendar, now, cutoff_hour),
        is_event_in_progress=is_event_in_progress(calendar, now),
        is_selection_locked=is_selection_locked(calendar, now, lock_offset_minutes),
    )


class CalendarProvider(Protocol):
    async def get_calendar(self, unit_key: str) -> Calendar: ...


class TemporalGate:
    """Evaluates the temporal predicates for a unit key at the current time.

    The calendar is fetched and the clock read on every call; no window is
    ever cached.
    """

    def __init__(
        self,
        calendar_provider: CalendarProvider,
        clock: Clock = utc_now,
        cutoff_hour: int = AFTER_DAY_CUTOFF_HOUR,
        lock_offset_minutes: int = SELECTION_LOCK_OFFSET_MINUTES,
    ):
        self.calendar_provider = calendar_provider
        self.clock = clock
        self.cutoff_hour = cutoff_hour
        self.lock_offset_minutes = lock_offset_minutes

    async def _snapshot(self, unit_key: str) -> tuple[Calendar, datetime]:
        calendar = await self.calendar_provider.get_calendar(unit_key)
        return calendar, self.clock()

    async def is_event_day(self, unit_key: str) -> bool:
        calendar, now = await self._snapshot(unit_key)
        return is_event_day(calendar, now)

    async def is_after_event_day(self, unit_key: str) -> bool:
        calendar, now = await self._snapshot(unit_key)
        return is_after_event_day(calendar, now, self.cutoff_hour)

    async def is_event_in_progress(self, unit_key: str) -> bool:
        calendar, now = await self._snapshot(unit_key)
        return is_event_in_progress(calendar, now)

    async def is_selection_locked(self, unit_key: str) -> bool:
        calendar, now = await self._snapshot(unit_key)
        return is_selection_locked(calendar, now, self.lock_offset_minutes)

    async def window(self, unit_key: str) -> TemporalWindow:
        calendar, now = await self._snapshot(unit_key)
        window = compute_window(calendar, now, self.cutoff_hour, self.lock_offset_minutes)
        detail_logger.debug(f"Temporal window for unit {unit_key}: {window.model_dump()}")
        return window
