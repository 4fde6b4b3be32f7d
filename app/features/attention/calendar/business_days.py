"""
Business-day arithmetic.

A business day is a local calendar day that is neither Saturday/Sunday nor
in the applicable holiday set. Elapsed business time is accumulated hour by
hour between two instants, segmenting at local midnight so DST transitions
are honoured, and the day count is the number of whole 24-hour blocks of
business time.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import settings
from app.features.attention.domain.models import HolidaySet
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

EMPTY_HOLIDAY_SET: HolidaySet = frozenset()
HOURS_PER_BUSINESS_DAY = 24
FALLBACK_TIMEZONE = "UTC"

DateInput = datetime | str | None
TimezoneInput = ZoneInfo | str | None


def resolve_timezone(name: TimezoneInput, fallback: str | None = None) -> ZoneInfo:
    """
    Resolve an IANA timezone name, never raising.

    Unknown or malformed names fall back to `fallback`, then to the
    configured DEFAULT_TIMEZONE, then to UTC.
    """
    if isinstance(name, ZoneInfo):
        return name

    for candidate in (name, fallback, settings.DEFAULT_TIMEZONE, FALLBACK_TIMEZONE):
        if not isinstance(candidate, str) or not candidate.strip():
            continue
        try:
            return ZoneInfo(candidate.strip())
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Invalid timezone identifier, falling back", timezone=candidate)
    return ZoneInfo(FALLBACK_TIMEZONE)


def to_datetime(value: DateInput) -> datetime | None:
    """Parse an instant; naive datetimes are treated as UTC."""
    if value is None:
        return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return None

    if not isinstance(value, datetime):
        return None

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def normalize_holiday_date(value: object) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def build_holiday_set(*sources: Iterable[object]) -> HolidaySet:
    """Union any number of date collections, dropping invalid entries."""
    dates: set[date] = set()
    for source in sources:
        for value in source or ():
            normalized = normalize_holiday_date(value)
            if normalized is not None:
                dates.add(normalized)
    return frozenset(dates)


def expand_personal_holidays(start: object, end: object = None) -> list[date]:
    """Expand an inclusive personal holiday range into individual dates."""
    first = normalize_holiday_date(start)
    last = normalize_holiday_date(end) if end is not None else first
    if first is None:
        return []
    if last is None:
        last = first
    if last < first:
        first, last = last, first

    days = (last - first).days
    return [first + timedelta(days=offset) for offset in range(days + 1)]


def is_business_day(day: date, holidays: HolidaySet = EMPTY_HOLIDAY_SET) -> bool:
    return day.weekday() < 5 and day not in holidays


def business_hours_between(
    start: DateInput,
    end: DateInput,
    holidays: HolidaySet = EMPTY_HOLIDAY_SET,
    timezone: TimezoneInput = None,
) -> float | None:
    """
    Business hours elapsed between two instants in the given timezone.

    Returns None when either instant is missing or unparsable, and 0 when
    `end` is not after `start`.
    """
    start_at = to_datetime(start)
    end_at = to_datetime(end)
    if start_at is None or end_at is None:
        return None

    cursor = start_at.astimezone(UTC)
    end_utc = end_at.astimezone(UTC)
    if end_utc <= cursor:
        return 0.0

    tz = resolve_timezone(timezone)
    total = timedelta()

    while cursor < end_utc:
        local = cursor.astimezone(tz)
        next_midnight = datetime.combine(
            local.date() + timedelta(days=1), time.min, tzinfo=tz
        ).astimezone(UTC)
        if next_midnight <= cursor:
            # repeated local hour right before midnight
            next_midnight = cursor + timedelta(hours=1)
        segment_end = min(next_midnight, end_utc)
        if is_business_day(local.date(), holidays):
            total += segment_end - cursor
        cursor = segment_end

    return total.total_seconds() / 3600


def business_day_diff(
    start: DateInput,
    end: DateInput,
    holidays: HolidaySet = EMPTY_HOLIDAY_SET,
    timezone: TimezoneInput = None,
) -> int | None:
    """
    Whole business days elapsed between `start` and `end`.

    None when `start` is absent; never negative. Adding holidays or moving
    `start` later can only lower the result.
    """
    hours = business_hours_between(start, end, holidays, timezone)
    if hours is None:
        return None
    return int(hours // HOURS_PER_BUSINESS_DAY)
