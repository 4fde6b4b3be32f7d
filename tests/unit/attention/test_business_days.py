from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from app.features.attention.calendar.business_days import (
    build_holiday_set,
    business_day_diff,
    business_hours_between,
    expand_personal_holidays,
    resolve_timezone,
    to_datetime,
)


def test_weekend_is_skipped():
    # Tuesday noon to the following Monday noon
    start = datetime(2024, 4, 30, 12, 0, tzinfo=UTC)
    end = datetime(2024, 5, 6, 12, 0, tzinfo=UTC)

    assert business_day_diff(start, end) == 4


def test_holiday_reduces_the_count():
    start = datetime(2024, 4, 30, 12, 0, tzinfo=UTC)
    end = datetime(2024, 5, 6, 12, 0, tzinfo=UTC)
    holidays = frozenset({date(2024, 5, 1)})

    assert business_day_diff(start, end, holidays) == 3


def test_partial_day_does_not_count():
    start = datetime(2024, 5, 6, 9, 0, tzinfo=UTC)
    end = datetime(2024, 5, 7, 8, 59, tzinfo=UTC)

    assert business_day_diff(start, end) == 0
    assert business_day_diff(start, end + timedelta(minutes=1)) == 1


def test_missing_start_returns_none():
    assert business_day_diff(None, datetime(2024, 5, 6, tzinfo=UTC)) is None


def test_end_before_start_is_zero():
    start = datetime(2024, 5, 10, tzinfo=UTC)
    end = datetime(2024, 5, 1, tzinfo=UTC)

    assert business_day_diff(start, end) == 0


def test_later_start_never_increases_the_count():
    end = datetime(2024, 6, 3, 12, 0, tzinfo=UTC)
    start = datetime(2024, 5, 1, 0, 0, tzinfo=UTC)
    previous = business_day_diff(start, end)

    for hours in range(0, 24 * 20, 7):
        current = business_day_diff(start + timedelta(hours=hours), end)
        assert current <= previous
        previous = current


def test_more_holidays_never_increase_the_count():
    start = datetime(2024, 5, 1, tzinfo=UTC)
    end = datetime(2024, 6, 1, tzinfo=UTC)
    few = frozenset({date(2024, 5, 6)})
    many = few | {date(2024, 5, 7), date(2024, 5, 15)}

    assert business_day_diff(start, end, many) <= business_day_diff(start, end, few)


def test_timezone_changes_which_local_days_count():
    # Friday 20:00 UTC is already Saturday in Seoul
    start = datetime(2024, 5, 3, 20, 0, tzinfo=UTC)
    end = datetime(2024, 5, 7, 20, 0, tzinfo=UTC)

    utc_hours = business_hours_between(start, end, timezone="UTC")
    seoul_hours = business_hours_between(start, end, timezone="Asia/Seoul")

    # UTC: Fri 4h, Mon 24h, Tue 20h
    assert utc_hours == 48
    # Seoul: Sat 05:00 to Wed 05:00 local, Mon and Tue whole plus 5h of Wed
    assert seoul_hours == 53


def test_dst_spring_forward_day_is_23_hours():
    tz = "America/New_York"
    start = datetime(2024, 3, 10, 0, 0, tzinfo=ZoneInfo(tz))
    end = datetime(2024, 3, 12, 0, 0, tzinfo=ZoneInfo(tz))

    # Sunday is skipped, Monday is a full local day
    assert business_hours_between(start, end, timezone=tz) == 24


def test_dst_fall_back_day_is_25_hours():
    tz = "America/New_York"
    start = datetime(2024, 11, 4, 0, 0, tzinfo=ZoneInfo(tz))
    end = datetime(2024, 11, 5, 0, 0, tzinfo=ZoneInfo(tz))
    sunday_start = datetime(2024, 11, 3, 0, 0, tzinfo=ZoneInfo(tz))

    assert business_hours_between(start, end, timezone=tz) == 24
    # the 25-hour Sunday contributes nothing
    assert business_hours_between(sunday_start, start, timezone=tz) == 0


def test_invalid_timezone_falls_back_to_utc(monkeypatch):
    monkeypatch.setattr(
        "app.features.attention.calendar.business_days.settings.DEFAULT_TIMEZONE", "Not/AZone"
    )

    assert resolve_timezone("Mars/Olympus").key == "UTC"
    assert resolve_timezone(None).key == "UTC"


def test_invalid_timezone_uses_explicit_fallback():
    assert resolve_timezone("nope", fallback="Asia/Seoul").key == "Asia/Seoul"


def test_string_and_naive_inputs_are_parsed_as_utc():
    assert to_datetime("2024-05-06T12:00:00") == datetime(2024, 5, 6, 12, 0, tzinfo=UTC)
    assert to_datetime("garbage") is None
    assert to_datetime("") is None


def test_build_holiday_set_drops_invalid_entries():
    holidays = build_holiday_set(["2024-05-01", "not-a-date", None], [date(2024, 5, 5)])

    assert holidays == frozenset({date(2024, 5, 1), date(2024, 5, 5)})


def test_personal_holiday_range_is_inclusive():
    days = expand_personal_holidays(date(2024, 5, 1), date(2024, 5, 3))

    assert days == [date(2024, 5, 1), date(2024, 5, 2), date(2024, 5, 3)]
    assert expand_personal_holidays(date(2024, 5, 1)) == [date(2024, 5, 1)]
