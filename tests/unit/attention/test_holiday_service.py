import json
from datetime import date
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from app.features.attention.calendar.holiday_service import HolidayCalendarService
from app.features.attention.calendar.repository import PersonalHolidayRow, UserTimeSettingsRow
from app.features.attention.domain.models import StakeholderCalendar

REPOSITORY = "app.features.attention.calendar.holiday_service.HolidayCalendarRepository"


@pytest.mark.asyncio
async def test_holiday_set_is_cached(monkeypatch, fake_redis):
    fetch_mock = AsyncMock(return_value=[date(2024, 5, 1), date(2024, 5, 6)])
    monkeypatch.setattr(f"{REPOSITORY}.fetch_holiday_dates", fetch_mock)
    service = HolidayCalendarService(cache=fake_redis)

    first = await service.load_holiday_set("KR")
    second = await service.load_holiday_set("KR")

    assert first == second == frozenset({date(2024, 5, 1), date(2024, 5, 6)})
    fetch_mock.assert_awaited_once_with("KR")
    assert json.loads(fake_redis.store["attention:holidays:KR"]) == ["2024-05-01", "2024-05-06"]


@pytest.mark.asyncio
async def test_corrupt_cache_entry_is_reloaded(monkeypatch, fake_redis):
    fake_redis.store["attention:holidays:US"] = "{not json"
    fetch_mock = AsyncMock(return_value=[date(2024, 7, 4)])
    monkeypatch.setattr(f"{REPOSITORY}.fetch_holiday_dates", fetch_mock)
    service = HolidayCalendarService(cache=fake_redis)

    holidays = await service.load_holiday_set("US")

    assert holidays == frozenset({date(2024, 7, 4)})
    fetch_mock.assert_awaited_once()


@pytest.mark.asyncio
async def test_load_combined_unions_calendars(monkeypatch, fake_redis):
    calendars = {"KR": [date(2024, 5, 1)], "US": [date(2024, 7, 4)]}
    monkeypatch.setattr(
        f"{REPOSITORY}.fetch_holiday_dates", AsyncMock(side_effect=lambda code: calendars[code])
    )
    service = HolidayCalendarService(cache=fake_redis)

    holidays = await service.load_combined(["KR", "US", "KR", ""])

    assert holidays == frozenset({date(2024, 5, 1), date(2024, 7, 4)})
    assert await service.load_combined([]) == frozenset()


@pytest.mark.asyncio
async def test_invalidate_single_and_all(fake_redis):
    fake_redis.store.update(
        {"attention:holidays:KR": "[]", "attention:holidays:US": "[]", "other": "x"}
    )
    service = HolidayCalendarService(cache=fake_redis)

    await service.invalidate("KR")
    assert "attention:holidays:KR" not in fake_redis.store
    assert "attention:holidays:US" in fake_redis.store

    await service.invalidate()
    assert fake_redis.store == {"other": "x"}


@pytest.mark.asyncio
async def test_stakeholder_calendars_merge_preferences_and_personal_days(monkeypatch, fake_redis):
    org_calendar = StakeholderCalendar(timezone=ZoneInfo("UTC"), holidays=frozenset({date(2024, 5, 1)}))
    monkeypatch.setattr(
        f"{REPOSITORY}.fetch_user_time_settings",
        AsyncMock(
            return_value=[
                UserTimeSettingsRow(user_id="u-seoul", timezone="Asia/Seoul", holiday_calendar_codes=["KR"]),
                UserTimeSettingsRow(user_id="u-org", timezone=None, holiday_calendar_codes=[]),
                UserTimeSettingsRow(user_id="u-bad", timezone="Nowhere/City", holiday_calendar_codes=["ORG"]),
            ]
        ),
    )
    monkeypatch.setattr(
        f"{REPOSITORY}.fetch_personal_holidays",
        AsyncMock(
            return_value=[
                PersonalHolidayRow(user_id="u-org", start_date=date(2024, 5, 8), end_date=date(2024, 5, 9)),
                PersonalHolidayRow(user_id="u-personal", start_date=date(2024, 5, 20), end_date=None),
            ]
        ),
    )
    fetch_dates = AsyncMock(return_value=[date(2024, 5, 15)])
    monkeypatch.setattr(f"{REPOSITORY}.fetch_holiday_dates", fetch_dates)
    service = HolidayCalendarService(cache=fake_redis)

    calendars = await service.load_stakeholder_calendars(
        ["u-seoul", "u-org", "u-bad", "u-personal", "u-none", ""], org_calendar, ["ORG"]
    )

    assert calendars["u-none"] is org_calendar
    assert calendars["u-seoul"].timezone.key == "Asia/Seoul"
    # own calendar codes replace the organization calendars
    assert calendars["u-seoul"].holidays == frozenset({date(2024, 5, 15)})
    assert calendars["u-org"].holidays == frozenset({date(2024, 5, 1), date(2024, 5, 8), date(2024, 5, 9)})
    assert calendars["u-bad"].timezone.key == "UTC"
    assert calendars["u-bad"].holidays == org_calendar.holidays
    assert calendars["u-personal"].holidays == frozenset({date(2024, 5, 1), date(2024, 5, 20)})
    assert "" not in calendars
    fetch_dates.assert_awaited_once_with("KR")


@pytest.mark.asyncio
async def test_no_stakeholders_skips_queries(monkeypatch, fake_redis):
    settings_mock = AsyncMock()
    monkeypatch.setattr(f"{REPOSITORY}.fetch_user_time_settings", settings_mock)
    service = HolidayCalendarService(cache=fake_redis)
    org_calendar = StakeholderCalendar(timezone=ZoneInfo("UTC"), holidays=frozenset())

    assert await service.load_stakeholder_calendars([], org_calendar, []) == {}
    settings_mock.assert_not_awaited()
