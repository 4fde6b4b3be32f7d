"""
Repository helpers for holiday calendars and per-user time settings.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from app.db.helpers import fetch_all
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class UserTimeSettingsRow:
    user_id: str
    timezone: str | None
    holiday_calendar_codes: list[str]


@dataclass(slots=True)
class PersonalHolidayRow:
    user_id: str
    start_date: date
    end_date: date | None


class HolidayCalendarRepository:
    """Raw SQL helpers for holiday calendars."""

    @classmethod
    async def fetch_holiday_dates(cls, calendar_code: str) -> list[date]:
        query = """
            SELECT holiday_date
            FROM calendar_holidays
            WHERE calendar_code = %s
            ORDER BY holiday_date ASC
        """
        rows = await fetch_all(query, (calendar_code,))
        return [row["holiday_date"] for row in rows if row.get("holiday_date")]

    @classmethod
    async def fetch_user_time_settings(cls, user_ids: Sequence[str]) -> list[UserTimeSettingsRow]:
        if not user_ids:
            return []

        query = """
            SELECT
                user_id,
                NULLIF(TRIM(timezone), '') AS timezone,
                COALESCE(holiday_calendar_codes, '{}'::text[]) AS holiday_calendar_codes
            FROM user_preferences
            WHERE user_id = ANY(%s::text[])
        """
        rows = await fetch_all(query, (list(user_ids),))
        return [
            UserTimeSettingsRow(
                user_id=row["user_id"],
                timezone=row.get("timezone"),
                holiday_calendar_codes=[code for code in row.get("holiday_calendar_codes") or [] if code],
            )
            for row in rows
        ]

    @classmethod
    async def fetch_personal_holidays(cls, user_ids: Sequence[str]) -> list[PersonalHolidayRow]:
        if not user_ids:
            return []

        query = """
            SELECT user_id, start_date, end_date
            FROM user_personal_holidays
            WHERE user_id = ANY(%s::text[])
            ORDER BY user_id, start_date
        """
        rows = await fetch_all(query, (list(user_ids),))
        return [
            PersonalHolidayRow(
                user_id=row["user_id"],
                start_date=row["start_date"],
                end_date=row.get("end_date"),
            )
            for row in rows
        ]
