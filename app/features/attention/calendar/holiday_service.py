"""
Holiday calendar service.

Loads holiday dates per calendar code with a Redis read-through cache and
builds the per-stakeholder calendar map consumed by the detectors. All
per-user lookups happen in one batch before any threshold evaluation.
"""

from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date

from app.config import settings
from app.features.attention.domain.models import HolidaySet, StakeholderCalendar
from app.infrastructure.observability.logging import get_logger
from app.services.redis_client import fast_redis

from .business_days import build_holiday_set, expand_personal_holidays, resolve_timezone
from .repository import HolidayCalendarRepository

logger = get_logger(__name__)


class HolidayCalendarService:
    CACHE_PREFIX = "attention:holidays:"

    def __init__(self, cache=None):
        self._cache = cache or fast_redis

    def _cache_key(self, calendar_code: str) -> str:
        return f"{self.CACHE_PREFIX}{calendar_code}"

    async def load_holiday_set(self, calendar_code: str) -> HolidaySet:
        key = self._cache_key(calendar_code)
        cached = await self._cache.get(key)
        if cached is not None:
            try:
                return build_holiday_set(json.loads(cached))
            except (TypeError, ValueError):
                logger.warning("Discarding corrupt holiday cache entry", calendar_code=calendar_code)

        dates = await HolidayCalendarRepository.fetch_holiday_dates(calendar_code)
        payload = json.dumps([value.isoformat() for value in dates])
        await self._cache.set_with_ttl(key, payload, settings.HOLIDAY_CACHE_TTL_SECONDS)
        logger.debug("Holiday calendar loaded", calendar_code=calendar_code, holidays=len(dates))
        return build_holiday_set(dates)

    async def load_combined(self, calendar_codes: Iterable[str]) -> HolidaySet:
        """Union of every listed calendar."""
        codes = sorted({code for code in calendar_codes if code})
        if not codes:
            return frozenset()
        sets = await asyncio.gather(*(self.load_holiday_set(code) for code in codes))
        return frozenset().union(*sets)

    async def invalidate(self, calendar_code: str | None = None) -> None:
        """Drop one cached calendar, or all of them when no code is given."""
        if calendar_code:
            await self._cache.delete(self._cache_key(calendar_code))
        else:
            await self._cache.delete_prefix(self.CACHE_PREFIX)
        logger.info("Holiday cache invalidated", calendar_code=calendar_code or "*")

    async def load_stakeholder_calendars(
        self,
        user_ids: Iterable[str],
        org_calendar: StakeholderCalendar,
        org_calendar_codes: Sequence[str],
    ) -> dict[str, StakeholderCalendar]:
        """
        Pre-fetch timezone and holiday set for every stakeholder at once.

        Users without preferences inherit the organization calendar. A user's
        own calendar codes replace the organization codes; personal holiday
        ranges are always added on top.
        """
        ids = sorted({user_id for user_id in user_ids if user_id})
        if not ids:
            return {}

        preference_rows, personal_rows = await asyncio.gather(
            HolidayCalendarRepository.fetch_user_time_settings(ids),
            HolidayCalendarRepository.fetch_personal_holidays(ids),
        )
        preferences = {row.user_id: row for row in preference_rows}

        personal: defaultdict[str, list[date]] = defaultdict(list)
        for row in personal_rows:
            personal[row.user_id].extend(expand_personal_holidays(row.start_date, row.end_date))

        org_codes = frozenset(org_calendar_codes)
        needed_codes = sorted(
            {
                code
                for row in preference_rows
                if frozenset(row.holiday_calendar_codes) != org_codes
                for code in row.holiday_calendar_codes
            }
        )
        code_sets = await asyncio.gather(*(self.load_holiday_set(code) for code in needed_codes))
        holidays_by_code = dict(zip(needed_codes, code_sets, strict=True))

        calendars: dict[str, StakeholderCalendar] = {}
        for user_id in ids:
            preference = preferences.get(user_id)
            if preference is None and user_id not in personal:
                calendars[user_id] = org_calendar
                continue

            timezone = resolve_timezone(
                preference.timezone if preference else None,
                fallback=org_calendar.timezone.key,
            )
            codes = frozenset(preference.holiday_calendar_codes) if preference else frozenset()
            if not codes or codes == org_codes:
                base = org_calendar.holidays
            else:
                base = frozenset().union(*(holidays_by_code[code] for code in codes))

            dates = personal.get(user_id)
            holidays = base | build_holiday_set(dates) if dates else base
            calendars[user_id] = StakeholderCalendar(timezone=timezone, holidays=holidays)

        logger.debug(
            "Stakeholder calendars loaded",
            stakeholders=len(ids),
            with_preferences=len(preferences),
            with_personal_holidays=len(personal),
        )
        return calendars


holiday_calendar_service = HolidayCalendarService()
