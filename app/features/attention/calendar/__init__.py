"""
Business-day calendar package.

Pure business-day arithmetic plus the cached holiday calendar service that
builds per-stakeholder timezone/holiday maps.
"""

from .business_days import (
    EMPTY_HOLIDAY_SET,
    build_holiday_set,
    business_day_diff,
    business_hours_between,
    expand_personal_holidays,
    is_business_day,
    resolve_timezone,
)
from .holiday_service import HolidayCalendarService, holiday_calendar_service

__all__ = [
    "EMPTY_HOLIDAY_SET",
    "HolidayCalendarService",
    "build_holiday_set",
    "business_day_diff",
    "business_hours_between",
    "expand_personal_holidays",
    "holiday_calendar_service",
    "is_business_day",
    "resolve_timezone",
]
