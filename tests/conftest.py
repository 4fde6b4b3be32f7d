from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from app.features.attention.domain.models import (
    AttentionThresholds,
    EvaluationContext,
    StakeholderCalendar,
)


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    async def set_with_ttl(self, key: str, value: str, ttl_s: int | None = None) -> bool:
        self.store[key] = value
        self.ttls[key] = ttl_s
        return True

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def delete(self, key: str) -> bool:
        return self.store.pop(key, None) is not None

    async def delete_prefix(self, prefix: str) -> int:
        keys = [key for key in self.store if key.startswith(prefix)]
        for key in keys:
            del self.store[key]
        return len(keys)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def utc_calendar():
    return StakeholderCalendar(timezone=ZoneInfo("UTC"), holidays=frozenset())


@pytest.fixture
def make_context(utc_calendar):
    """Build an evaluation context pinned to a fixed instant."""

    def _make(
        now: datetime = datetime(2024, 5, 6, 12, 0, tzinfo=UTC),
        thresholds: AttentionThresholds | None = None,
        calendars: dict | None = None,
        maintainers: dict | None = None,
        org_calendar: StakeholderCalendar | None = None,
        excluded_user_ids: frozenset[str] = frozenset(),
    ) -> EvaluationContext:
        return EvaluationContext(
            now=now,
            thresholds=thresholds or AttentionThresholds(),
            org_calendar=org_calendar or utc_calendar,
            calendars=calendars or {},
            maintainers_by_repository=maintainers or {},
            excluded_user_ids=excluded_user_ids,
        )

    return _make
