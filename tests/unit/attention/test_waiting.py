from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from app.features.attention.detectors.waiting import (
    ORGANIZATION_STAKEHOLDER,
    evaluate_common_origin,
    evaluate_waiting,
    stakeholders_or_fallback,
)
from app.features.attention.domain.models import StakeholderCalendar

NOW = datetime(2024, 5, 13, 12, 0, tzinfo=UTC)


def test_minimum_wait_is_reported_and_gates(make_context):
    context = make_context(now=NOW)
    origins = {
        # Wed 05-08 noon -> 3 business days
        "fast": datetime(2024, 5, 8, 12, 0, tzinfo=UTC),
        # Thu 05-02 noon -> 7 business days
        "slow": datetime(2024, 5, 2, 12, 0, tzinfo=UTC),
    }

    evaluation = evaluate_waiting(origins, 3, context)
    assert evaluation.waits == {"fast": 3, "slow": 7}
    assert evaluation.waiting_days == 3
    assert evaluation.qualifies is True

    assert evaluate_waiting(origins, 4, context).qualifies is False


def test_each_stakeholder_uses_own_calendar(make_context):
    origin = datetime(2024, 5, 8, 12, 0, tzinfo=UTC)
    on_leave = StakeholderCalendar(
        timezone=ZoneInfo("UTC"), holidays=frozenset({date(2024, 5, 9), date(2024, 5, 10)})
    )
    context = make_context(now=NOW, calendars={"away": on_leave})

    evaluation = evaluate_common_origin(["away", "here"], origin, 3, context)

    assert evaluation.waits == {"away": 1, "here": 3}
    assert evaluation.qualifies is False


def test_no_stakeholders_uses_organization_calendar(make_context):
    context = make_context(now=NOW)

    evaluation = evaluate_common_origin([], datetime(2024, 5, 8, 12, 0, tzinfo=UTC), 3, context)

    assert list(evaluation.waits) == [ORGANIZATION_STAKEHOLDER]
    assert evaluation.qualifies is True


def test_missing_origins_never_qualify(make_context):
    context = make_context(now=NOW)

    evaluation = evaluate_waiting({"u1": None}, 0, context)

    assert evaluation.waits == {}
    assert evaluation.waiting_days == 0
    assert evaluation.qualifies is False


def test_stakeholders_or_fallback():
    assert stakeholders_or_fallback(["m1", "m1", "m2"], "author") == ["m1", "m2"]
    assert stakeholders_or_fallback([], None, "author") == ["author"]
    assert stakeholders_or_fallback([], None) == []
