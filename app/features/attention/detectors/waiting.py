"""
Multi-stakeholder waiting evaluation.

A candidate qualifies only when every stakeholder has waited at least the
threshold in their own calendar; the reported wait is the minimum.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from app.features.attention.calendar.business_days import business_day_diff
from app.features.attention.domain.models import EvaluationContext

# empty id resolves to the organization calendar
ORGANIZATION_STAKEHOLDER = ""


@dataclass(slots=True)
class WaitingEvaluation:
    waits: dict[str, int] = field(default_factory=dict)
    threshold: int = 0

    @property
    def waiting_days(self) -> int:
        return min(self.waits.values()) if self.waits else 0

    @property
    def qualifies(self) -> bool:
        return bool(self.waits) and all(wait >= self.threshold for wait in self.waits.values())


def evaluate_waiting(
    origins: Mapping[str, datetime | None],
    threshold: int,
    context: EvaluationContext,
) -> WaitingEvaluation:
    """
    Business-day wait per stakeholder from that stakeholder's clock origin.

    Stakeholders whose origin is missing are left out of the evaluation.
    """
    evaluation = WaitingEvaluation(threshold=threshold)
    for user_id, origin in origins.items():
        calendar = context.calendar_for(user_id)
        wait = business_day_diff(origin, context.now, calendar.holidays, calendar.timezone)
        if wait is not None:
            evaluation.waits[user_id] = wait
    return evaluation


def evaluate_common_origin(
    stakeholder_ids: Iterable[str],
    origin: datetime | None,
    threshold: int,
    context: EvaluationContext,
) -> WaitingEvaluation:
    """Same origin for everyone; no stakeholders means the organization calendar alone."""
    origins = {user_id: origin for user_id in stakeholder_ids}
    if not origins:
        origins = {ORGANIZATION_STAKEHOLDER: origin}
    return evaluate_waiting(origins, threshold, context)


def stakeholders_or_fallback(primary: Iterable[str], *fallbacks: str | None) -> list[str]:
    """First non-empty stakeholder list: primary ids, else the first present fallback id."""
    ids = list(dict.fromkeys(user_id for user_id in primary if user_id))
    if ids:
        return ids
    for user_id in fallbacks:
        if user_id:
            return [user_id]
    return []


def org_age_days(origin: datetime | None, context: EvaluationContext) -> int | None:
    """Age in the organization calendar, used for display-only columns."""
    calendar = context.org_calendar
    return business_day_diff(origin, context.now, calendar.holidays, calendar.timezone)
