"""
Domain models for the attention insights feature.

These dataclasses describe the transient rows produced while one insights
computation runs: raw detector candidates, per-stakeholder calendars, and
organization configuration. They carry no I/O so detectors can be tested
as pure functions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Generic, Literal, TypeVar
from zoneinfo import ZoneInfo

from app.config import settings

IssueProjectStatus = Literal["no_status", "todo", "in_progress", "done", "pending"]
StatusSource = Literal["todo_project", "activity", "none"]
ContainerType = Literal["issue", "pull_request", "discussion"]

HolidaySet = frozenset[date]

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class StakeholderCalendar:
    """Timezone and merged org + personal holidays for one actor."""

    timezone: ZoneInfo
    holidays: HolidaySet


@dataclass(slots=True)
class AttentionConfig:
    """Organization-wide configuration read from sync_config."""

    excluded_repository_ids: tuple[str, ...] = ()
    excluded_user_ids: tuple[str, ...] = ()
    timezone: str = "UTC"
    date_time_format: str = "auto"
    holiday_calendar_codes: tuple[str, ...] = ()
    todo_project_name: str | None = None


@dataclass(slots=True, frozen=True)
class AttentionThresholds:
    """Business-day thresholds per detector."""

    reviewer_unassigned: int = 2
    review_stalled: int = 2
    merge_delayed: int = 2
    stuck_review_request: int = 5
    backlog_issue: int = 40
    stalled_in_progress: int = 20
    unanswered_mention: int = 5

    @classmethod
    def from_settings(cls) -> AttentionThresholds:
        return cls(
            reviewer_unassigned=settings.ATTENTION_REVIEWER_UNASSIGNED_DAYS,
            review_stalled=settings.ATTENTION_REVIEW_STALLED_DAYS,
            merge_delayed=settings.ATTENTION_MERGE_DELAYED_DAYS,
            stuck_review_request=settings.ATTENTION_STUCK_REVIEW_REQUEST_DAYS,
            backlog_issue=settings.ATTENTION_BACKLOG_ISSUE_DAYS,
            stalled_in_progress=settings.ATTENTION_STALLED_IN_PROGRESS_DAYS,
            unanswered_mention=settings.ATTENTION_UNANSWERED_MENTION_DAYS,
        )


@dataclass(slots=True)
class EvaluationContext:
    """Everything a detector needs to threshold candidates without I/O."""

    now: datetime
    thresholds: AttentionThresholds
    org_calendar: StakeholderCalendar
    calendars: dict[str, StakeholderCalendar] = field(default_factory=dict)
    maintainers_by_repository: dict[str, list[str]] = field(default_factory=dict)
    excluded_user_ids: frozenset[str] = frozenset()

    def calendar_for(self, user_id: str | None) -> StakeholderCalendar:
        if user_id and user_id in self.calendars:
            return self.calendars[user_id]
        return self.org_calendar

    def maintainers_for(self, repository_id: str | None) -> list[str]:
        if not repository_id:
            return []
        return [
            user_id
            for user_id in self.maintainers_by_repository.get(repository_id, [])
            if user_id not in self.excluded_user_ids
        ]


@dataclass(slots=True)
class Dataset(Generic[T]):
    """Detector output: qualifying items plus every user id they reference."""

    items: list[T] = field(default_factory=list)
    user_ids: set[str] = field(default_factory=set)

    def add_user(self, user_id: str | None) -> None:
        if user_id:
            self.user_ids.add(user_id)


# ---------------------------------------------------------------------------
# Raw candidates
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class PullRequestRaw:
    id: str
    number: int
    title: str | None
    url: str | None
    repository_id: str | None
    author_id: str | None
    created_at: datetime
    updated_at: datetime | None
    reviewer_ids: list[str] = field(default_factory=list)
    approved_at: datetime | None = None
    # reviewer id -> clock origin (request or latest own activity)
    reviewer_origins: dict[str, datetime] = field(default_factory=dict)
    age_days: int = 0
    inactivity_days: int | None = None
    waiting_days: int = 0


@dataclass(slots=True)
class ReviewRequestRaw:
    id: str
    pull_request_id: str
    reviewer_id: str
    requested_at: datetime
    pr_number: int
    pr_title: str | None
    pr_url: str | None
    pr_repository_id: str | None
    pr_author_id: str | None
    pr_created_at: datetime
    pr_updated_at: datetime | None
    pr_reviewer_ids: list[str] = field(default_factory=list)
    waiting_days: int = 0
    pr_age_days: int | None = None
    pr_inactivity_days: int | None = None


@dataclass(slots=True, frozen=True)
class IssueProjectSnapshot:
    """Resolved project-board view of one issue."""

    status: IssueProjectStatus = "no_status"
    source: StatusSource = "none"
    locked: bool = False
    todo_status: IssueProjectStatus | None = None
    priority: str | None = None
    weight: str | None = None
    initiation_options: str | None = None
    start_date: str | None = None


@dataclass(slots=True)
class IssueRaw:
    id: str
    number: int
    title: str | None
    url: str | None
    repository_id: str | None
    author_id: str | None
    created_at: datetime
    updated_at: datetime | None
    data: object = None
    activity_events: list[tuple[str, datetime]] = field(default_factory=list)
    overrides: object = None  # ProjectFieldOverrides
    assignee_ids: list[str] = field(default_factory=list)
    maintainer_ids: list[str] = field(default_factory=list)
    snapshot: IssueProjectSnapshot = field(default_factory=IssueProjectSnapshot)
    started_at: datetime | None = None
    status_changed_at: datetime | None = None
    age_days: int = 0
    in_progress_age_days: int | None = None
    waiting_days: int = 0


@dataclass(slots=True)
class MentionRaw:
    comment_id: str
    url: str | None
    mentioned_at: datetime
    comment_body: str | None
    comment_author_id: str | None
    target_user_id: str
    mentioned_login: str | None
    container_type: ContainerType
    container_id: str
    container_number: int | None
    container_title: str | None
    container_url: str | None
    repository_id: str | None
    waiting_days: int = 0
    comment_excerpt: str | None = None


@dataclass(slots=True)
class MentionClassificationRecord:
    """Cached LLM verdict plus optional human override for one mention."""

    comment_id: str
    mentioned_user_id: str
    comment_body_hash: str
    prompt_version: str
    requires_response: bool
    last_evaluated_at: datetime | None
    model: str | None = None
    manual_requires_response: bool | None = None
    manual_requires_response_at: datetime | None = None
