# app/models/api/attention_response.py
"""
Attention API response models.
Serialized with camelCase aliases; constructed once per computation and never mutated.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AttentionModel(BaseModel):
    """Base for attention output: frozen, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class UserReference(AttentionModel):
    id: str = Field(..., description="User node ID")
    login: str | None = Field(None, description="GitHub login")
    name: str | None = Field(None, description="Display name")


class RepositoryReference(AttentionModel):
    id: str = Field(..., description="Repository node ID")
    name: str | None = Field(None, description="Repository name")
    name_with_owner: str | None = Field(None, description="owner/name")


class PullRequestReference(AttentionModel):
    id: str
    number: int
    title: str | None = None
    url: str | None = None
    repository: RepositoryReference | None = None
    author: UserReference | None = None
    reviewers: list[UserReference] = Field(default_factory=list)


class PullRequestAttentionItem(PullRequestReference):
    created_at: datetime
    updated_at: datetime | None = None
    approved_at: datetime | None = None
    age_days: int = Field(0, description="Business days since creation (organization calendar)")
    inactivity_days: int | None = Field(None, description="Business days since last update")
    waiting_days: int = Field(0, description="Minimum business-day wait across stakeholders")
    repository_maintainers: list[UserReference] = Field(default_factory=list)


class ReviewRequestAttentionItem(AttentionModel):
    id: str
    requested_at: datetime
    waiting_days: int
    reviewer: UserReference | None = None
    pull_request: PullRequestReference
    pull_request_age_days: int | None = None
    pull_request_inactivity_days: int | None = None
    pull_request_updated_at: datetime | None = None


class IssueAttentionItem(AttentionModel):
    id: str
    number: int
    title: str | None = None
    url: str | None = None
    repository: RepositoryReference | None = None
    author: UserReference | None = None
    assignees: list[UserReference] = Field(default_factory=list)
    repository_maintainers: list[UserReference] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime | None = None
    age_days: int = 0
    started_at: datetime | None = None
    in_progress_age_days: int | None = None
    waiting_days: int = 0
    issue_project_status: str | None = None
    issue_project_status_source: Literal["todo_project", "activity", "none"] = "none"
    issue_project_status_locked: bool = False
    issue_todo_project_status: str | None = None
    issue_todo_project_priority: str | None = None
    issue_todo_project_weight: str | None = None
    issue_todo_project_initiation_options: str | None = None
    issue_todo_project_start_date: str | None = None


class MentionContainer(AttentionModel):
    type: Literal["issue", "pull_request", "discussion"]
    id: str
    number: int | None = None
    title: str | None = None
    url: str | None = None
    repository: RepositoryReference | None = None


class MentionAttentionItem(AttentionModel):
    comment_id: str
    url: str | None = None
    mentioned_at: datetime
    waiting_days: int
    author: UserReference | None = None
    target: UserReference | None = None
    container: MentionContainer
    comment_excerpt: str | None = None


class AttentionInsights(AttentionModel):
    generated_at: datetime
    timezone: str
    date_time_format: str
    reviewer_unassigned_prs: list[PullRequestAttentionItem] = Field(default_factory=list)
    review_stalled_prs: list[PullRequestAttentionItem] = Field(default_factory=list)
    merge_delayed_prs: list[PullRequestAttentionItem] = Field(default_factory=list)
    stuck_review_requests: list[ReviewRequestAttentionItem] = Field(default_factory=list)
    backlog_issues: list[IssueAttentionItem] = Field(default_factory=list)
    stalled_in_progress_issues: list[IssueAttentionItem] = Field(default_factory=list)
    unanswered_mentions: list[MentionAttentionItem] = Field(default_factory=list)
    organization_maintainers: list[UserReference] | None = None
    repository_maintainers_by_repository: dict[str, list[UserReference]] | None = None


class RankingEntry(AttentionModel):
    user: UserReference
    count: int
    total: int


class FollowUpHighlight(AttentionModel):
    role: str
    label: str
    entries: list[RankingEntry] = Field(default_factory=list)


class FollowUpSummary(AttentionModel):
    id: str
    title: str
    description: str
    count: int
    total_metric: int
    highlights: list[FollowUpHighlight] = Field(default_factory=list)


class MentionClassificationSummaryResponse(AttentionModel):
    status: Literal["completed", "skipped"]
    total_candidates: int = 0
    attempted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    requires_response_count: int = 0
    not_requiring_response_count: int = 0
    errors: int = 0
    message: str | None = None


class MentionManualOverrideResponse(AttentionModel):
    comment_id: str
    mentioned_user_id: str
    manual_requires_response: bool | None = None
    manual_requires_response_at: datetime | None = None
    manual_decision_is_stale: bool = False
    requires_response: bool | None = None
    last_evaluated_at: datetime | None = None
