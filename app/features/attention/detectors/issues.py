"""
Backlog and stalled in-progress issue detector.

Open issues are split by their resolved project status: `no_status`/`todo`
issues are timed from creation against the backlog threshold, and
`in_progress`/`pending` issues from the moment work started against the
stall threshold. `done` issues are ignored.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime
from typing import Literal

from app.features.attention.domain.models import (
    AttentionConfig,
    Dataset,
    EvaluationContext,
    IssueRaw,
)
from app.features.attention.status.repository import IssueStatusRepository
from app.features.attention.status.resolver import (
    extract_assignee_ids,
    parse_issue_data,
    resolve_issue_project_snapshot,
)

from .repository import AttentionRepository
from .waiting import evaluate_common_origin, org_age_days, stakeholders_or_fallback

IssueBucket = Literal["backlog", "stalled"]

BACKLOG_STATUSES = frozenset({"no_status", "todo"})
IN_PROGRESS_STATUSES = frozenset({"in_progress", "pending"})


async def fetch_issue_candidates(
    config: AttentionConfig, min_days: int
) -> list[IssueRaw]:
    rows = await AttentionRepository.fetch_open_issues(
        config.excluded_repository_ids, config.excluded_user_ids, min_days
    )
    issue_ids = [row["id"] for row in rows]
    activity_events, overrides = await asyncio.gather(
        IssueStatusRepository.fetch_activity_events(issue_ids),
        IssueStatusRepository.fetch_project_overrides(issue_ids),
    )

    excluded_users = set(config.excluded_user_ids)
    candidates = []
    for row in rows:
        raw = parse_issue_data(row.get("data"))
        events = activity_events.get(row["id"], [])
        issue_overrides = overrides.get(row["id"])
        snapshot, signal, started_at = resolve_issue_project_snapshot(
            raw, config.todo_project_name, events, issue_overrides
        )
        candidates.append(
            IssueRaw(
                id=row["id"],
                number=row["number"],
                title=row.get("title"),
                url=row.get("url"),
                repository_id=row.get("repository_id"),
                author_id=row.get("author_id"),
                created_at=row["github_created_at"],
                updated_at=row.get("github_updated_at"),
                data=raw,
                activity_events=events,
                overrides=issue_overrides,
                assignee_ids=[
                    user_id for user_id in extract_assignee_ids(raw) if user_id not in excluded_users
                ],
                snapshot=snapshot,
                started_at=started_at,
                status_changed_at=signal.occurred_at,
            )
        )
    return candidates


def issue_bucket(issue: IssueRaw) -> IssueBucket | None:
    status = issue.snapshot.status
    if status in BACKLOG_STATUSES:
        return "backlog"
    if status in IN_PROGRESS_STATUSES:
        return "stalled"
    return None


def in_progress_origin(issue: IssueRaw) -> datetime:
    """Work start, else the status change that put the issue in progress, else creation."""
    return issue.started_at or issue.status_changed_at or issue.created_at


def issue_stakeholders(issue: IssueRaw, context: EvaluationContext) -> list[str]:
    """Assignees, else repository maintainers, else the author."""
    issue.maintainer_ids = context.maintainers_for(issue.repository_id)
    if issue.assignee_ids:
        return list(issue.assignee_ids)
    return stakeholders_or_fallback(issue.maintainer_ids, issue.author_id)


def _collect(dataset: Dataset[IssueRaw], issue: IssueRaw) -> None:
    dataset.items.append(issue)
    dataset.add_user(issue.author_id)
    for user_id in issue.assignee_ids:
        dataset.add_user(user_id)
    for user_id in issue.maintainer_ids:
        dataset.add_user(user_id)


def evaluate_issues(
    candidates: Iterable[IssueRaw], context: EvaluationContext
) -> tuple[Dataset[IssueRaw], Dataset[IssueRaw]]:
    """Return (backlog, stalled) datasets."""
    backlog: Dataset[IssueRaw] = Dataset()
    stalled: Dataset[IssueRaw] = Dataset()

    for issue in candidates:
        bucket = issue_bucket(issue)
        if bucket is None:
            continue

        stakeholders = issue_stakeholders(issue, context)
        issue.age_days = org_age_days(issue.created_at, context) or 0

        if bucket == "backlog":
            evaluation = evaluate_common_origin(
                stakeholders, issue.created_at, context.thresholds.backlog_issue, context
            )
            if evaluation.qualifies:
                issue.waiting_days = evaluation.waiting_days
                _collect(backlog, issue)
            continue

        origin = in_progress_origin(issue)
        evaluation = evaluate_common_origin(
            stakeholders, origin, context.thresholds.stalled_in_progress, context
        )
        if evaluation.qualifies:
            issue.in_progress_age_days = org_age_days(origin, context)
            issue.waiting_days = evaluation.waiting_days
            _collect(stalled, issue)

    return backlog, stalled
