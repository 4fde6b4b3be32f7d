"""
Follow-up summaries: per-section counts, metric totals and top-N users per role.

A pure fold over resolved insights. Review requests are collapsed per pull
request and mentions per container before counting, keeping the entry with
the largest wait.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from app.features.attention.domain.models import AttentionThresholds
from app.models.api.attention_response import (
    AttentionInsights,
    FollowUpHighlight,
    FollowUpSummary,
    IssueAttentionItem,
    MentionAttentionItem,
    PullRequestAttentionItem,
    RankingEntry,
    ReviewRequestAttentionItem,
    UserReference,
)

T = TypeVar("T")

TOP_N = 2


@dataclass(slots=True)
class _Tally:
    user: UserReference
    count: int = 0
    total: int = 0


def aggregate_users(
    items: Iterable[T],
    get_users: Callable[[T], Sequence[UserReference | None]],
    get_metric: Callable[[T], int | None],
) -> list[_Tally]:
    """Occurrence count and metric total per user, in first-appearance order."""
    tallies: dict[str, _Tally] = {}
    for item in items:
        metric = get_metric(item) or 0
        for user in get_users(item):
            if user is None or not user.id:
                continue
            tally = tallies.setdefault(user.id, _Tally(user=user))
            tally.count += 1
            tally.total += metric
    return list(tallies.values())


def top_by_count(tallies: list[_Tally], limit: int = TOP_N) -> list[RankingEntry]:
    # sorted() is stable, so equal counts keep first-appearance order
    ranked = sorted(tallies, key=lambda tally: tally.count, reverse=True)[:limit]
    return [RankingEntry(user=tally.user, count=tally.count, total=tally.total) for tally in ranked]


def dedupe_by(items: Iterable[T], get_key: Callable[[T], str], get_wait: Callable[[T], int]) -> list[T]:
    """Keep the longest-waiting item per key, in first-appearance order of keys."""
    kept: dict[str, T] = {}
    for item in items:
        key = get_key(item)
        current = kept.get(key)
        if current is None or get_wait(item) > get_wait(current):
            kept[key] = item
    return list(kept.values())


def _single(user: UserReference | None) -> list[UserReference | None]:
    return [user] if user else []


def _section(
    section_id: str,
    title: str,
    description: str,
    items: Sequence[T],
    metric: Callable[[T], int | None],
    roles: Sequence[tuple[str, str, Callable[[T], Sequence[UserReference | None]]]],
) -> FollowUpSummary:
    highlights = []
    for role, label, get_users in roles:
        entries = top_by_count(aggregate_users(items, get_users, metric))
        if entries:
            highlights.append(FollowUpHighlight(role=role, label=label, entries=entries))

    return FollowUpSummary(
        id=section_id,
        title=title,
        description=description,
        count=len(items),
        total_metric=sum(metric(item) or 0 for item in items),
        highlights=highlights,
    )


def _pr_wait(item: PullRequestAttentionItem) -> int:
    return item.waiting_days


def _stalled_metric(item: IssueAttentionItem) -> int:
    return item.in_progress_age_days if item.in_progress_age_days is not None else item.age_days


def build_follow_up_summaries(
    insights: AttentionInsights, thresholds: AttentionThresholds | None = None
) -> list[FollowUpSummary]:
    limits = thresholds or AttentionThresholds.from_settings()
    review_requests = dedupe_by(
        insights.stuck_review_requests,
        lambda item: item.pull_request.id or item.id,
        lambda item: item.waiting_days,
    )
    mentions = dedupe_by(
        insights.unanswered_mentions,
        lambda item: item.container.id or item.comment_id,
        lambda item: item.waiting_days,
    )

    def review_request_wait(item: ReviewRequestAttentionItem) -> int:
        return item.waiting_days

    def mention_wait(item: MentionAttentionItem) -> int:
        return item.waiting_days

    return [
        _section(
            "reviewer-unassigned-prs",
            "Reviewer-unassigned PRs",
            f"Open PRs without a reviewer for {limits.reviewer_unassigned}+ business days",
            insights.reviewer_unassigned_prs,
            _pr_wait,
            [("author", "Top authors", lambda item: _single(item.author))],
        ),
        _section(
            "review-stalled-prs",
            "Review-stalled PRs",
            f"PRs whose reviewers have been idle for {limits.review_stalled}+ business days",
            insights.review_stalled_prs,
            _pr_wait,
            [
                ("author", "Top authors", lambda item: _single(item.author)),
                ("reviewer", "Top reviewers", lambda item: item.reviewers),
            ],
        ),
        _section(
            "merge-delayed-prs",
            "Merge-delayed PRs",
            f"Approved PRs not merged for {limits.merge_delayed}+ business days",
            insights.merge_delayed_prs,
            _pr_wait,
            [
                ("author", "Top authors", lambda item: _single(item.author)),
                ("reviewer", "Top reviewers", lambda item: item.reviewers),
            ],
        ),
        _section(
            "stuck-review-requests",
            "Stuck review requests",
            f"Review requests without a response for {limits.stuck_review_request}+ business days",
            review_requests,
            review_request_wait,
            [
                ("author", "Top authors", lambda item: _single(item.pull_request.author)),
                ("reviewer", "Top waiting reviewers", lambda item: _single(item.reviewer)),
            ],
        ),
        _section(
            "backlog-issues",
            "Backlog issues",
            f"Issues not moved to In Progress for {limits.backlog_issue}+ business days",
            insights.backlog_issues,
            lambda item: item.age_days,
            [
                ("author", "Top authors", lambda item: _single(item.author)),
                ("assignee", "Top assignees", lambda item: item.assignees),
            ],
        ),
        _section(
            "stalled-in-progress-issues",
            "Stalled in-progress issues",
            f"Issues in progress for {limits.stalled_in_progress}+ business days",
            insights.stalled_in_progress_issues,
            _stalled_metric,
            [
                ("maintainer", "Top repository maintainers", lambda item: item.repository_maintainers),
                ("assignee", "Top assignees", lambda item: item.assignees),
            ],
        ),
        _section(
            "unanswered-mentions",
            "Unanswered mentions",
            f"Mentions without a response for {limits.unanswered_mention}+ business days",
            mentions,
            mention_wait,
            [
                ("target", "Top mentioned users", lambda item: _single(item.target)),
                ("requester", "Top requesters", lambda item: _single(item.author)),
            ],
        ),
    ]
