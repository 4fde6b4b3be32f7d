"""
Pull request detectors: reviewer-unassigned, review-stalled and merge-delayed.

Each detector has an I/O phase (`fetch_*`) that turns SQL rows into raw
candidates, a `*_stakeholders` function naming whose calendar matters, and a
pure `evaluate_*` phase that thresholds candidates against an
`EvaluationContext` holding every stakeholder calendar.
"""

from __future__ import annotations

from collections.abc import Iterable

from app.features.attention.domain.models import (
    AttentionConfig,
    Dataset,
    EvaluationContext,
    PullRequestRaw,
)

from .repository import AttentionRepository, Row
from .waiting import evaluate_common_origin, evaluate_waiting, org_age_days, stakeholders_or_fallback


def _pull_request_from_row(row: Row) -> PullRequestRaw:
    return PullRequestRaw(
        id=row["id"],
        number=row["number"],
        title=row.get("title"),
        url=row.get("url"),
        repository_id=row.get("repository_id"),
        author_id=row.get("author_id"),
        created_at=row["github_created_at"],
        updated_at=row.get("github_updated_at"),
    )


def maintainer_stakeholders(pull_request: PullRequestRaw, context: EvaluationContext) -> list[str]:
    """Repository maintainers, or the author when the repository has none."""
    return stakeholders_or_fallback(
        context.maintainers_for(pull_request.repository_id), pull_request.author_id
    )


def _stamp_ages(pull_request: PullRequestRaw, context: EvaluationContext) -> None:
    pull_request.age_days = org_age_days(pull_request.created_at, context) or 0
    pull_request.inactivity_days = org_age_days(pull_request.updated_at, context)


def _collect(dataset: Dataset[PullRequestRaw], pull_request: PullRequestRaw, context: EvaluationContext) -> None:
    dataset.items.append(pull_request)
    dataset.add_user(pull_request.author_id)
    for user_id in pull_request.reviewer_ids:
        dataset.add_user(user_id)
    for user_id in context.maintainers_for(pull_request.repository_id):
        dataset.add_user(user_id)


# =================================================================
# REVIEWER UNASSIGNED
# =================================================================


async def fetch_reviewer_unassigned_candidates(
    config: AttentionConfig, threshold: int
) -> list[PullRequestRaw]:
    rows = await AttentionRepository.fetch_reviewer_unassigned_pull_requests(
        config.excluded_repository_ids, config.excluded_user_ids, threshold
    )
    return [_pull_request_from_row(row) for row in rows]


def evaluate_reviewer_unassigned(
    candidates: Iterable[PullRequestRaw], context: EvaluationContext
) -> Dataset[PullRequestRaw]:
    dataset: Dataset[PullRequestRaw] = Dataset()
    threshold = context.thresholds.reviewer_unassigned
    for pull_request in candidates:
        evaluation = evaluate_common_origin(
            maintainer_stakeholders(pull_request, context), pull_request.created_at, threshold, context
        )
        if not evaluation.qualifies:
            continue
        pull_request.waiting_days = evaluation.waiting_days
        _stamp_ages(pull_request, context)
        _collect(dataset, pull_request, context)
    return dataset


# =================================================================
# REVIEW STALLED
# =================================================================


async def fetch_review_stalled_candidates(
    config: AttentionConfig, threshold: int
) -> list[PullRequestRaw]:
    """Group per-reviewer rows into one candidate per pull request."""
    rows = await AttentionRepository.fetch_review_stalled_requests(
        config.excluded_repository_ids, config.excluded_user_ids, threshold
    )

    candidates: dict[str, PullRequestRaw] = {}
    for row in rows:
        pull_request = candidates.get(row["id"])
        if pull_request is None:
            pull_request = _pull_request_from_row(row)
            candidates[row["id"]] = pull_request

        reviewer_id = row["reviewer_id"]
        origin = row["requested_at"]
        last_activity = row.get("last_activity_at")
        if last_activity is not None and (origin is None or last_activity > origin):
            origin = last_activity
        previous = pull_request.reviewer_origins.get(reviewer_id)
        if previous is None or (origin is not None and origin > previous):
            pull_request.reviewer_origins[reviewer_id] = origin
        if reviewer_id not in pull_request.reviewer_ids:
            pull_request.reviewer_ids.append(reviewer_id)

    return list(candidates.values())


def review_stalled_stakeholders(pull_request: PullRequestRaw, context: EvaluationContext) -> list[str]:
    return list(pull_request.reviewer_origins)


def evaluate_review_stalled(
    candidates: Iterable[PullRequestRaw], context: EvaluationContext
) -> Dataset[PullRequestRaw]:
    dataset: Dataset[PullRequestRaw] = Dataset()
    threshold = context.thresholds.review_stalled
    for pull_request in candidates:
        evaluation = evaluate_waiting(pull_request.reviewer_origins, threshold, context)
        if not evaluation.qualifies:
            continue
        pull_request.waiting_days = evaluation.waiting_days
        _stamp_ages(pull_request, context)
        _collect(dataset, pull_request, context)
    return dataset


# =================================================================
# MERGE DELAYED
# =================================================================


async def fetch_merge_delayed_candidates(
    config: AttentionConfig, threshold: int
) -> list[PullRequestRaw]:
    rows = await AttentionRepository.fetch_merge_delayed_pull_requests(
        config.excluded_repository_ids, config.excluded_user_ids, threshold
    )
    candidates = []
    for row in rows:
        pull_request = _pull_request_from_row(row)
        pull_request.approved_at = row.get("approved_at")
        candidates.append(pull_request)

    reviewer_map = await AttentionRepository.fetch_reviewer_map(
        [candidate.id for candidate in candidates], config.excluded_user_ids
    )
    for pull_request in candidates:
        pull_request.reviewer_ids = reviewer_map.get(pull_request.id, [])
    return candidates


def evaluate_merge_delayed(
    candidates: Iterable[PullRequestRaw], context: EvaluationContext
) -> Dataset[PullRequestRaw]:
    dataset: Dataset[PullRequestRaw] = Dataset()
    threshold = context.thresholds.merge_delayed
    for pull_request in candidates:
        evaluation = evaluate_common_origin(
            maintainer_stakeholders(pull_request, context), pull_request.approved_at, threshold, context
        )
        if not evaluation.qualifies:
            continue
        pull_request.waiting_days = evaluation.waiting_days
        _stamp_ages(pull_request, context)
        _collect(dataset, pull_request, context)
    return dataset


def recompute_user_ids(dataset: Dataset[PullRequestRaw], context: EvaluationContext) -> Dataset[PullRequestRaw]:
    """Fresh dataset holding the same items with their user ids collected again."""
    rebuilt: Dataset[PullRequestRaw] = Dataset()
    for pull_request in dataset.items:
        _collect(rebuilt, pull_request, context)
    return rebuilt
