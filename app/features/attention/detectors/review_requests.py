"""
Stuck review request detector.

Outstanding requests where the reviewer has not reviewed, commented or
reacted since being asked, on pull requests not yet approved. Each request
is timed in its reviewer's calendar. Requests are grouped per pull request:
the group qualifies when every stuck reviewer has waited past the
threshold, and the pull request is represented by its longest-waiting
request carrying the group's minimum wait.
"""

from __future__ import annotations

from collections.abc import Iterable

from app.features.attention.domain.models import (
    AttentionConfig,
    Dataset,
    EvaluationContext,
    ReviewRequestRaw,
)
from app.infrastructure.observability.logging import get_logger

from .repository import AttentionRepository
from .waiting import evaluate_waiting, org_age_days

logger = get_logger(__name__)


async def fetch_stuck_review_request_candidates(
    config: AttentionConfig, threshold: int
) -> list[ReviewRequestRaw]:
    rows = await AttentionRepository.fetch_stuck_review_requests(
        config.excluded_repository_ids, config.excluded_user_ids, threshold
    )
    reviewer_map = await AttentionRepository.fetch_reviewer_map(
        sorted({row["pull_request_id"] for row in rows}), config.excluded_user_ids
    )

    candidates = []
    for row in rows:
        reviewers = list(reviewer_map.get(row["pull_request_id"], []))
        if row["reviewer_id"] not in reviewers:
            reviewers.append(row["reviewer_id"])
        candidates.append(
            ReviewRequestRaw(
                id=row["id"],
                pull_request_id=row["pull_request_id"],
                reviewer_id=row["reviewer_id"],
                requested_at=row["requested_at"],
                pr_number=row["pr_number"],
                pr_title=row.get("pr_title"),
                pr_url=row.get("pr_url"),
                pr_repository_id=row.get("pr_repository_id"),
                pr_author_id=row.get("pr_author_id"),
                pr_created_at=row["pr_created_at"],
                pr_updated_at=row.get("pr_updated_at"),
                pr_reviewer_ids=reviewers,
            )
        )
    return candidates


def _collect(dataset: Dataset[ReviewRequestRaw], request: ReviewRequestRaw) -> None:
    dataset.items.append(request)
    dataset.add_user(request.reviewer_id)
    dataset.add_user(request.pr_author_id)
    for user_id in request.pr_reviewer_ids:
        dataset.add_user(user_id)


def stuck_review_request_stakeholders(request: ReviewRequestRaw, context: EvaluationContext) -> list[str]:
    return [request.reviewer_id]


def evaluate_stuck_review_requests(
    candidates: Iterable[ReviewRequestRaw], context: EvaluationContext
) -> Dataset[ReviewRequestRaw]:
    threshold = context.thresholds.stuck_review_request

    groups: dict[str, list[ReviewRequestRaw]] = {}
    for request in candidates:
        groups.setdefault(request.pull_request_id, []).append(request)

    dataset: Dataset[ReviewRequestRaw] = Dataset()
    for pull_request_id, requests in groups.items():
        origins = {request.reviewer_id: request.requested_at for request in requests}
        evaluation = evaluate_waiting(origins, threshold, context)
        if not evaluation.qualifies:
            continue

        # longest-waiting request represents the pull request
        representative = max(
            requests, key=lambda request: evaluation.waits.get(request.reviewer_id, 0)
        )
        representative.waiting_days = evaluation.waiting_days
        representative.pr_age_days = org_age_days(representative.pr_created_at, context)
        representative.pr_inactivity_days = org_age_days(representative.pr_updated_at, context)

        _collect(dataset, representative)

        if len(requests) > 1:
            logger.debug(
                "Stuck review requests collapsed",
                pull_request_id=pull_request_id,
                requests=len(requests),
                kept=representative.id,
            )

    return dataset


def recompute_review_request_user_ids(
    dataset: Dataset[ReviewRequestRaw], context: EvaluationContext
) -> Dataset[ReviewRequestRaw]:
    rebuilt: Dataset[ReviewRequestRaw] = Dataset()
    for request in dataset.items:
        _collect(rebuilt, request)
    return rebuilt
