"""
Unanswered @mention detector.

Candidates come from comments mentioning a known user who has not since
commented, reviewed or reacted on the same container. The classification
gate then keeps only mentions that still expect a response, and the wait
is measured in the mentioned user's calendar.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from app.features.attention.classification.gate import should_include_mention
from app.features.attention.classification.repository import MentionClassificationRepository
from app.features.attention.domain.models import (
    AttentionConfig,
    Dataset,
    EvaluationContext,
    MentionClassificationRecord,
    MentionRaw,
)
from app.security.hashing import classification_key, compute_comment_body_hash

from .repository import AttentionRepository, Row
from .waiting import evaluate_waiting

EXCERPT_MAX_CHARS = 140
_WHITESPACE = re.compile(r"\s+")


def extract_comment_excerpt(body: str | None) -> str | None:
    if not body:
        return None
    normalized = _WHITESPACE.sub(" ", body).strip()
    if not normalized:
        return None
    if len(normalized) <= EXCERPT_MAX_CHARS:
        return normalized
    return f"{normalized[:EXCERPT_MAX_CHARS - 3]}..."


def _mention_from_row(row: Row) -> MentionRaw:
    if row.get("pr_id"):
        container_type, container_id = "pull_request", row["pr_id"]
        number, title, url = row.get("pr_number"), row.get("pr_title"), row.get("pr_url")
    else:
        container_type = "discussion" if row.get("issue_type") == "discussion" else "issue"
        container_id = row["issue_id"]
        number, title, url = row.get("issue_number"), row.get("issue_title"), row.get("issue_url")

    return MentionRaw(
        comment_id=row["comment_id"],
        url=row.get("comment_url"),
        mentioned_at=row["mentioned_at"],
        comment_body=row.get("comment_body"),
        comment_author_id=row.get("comment_author_id"),
        target_user_id=row["mentioned_user_id"],
        mentioned_login=row.get("mentioned_login"),
        container_type=container_type,
        container_id=container_id,
        container_number=number,
        container_title=title,
        container_url=url,
        repository_id=row.get("repository_id"),
        comment_excerpt=extract_comment_excerpt(row.get("comment_body")),
    )


async def fetch_mention_candidates(config: AttentionConfig, threshold: int) -> list[MentionRaw]:
    """Ungated candidates; also the input of the classification run."""
    rows = await AttentionRepository.fetch_unanswered_mentions(
        config.excluded_repository_ids, config.excluded_user_ids, threshold
    )
    return [_mention_from_row(row) for row in rows]


async def fetch_mention_classifications(
    candidates: Iterable[MentionRaw],
) -> dict[str, MentionClassificationRecord]:
    return await MentionClassificationRepository.fetch_classifications(
        (mention.comment_id, mention.target_user_id) for mention in candidates
    )


def mention_stakeholders(mention: MentionRaw, context: EvaluationContext) -> list[str]:
    return [mention.target_user_id]


def evaluate_mentions(
    candidates: Iterable[MentionRaw],
    context: EvaluationContext,
    classifications: Mapping[str, MentionClassificationRecord],
    *,
    classifier_mode: bool = True,
) -> Dataset[MentionRaw]:
    dataset: Dataset[MentionRaw] = Dataset()
    threshold = context.thresholds.unanswered_mention

    for mention in candidates:
        record = classifications.get(classification_key(mention.comment_id, mention.target_user_id))
        if not should_include_mention(
            compute_comment_body_hash(mention.comment_body),
            record,
            classifier_mode=classifier_mode,
        ):
            continue

        evaluation = evaluate_waiting({mention.target_user_id: mention.mentioned_at}, threshold, context)
        if not evaluation.qualifies:
            continue

        mention.waiting_days = evaluation.waiting_days
        dataset.items.append(mention)
        dataset.add_user(mention.target_user_id)
        dataset.add_user(mention.comment_author_id)

    return dataset
