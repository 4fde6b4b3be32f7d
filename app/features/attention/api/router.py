"""
Attention routes.

Serves the computed insights, their follow-up summaries, and the two admin
operations on the unanswered-mention classification cache.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, status

from app.db.helpers import DatabaseError
from app.features.attention.classification.classifier import mention_classifier
from app.features.attention.classification.gate import is_manual_decision_stale
from app.features.attention.classification.repository import MentionClassificationRepository
from app.features.attention.service import attention_insights_service
from app.features.attention.summaries import build_follow_up_summaries
from app.infrastructure.observability.logging import get_logger
from app.models.api.attention_request import ClassifyMentionsRequest, MentionManualOverrideRequest
from app.models.api.attention_response import (
    AttentionInsights,
    FollowUpSummary,
    MentionClassificationSummaryResponse,
    MentionManualOverrideResponse,
)
from app.security.hashing import compute_comment_body_hash

logger = get_logger(__name__)

router = APIRouter(prefix="/attention", tags=["attention"])


def _unavailable(e: DatabaseError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Database unavailable during {e.operation}",
    )


@router.get("", response_model=AttentionInsights)
async def get_attention_insights() -> AttentionInsights:
    """Compute follow-up lists for the whole organization."""
    try:
        return await attention_insights_service.get_attention_insights()
    except DatabaseError as e:
        logger.error("Attention insights failed", error=str(e), operation=e.operation)
        raise _unavailable(e) from e


@router.get("/summary", response_model=list[FollowUpSummary])
async def get_attention_summary() -> list[FollowUpSummary]:
    try:
        insights = await attention_insights_service.get_attention_insights()
    except DatabaseError as e:
        logger.error("Attention summary failed", error=str(e), operation=e.operation)
        raise _unavailable(e) from e
    return build_follow_up_summaries(insights)


@router.post("/unanswered-mentions/classify", response_model=MentionClassificationSummaryResponse)
async def classify_unanswered_mentions(
    request: ClassifyMentionsRequest | None = None,
) -> MentionClassificationSummaryResponse:
    """Run the LLM classifier over current unanswered mention candidates."""
    force = request.force if request else False
    try:
        summary = await mention_classifier.run(force=force)
    except DatabaseError as e:
        logger.error("Mention classification failed", error=str(e), operation=e.operation)
        raise _unavailable(e) from e
    return MentionClassificationSummaryResponse(**summary.to_dict())


@router.post("/unanswered-mentions/manual", response_model=MentionManualOverrideResponse)
async def set_mention_manual_override(
    request: MentionManualOverrideRequest,
) -> MentionManualOverrideResponse:
    """Store, replace or clear an administrator decision on one mention."""
    try:
        body = await MentionClassificationRepository.fetch_comment_body(request.comment_id)
        if body is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Comment not found for the provided identifier",
            )

        manual = None if request.state == "clear" else request.state == "force"
        decided_at = request.sync_completed_at or datetime.now(UTC)
        await MentionClassificationRepository.upsert_manual_override(
            comment_id=request.comment_id,
            mentioned_user_id=request.mentioned_user_id,
            comment_body_hash=compute_comment_body_hash(body),
            manual_requires_response=manual,
            decided_at=decided_at,
        )
        record = await MentionClassificationRepository.fetch_classification(
            request.comment_id, request.mentioned_user_id
        )
    except DatabaseError as e:
        logger.error("Manual override failed", error=str(e), operation=e.operation)
        raise _unavailable(e) from e

    return MentionManualOverrideResponse(
        comment_id=request.comment_id,
        mentioned_user_id=request.mentioned_user_id,
        manual_requires_response=record.manual_requires_response if record else None,
        manual_requires_response_at=record.manual_requires_response_at if record else None,
        manual_decision_is_stale=is_manual_decision_stale(record) if record else False,
        requires_response=record.requires_response if record else None,
        last_evaluated_at=record.last_evaluated_at if record else None,
    )
