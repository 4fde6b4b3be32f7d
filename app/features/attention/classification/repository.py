"""
Repository for cached unanswered-mention classifications.

Rows are keyed by (comment_id, mentioned_user_id) and remember the body
hash and prompt version the verdict was computed from, plus any manual
override recorded by an administrator.
"""

import json
from collections.abc import Iterable
from datetime import UTC, datetime

from app.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from app.features.attention.domain.models import MentionClassificationRecord
from app.infrastructure.observability.logging import get_logger
from app.security.hashing import classification_key

from .gate import PROMPT_VERSION

logger = get_logger(__name__)


def _to_record(row: dict) -> MentionClassificationRecord:
    return MentionClassificationRecord(
        comment_id=row["comment_id"],
        mentioned_user_id=row["mentioned_user_id"],
        comment_body_hash=row.get("comment_body_hash") or "",
        prompt_version=row.get("prompt_version") or "",
        requires_response=bool(row.get("requires_response")),
        last_evaluated_at=row.get("last_evaluated_at"),
        model=row.get("model"),
        manual_requires_response=row.get("manual_requires_response"),
        manual_requires_response_at=row.get("manual_requires_response_at"),
    )


class MentionClassificationRepository:
    """Raw SQL helpers for unanswered_mention_classifications."""

    @classmethod
    async def fetch_classifications(
        cls, pairs: Iterable[tuple[str, str]]
    ) -> dict[str, MentionClassificationRecord]:
        unique = sorted({(comment_id, user_id) for comment_id, user_id in pairs if comment_id and user_id})
        if not unique:
            return {}

        query = """
            SELECT
                c.comment_id,
                c.mentioned_user_id,
                c.comment_body_hash,
                c.prompt_version,
                c.requires_response,
                c.model,
                c.last_evaluated_at,
                c.manual_requires_response,
                c.manual_requires_response_at
            FROM unanswered_mention_classifications c
            JOIN UNNEST(%s::text[], %s::text[]) AS wanted(comment_id, mentioned_user_id)
              ON wanted.comment_id = c.comment_id
             AND wanted.mentioned_user_id = c.mentioned_user_id
        """
        rows = await fetch_all(
            query, ([pair[0] for pair in unique], [pair[1] for pair in unique])
        )
        return {
            classification_key(row["comment_id"], row["mentioned_user_id"]): _to_record(row)
            for row in rows
        }

    @classmethod
    async def fetch_classification(
        cls, comment_id: str, mentioned_user_id: str
    ) -> MentionClassificationRecord | None:
        records = await cls.fetch_classifications([(comment_id, mentioned_user_id)])
        return records.get(classification_key(comment_id, mentioned_user_id))

    @classmethod
    async def fetch_comment_body(cls, comment_id: str) -> str | None:
        """Current comment body, or None when the comment does not exist."""
        row = await fetch_one(
            "SELECT COALESCE(data->>'body', '') AS body FROM comments WHERE id = %s",
            (comment_id,),
        )
        return row["body"] if row else None

    @classmethod
    @with_db_retry(max_retries=2)
    async def upsert_classification(
        cls,
        *,
        comment_id: str,
        mentioned_user_id: str,
        comment_body_hash: str,
        requires_response: bool,
        model: str,
        raw_response: object,
        evaluated_at: datetime | None = None,
    ) -> None:
        query = """
            INSERT INTO unanswered_mention_classifications (
                comment_id, mentioned_user_id, comment_body_hash, prompt_version,
                requires_response, model, raw_response, last_evaluated_at,
                created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s::jsonb, %s, NOW(), NOW())
            ON CONFLICT (comment_id, mentioned_user_id)
            DO UPDATE SET
                comment_body_hash = EXCLUDED.comment_body_hash,
                prompt_version = EXCLUDED.prompt_version,
                requires_response = EXCLUDED.requires_response,
                model = EXCLUDED.model,
                raw_response = EXCLUDED.raw_response,
                last_evaluated_at = EXCLUDED.last_evaluated_at,
                updated_at = NOW()
        """
        await execute_query(
            query,
            (
                comment_id,
                mentioned_user_id,
                comment_body_hash,
                PROMPT_VERSION,
                requires_response,
                model,
                json.dumps(raw_response, default=str),
                evaluated_at or datetime.now(UTC),
            ),
        )

    @classmethod
    @with_db_retry(max_retries=2)
    async def upsert_manual_override(
        cls,
        *,
        comment_id: str,
        mentioned_user_id: str,
        comment_body_hash: str,
        manual_requires_response: bool | None,
        decided_at: datetime | None = None,
    ) -> None:
        """
        Store (or clear) an administrator decision.

        The evaluation timestamp is bumped together with the decision so the
        decision is current until the classifier evaluates the comment again.
        Clearing only touches an existing row; a mention that was never
        classified stays unclassified.
        """
        now = decided_at or datetime.now(UTC)
        if manual_requires_response is None:
            query = """
                UPDATE unanswered_mention_classifications
                SET comment_body_hash = %s,
                    manual_requires_response = NULL,
                    manual_requires_response_at = NULL,
                    last_evaluated_at = %s,
                    updated_at = NOW()
                WHERE comment_id = %s AND mentioned_user_id = %s
            """
            cleared = await execute_query(query, (comment_body_hash, now, comment_id, mentioned_user_id))
            logger.info(
                "Mention manual override cleared",
                comment_id=comment_id,
                mentioned_user_id=mentioned_user_id,
                rows=cleared,
            )
            return

        query = """
            INSERT INTO unanswered_mention_classifications (
                comment_id, mentioned_user_id, comment_body_hash, prompt_version,
                requires_response, model, raw_response, last_evaluated_at,
                manual_requires_response, manual_requires_response_at,
                created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, FALSE, NULL, NULL, %s, %s, %s, NOW(), NOW())
            ON CONFLICT (comment_id, mentioned_user_id)
            DO UPDATE SET
                comment_body_hash = EXCLUDED.comment_body_hash,
                manual_requires_response = EXCLUDED.manual_requires_response,
                manual_requires_response_at = EXCLUDED.manual_requires_response_at,
                last_evaluated_at = EXCLUDED.last_evaluated_at,
                updated_at = NOW()
        """
        await execute_query(
            query,
            (
                comment_id,
                mentioned_user_id,
                comment_body_hash,
                PROMPT_VERSION,
                now,
                manual_requires_response,
                now,
            ),
        )
        logger.info(
            "Mention manual override stored",
            comment_id=comment_id,
            mentioned_user_id=mentioned_user_id,
            manual_requires_response=manual_requires_response,
        )
