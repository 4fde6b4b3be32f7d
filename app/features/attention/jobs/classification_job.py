"""
Mention classification job runner.

Runs one classification pass over the current unanswered mention
candidates. Scheduling is left to the deployment (cron or similar); the
worker process owns its own database pool.
"""

import asyncio
import os

from app.config import settings
from app.db.pool import db_pool
from app.features.attention.classification.classifier import mention_classifier
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def _force_from_env() -> bool:
    return os.getenv("ATTENTION_CLASSIFY_FORCE", "").strip().lower() in {"1", "true", "yes"}


async def run_mention_classification(force: bool | None = None) -> None:
    if not settings.ATTENTION_MENTION_CLASSIFIER_ENABLED:
        logger.warning(
            "Mention classification disabled",
            flag="ATTENTION_MENTION_CLASSIFIER_ENABLED",
        )
        return

    if force is None:
        force = _force_from_env()

    await db_pool.initialize()
    try:
        summary = await mention_classifier.run(force=force)
        logger.info("Mention classification job finished", force=force, **summary.to_dict())
    finally:
        await db_pool.close()


if __name__ == "__main__":
    asyncio.run(run_mention_classification())
