"""
Unanswered mention classifier.

Asks an OpenAI chat model whether each pending @mention expects a response
and stores the verdict, keyed by comment and mentioned user, together with
the prompt version and body hash it was computed from.
"""

import asyncio
import json
import re
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

import openai
from openai import AsyncOpenAI

from app.config import settings
from app.features.attention.detectors.mentions import (
    fetch_mention_candidates,
    fetch_mention_classifications,
)
from app.features.attention.detectors.repository import AttentionRepository
from app.features.attention.domain.models import MentionClassificationRecord, MentionRaw
from app.infrastructure.observability.logging import get_logger
from app.security.hashing import classification_key, compute_comment_body_hash

from .gate import PROMPT_VERSION
from .repository import MentionClassificationRepository

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a GitHub assistant. For each comment, determine whether a user mention is "
    "asking for a response or is simply a reference or courtesy. The comment may be "
    'written in English or Korean. Respond with only "Yes" or "No".'
)
MAX_BATCH_SIZE = 20
MAX_COMMENT_CHARS = 1500
MENTION_CONTEXT_RADIUS = MAX_COMMENT_CHARS // 2
MENTION_PATTERN = re.compile(r"@[A-Za-z0-9_-]+")


class OpenAIClassificationError(Exception):
    """Raised when a classification batch cannot be evaluated."""

    def __init__(self, message: str, api_error: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.api_error = api_error
        self.recoverable = recoverable


@dataclass(slots=True)
class MentionClassificationSummary:
    status: str = "completed"
    total_candidates: int = 0
    attempted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    requires_response_count: int = 0
    not_requiring_response_count: int = 0
    errors: int = 0
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class BatchCandidate:
    key: str
    comment_body: str
    mentioned_login: str | None


@dataclass(slots=True)
class EvaluationResult:
    requires_response: bool
    raw: Any
    model: str


def truncate_comment_body(body: str) -> str:
    """Cut long comments to a window centred on the first mention."""
    if len(body) <= MAX_COMMENT_CHARS:
        return body

    match = MENTION_PATTERN.search(body)
    if match is None:
        return f"{body[:MAX_COMMENT_CHARS - 3]}..."

    index = match.start()
    start = max(0, index - MENTION_CONTEXT_RADIUS)
    end = min(len(body), index + MENTION_CONTEXT_RADIUS)

    if end - start < MAX_COMMENT_CHARS:
        shortfall = MAX_COMMENT_CHARS - (end - start)
        start = max(0, start - shortfall // 2)
        end = min(len(body), end + (shortfall - shortfall // 2))

    snippet = body[start:end]
    if start > 0:
        snippet = f"...{snippet}"
    if end < len(body):
        snippet = f"{snippet}..."
    if len(snippet) > MAX_COMMENT_CHARS:
        snippet = f"{snippet[:MAX_COMMENT_CHARS - 3]}..."
    return snippet


def build_batch_prompt(candidates: list[BatchCandidate]) -> str:
    header = "\n".join(
        [
            f"There are {len(candidates)} GitHub comments.",
            "For each numbered item decide if the mention expects a response (Yes) or is informational (No).",
            'Respond with a JSON array of "Yes" or "No" strings in matching order.',
            "Only output the JSON array.",
            "Comments:",
        ]
    )
    items = []
    for index, candidate in enumerate(candidates, start=1):
        label = f"Mentioned user: {candidate.mentioned_login or '(unknown)'}"
        items.append(f'{index}. {label}\nComment: """{candidate.comment_body}"""')
    return f"{header}\n\n" + "\n\n".join(items)


def parse_batch_response(content: str | None, expected_length: int) -> list[str]:
    """Answers from the model reply, which must be a JSON array of the expected length."""
    if not isinstance(content, str):
        raise OpenAIClassificationError("OpenAI response did not include message content")

    text = content.strip()
    start, end = text.find("["), text.rfind("]")
    try:
        if start != -1 and end > start:
            parsed = json.loads(text[start : end + 1])
        else:
            parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise OpenAIClassificationError("OpenAI returned invalid JSON", api_error=str(e)) from e

    if not isinstance(parsed, list):
        raise OpenAIClassificationError("Expected JSON array in OpenAI response")
    if len(parsed) != expected_length:
        raise OpenAIClassificationError(
            f"Expected {expected_length} responses but received {len(parsed)}"
        )

    answers = []
    for value in parsed:
        if isinstance(value, bool):
            answers.append("Yes" if value else "No")
        elif value is None:
            answers.append("")
        else:
            answers.append(str(value))
    return answers


def should_skip_evaluation(
    record: MentionClassificationRecord | None, body_hash: str, force: bool
) -> bool:
    if record is None or force:
        return False
    return record.prompt_version == PROMPT_VERSION and record.comment_body_hash == body_hash


class MentionClassifier:
    """Runs the LLM classification over the current unanswered mention candidates."""

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None):
        self.client = client
        self.model = (model or settings.OPENAI_UNANSWERED_MODEL).strip()
        self.system_prompt = settings.OPENAI_UNANSWERED_PROMPT or DEFAULT_SYSTEM_PROMPT

    def _get_client(self) -> AsyncOpenAI:
        if self.client is None:
            self.client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.OPENAI_TIMEOUT_SECONDS,
            )
            logger.info(
                "OpenAI client initialized",
                model=self.model,
                timeout=settings.OPENAI_TIMEOUT_SECONDS,
            )
        return self.client

    async def run(self, force: bool = False, now: datetime | None = None) -> MentionClassificationSummary:
        if not settings.OPENAI_API_KEY and self.client is None:
            logger.warning("Mention classification skipped, OPENAI_API_KEY not configured")
            return MentionClassificationSummary(
                status="skipped",
                message="OPENAI_API_KEY is not configured; classification skipped.",
            )

        evaluated_at = now or datetime.now(UTC)
        summary = MentionClassificationSummary()

        config = await AttentionRepository.fetch_config()
        candidates = await fetch_mention_candidates(config, settings.ATTENTION_UNANSWERED_MENTION_DAYS)
        summary.total_candidates = len(candidates)
        if not candidates:
            summary.message = "No unanswered mentions to classify."
            return summary

        existing = await fetch_mention_classifications(candidates)

        pending: list[tuple[MentionRaw, str, str]] = []
        for mention in candidates:
            body = mention.comment_body or ""
            if not mention.target_user_id or not body.strip():
                summary.skipped += 1
                continue
            if not MENTION_PATTERN.search(body):
                summary.skipped += 1
                logger.warning(
                    "Skipping unanswered mention without @username pattern",
                    comment_id=mention.comment_id,
                    mentioned_user_id=mention.target_user_id,
                )
                continue

            key = classification_key(mention.comment_id, mention.target_user_id)
            body_hash = compute_comment_body_hash(mention.comment_body)
            record = existing.get(key)
            if should_skip_evaluation(record, body_hash, force):
                summary.unchanged += 1
                if record.requires_response:
                    summary.requires_response_count += 1
                else:
                    summary.not_requiring_response_count += 1
                continue

            pending.append((mention, key, body_hash))

        if not pending:
            summary.message = "All unanswered mention classifications are up to date."
            return summary

        summary.attempted = len(pending)
        for offset in range(0, len(pending), MAX_BATCH_SIZE):
            batch = pending[offset : offset + MAX_BATCH_SIZE]
            await self._classify_batch(batch, summary, evaluated_at)

        summary.message = (
            f"Classification finished with {summary.errors} errors."
            if summary.errors
            else "Unanswered mention classification completed."
        )
        logger.info("Mention classification run completed", **summary.to_dict())
        return summary

    async def _classify_batch(
        self,
        batch: list[tuple[MentionRaw, str, str]],
        summary: MentionClassificationSummary,
        evaluated_at: datetime,
    ) -> None:
        comment_ids = [mention.comment_id for mention, _, _ in batch]
        inputs = [
            BatchCandidate(
                key=key,
                comment_body=truncate_comment_body(mention.comment_body or ""),
                mentioned_login=mention.mentioned_login,
            )
            for mention, key, _ in batch
        ]

        logger.info("Sending mention classification batch", batch_size=len(batch), comment_ids=comment_ids)
        try:
            results = await self.evaluate_batch(inputs)
        except OpenAIClassificationError as e:
            summary.errors += len(batch)
            logger.error(
                "Failed to classify mention batch",
                comment_ids=comment_ids,
                error=str(e),
                api_error=e.api_error,
            )
            return

        for mention, key, body_hash in batch:
            result = results.get(key)
            if result is None:
                summary.errors += 1
                logger.error(
                    "Missing classification result for mention",
                    comment_id=mention.comment_id,
                    mentioned_user_id=mention.target_user_id,
                )
                continue

            await MentionClassificationRepository.upsert_classification(
                comment_id=mention.comment_id,
                mentioned_user_id=mention.target_user_id,
                comment_body_hash=body_hash,
                requires_response=result.requires_response,
                model=result.model,
                raw_response=result.raw,
                evaluated_at=evaluated_at,
            )
            summary.updated += 1
            if result.requires_response:
                summary.requires_response_count += 1
            else:
                summary.not_requiring_response_count += 1

    async def evaluate_batch(self, candidates: list[BatchCandidate]) -> dict[str, EvaluationResult]:
        if not candidates:
            return {}

        content, raw = await self._call_openai_with_retry(build_batch_prompt(candidates))
        answers = parse_batch_response(content, len(candidates))
        return {
            candidate.key: EvaluationResult(
                requires_response=answer.strip().lower().startswith("y"),
                raw=raw,
                model=self.model,
            )
            for candidate, answer in zip(candidates, answers, strict=True)
        }

    async def _call_openai_with_retry(self, user_message: str) -> tuple[str, Any]:
        """Call OpenAI API with retry logic for transient failures."""
        client = self._get_client()
        last_error: Exception | None = None
        max_retries = settings.OPENAI_MAX_RETRIES

        for attempt in range(max_retries):
            try:
                response = await client.chat.completions.create(
                    model=self.model,
                    temperature=0,
                    messages=[
                        {"role": "system", "content": self.system_prompt},
                        {"role": "user", "content": user_message},
                    ],
                )

                if not response.choices or not response.choices[0].message.content:
                    raise OpenAIClassificationError("Empty response from OpenAI API", recoverable=False)

                content = response.choices[0].message.content.strip()
                logger.debug(
                    "OpenAI API call successful",
                    attempt=attempt + 1,
                    usage_tokens=response.usage.total_tokens if response.usage else 0,
                )
                return content, response.model_dump(mode="json")

            except openai.RateLimitError as e:
                last_error = e
                wait_time = min(2**attempt, 30)
                logger.warning(
                    "OpenAI rate limit hit, retrying",
                    attempt=attempt + 1,
                    wait_time=wait_time,
                    error=str(e),
                )
                if attempt < max_retries - 1:
                    await asyncio.sleep(wait_time)

            except openai.APITimeoutError as e:
                last_error = e
                logger.warning(
                    "OpenAI API timeout, retrying",
                    attempt=attempt + 1,
                    timeout=settings.OPENAI_TIMEOUT_SECONDS,
                )

            except openai.APIStatusError as e:
                last_error = e
                # client errors (4xx) will not succeed on retry
                if 400 <= e.status_code < 500:
                    logger.error("OpenAI client error (not retrying)", error=str(e))
                    break
                logger.warning("OpenAI API error, retrying", attempt=attempt + 1, error=str(e))

            except openai.APIError as e:
                last_error = e
                logger.warning("OpenAI API error, retrying", attempt=attempt + 1, error=str(e))

        logger.error(
            "OpenAI API call failed after all retries",
            max_retries=max_retries,
            final_error=str(last_error),
        )
        raise OpenAIClassificationError(
            f"OpenAI API failed after {max_retries} attempts",
            api_error=str(last_error),
            recoverable=True,
        ) from last_error


mention_classifier = MentionClassifier()
