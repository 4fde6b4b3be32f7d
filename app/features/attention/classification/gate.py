"""
Mention classification gate.

Decides whether an @mention still needs a response from its cached LLM
classification and an optional human override. A manual decision older
than the record's last evaluation is stale and ignored.
"""

from __future__ import annotations

from app.features.attention.domain.models import MentionClassificationRecord

PROMPT_VERSION = "v1"


def is_manual_decision_stale(record: MentionClassificationRecord) -> bool:
    manual_at = record.manual_requires_response_at
    evaluated_at = record.last_evaluated_at
    if manual_at is None or evaluated_at is None:
        return False
    return manual_at < evaluated_at


def effective_manual_decision(record: MentionClassificationRecord | None) -> bool | None:
    """The human override if one exists and is still current."""
    if record is None or record.manual_requires_response is None:
        return None
    if is_manual_decision_stale(record):
        return None
    return record.manual_requires_response


def should_include_mention(
    comment_body_hash: str,
    record: MentionClassificationRecord | None,
    *,
    classifier_mode: bool = True,
    prompt_version: str = PROMPT_VERSION,
) -> bool:
    """
    Apply the gate decision table to one candidate.

    Without a record the candidate is excluded in classifier mode and kept
    in unfiltered mode. A current manual `False` always suppresses.
    """
    manual = effective_manual_decision(record)
    if manual is False:
        return False

    if record is None:
        return not classifier_mode

    if record.prompt_version != prompt_version:
        return False
    if record.comment_body_hash != comment_body_hash:
        return False

    return manual is True or bool(record.requires_response)
