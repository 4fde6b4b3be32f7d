"""
Unanswered mention classification: the inclusion gate and its cache.

The LLM run lives in `classification.classifier` and is imported directly
by the router and the worker.
"""

from .gate import PROMPT_VERSION, effective_manual_decision, is_manual_decision_stale, should_include_mention
from .repository import MentionClassificationRepository

__all__ = [
    "PROMPT_VERSION",
    "MentionClassificationRepository",
    "effective_manual_decision",
    "is_manual_decision_stale",
    "should_include_mention",
]
