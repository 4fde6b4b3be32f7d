"""Domain dataclasses for the attention insights feature."""

from .models import (
    AttentionConfig,
    AttentionThresholds,
    Dataset,
    EvaluationContext,
    IssueProjectSnapshot,
    IssueRaw,
    MentionClassificationRecord,
    MentionRaw,
    PullRequestRaw,
    ReviewRequestRaw,
    StakeholderCalendar,
)

__all__ = [
    "AttentionConfig",
    "AttentionThresholds",
    "Dataset",
    "EvaluationContext",
    "IssueProjectSnapshot",
    "IssueRaw",
    "MentionClassificationRecord",
    "MentionRaw",
    "PullRequestRaw",
    "ReviewRequestRaw",
    "StakeholderCalendar",
]
