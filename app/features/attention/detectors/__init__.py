"""
Attention detectors.

Every detector is split into an async fetch phase and a pure evaluate phase
so stakeholder calendars can be prefetched in one batch in between.
"""

from .issues import evaluate_issues, fetch_issue_candidates, issue_stakeholders
from .mentions import (
    evaluate_mentions,
    extract_comment_excerpt,
    fetch_mention_candidates,
    fetch_mention_classifications,
    mention_stakeholders,
)
from .pull_requests import (
    evaluate_merge_delayed,
    evaluate_review_stalled,
    evaluate_reviewer_unassigned,
    fetch_merge_delayed_candidates,
    fetch_review_stalled_candidates,
    fetch_reviewer_unassigned_candidates,
    maintainer_stakeholders,
    recompute_user_ids,
    review_stalled_stakeholders,
)
from .repository import AttentionRepository
from .review_requests import (
    evaluate_stuck_review_requests,
    fetch_stuck_review_request_candidates,
    recompute_review_request_user_ids,
    stuck_review_request_stakeholders,
)
from .waiting import WaitingEvaluation, evaluate_waiting

__all__ = [
    "AttentionRepository",
    "WaitingEvaluation",
    "evaluate_issues",
    "evaluate_mentions",
    "evaluate_merge_delayed",
    "evaluate_review_stalled",
    "evaluate_reviewer_unassigned",
    "evaluate_stuck_review_requests",
    "evaluate_waiting",
    "extract_comment_excerpt",
    "fetch_issue_candidates",
    "fetch_mention_candidates",
    "fetch_mention_classifications",
    "fetch_merge_delayed_candidates",
    "fetch_review_stalled_candidates",
    "fetch_reviewer_unassigned_candidates",
    "fetch_stuck_review_request_candidates",
    "issue_stakeholders",
    "maintainer_stakeholders",
    "mention_stakeholders",
    "recompute_review_request_user_ids",
    "recompute_user_ids",
    "review_stalled_stakeholders",
    "stuck_review_request_stakeholders",
]
