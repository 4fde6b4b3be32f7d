"""
Attention insights aggregator.

One computation runs in five steps:

1. load organization config, then fetch every detector's raw candidates,
   the organization holiday set and the repository maintainer map
   concurrently;
2. prefetch the calendar of every stakeholder in one batch;
3. evaluate each detector as a pure loop over its candidates;
4. apply the ordered claim pass so a pull request appears in one bucket;
5. resolve user/repository references once and build the output models.

A database failure in any step propagates; there are no partial results.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from app.config import settings
from app.features.attention.calendar.business_days import resolve_timezone
from app.features.attention.calendar.holiday_service import (
    HolidayCalendarService,
    holiday_calendar_service,
)
from app.features.attention.detectors import (
    AttentionRepository,
    evaluate_issues,
    evaluate_mentions,
    evaluate_merge_delayed,
    evaluate_review_stalled,
    evaluate_reviewer_unassigned,
    evaluate_stuck_review_requests,
    fetch_issue_candidates,
    fetch_mention_candidates,
    fetch_mention_classifications,
    fetch_merge_delayed_candidates,
    fetch_review_stalled_candidates,
    fetch_reviewer_unassigned_candidates,
    fetch_stuck_review_request_candidates,
    issue_stakeholders,
    maintainer_stakeholders,
    mention_stakeholders,
    recompute_review_request_user_ids,
    recompute_user_ids,
    review_stalled_stakeholders,
    stuck_review_request_stakeholders,
)
from app.features.attention.domain.models import (
    AttentionThresholds,
    Dataset,
    EvaluationContext,
    IssueRaw,
    MentionRaw,
    PullRequestRaw,
    ReviewRequestRaw,
    StakeholderCalendar,
)
from app.features.attention.references.resolver import ReferenceResolver
from app.infrastructure.observability.logging import get_logger
from app.models.api.attention_response import (
    AttentionInsights,
    IssueAttentionItem,
    MentionAttentionItem,
    MentionContainer,
    PullRequestAttentionItem,
    PullRequestReference,
    ReviewRequestAttentionItem,
)

logger = get_logger(__name__)


# =================================================================
# CLAIM PASS
# =================================================================


@dataclass(slots=True, frozen=True)
class ClaimRule:
    detector: str
    pull_request_id: Callable[[object], str]
    recompute: Callable[[Dataset, EvaluationContext], Dataset]


# first detector in this list to report a pull request keeps it
CLAIM_PRIORITY: tuple[ClaimRule, ...] = (
    ClaimRule("reviewer_unassigned", lambda item: item.id, recompute_user_ids),
    ClaimRule("merge_delayed", lambda item: item.id, recompute_user_ids),
    ClaimRule("stuck_review_request", lambda item: item.pull_request_id, recompute_review_request_user_ids),
    ClaimRule("review_stalled", lambda item: item.id, recompute_user_ids),
)


def apply_claim_pass(
    datasets: dict[str, Dataset], context: EvaluationContext
) -> dict[str, Dataset]:
    """Drop pull requests already claimed by a higher-priority detector."""
    claimed: dict[str, str] = {}
    result = dict(datasets)

    for rule in CLAIM_PRIORITY:
        dataset = datasets.get(rule.detector)
        if dataset is None:
            continue

        kept = []
        for item in dataset.items:
            pull_request_id = rule.pull_request_id(item)
            owner = claimed.setdefault(pull_request_id, rule.detector)
            if owner == rule.detector:
                kept.append(item)

        if len(kept) != len(dataset.items):
            logger.debug(
                "Claim pass removed pull requests",
                detector=rule.detector,
                removed=len(dataset.items) - len(kept),
            )
            result[rule.detector] = rule.recompute(Dataset(items=kept), context)

    return result


# =================================================================
# OUTPUT BUILDERS
# =================================================================


def _pull_request_item(
    item: PullRequestRaw, references: ReferenceResolver, context: EvaluationContext
) -> PullRequestAttentionItem:
    return PullRequestAttentionItem(
        id=item.id,
        number=item.number,
        title=item.title,
        url=item.url,
        repository=references.repository(item.repository_id),
        author=references.user(item.author_id),
        reviewers=references.user_list(item.reviewer_ids),
        created_at=item.created_at,
        updated_at=item.updated_at,
        approved_at=item.approved_at,
        age_days=item.age_days,
        inactivity_days=item.inactivity_days,
        waiting_days=item.waiting_days,
        repository_maintainers=references.user_list(context.maintainers_for(item.repository_id)),
    )


def _review_request_item(
    item: ReviewRequestRaw, references: ReferenceResolver
) -> ReviewRequestAttentionItem:
    return ReviewRequestAttentionItem(
        id=item.id,
        requested_at=item.requested_at,
        waiting_days=item.waiting_days,
        reviewer=references.user(item.reviewer_id),
        pull_request=PullRequestReference(
            id=item.pull_request_id,
            number=item.pr_number,
            title=item.pr_title,
            url=item.pr_url,
            repository=references.repository(item.pr_repository_id),
            author=references.user(item.pr_author_id),
            reviewers=references.user_list(item.pr_reviewer_ids),
        ),
        pull_request_age_days=item.pr_age_days,
        pull_request_inactivity_days=item.pr_inactivity_days,
        pull_request_updated_at=item.pr_updated_at,
    )


def _issue_item(item: IssueRaw, references: ReferenceResolver, *, stalled: bool) -> IssueAttentionItem:
    snapshot = item.snapshot
    return IssueAttentionItem(
        id=item.id,
        number=item.number,
        title=item.title,
        url=item.url,
        repository=references.repository(item.repository_id),
        author=references.user(item.author_id),
        assignees=references.user_list(item.assignee_ids),
        repository_maintainers=references.user_list(item.maintainer_ids),
        created_at=item.created_at,
        updated_at=item.updated_at,
        age_days=item.age_days,
        started_at=item.started_at if stalled else None,
        in_progress_age_days=item.in_progress_age_days if stalled else None,
        waiting_days=item.waiting_days,
        issue_project_status=snapshot.status,
        issue_project_status_source=snapshot.source,
        issue_project_status_locked=snapshot.locked,
        issue_todo_project_status=snapshot.todo_status,
        issue_todo_project_priority=snapshot.priority,
        issue_todo_project_weight=snapshot.weight,
        issue_todo_project_initiation_options=snapshot.initiation_options,
        issue_todo_project_start_date=snapshot.start_date,
    )


def _mention_item(item: MentionRaw, references: ReferenceResolver) -> MentionAttentionItem:
    return MentionAttentionItem(
        comment_id=item.comment_id,
        url=item.url,
        mentioned_at=item.mentioned_at,
        waiting_days=item.waiting_days,
        author=references.user(item.comment_author_id),
        target=references.user(item.target_user_id),
        container=MentionContainer(
            type=item.container_type,
            id=item.container_id,
            number=item.container_number,
            title=item.container_title,
            url=item.container_url,
            repository=references.repository(item.repository_id),
        ),
        comment_excerpt=item.comment_excerpt,
    )


def _repository_ids(datasets: Iterable[Dataset]) -> set[str]:
    ids: set[str] = set()
    for dataset in datasets:
        for item in dataset.items:
            repository_id = getattr(item, "repository_id", None) or getattr(item, "pr_repository_id", None)
            if repository_id:
                ids.add(repository_id)
    return ids


def _stakeholder_ids(
    context: EvaluationContext,
    groups: Sequence[tuple[Iterable, Callable[[object, EvaluationContext], list[str]]]],
) -> set[str]:
    ids: set[str] = set()
    for candidates, stakeholders in groups:
        for candidate in candidates:
            ids.update(user_id for user_id in stakeholders(candidate, context) if user_id)
    return ids


# =================================================================
# SERVICE
# =================================================================


class AttentionInsightsService:
    """Computes `AttentionInsights`; holds no state between calls."""

    def __init__(self, calendar_service: HolidayCalendarService | None = None):
        self.calendar_service = calendar_service or holiday_calendar_service

    async def get_attention_insights(self, now: datetime | None = None) -> AttentionInsights:
        now = now or datetime.now(UTC)
        thresholds = AttentionThresholds.from_settings()
        config = await AttentionRepository.fetch_config()

        (
            org_holidays,
            maintainers,
            unassigned_candidates,
            stalled_candidates,
            merge_candidates,
            stuck_candidates,
            issue_candidates,
            mention_candidates,
        ) = await asyncio.gather(
            self.calendar_service.load_combined(config.holiday_calendar_codes),
            AttentionRepository.fetch_repository_maintainers(
                config.excluded_repository_ids, config.excluded_user_ids
            ),
            fetch_reviewer_unassigned_candidates(config, thresholds.reviewer_unassigned),
            fetch_review_stalled_candidates(config, thresholds.review_stalled),
            fetch_merge_delayed_candidates(config, thresholds.merge_delayed),
            fetch_stuck_review_request_candidates(config, thresholds.stuck_review_request),
            fetch_issue_candidates(
                config, min(thresholds.backlog_issue, thresholds.stalled_in_progress)
            ),
            fetch_mention_candidates(config, thresholds.unanswered_mention),
        )

        org_calendar = StakeholderCalendar(
            timezone=resolve_timezone(config.timezone), holidays=org_holidays
        )
        context = EvaluationContext(
            now=now,
            thresholds=thresholds,
            org_calendar=org_calendar,
            maintainers_by_repository=maintainers,
            excluded_user_ids=frozenset(config.excluded_user_ids),
        )

        stakeholder_ids = _stakeholder_ids(
            context,
            [
                (unassigned_candidates, maintainer_stakeholders),
                (stalled_candidates, review_stalled_stakeholders),
                (merge_candidates, maintainer_stakeholders),
                (stuck_candidates, stuck_review_request_stakeholders),
                (issue_candidates, issue_stakeholders),
                (mention_candidates, mention_stakeholders),
            ],
        )
        calendars, classifications = await asyncio.gather(
            self.calendar_service.load_stakeholder_calendars(
                stakeholder_ids, org_calendar, config.holiday_calendar_codes
            ),
            fetch_mention_classifications(mention_candidates),
        )
        context.calendars = calendars

        backlog, stalled_issues = evaluate_issues(issue_candidates, context)
        datasets = apply_claim_pass(
            {
                "reviewer_unassigned": evaluate_reviewer_unassigned(unassigned_candidates, context),
                "merge_delayed": evaluate_merge_delayed(merge_candidates, context),
                "stuck_review_request": evaluate_stuck_review_requests(stuck_candidates, context),
                "review_stalled": evaluate_review_stalled(stalled_candidates, context),
            },
            context,
        )
        datasets["backlog_issue"] = backlog
        datasets["stalled_in_progress"] = stalled_issues
        datasets["unanswered_mention"] = evaluate_mentions(
            mention_candidates,
            context,
            classifications,
            classifier_mode=settings.ATTENTION_MENTION_CLASSIFIER_ENABLED,
        )

        maintainer_ids = list(
            dict.fromkeys(user_id for ids in maintainers.values() for user_id in ids)
        )
        user_ids = set(maintainer_ids)
        for dataset in datasets.values():
            user_ids.update(dataset.user_ids)
        references = await ReferenceResolver.load(
            user_ids, _repository_ids(datasets.values()) | set(maintainers)
        )

        insights = AttentionInsights(
            generated_at=now,
            timezone=org_calendar.timezone.key,
            date_time_format=config.date_time_format,
            reviewer_unassigned_prs=[
                _pull_request_item(item, references, context)
                for item in datasets["reviewer_unassigned"].items
            ],
            review_stalled_prs=[
                _pull_request_item(item, references, context)
                for item in datasets["review_stalled"].items
            ],
            merge_delayed_prs=[
                _pull_request_item(item, references, context)
                for item in datasets["merge_delayed"].items
            ],
            stuck_review_requests=[
                _review_request_item(item, references)
                for item in datasets["stuck_review_request"].items
            ],
            backlog_issues=[
                _issue_item(item, references, stalled=False) for item in backlog.items
            ],
            stalled_in_progress_issues=[
                _issue_item(item, references, stalled=True) for item in stalled_issues.items
            ],
            unanswered_mentions=[
                _mention_item(item, references)
                for item in datasets["unanswered_mention"].items
            ],
            organization_maintainers=references.user_list(maintainer_ids),
            repository_maintainers_by_repository={
                repository_id: references.user_list(ids) for repository_id, ids in maintainers.items()
            },
        )

        logger.info(
            "Attention insights computed",
            reviewer_unassigned=len(insights.reviewer_unassigned_prs),
            review_stalled=len(insights.review_stalled_prs),
            merge_delayed=len(insights.merge_delayed_prs),
            stuck_review_requests=len(insights.stuck_review_requests),
            backlog_issues=len(insights.backlog_issues),
            stalled_in_progress_issues=len(insights.stalled_in_progress_issues),
            unanswered_mentions=len(insights.unanswered_mentions),
            stakeholders=len(stakeholder_ids),
        )
        return insights


attention_insights_service = AttentionInsightsService()
