"""
Read-only SQL for the attention detectors.

Every query applies the organization denylist (excluded repositories and
users) in SQL, so excluded actors never reach the calendar prefetch. The
calendar-day pre-filters are safe lower bounds: a business-day wait can
never exceed the calendar-day wait.
"""

from collections import defaultdict
from collections.abc import Sequence
from typing import Any

from app.config import settings
from app.db.helpers import fetch_all, fetch_one
from app.features.attention.domain.models import AttentionConfig
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DATE_TIME_FORMATS = frozenset({"auto", "iso-24h", "dot-24h", "ko-12h", "en-us-12h", "en-gb-24h"})

# open pull request / issue predicate shared by every detector
OPEN_PR = "(COALESCE(LOWER(pr.state), '') = 'open' OR pr.github_closed_at IS NULL)"
OPEN_ISSUE = "(COALESCE(LOWER(i.state), '') = 'open' OR i.github_closed_at IS NULL)"

Row = dict[str, Any]


def _clean_ids(values: object) -> tuple[str, ...]:
    if not isinstance(values, (list, tuple)):
        return ()
    cleaned = (value.strip() for value in values if isinstance(value, str))
    return tuple(dict.fromkeys(value for value in cleaned if value))


def normalize_date_time_format(value: object) -> str:
    if isinstance(value, str) and value.strip() in DATE_TIME_FORMATS:
        return value.strip()
    return "auto"


class AttentionRepository:
    """Raw SQL helpers shared by the five detectors."""

    # =================================================================
    # CONFIGURATION
    # =================================================================

    @classmethod
    async def fetch_config(cls) -> AttentionConfig:
        query = """
            SELECT
                excluded_repository_ids,
                excluded_user_ids,
                timezone,
                date_time_format,
                org_holiday_calendar_codes
            FROM sync_config
            WHERE id = 'default'
        """
        row = await fetch_one(query)
        if row is None:
            logger.warning("sync_config row missing, using defaults")
            return AttentionConfig(
                timezone=settings.DEFAULT_TIMEZONE,
                todo_project_name=settings.todo_project_name(),
            )

        timezone = row.get("timezone")
        return AttentionConfig(
            excluded_repository_ids=_clean_ids(row.get("excluded_repository_ids")),
            excluded_user_ids=_clean_ids(row.get("excluded_user_ids")),
            timezone=timezone.strip() if isinstance(timezone, str) and timezone.strip() else settings.DEFAULT_TIMEZONE,
            date_time_format=normalize_date_time_format(row.get("date_time_format")),
            holiday_calendar_codes=_clean_ids(row.get("org_holiday_calendar_codes")),
            todo_project_name=settings.todo_project_name(),
        )

    @classmethod
    async def fetch_repository_maintainers(
        cls, excluded_repository_ids: Sequence[str], excluded_user_ids: Sequence[str]
    ) -> dict[str, list[str]]:
        query = """
            SELECT repository_id, user_id
            FROM repository_maintainers
            WHERE NOT (repository_id = ANY(%s::text[]))
              AND NOT (user_id = ANY(%s::text[]))
            ORDER BY repository_id, user_id
        """
        rows = await fetch_all(query, (list(excluded_repository_ids), list(excluded_user_ids)))
        maintainers: defaultdict[str, list[str]] = defaultdict(list)
        for row in rows:
            maintainers[row["repository_id"]].append(row["user_id"])
        return dict(maintainers)

    @classmethod
    async def fetch_reviewer_map(
        cls, pull_request_ids: Sequence[str], excluded_user_ids: Sequence[str]
    ) -> dict[str, list[str]]:
        """Requested reviewers plus review authors per pull request."""
        if not pull_request_ids:
            return {}

        query = """
            SELECT pull_request_id, ARRAY_AGG(DISTINCT reviewer_id) AS reviewer_ids
            FROM (
                SELECT rr.pull_request_id, rr.reviewer_id
                FROM review_requests rr
                WHERE rr.pull_request_id = ANY(%s::text[])
                  AND rr.reviewer_id IS NOT NULL
                  AND rr.removed_at IS NULL
                  AND NOT (rr.reviewer_id = ANY(%s::text[]))
                UNION ALL
                SELECT rv.pull_request_id, rv.author_id
                FROM reviews rv
                WHERE rv.pull_request_id = ANY(%s::text[])
                  AND rv.author_id IS NOT NULL
                  AND NOT (rv.author_id = ANY(%s::text[]))
            ) sources
            GROUP BY pull_request_id
        """
        ids = list(pull_request_ids)
        excluded = list(excluded_user_ids)
        rows = await fetch_all(query, (ids, excluded, ids, excluded))
        return {
            row["pull_request_id"]: sorted(user_id for user_id in row["reviewer_ids"] or [] if user_id)
            for row in rows
        }

    # =================================================================
    # PULL REQUESTS
    # =================================================================

    @classmethod
    async def fetch_reviewer_unassigned_pull_requests(
        cls,
        excluded_repository_ids: Sequence[str],
        excluded_user_ids: Sequence[str],
        min_days: int,
    ) -> list[Row]:
        query = f"""
            SELECT
                pr.id,
                pr.number,
                pr.title,
                pr.data->>'url' AS url,
                pr.repository_id,
                pr.author_id,
                pr.github_created_at,
                pr.github_updated_at
            FROM pull_requests pr
            WHERE {OPEN_PR}
              AND COALESCE((pr.data->>'isDraft')::boolean, FALSE) = FALSE
              AND pr.github_created_at <= NOW() - make_interval(days => %s)
              AND NOT (pr.repository_id = ANY(%s::text[]))
              AND (pr.author_id IS NULL OR NOT (pr.author_id = ANY(%s::text[])))
              AND NOT EXISTS (
                  SELECT 1
                  FROM review_requests rr
                  WHERE rr.pull_request_id = pr.id
                    AND rr.reviewer_id IS NOT NULL
                    AND rr.removed_at IS NULL
              )
              AND NOT EXISTS (
                  SELECT 1
                  FROM reviews rv
                  WHERE rv.pull_request_id = pr.id
              )
            ORDER BY pr.github_created_at ASC
        """
        return await fetch_all(
            query, (min_days, list(excluded_repository_ids), list(excluded_user_ids))
        )

    @classmethod
    async def fetch_review_stalled_requests(
        cls,
        excluded_repository_ids: Sequence[str],
        excluded_user_ids: Sequence[str],
        min_days: int,
    ) -> list[Row]:
        """
        One row per (pull request, outstanding reviewer) with the reviewer's
        latest review, comment or reaction on that pull request. The age
        cut-off applies to the pull request's oldest request, so newer
        reviewers on a qualifying pull request are still returned.
        """
        query = f"""
            SELECT
                pr.id,
                pr.number,
                pr.title,
                pr.data->>'url' AS url,
                pr.repository_id,
                pr.author_id,
                pr.github_created_at,
                pr.github_updated_at,
                rr.reviewer_id,
                rr.requested_at,
                GREATEST(
                    (SELECT MAX(rv.github_submitted_at)
                       FROM reviews rv
                      WHERE rv.pull_request_id = pr.id AND rv.author_id = rr.reviewer_id),
                    (SELECT MAX(c.github_created_at)
                       FROM comments c
                      WHERE c.pull_request_id = pr.id AND c.author_id = rr.reviewer_id),
                    (SELECT MAX(reac.github_created_at)
                       FROM reactions reac
                       LEFT JOIN comments comment ON comment.id = reac.subject_id
                       LEFT JOIN reviews review ON review.id = reac.subject_id
                      WHERE reac.user_id = rr.reviewer_id
                        AND (
                            (reac.subject_type ILIKE 'pullrequest%%' AND reac.subject_id = pr.id) OR
                            comment.pull_request_id = pr.id OR
                            review.pull_request_id = pr.id
                        ))
                ) AS last_activity_at
            FROM review_requests rr
            JOIN pull_requests pr ON pr.id = rr.pull_request_id
            WHERE rr.reviewer_id IS NOT NULL
              AND rr.removed_at IS NULL
              AND EXISTS (
                  SELECT 1
                  FROM review_requests oldest
                  WHERE oldest.pull_request_id = pr.id
                    AND oldest.reviewer_id IS NOT NULL
                    AND oldest.removed_at IS NULL
                    AND oldest.requested_at <= NOW() - make_interval(days => %s)
              )
              AND {OPEN_PR}
              AND NOT (pr.repository_id = ANY(%s::text[]))
              AND (pr.author_id IS NULL OR NOT (pr.author_id = ANY(%s::text[])))
              AND NOT (rr.reviewer_id = ANY(%s::text[]))
            ORDER BY pr.github_created_at ASC, pr.id, rr.reviewer_id
        """
        excluded = list(excluded_user_ids)
        return await fetch_all(
            query, (min_days, list(excluded_repository_ids), excluded, excluded)
        )

    @classmethod
    async def fetch_merge_delayed_pull_requests(
        cls,
        excluded_repository_ids: Sequence[str],
        excluded_user_ids: Sequence[str],
        min_days: int,
    ) -> list[Row]:
        query = f"""
            SELECT
                pr.id,
                pr.number,
                pr.title,
                pr.data->>'url' AS url,
                pr.repository_id,
                pr.author_id,
                pr.github_created_at,
                pr.github_updated_at,
                approvals.approved_at
            FROM pull_requests pr
            JOIN LATERAL (
                SELECT MAX(rv.github_submitted_at) AS approved_at
                FROM reviews rv
                WHERE rv.pull_request_id = pr.id
                  AND UPPER(COALESCE(rv.state, '')) = 'APPROVED'
            ) approvals ON TRUE
            WHERE {OPEN_PR}
              AND UPPER(COALESCE(pr.data->>'reviewDecision', '')) = 'APPROVED'
              AND approvals.approved_at IS NOT NULL
              AND approvals.approved_at <= NOW() - make_interval(days => %s)
              AND NOT (pr.repository_id = ANY(%s::text[]))
              AND (pr.author_id IS NULL OR NOT (pr.author_id = ANY(%s::text[])))
            ORDER BY approvals.approved_at ASC
        """
        return await fetch_all(
            query, (min_days, list(excluded_repository_ids), list(excluded_user_ids))
        )

    @classmethod
    async def fetch_stuck_review_requests(
        cls,
        excluded_repository_ids: Sequence[str],
        excluded_user_ids: Sequence[str],
        min_days: int,
    ) -> list[Row]:
        query = f"""
            SELECT
                rr.id,
                rr.pull_request_id,
                rr.reviewer_id,
                rr.requested_at,
                pr.number AS pr_number,
                pr.title AS pr_title,
                pr.data->>'url' AS pr_url,
                pr.github_created_at AS pr_created_at,
                pr.github_updated_at AS pr_updated_at,
                pr.repository_id AS pr_repository_id,
                pr.author_id AS pr_author_id
            FROM review_requests rr
            JOIN pull_requests pr ON pr.id = rr.pull_request_id
            WHERE rr.reviewer_id IS NOT NULL
              AND rr.removed_at IS NULL
              AND EXISTS (
                  SELECT 1
                  FROM review_requests oldest
                  WHERE oldest.pull_request_id = rr.pull_request_id
                    AND oldest.reviewer_id IS NOT NULL
                    AND oldest.removed_at IS NULL
                    AND oldest.requested_at <= NOW() - make_interval(days => %s)
              )
              AND {OPEN_PR}
              AND UPPER(COALESCE(pr.data->>'reviewDecision', '')) <> 'APPROVED'
              AND NOT (pr.repository_id = ANY(%s::text[]))
              AND (pr.author_id IS NULL OR NOT (pr.author_id = ANY(%s::text[])))
              AND NOT (rr.reviewer_id = ANY(%s::text[]))
              AND NOT EXISTS (
                  SELECT 1
                  FROM reviews r
                  WHERE r.pull_request_id = rr.pull_request_id
                    AND r.author_id = rr.reviewer_id
                    AND r.github_submitted_at IS NOT NULL
                    AND r.github_submitted_at >= rr.requested_at
              )
              AND NOT EXISTS (
                  SELECT 1
                  FROM comments c
                  WHERE c.pull_request_id = rr.pull_request_id
                    AND c.author_id = rr.reviewer_id
                    AND c.github_created_at >= rr.requested_at
              )
              AND NOT EXISTS (
                  SELECT 1
                  FROM reactions reac
                  LEFT JOIN comments comment ON comment.id = reac.subject_id
                  LEFT JOIN reviews review ON review.id = reac.subject_id
                  WHERE reac.user_id = rr.reviewer_id
                    AND (
                        (reac.subject_type ILIKE 'pullrequest%%' AND reac.subject_id = rr.pull_request_id) OR
                        comment.pull_request_id = rr.pull_request_id OR
                        review.pull_request_id = rr.pull_request_id
                    )
                    AND COALESCE(reac.github_created_at, NOW()) >= rr.requested_at
              )
            ORDER BY rr.requested_at ASC, rr.id
        """
        excluded = list(excluded_user_ids)
        return await fetch_all(
            query, (min_days, list(excluded_repository_ids), excluded, excluded)
        )

    # =================================================================
    # ISSUES
    # =================================================================

    @classmethod
    async def fetch_open_issues(
        cls,
        excluded_repository_ids: Sequence[str],
        excluded_user_ids: Sequence[str],
        min_days: int,
    ) -> list[Row]:
        query = f"""
            SELECT
                i.id,
                i.number,
                i.title,
                i.data->>'url' AS url,
                i.repository_id,
                i.author_id,
                i.github_created_at,
                i.github_updated_at,
                i.data
            FROM issues i
            WHERE {OPEN_ISSUE}
              AND LOWER(COALESCE(i.data->>'__typename', 'issue')) <> 'discussion'
              AND i.github_created_at <= NOW() - make_interval(days => %s)
              AND NOT (i.repository_id = ANY(%s::text[]))
              AND (i.author_id IS NULL OR NOT (i.author_id = ANY(%s::text[])))
            ORDER BY i.github_created_at ASC
        """
        return await fetch_all(
            query, (min_days, list(excluded_repository_ids), list(excluded_user_ids))
        )

    # =================================================================
    # MENTIONS
    # =================================================================

    @classmethod
    async def fetch_unanswered_mentions(
        cls,
        excluded_repository_ids: Sequence[str],
        excluded_user_ids: Sequence[str],
        min_days: int,
    ) -> list[Row]:
        """
        Mentions whose target has not commented, reviewed or reacted on the
        same container since, excluding discussion answers by the target.
        """
        query = """
            WITH mention_candidates AS (
                SELECT
                    c.id AS comment_id,
                    c.data->>'url' AS comment_url,
                    c.github_created_at AS mentioned_at,
                    c.data->>'body' AS comment_body,
                    c.author_id AS comment_author_id,
                    u.id AS mentioned_user_id,
                    match.captures[1] AS mentioned_login,
                    COALESCE(c.pull_request_id, review.pull_request_id) AS pr_id,
                    c.issue_id
                FROM comments c
                LEFT JOIN reviews review ON review.id = c.review_id
                CROSS JOIN LATERAL regexp_matches(
                    COALESCE(c.data->>'body', ''), '@([A-Za-z0-9_-]+)', 'g'
                ) AS match(captures)
                LEFT JOIN users u ON LOWER(u.login) = LOWER(match.captures[1])
                WHERE c.github_created_at <= NOW() - make_interval(days => %s)
                  AND u.id IS NOT NULL
                  AND (c.author_id IS NULL OR c.author_id <> u.id)
                  AND (c.author_id IS NULL OR NOT (c.author_id = ANY(%s::text[])))
            )
            SELECT DISTINCT ON (mc.comment_id, mc.mentioned_user_id)
                mc.comment_id,
                mc.comment_url,
                mc.mentioned_at,
                mc.comment_body,
                mc.comment_author_id,
                mc.mentioned_user_id,
                mc.mentioned_login,
                mc.pr_id,
                pr.number AS pr_number,
                pr.title AS pr_title,
                pr.data->>'url' AS pr_url,
                mc.issue_id,
                iss.number AS issue_number,
                iss.title AS issue_title,
                iss.data->>'url' AS issue_url,
                CASE
                    WHEN mc.issue_id IS NULL THEN NULL
                    WHEN LOWER(COALESCE(iss.data->>'__typename', '')) = 'discussion'
                      OR POSITION('/discussions/' IN COALESCE(iss.data->>'url', '')) > 0
                      THEN 'discussion'
                    ELSE 'issue'
                END AS issue_type,
                COALESCE(pr.repository_id, iss.repository_id) AS repository_id
            FROM mention_candidates mc
            LEFT JOIN pull_requests pr ON pr.id = mc.pr_id
            LEFT JOIN issues iss ON iss.id = mc.issue_id
            WHERE (mc.pr_id IS NOT NULL OR mc.issue_id IS NOT NULL)
              AND NOT (COALESCE(pr.repository_id, iss.repository_id) = ANY(%s::text[]))
              AND NOT (mc.mentioned_user_id = ANY(%s::text[]))
              AND NOT EXISTS (
                  SELECT 1
                  FROM comments c2
                  WHERE c2.author_id = mc.mentioned_user_id
                    AND c2.github_created_at >= mc.mentioned_at
                    AND c2.id <> mc.comment_id
                    AND (
                        (mc.pr_id IS NOT NULL AND c2.pull_request_id = mc.pr_id) OR
                        (mc.issue_id IS NOT NULL AND c2.issue_id = mc.issue_id)
                    )
              )
              AND NOT EXISTS (
                  SELECT 1
                  FROM reviews r2
                  WHERE mc.pr_id IS NOT NULL
                    AND r2.pull_request_id = mc.pr_id
                    AND r2.author_id = mc.mentioned_user_id
                    AND r2.github_submitted_at >= mc.mentioned_at
              )
              AND NOT EXISTS (
                  SELECT 1
                  FROM reactions reac
                  WHERE reac.subject_id = mc.comment_id
                    AND reac.subject_type ILIKE '%%comment%%'
                    AND reac.user_id = mc.mentioned_user_id
                    AND COALESCE(reac.github_created_at, NOW()) >= mc.mentioned_at
              )
              AND NOT COALESCE(
                  mc.issue_id IS NOT NULL
                  AND iss.data->'answer'->'author'->>'id' = mc.mentioned_user_id
                  AND (iss.data->'answer'->>'createdAt')::timestamptz >= mc.mentioned_at,
                  FALSE
              )
            ORDER BY mc.comment_id, mc.mentioned_user_id, mc.mentioned_at
        """
        excluded = list(excluded_user_ids)
        return await fetch_all(
            query, (min_days, excluded, list(excluded_repository_ids), excluded)
        )
