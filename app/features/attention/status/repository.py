"""
Repository helpers for activity-derived issue statuses and manual project
field overrides.
"""

from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime

from app.db.helpers import fetch_all

from .resolver import ProjectFieldOverrides


class IssueStatusRepository:
    """Raw SQL helpers for the issue status signals."""

    @classmethod
    async def fetch_activity_events(
        cls, issue_ids: Sequence[str]
    ) -> dict[str, list[tuple[str, datetime]]]:
        if not issue_ids:
            return {}

        query = """
            SELECT issue_id, status, occurred_at
            FROM activity_issue_status_history
            WHERE issue_id = ANY(%s::text[])
            ORDER BY issue_id, occurred_at ASC
        """
        rows = await fetch_all(query, (list(issue_ids),))
        events: defaultdict[str, list[tuple[str, datetime]]] = defaultdict(list)
        for row in rows:
            if row.get("status") and row.get("occurred_at"):
                events[row["issue_id"]].append((row["status"], row["occurred_at"]))
        return dict(events)

    @classmethod
    async def fetch_project_overrides(
        cls, issue_ids: Sequence[str]
    ) -> dict[str, ProjectFieldOverrides]:
        if not issue_ids:
            return {}

        query = """
            SELECT
                issue_id,
                priority_value,
                priority_updated_at,
                weight_value,
                weight_updated_at,
                initiation_value,
                initiation_updated_at,
                start_date_value,
                start_date_updated_at
            FROM activity_issue_project_overrides
            WHERE issue_id = ANY(%s::text[])
        """
        rows = await fetch_all(query, (list(issue_ids),))
        return {
            row["issue_id"]: ProjectFieldOverrides(
                priority=row.get("priority_value"),
                priority_updated_at=row.get("priority_updated_at"),
                weight=row.get("weight_value"),
                weight_updated_at=row.get("weight_updated_at"),
                initiation_options=row.get("initiation_value"),
                initiation_options_updated_at=row.get("initiation_updated_at"),
                start_date=str(row["start_date_value"]) if row.get("start_date_value") else None,
                start_date_updated_at=row.get("start_date_updated_at"),
            )
            for row in rows
        }
