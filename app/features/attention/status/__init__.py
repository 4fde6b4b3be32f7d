"""
Project status resolution for issues.

Reconciles project-board history with activity-derived statuses and applies
manual project field overrides unless the board status is locked.
"""

from .resolver import (
    LOCKED_STATUSES,
    FromActivity,
    FromProjectBoard,
    ProjectFieldOverrides,
    Unset,
    apply_field_overrides,
    map_issue_project_status,
    merge_status_sources,
    resolve_issue_project_snapshot,
)

__all__ = [
    "LOCKED_STATUSES",
    "FromActivity",
    "FromProjectBoard",
    "ProjectFieldOverrides",
    "Unset",
    "apply_field_overrides",
    "map_issue_project_status",
    "merge_status_sources",
    "resolve_issue_project_snapshot",
]
