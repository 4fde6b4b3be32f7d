"""
Project status resolution for issues.

Two independent signals describe where an issue stands: the history of the
target project board (stored in the issue's raw JSON) and the activity
status log recorded by the dashboard. Each is reduced to a tagged value and
the two are merged by a single function, so the locking rule lives in
exactly one place.
"""

from __future__ import annotations

import dataclasses
import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

from app.features.attention.calendar.business_days import to_datetime
from app.features.attention.domain.models import IssueProjectSnapshot, IssueProjectStatus

LOCKED_STATUSES: frozenset[str] = frozenset({"in_progress", "done", "pending"})
RESET_STATUSES: frozenset[str] = frozenset({"todo", "no_status"})
PROJECT_FIELD_NAMES = {
    "Priority": "priority",
    "Weight": "weight",
    "Initiation": "initiation_options",
    "Start date": "start_date",
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_DONE_VALUES = frozenset({"done", "completed", "complete", "finished", "closed"})
_EPOCH = datetime.min.replace(tzinfo=UTC)


# ---------------------------------------------------------------------------
# Status signals
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Unset:
    status: None = None
    occurred_at: None = None


@dataclass(slots=True, frozen=True)
class FromActivity:
    status: IssueProjectStatus
    occurred_at: datetime | None


@dataclass(slots=True, frozen=True)
class FromProjectBoard:
    status: IssueProjectStatus
    occurred_at: datetime | None
    locked: bool


StatusSignal = Unset | FromActivity | FromProjectBoard
UNSET = Unset()


@dataclass(slots=True, frozen=True)
class ProjectStatusEntry:
    status: str
    occurred_at: datetime


@dataclass(slots=True)
class ProjectFieldValue:
    value: str | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class ProjectFieldOverrides:
    """Manual field values from activity_issue_project_overrides."""

    priority: str | None = None
    priority_updated_at: datetime | None = None
    weight: str | None = None
    weight_updated_at: datetime | None = None
    initiation_options: str | None = None
    initiation_options_updated_at: datetime | None = None
    start_date: str | None = None
    start_date_updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Raw payload parsing
# ---------------------------------------------------------------------------


def normalize_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip().lower()
    return trimmed or None


def map_issue_project_status(value: str | None) -> IssueProjectStatus:
    """Map a free-form board/activity status onto the closed status enum."""
    if not value:
        return "no_status"

    normalized = _NON_ALNUM.sub("_", value.strip().lower()).strip("_")
    if not normalized or normalized in ("no", "no_status"):
        return "no_status"
    if normalized in ("todo", "to_do"):
        return "todo"
    if "progress" in normalized or normalized == "doing":
        return "in_progress"
    if normalized in _DONE_VALUES:
        return "done"
    if normalized.startswith("pending") or normalized.startswith("waiting"):
        return "pending"
    return "no_status"


def parse_issue_data(data: object) -> dict | None:
    """Raw issue JSON as a dict; anything malformed becomes None."""
    if isinstance(data, dict):
        return data
    if isinstance(data, (str, bytes)):
        try:
            parsed = json.loads(data)
        except ValueError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def _matches_project(title: object, target_project: str | None) -> bool:
    return bool(target_project) and normalize_text(title) == target_project


def extract_project_status_entries(
    raw: Mapping | None, target_project: str | None
) -> list[ProjectStatusEntry]:
    """Chronological board history for the target project, one entry per timestamp."""
    if not raw or not target_project:
        return []

    history = raw.get("projectStatusHistory")
    if not isinstance(history, list):
        return []

    by_timestamp: dict[datetime, ProjectStatusEntry] = {}
    for record in history:
        if not isinstance(record, dict):
            continue
        if not _matches_project(record.get("projectTitle"), target_project):
            continue

        status = normalize_text(record.get("status"))
        occurred_at = to_datetime(record.get("occurredAt")) if isinstance(record.get("occurredAt"), str) else None
        if not status or occurred_at is None or status.startswith("__"):
            continue
        # later duplicates at the same instant replace earlier ones
        by_timestamp[occurred_at] = ProjectStatusEntry(status=status, occurred_at=occurred_at)

    return [by_timestamp[key] for key in sorted(by_timestamp)]


def _field_value(value: object, fallback_updated_at: datetime | None) -> ProjectFieldValue:
    if not isinstance(value, dict):
        return ProjectFieldValue(updated_at=fallback_updated_at)

    resolved: str | None = None
    for key in ("name", "title", "text"):
        candidate = value.get(key)
        if isinstance(candidate, str) and candidate.strip():
            resolved = candidate.strip()
            break
    else:
        number = value.get("number")
        if isinstance(number, (int, float)) and not isinstance(number, bool):
            resolved = str(number)

    date_value = value.get("date")
    if isinstance(date_value, str) and date_value.strip():
        # date fields report the date itself
        resolved = date_value.strip()

    updated_at = to_datetime(value.get("updatedAt")) if isinstance(value.get("updatedAt"), str) else None
    return ProjectFieldValue(value=resolved, updated_at=updated_at or fallback_updated_at)


def extract_project_field_values(
    raw: Mapping | None, target_project: str | None
) -> dict[str, ProjectFieldValue]:
    """Priority/Weight/Initiation/Start date of the target project; newest update wins."""
    fields = {name: ProjectFieldValue() for name in PROJECT_FIELD_NAMES.values()}
    if not raw or not target_project:
        return fields

    items = raw.get("projectItems")
    nodes = items.get("nodes") if isinstance(items, dict) else None
    if not isinstance(nodes, list):
        return fields

    for node in nodes:
        if not isinstance(node, dict):
            continue
        project = node.get("project")
        if not isinstance(project, dict) or not _matches_project(project.get("title"), target_project):
            continue

        field = node.get("field")
        name = PROJECT_FIELD_NAMES.get(field.get("name")) if isinstance(field, dict) else None
        if name is None:
            continue

        node_updated = node.get("updatedAt")
        candidate = _field_value(
            node.get("value"), to_datetime(node_updated) if isinstance(node_updated, str) else None
        )
        if candidate.value is None:
            continue

        current = fields[name]
        if (
            current.value is None
            or current.updated_at is None
            or (candidate.updated_at is not None and candidate.updated_at >= current.updated_at)
        ):
            fields[name] = candidate

    return fields


def extract_assignee_ids(raw: Mapping | None) -> list[str]:
    if not raw:
        return []
    assignees = raw.get("assignees")
    nodes = assignees.get("nodes") if isinstance(assignees, dict) else None
    if not isinstance(nodes, list):
        return []

    ids: list[str] = []
    for node in nodes:
        if isinstance(node, dict) and isinstance(node.get("id"), str) and node["id"] not in ids:
            ids.append(node["id"])
    return ids


# ---------------------------------------------------------------------------
# Signals and merge
# ---------------------------------------------------------------------------


def board_signal(entries: list[ProjectStatusEntry]) -> FromProjectBoard | Unset:
    if not entries:
        return UNSET
    latest = entries[-1]
    status = map_issue_project_status(latest.status)
    return FromProjectBoard(status=status, occurred_at=latest.occurred_at, locked=status in LOCKED_STATUSES)


def activity_signal(events: Iterable[tuple[str, datetime]]) -> FromActivity | Unset:
    latest: tuple[str, datetime] | None = None
    for status, occurred_at in events:
        if occurred_at is None:
            continue
        if latest is None or occurred_at >= latest[1]:
            latest = (status, occurred_at)
    if latest is None:
        return UNSET
    return FromActivity(status=map_issue_project_status(latest[0]), occurred_at=latest[1])


def merge_status_sources(
    board: FromProjectBoard | Unset, activity: FromActivity | Unset
) -> StatusSignal:
    """
    Combine the two status signals.

    A locked board status wins outright. Otherwise the more recent signal
    wins, with activity taking ties. A single present signal wins alone.
    """
    if isinstance(board, FromProjectBoard) and board.locked:
        return board
    if isinstance(board, Unset):
        return activity
    if isinstance(activity, Unset):
        return board

    board_at = board.occurred_at or _EPOCH
    activity_at = activity.occurred_at or _EPOCH
    return board if board_at > activity_at else activity


def resolve_work_started_at(
    entries: list[ProjectStatusEntry], activity_events: Iterable[tuple[str, datetime]]
) -> datetime | None:
    """
    Earliest move into in_progress across both sources.

    Moving an issue back to todo/no_status clears it, so a restarted issue
    is timed from its latest restart.
    """
    timeline: list[tuple[datetime, str]] = [
        (entry.occurred_at, map_issue_project_status(entry.status)) for entry in entries
    ]
    timeline.extend(
        (occurred_at, map_issue_project_status(status))
        for status, occurred_at in activity_events
        if occurred_at is not None
    )
    timeline.sort(key=lambda item: item[0])

    started_at: datetime | None = None
    for occurred_at, status in timeline:
        if status == "in_progress" and started_at is None:
            started_at = occurred_at
        elif status in RESET_STATUSES:
            started_at = None
    return started_at


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


def apply_field_overrides(
    snapshot: IssueProjectSnapshot,
    overrides: ProjectFieldOverrides | None,
    field_updated_at: Mapping[str, datetime | None] | None = None,
) -> IssueProjectSnapshot:
    """
    Apply manual priority/weight/initiation/start-date values.

    A locked snapshot is returned unchanged. Otherwise an override replaces
    a board value unless the board value was updated more recently.
    """
    if overrides is None or snapshot.locked:
        return snapshot

    changes: dict[str, str] = {}
    for name in PROJECT_FIELD_NAMES.values():
        value = getattr(overrides, name)
        if not value:
            continue
        override_at = getattr(overrides, f"{name}_updated_at")
        board_at = (field_updated_at or {}).get(name)
        if board_at is not None and override_at is not None and board_at > override_at:
            continue
        changes[name] = value

    return dataclasses.replace(snapshot, **changes) if changes else snapshot


def resolve_issue_project_snapshot(
    raw: Mapping | None,
    target_project: str | None,
    activity_events: Iterable[tuple[str, datetime]] = (),
    overrides: ProjectFieldOverrides | None = None,
) -> tuple[IssueProjectSnapshot, StatusSignal, datetime | None]:
    """Resolve status, source, lock flag, project fields and work start for one issue."""
    events = list(activity_events)
    entries = extract_project_status_entries(raw, target_project)
    board = board_signal(entries)
    signal = merge_status_sources(board, activity_signal(events))

    if isinstance(signal, FromProjectBoard):
        source, locked = "todo_project", signal.locked
    elif isinstance(signal, FromActivity):
        source, locked = "activity", False
    else:
        source, locked = "none", False

    fields = extract_project_field_values(raw, target_project)
    snapshot = IssueProjectSnapshot(
        status=signal.status or "no_status",
        source=source,
        locked=locked,
        todo_status=board.status if isinstance(board, FromProjectBoard) else None,
        priority=fields["priority"].value,
        weight=fields["weight"].value,
        initiation_options=fields["initiation_options"].value,
        start_date=fields["start_date"].value,
    )
    snapshot = apply_field_overrides(
        snapshot, overrides, {name: value.updated_at for name, value in fields.items()}
    )
    return snapshot, signal, resolve_work_started_at(entries, events)
