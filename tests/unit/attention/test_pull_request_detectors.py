from datetime import UTC, date, datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from app.features.attention.detectors.pull_requests import (
    evaluate_merge_delayed,
    evaluate_review_stalled,
    evaluate_reviewer_unassigned,
    fetch_merge_delayed_candidates,
    fetch_review_stalled_candidates,
    maintainer_stakeholders,
)
from app.features.attention.domain.models import AttentionConfig, PullRequestRaw, StakeholderCalendar

NOW = datetime(2024, 5, 13, 12, 0, tzinfo=UTC)
REPOSITORY = "app.features.attention.detectors.pull_requests.AttentionRepository"


def _pull_request(**overrides) -> PullRequestRaw:
    values = {
        "id": "pr-1",
        "number": 7,
        "title": "Add retries",
        "url": "https://example.test/pr/7",
        "repository_id": "repo-1",
        "author_id": "author",
        "created_at": datetime(2024, 5, 8, 12, 0, tzinfo=UTC),
        "updated_at": datetime(2024, 5, 10, 12, 0, tzinfo=UTC),
    }
    values.update(overrides)
    return PullRequestRaw(**values)


def test_unassigned_pr_is_timed_against_maintainers(make_context):
    context = make_context(now=NOW, maintainers={"repo-1": ["m1", "m2"]})
    pull_request = _pull_request()

    dataset = evaluate_reviewer_unassigned([pull_request], context)

    assert dataset.items == [pull_request]
    assert pull_request.waiting_days == 3
    assert pull_request.age_days == 3
    assert pull_request.inactivity_days == 1
    assert dataset.user_ids == {"author", "m1", "m2"}


def test_unassigned_pr_waits_for_every_maintainer(make_context):
    on_leave = StakeholderCalendar(timezone=ZoneInfo("UTC"), holidays=frozenset({date(2024, 5, 9), date(2024, 5, 10)}))
    context = make_context(now=NOW, maintainers={"repo-1": ["m1", "m2"]}, calendars={"m2": on_leave})

    dataset = evaluate_reviewer_unassigned([_pull_request()], context)

    # m2 has waited one business day only
    assert dataset.items == []


def test_unassigned_pr_falls_back_to_author(make_context):
    context = make_context(now=NOW)
    pull_request = _pull_request()

    assert maintainer_stakeholders(pull_request, context) == ["author"]
    assert evaluate_reviewer_unassigned([pull_request], context).items == [pull_request]


def test_excluded_maintainers_are_not_stakeholders(make_context):
    context = make_context(
        now=NOW, maintainers={"repo-1": ["bot", "m1"]}, excluded_user_ids=frozenset({"bot"})
    )

    assert maintainer_stakeholders(_pull_request(), context) == ["m1"]


def test_young_pr_is_not_reported(make_context):
    context = make_context(now=NOW)
    pull_request = _pull_request(created_at=datetime(2024, 5, 10, 12, 0, tzinfo=UTC))

    assert evaluate_reviewer_unassigned([pull_request], context).items == []


def test_review_stalled_uses_each_reviewer_origin(make_context):
    context = make_context(now=NOW)
    pull_request = _pull_request(
        reviewer_ids=["r1", "r2"],
        reviewer_origins={
            "r1": datetime(2024, 5, 2, 12, 0, tzinfo=UTC),
            "r2": datetime(2024, 5, 8, 12, 0, tzinfo=UTC),
        },
    )

    dataset = evaluate_review_stalled([pull_request], context)

    assert dataset.items == [pull_request]
    assert pull_request.waiting_days == 3
    assert {"r1", "r2", "author"} <= dataset.user_ids


def test_review_stalled_blocked_by_recently_active_reviewer(make_context):
    context = make_context(now=NOW)
    pull_request = _pull_request(
        reviewer_ids=["r1", "r2"],
        reviewer_origins={
            "r1": datetime(2024, 5, 2, 12, 0, tzinfo=UTC),
            "r2": datetime(2024, 5, 13, 9, 0, tzinfo=UTC),
        },
    )

    assert evaluate_review_stalled([pull_request], context).items == []


def test_merge_delayed_counts_from_approval(make_context):
    context = make_context(now=NOW, maintainers={"repo-1": ["m1"]})
    approved = _pull_request(
        created_at=datetime(2024, 4, 1, tzinfo=UTC), approved_at=datetime(2024, 5, 9, 12, 0, tzinfo=UTC)
    )
    fresh = _pull_request(
        id="pr-2", created_at=datetime(2024, 4, 1, tzinfo=UTC), approved_at=datetime(2024, 5, 13, 8, 0, tzinfo=UTC)
    )

    dataset = evaluate_merge_delayed([approved, fresh], context)

    assert dataset.items == [approved]
    assert approved.waiting_days == 2


@pytest.mark.asyncio
async def test_review_stalled_rows_are_grouped_per_pull_request(monkeypatch):
    base = {
        "id": "pr-1",
        "number": 7,
        "title": "t",
        "url": None,
        "repository_id": "repo-1",
        "author_id": "author",
        "github_created_at": datetime(2024, 5, 1, tzinfo=UTC),
        "github_updated_at": None,
    }
    rows = [
        {**base, "reviewer_id": "r1", "requested_at": datetime(2024, 5, 2, tzinfo=UTC), "last_activity_at": None},
        {
            **base,
            "reviewer_id": "r2",
            "requested_at": datetime(2024, 5, 2, tzinfo=UTC),
            "last_activity_at": datetime(2024, 5, 6, tzinfo=UTC),
        },
    ]
    fetch_mock = AsyncMock(return_value=rows)
    monkeypatch.setattr(f"{REPOSITORY}.fetch_review_stalled_requests", fetch_mock)
    config = AttentionConfig(excluded_repository_ids=("repo-x",), excluded_user_ids=("bot",))

    candidates = await fetch_review_stalled_candidates(config, 2)

    assert len(candidates) == 1
    assert candidates[0].reviewer_ids == ["r1", "r2"]
    assert candidates[0].reviewer_origins == {
        "r1": datetime(2024, 5, 2, tzinfo=UTC),
        "r2": datetime(2024, 5, 6, tzinfo=UTC),
    }
    fetch_mock.assert_awaited_once_with(("repo-x",), ("bot",), 2)


@pytest.mark.asyncio
async def test_merge_delayed_candidates_carry_reviewers(monkeypatch):
    row = {
        "id": "pr-9",
        "number": 9,
        "title": "t",
        "url": None,
        "repository_id": "repo-1",
        "author_id": "author",
        "github_created_at": datetime(2024, 5, 1, tzinfo=UTC),
        "github_updated_at": None,
        "approved_at": datetime(2024, 5, 3, tzinfo=UTC),
    }
    monkeypatch.setattr(f"{REPOSITORY}.fetch_merge_delayed_pull_requests", AsyncMock(return_value=[row]))
    monkeypatch.setattr(f"{REPOSITORY}.fetch_reviewer_map", AsyncMock(return_value={"pr-9": ["r1"]}))

    candidates = await fetch_merge_delayed_candidates(AttentionConfig(), 2)

    assert candidates[0].approved_at == datetime(2024, 5, 3, tzinfo=UTC)
    assert candidates[0].reviewer_ids == ["r1"]
