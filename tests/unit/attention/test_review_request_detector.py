from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from app.features.attention.detectors.repository import AttentionRepository
from app.features.attention.detectors.review_requests import (
    evaluate_stuck_review_requests,
    fetch_stuck_review_request_candidates,
)
from app.features.attention.domain.models import AttentionConfig, AttentionThresholds, ReviewRequestRaw

NOW = datetime(2024, 5, 20, 12, 0, tzinfo=UTC)


def _request(request_id: str, reviewer_id: str, requested_at: datetime, pull_request_id: str = "pr-1") -> ReviewRequestRaw:
    return ReviewRequestRaw(
        id=request_id,
        pull_request_id=pull_request_id,
        reviewer_id=reviewer_id,
        requested_at=requested_at,
        pr_number=1,
        pr_title="Refactor",
        pr_url=None,
        pr_repository_id="repo-1",
        pr_author_id="author",
        pr_created_at=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        pr_updated_at=datetime(2024, 5, 17, 12, 0, tzinfo=UTC),
        pr_reviewer_ids=["r1", "r2"],
    )


def test_group_keeps_longest_waiting_request_with_minimum_wait(make_context):
    context = make_context(now=NOW)
    older = _request("rr-1", "r1", datetime(2024, 5, 6, 12, 0, tzinfo=UTC))
    newer = _request("rr-2", "r2", datetime(2024, 5, 13, 12, 0, tzinfo=UTC))

    dataset = evaluate_stuck_review_requests([newer, older], context)

    assert dataset.items == [older]
    assert older.waiting_days == 5
    assert older.pr_age_days == 13
    assert older.pr_inactivity_days == 1
    assert dataset.user_ids == {"r1", "r2", "author"}


def test_group_blocked_when_any_reviewer_is_recent(make_context):
    context = make_context(now=NOW)
    older = _request("rr-1", "r1", datetime(2024, 5, 6, 12, 0, tzinfo=UTC))
    recent = _request("rr-2", "r2", datetime(2024, 5, 16, 12, 0, tzinfo=UTC))

    assert evaluate_stuck_review_requests([older, recent], context).items == []


def test_separate_pull_requests_are_independent(make_context):
    context = make_context(now=NOW)
    first = _request("rr-1", "r1", datetime(2024, 5, 6, 12, 0, tzinfo=UTC), "pr-1")
    second = _request("rr-2", "r1", datetime(2024, 5, 16, 12, 0, tzinfo=UTC), "pr-2")

    dataset = evaluate_stuck_review_requests([first, second], context)

    assert [item.id for item in dataset.items] == ["rr-1"]


@pytest.mark.asyncio
async def test_candidates_include_row_reviewer(monkeypatch):
    row = {
        "id": "rr-1",
        "pull_request_id": "pr-1",
        "reviewer_id": "r3",
        "requested_at": datetime(2024, 5, 6, tzinfo=UTC),
        "pr_number": 1,
        "pr_title": "Refactor",
        "pr_url": None,
        "pr_repository_id": "repo-1",
        "pr_author_id": "author",
        "pr_created_at": datetime(2024, 5, 1, tzinfo=UTC),
        "pr_updated_at": None,
    }
    monkeypatch.setattr(
        "app.features.attention.detectors.review_requests.AttentionRepository.fetch_stuck_review_requests",
        AsyncMock(return_value=[row]),
    )
    map_mock = AsyncMock(return_value={"pr-1": ["r1"]})
    monkeypatch.setattr(
        "app.features.attention.detectors.review_requests.AttentionRepository.fetch_reviewer_map", map_mock
    )

    candidates = await fetch_stuck_review_request_candidates(AttentionConfig(excluded_user_ids=("bot",)), 5)

    assert candidates[0].pr_reviewer_ids == ["r1", "r3"]
    map_mock.assert_awaited_once_with(["pr-1"], ("bot",))


def test_minimum_reviewer_wait_governs_qualification(make_context):
    # waits of 3 and 7 business days on the same pull request
    now = datetime(2024, 5, 13, 12, 0, tzinfo=UTC)
    requests = [
        _request("rr-1", "r1", datetime(2024, 5, 8, 12, 0, tzinfo=UTC)),
        _request("rr-2", "r2", datetime(2024, 5, 2, 12, 0, tzinfo=UTC)),
    ]

    lenient = make_context(now=now, thresholds=AttentionThresholds(stuck_review_request=3))
    dataset = evaluate_stuck_review_requests(requests, lenient)
    assert [item.id for item in dataset.items] == ["rr-2"]
    assert dataset.items[0].waiting_days == 3

    strict = make_context(now=now, thresholds=AttentionThresholds(stuck_review_request=4))
    assert evaluate_stuck_review_requests(requests, strict).items == []


def _row(request_id: str, reviewer_id: str, requested_at: datetime) -> dict:
    return {
        "id": request_id,
        "pull_request_id": "pr-1",
        "reviewer_id": reviewer_id,
        "requested_at": requested_at,
        "pr_number": 1,
        "pr_title": "Refactor",
        "pr_url": None,
        "pr_repository_id": "repo-1",
        "pr_author_id": "author",
        "pr_created_at": datetime(2024, 5, 1, tzinfo=UTC),
        "pr_updated_at": None,
    }


@pytest.mark.asyncio
async def test_newest_outstanding_request_blocks_the_pull_request(monkeypatch, make_context):
    rows = [
        _row("rr-1", "r1", datetime(2024, 5, 6, 12, 0, tzinfo=UTC)),
        _row("rr-2", "r2", datetime(2024, 5, 17, 12, 0, tzinfo=UTC)),
    ]
    monkeypatch.setattr(
        "app.features.attention.detectors.review_requests.AttentionRepository.fetch_stuck_review_requests",
        AsyncMock(return_value=rows),
    )
    monkeypatch.setattr(
        "app.features.attention.detectors.review_requests.AttentionRepository.fetch_reviewer_map",
        AsyncMock(return_value={}),
    )

    candidates = await fetch_stuck_review_request_candidates(AttentionConfig(), 5)
    dataset = evaluate_stuck_review_requests(candidates, make_context(now=NOW))

    assert len(candidates) == 2
    assert dataset.items == []


@pytest.mark.asyncio
async def test_request_queries_cut_off_on_oldest_request_per_pull_request(monkeypatch):
    fetch_mock = AsyncMock(return_value=[])
    monkeypatch.setattr("app.features.attention.detectors.repository.fetch_all", fetch_mock)

    await AttentionRepository.fetch_stuck_review_requests([], [], 5)
    await AttentionRepository.fetch_review_stalled_requests([], [], 2)

    for call in fetch_mock.await_args_list:
        query = call.args[0]
        assert "rr.requested_at <= NOW()" not in query
        assert "oldest.requested_at <= NOW() - make_interval(days => %s)" in query
    assert fetch_mock.await_args_list[0].args[1][0] == 5
    assert fetch_mock.await_args_list[1].args[1][0] == 2
