from datetime import UTC, datetime

from app.features.attention.domain.models import AttentionThresholds
from app.features.attention.summaries import aggregate_users, build_follow_up_summaries, dedupe_by, top_by_count
from app.models.api.attention_response import (
    AttentionInsights,
    IssueAttentionItem,
    MentionAttentionItem,
    MentionContainer,
    PullRequestAttentionItem,
    PullRequestReference,
    ReviewRequestAttentionItem,
    UserReference,
)

NOW = datetime(2024, 5, 20, tzinfo=UTC)
ALICE = UserReference(id="u-alice", login="alice")
BOB = UserReference(id="u-bob", login="bob")
CAROL = UserReference(id="u-carol", login="carol")


def _pr(pr_id: str, author: UserReference, waiting_days: int, reviewers=()) -> PullRequestAttentionItem:
    return PullRequestAttentionItem(
        id=pr_id,
        number=1,
        created_at=NOW,
        author=author,
        reviewers=list(reviewers),
        waiting_days=waiting_days,
    )


def _request(request_id: str, pull_request_id: str, reviewer: UserReference, waiting_days: int):
    return ReviewRequestAttentionItem(
        id=request_id,
        requested_at=NOW,
        waiting_days=waiting_days,
        reviewer=reviewer,
        pull_request=PullRequestReference(id=pull_request_id, number=1, author=ALICE),
    )


def _mention(comment_id: str, container_id: str, waiting_days: int) -> MentionAttentionItem:
    return MentionAttentionItem(
        comment_id=comment_id,
        mentioned_at=NOW,
        waiting_days=waiting_days,
        author=ALICE,
        target=BOB,
        container=MentionContainer(type="issue", id=container_id),
    )


def _insights(**lists) -> AttentionInsights:
    return AttentionInsights(generated_at=NOW, timezone="UTC", date_time_format="auto", **lists)


def test_ranking_ties_keep_first_appearance():
    tallies = aggregate_users(
        [_pr("1", BOB, 3), _pr("2", ALICE, 5), _pr("3", CAROL, 1)],
        lambda item: [item.author],
        lambda item: item.waiting_days,
    )

    ranked = top_by_count(tallies)

    assert [entry.user.id for entry in ranked] == ["u-bob", "u-alice"]
    assert ranked[1].total == 5


def test_dedupe_keeps_largest_wait():
    items = [_request("a", "pr-1", BOB, 3), _request("b", "pr-1", CAROL, 8), _request("c", "pr-2", BOB, 1)]

    kept = dedupe_by(items, lambda item: item.pull_request.id, lambda item: item.waiting_days)

    assert [item.id for item in kept] == ["b", "c"]


def test_summary_sections_and_totals():
    insights = _insights(
        reviewer_unassigned_prs=[_pr("1", ALICE, 3), _pr("2", ALICE, 4), _pr("3", BOB, 2)],
        review_stalled_prs=[_pr("4", BOB, 5, reviewers=[CAROL, ALICE])],
        stuck_review_requests=[_request("a", "pr-9", BOB, 6), _request("b", "pr-9", CAROL, 9)],
        unanswered_mentions=[_mention("c1", "issue-1", 5), _mention("c2", "issue-1", 7)],
    )

    summaries = build_follow_up_summaries(insights, AttentionThresholds())
    by_id = {summary.id: summary for summary in summaries}

    assert [summary.id for summary in summaries] == [
        "reviewer-unassigned-prs",
        "review-stalled-prs",
        "merge-delayed-prs",
        "stuck-review-requests",
        "backlog-issues",
        "stalled-in-progress-issues",
        "unanswered-mentions",
    ]

    unassigned = by_id["reviewer-unassigned-prs"]
    assert unassigned.count == 3
    assert unassigned.total_metric == 9
    assert "2+ business days" in unassigned.description
    authors = unassigned.highlights[0]
    assert authors.role == "author"
    assert [(entry.user.id, entry.count, entry.total) for entry in authors.entries] == [
        ("u-alice", 2, 7),
        ("u-bob", 1, 2),
    ]

    stalled = by_id["review-stalled-prs"]
    assert [highlight.role for highlight in stalled.highlights] == ["author", "reviewer"]
    assert [entry.user.id for entry in stalled.highlights[1].entries] == ["u-carol", "u-alice"]

    requests = by_id["stuck-review-requests"]
    assert requests.count == 1
    assert requests.total_metric == 9

    mentions = by_id["unanswered-mentions"]
    assert mentions.count == 1
    assert mentions.total_metric == 7

    assert by_id["merge-delayed-prs"].count == 0
    assert by_id["merge-delayed-prs"].highlights == []


def test_stalled_issue_metric_prefers_in_progress_age():
    issue = IssueAttentionItem(
        id="i-1",
        number=1,
        created_at=NOW,
        age_days=60,
        in_progress_age_days=25,
        waiting_days=25,
        assignees=[BOB],
    )

    summaries = build_follow_up_summaries(_insights(stalled_in_progress_issues=[issue]), AttentionThresholds())
    stalled = next(summary for summary in summaries if summary.id == "stalled-in-progress-issues")

    assert stalled.total_metric == 25
    assert [highlight.role for highlight in stalled.highlights] == ["assignee"]
