"""Tests for parsing gh CLI output."""

import pytest

from stackpr.core.github.parsing import (
    parse_comment_bodies,
    parse_pr_number_from_url,
    parse_pr_status,
    parse_pull_request,
)


def test_parse_pull_request_maps_gh_fields() -> None:
    pr = parse_pull_request(
        {
            "number": 42,
            "headRefName": "alice-stack/a",
            "baseRefName": "main",
            "title": "Add parser",
            "body": None,
            "state": "MERGED",
            "url": "https://github.com/o/r/pull/42",
        }
    )

    assert pr.number == 42
    assert pr.head == "alice-stack/a"
    assert pr.base == "main"
    assert pr.body == ""
    assert pr.state == "MERGED"


@pytest.mark.parametrize(
    "url",
    [
        "https://github.com/o/r/pull/42",
        "https://github.com/o/r/pull/42/\n",
    ],
)
def test_parse_pr_number_from_url(url: str) -> None:
    assert parse_pr_number_from_url(url) == 42


def test_parse_pr_number_from_garbage_fails() -> None:
    with pytest.raises(RuntimeError, match="Could not parse PR number"):
        parse_pr_number_from_url("https://github.com/o/r/pulls")


def test_status_without_rollup_counts_as_passing() -> None:
    """No CI configured means the gate does not block on CI."""
    status = parse_pr_status({"reviewDecision": "APPROVED", "commits": {"nodes": []}})

    assert status.ci_passing
    assert status.approved


def test_status_reads_rollup_state() -> None:
    status = parse_pr_status(
        {
            "reviewDecision": "REVIEW_REQUIRED",
            "commits": {"nodes": [{"commit": {"statusCheckRollup": {"state": "FAILURE"}}}]},
        }
    )

    assert status.ci_state == "FAILURE"
    assert status.review_decision == "REVIEW_REQUIRED"


def test_status_falls_back_to_latest_reviews() -> None:
    """Without branch protection, reviewDecision is null; reviews decide."""
    changes = parse_pr_status(
        {
            "reviewDecision": None,
            "reviews": {"nodes": [{"state": "APPROVED"}, {"state": "CHANGES_REQUESTED"}]},
        }
    )
    approved = parse_pr_status(
        {"reviewDecision": None, "reviews": {"nodes": [{"state": "APPROVED"}]}}
    )
    none = parse_pr_status({"reviewDecision": None})

    assert changes.review_decision == "CHANGES_REQUESTED"
    assert approved.review_decision == "APPROVED"
    assert none.review_decision == "REVIEW_REQUIRED"


def test_status_for_missing_pr() -> None:
    status = parse_pr_status(None)

    assert status.ci_passing
    assert not status.approved


def test_parse_comment_bodies() -> None:
    data = {"comments": [{"body": "Merged as part of PR #3"}, {"body": None}]}

    assert parse_comment_bodies(data) == ["Merged as part of PR #3", ""]
    assert parse_comment_bodies({}) == []
