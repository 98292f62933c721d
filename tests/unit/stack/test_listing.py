"""Tests for list rows."""

from stackpr.core.context import StackContext
from stackpr.core.github.fake import FakeGitHub, make_pr
from stackpr.core.github.types import PullRequestStatus
from stackpr.stack.listing import (
    EM_SPACE,
    CommitRow,
    PrRow,
    list_commit_rows,
    list_pr_rows,
    status_icons,
)
from tests.test_utils.stacks import REPO_ROOT, branch, stack_settings, three_group_stack


def test_pr_row_render() -> None:
    row = PrRow(
        index=2,
        ci_icon="✓",
        review_icon="◐",
        first_sha="0123456789abcdef",
        branch="alice-stack/b",
        number=12,
        commit_count=1,
        subject="Add lexer pr:b",
    )

    assert row.render() == (
        "✓◐ LPR #2 - 01234567 : alice-stack/b (#12) - 1 commit\n"
        f"{EM_SPACE * 5}Add lexer pr:b"
    )


def test_commit_row_render_pads_index() -> None:
    row = CommitRow(index=3, sha="0123456789abcdef", owner="ignored", subject="debug")

    assert row.render() == "   3  01234567 [ignored] - debug"


def test_status_icons() -> None:
    assert status_icons(None) == ("?", "?")
    assert status_icons(PullRequestStatus(ci_state="FAILURE", review_decision="APPROVED")) == (
        "✗",
        "✓",
    )
    assert status_icons(PullRequestStatus(ci_state="WEIRD", review_decision="")) == ("?", "?")


def test_list_pr_rows_correlates_open_prs() -> None:
    repo = three_group_stack()
    github = FakeGitHub(
        prs=[make_pr(1, branch("a"), "main"), make_pr(2, branch("b"), branch("a"))],
        statuses={1: PullRequestStatus(ci_state="SUCCESS", review_decision="APPROVED")},
    )
    ctx = StackContext.for_test(git=repo.git(), github=github)

    rows = list_pr_rows(ctx, REPO_ROOT, stack_settings())

    assert [row.index for row in rows] == [1, 2, 3]
    assert [row.number for row in rows] == [1, 2, None]
    assert [row.commit_count for row in rows] == [2, 1, 1]
    assert (rows[0].ci_icon, rows[0].review_icon) == ("✓", "✓")
    assert (rows[1].ci_icon, rows[1].review_icon) == ("✓", "◐")
    assert (rows[2].ci_icon, rows[2].review_icon) == ("?", "?")
    assert rows[0].first_sha == repo.sha(0)
    assert rows[2].render().startswith(f"?? LPR #3 - {repo.sha(5)[:8]} : {branch('c')} - 1 commit")


def test_recent_on_top_keeps_stack_numbering() -> None:
    repo = three_group_stack()
    ctx = StackContext.for_test(git=repo.git())

    rows = list_pr_rows(ctx, REPO_ROOT, stack_settings(list_order="recent_on_top"))

    assert [row.index for row in rows] == [3, 2, 1]
    assert rows[0].branch == branch("c")


def test_list_commit_rows_marks_ignored_commits() -> None:
    repo = three_group_stack()
    ctx = StackContext.for_test(git=repo.git())

    rows = list_commit_rows(ctx, REPO_ROOT, stack_settings())

    assert [row.owner for row in rows] == ["a", "a", "b", "ignored", "ignored", "c"]
    assert [row.index for row in rows] == [1, 2, 3, 4, 5, 6]
    assert rows[3].subject == "Local debug hook pr:ignore"


def test_list_rows_for_empty_stack() -> None:
    repo = three_group_stack()
    git = repo.git(remote_branches={"main": repo.tip.sha})
    ctx = StackContext.for_test(git=git)

    assert list_pr_rows(ctx, REPO_ROOT, stack_settings()) == []
    assert list_commit_rows(ctx, REPO_ROOT, stack_settings()) == []
