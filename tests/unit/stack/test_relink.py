"""Tests for relink."""

from stackpr.core.context import StackContext
from stackpr.core.github.fake import FakeGitHub, make_pr
from stackpr.core.time.fake import FakeTime
from stackpr.stack.relink import BaseCorrection, relink
from tests.test_utils.stacks import (
    REPO_ROOT,
    branch,
    build_stack,
    stack_settings,
    three_group_stack,
)


def test_relink_corrects_misbased_prs_only() -> None:
    github = FakeGitHub(
        prs=[
            make_pr(1, branch("a"), "main"),
            make_pr(2, branch("b"), "main"),
            make_pr(3, branch("c"), branch("a")),
        ]
    )
    ctx = StackContext.for_test(git=three_group_stack().git(), github=github)

    result = relink(ctx, REPO_ROOT, stack_settings())

    assert result.corrections == (
        BaseCorrection(number=2, head=branch("b"), old_base="main", new_base=branch("a")),
        BaseCorrection(number=3, head=branch("c"), old_base=branch("a"), new_base=branch("b")),
    )
    assert result.unchanged == (1,)
    assert github.updated_bases == [(2, branch("a")), (3, branch("b"))]


def test_relink_is_idempotent() -> None:
    github = FakeGitHub(
        prs=[
            make_pr(1, branch("a"), "main"),
            make_pr(2, branch("b"), "main"),
            make_pr(3, branch("c"), branch("b")),
        ]
    )
    ctx = StackContext.for_test(git=three_group_stack().git(), github=github)
    relink(ctx, REPO_ROOT, stack_settings())
    mutations = github.mutation_count

    second = relink(ctx, REPO_ROOT, stack_settings())

    assert second.corrections == ()
    assert second.unchanged == (1, 2, 3)
    assert github.mutation_count == mutations


def test_relink_skips_groups_without_open_pr(capsys) -> None:
    github = FakeGitHub(
        prs=[
            make_pr(1, branch("a"), "main"),
            make_pr(3, branch("c"), "main"),
            make_pr(4, branch("b"), "main", state="CLOSED"),
        ]
    )
    ctx = StackContext.for_test(git=three_group_stack().git(), github=github)

    result = relink(ctx, REPO_ROOT, stack_settings())

    assert result.missing == (branch("b"),)
    assert github.updated_bases == [(3, branch("b"))]
    assert f"No open PR found for {branch('b')}" in capsys.readouterr().err


def test_relink_retries_lost_base_update_once() -> None:
    time = FakeTime()
    github = FakeGitHub(
        prs=[make_pr(1, branch("a"), "main"), make_pr(2, branch("b"), "main")],
        lost_responses={"update_pr_base:2"},
    )
    repo = build_stack(
        [("Add parser pr:a", {"a.txt": "a1\n"}), ("Add lexer pr:b", {"b.txt": "b1\n"})]
    )
    ctx = StackContext.for_test(git=repo.git(), github=github, time=time)

    result = relink(ctx, REPO_ROOT, stack_settings())

    assert len(result.corrections) == 1
    assert github.updated_bases == [(2, branch("a"))]
    assert github.attempts == ["update_pr_base:2"]
    assert time.sleep_calls == [1.0]


def test_relink_with_empty_stack_does_nothing() -> None:
    github = FakeGitHub(prs=[make_pr(1, branch("a"), "main")])
    ctx = StackContext.for_test(git=build_stack([]).git(), github=github)

    result = relink(ctx, REPO_ROOT, stack_settings())

    assert result.corrections == ()
    assert github.mutation_count == 0
