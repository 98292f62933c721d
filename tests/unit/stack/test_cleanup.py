"""Tests for remote branch cleanup."""

import pytest

from stackpr.core.context import StackContext
from stackpr.core.errors import GatewayError
from stackpr.core.github.fake import FakeGitHub, make_pr
from stackpr.stack.cleanup import cleanup_remote_branches
from tests.test_utils.stacks import REPO_ROOT, branch, stack_settings, three_group_stack


def test_cleanup_deletes_only_branches_without_open_pr() -> None:
    repo = three_group_stack()
    git = repo.git(
        remote_branches={
            branch("a"): repo.sha(1),
            branch("b"): repo.sha(2),
            branch("old"): repo.base.sha,
            "someone-else/x": repo.base.sha,
        }
    )
    github = FakeGitHub(
        prs=[
            make_pr(1, branch("a"), "main"),
            make_pr(2, branch("b"), branch("a"), state="MERGED"),
        ]
    )
    ctx = StackContext.for_test(git=git, github=github)

    result = cleanup_remote_branches(ctx, REPO_ROOT, stack_settings())

    assert result.deleted == (branch("b"), branch("old"))
    assert result.kept == (branch("a"),)
    assert git.deleted_remote_branches == [branch("b"), branch("old")]
    assert "someone-else/x" in git.remote_branches


def test_cleanup_with_nothing_to_delete_makes_no_push() -> None:
    repo = three_group_stack()
    git = repo.git(remote_branches={branch("a"): repo.sha(1)})
    github = FakeGitHub(prs=[make_pr(1, branch("a"), "main")])
    ctx = StackContext.for_test(git=git, github=github)

    result = cleanup_remote_branches(ctx, REPO_ROOT, stack_settings())

    assert result.deleted == ()
    assert git.deleted_remote_branches == []


def test_cleanup_dry_run_deletes_nothing() -> None:
    repo = three_group_stack()
    git = repo.git(remote_branches={branch("old"): repo.base.sha})
    ctx = StackContext.for_test(git=git, dry_run=True)

    result = cleanup_remote_branches(ctx, REPO_ROOT, stack_settings())

    assert result.deleted == (branch("old"),)
    assert git.deleted_remote_branches == []
    assert branch("old") in git.remote_branches


def test_cleanup_push_failure_becomes_gateway_error() -> None:
    repo = three_group_stack()
    git = repo.git(remote_branches={branch("old"): repo.base.sha}, push_failures=1)
    ctx = StackContext.for_test(git=git)

    with pytest.raises(GatewayError, match="remote rejected"):
        cleanup_remote_branches(ctx, REPO_ROOT, stack_settings())
