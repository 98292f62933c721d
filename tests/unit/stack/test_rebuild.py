"""Tests for the rebuild engine, conflict policies, resume and abort."""

import json

import pytest

from stackpr.core.context import StackContext
from stackpr.core.errors import GatewayError, PreconditionError
from stackpr.core.git.fake import FakeCommit, make_commit
from stackpr.stack.conflict import HaltPolicy, RollbackPolicy
from stackpr.stack.rebuild import abort_rebuild, execute_rebuild, resume_rebuild
from stackpr.stack.types import RebuildPlan, ReplayStep
from stackpr.stack.workspace import halt_ref, scratch_workspace_for
from tests.test_utils.stacks import BRANCH, REPO_ROOT, StackRepo, build_stack


def _conflicting_repo() -> tuple[StackRepo, FakeCommit]:
    """Stack a, b on base; origin/main rewrote a.txt in the meantime."""
    repo = build_stack(
        [
            ("Add parser pr:a", {"a.txt": "a1\n"}),
            ("Add lexer pr:b", {"b.txt": "b1\n"}),
        ]
    )
    upstream = make_commit(repo.base, "upstream edit", {"a.txt": "upstream\n"})
    repo.extra_commits.append(upstream)
    return repo, upstream


def _plan(repo: StackRepo) -> RebuildPlan:
    return RebuildPlan(
        kind="restack",
        target_base="origin/main",
        steps=(ReplayStep.pick(repo.sha(0), "a"), ReplayStep.pick(repo.sha(1), "b")),
    )


def test_completed_rebuild_moves_branch_and_removes_workspace() -> None:
    repo = build_stack([("Add parser pr:a", {"a.txt": "a1\n"})])
    upstream = make_commit(repo.base, "upstream", {"up.txt": "1\n"})
    repo.extra_commits.append(upstream)
    git = repo.git(remote_branches={"main": upstream.sha})
    ctx = StackContext.for_test(git=git)
    plan = RebuildPlan(
        kind="restack", target_base="origin/main", steps=(ReplayStep.pick(repo.sha(0), "a"),)
    )

    result = execute_rebuild(ctx, REPO_ROOT, plan, RollbackPolicy(), safe=False)

    assert result.status == "completed"
    assert result.new_tip == git.branch_head(BRANCH)
    assert git.files_at(BRANCH) == {"README.md": "hello\n", "up.txt": "1\n", "a.txt": "a1\n"}
    assert git.active_workspaces == []
    workspace = scratch_workspace_for("restack", repo.tip.sha)
    assert git.branch_head(workspace.branch) is None


def test_rollback_leaves_branch_unchanged_and_no_scratch_branch() -> None:
    repo, upstream = _conflicting_repo()
    git = repo.git(remote_branches={"main": upstream.sha})
    ctx = StackContext.for_test(git=git)

    result = execute_rebuild(ctx, REPO_ROOT, _plan(repo), RollbackPolicy(), safe=False)

    assert result.status == "rolled_back"
    assert result.conflict is not None
    assert result.conflict.paths == ("a.txt",)
    assert result.conflict.group == "a"
    assert git.branch_head(BRANCH) == repo.tip.sha
    assert git.moved_branches == []
    assert git.active_workspaces == []
    assert git.branch_head(scratch_workspace_for("restack", repo.tip.sha).branch) is None


def test_halt_persists_record_and_leaves_workspace() -> None:
    repo, upstream = _conflicting_repo()
    git = repo.git(remote_branches={"main": upstream.sha})
    ctx = StackContext.for_test(git=git)

    result = execute_rebuild(ctx, REPO_ROOT, _plan(repo), HaltPolicy(), safe=False)

    assert result.status == "halted"
    assert result.workspace in git.active_workspaces
    assert git.branch_head(BRANCH) == repo.tip.sha
    record = json.loads(git.ref_blobs[halt_ref(BRANCH)])
    assert record["cursor"] == 0
    assert record["original_head"] == repo.tip.sha
    assert record["halted_head"] == upstream.sha


def test_second_rebuild_refused_while_halted() -> None:
    repo, upstream = _conflicting_repo()
    git = repo.git(remote_branches={"main": upstream.sha})
    ctx = StackContext.for_test(git=git)
    execute_rebuild(ctx, REPO_ROOT, _plan(repo), HaltPolicy(), safe=False)

    with pytest.raises(PreconditionError, match="halted operation exists"):
        execute_rebuild(ctx, REPO_ROOT, _plan(repo), HaltPolicy(), safe=False)


def test_resume_after_resolution_finishes_and_clears_record() -> None:
    repo, upstream = _conflicting_repo()
    git = repo.git(
        remote_branches={"main": upstream.sha},
        conflict_resolutions={repo.sha(0): {"a.txt": "merged\n"}},
    )
    ctx = StackContext.for_test(git=git)
    execute_rebuild(ctx, REPO_ROOT, _plan(repo), HaltPolicy(), safe=False)

    result = resume_rebuild(ctx, REPO_ROOT, HaltPolicy())

    assert result.status == "completed"
    assert git.files_at(BRANCH) == {"README.md": "hello\n", "a.txt": "merged\n", "b.txt": "b1\n"}
    assert git.messages_between("origin/main", BRANCH) == ["Add parser pr:a", "Add lexer pr:b"]
    assert halt_ref(BRANCH) not in git.ref_blobs
    assert git.active_workspaces == []


def test_resume_matches_uninterrupted_run_with_same_resolution() -> None:
    repo, upstream = _conflicting_repo()
    resolution = {repo.sha(0): {"a.txt": "merged\n"}}

    halted_git = repo.git(remote_branches={"main": upstream.sha}, conflict_resolutions=resolution)
    halted_ctx = StackContext.for_test(git=halted_git)
    execute_rebuild(halted_ctx, REPO_ROOT, _plan(repo), HaltPolicy(), safe=False)
    resume_rebuild(halted_ctx, REPO_ROOT, HaltPolicy())

    # Same history, but the conflicting commit already carries the resolution
    resolved_first = make_commit(upstream, "Add parser pr:a", {"a.txt": "merged\n"})
    expected_tip = make_commit(resolved_first, "Add lexer pr:b", {"b.txt": "b1\n"})

    assert halted_git.branch_head(BRANCH) == expected_tip.sha


def test_resume_with_unresolved_conflict_stays_halted() -> None:
    repo, upstream = _conflicting_repo()
    git = repo.git(remote_branches={"main": upstream.sha})
    ctx = StackContext.for_test(git=git)
    execute_rebuild(ctx, REPO_ROOT, _plan(repo), HaltPolicy(), safe=False)

    result = resume_rebuild(ctx, REPO_ROOT, HaltPolicy())

    assert result.status == "halted"
    assert result.conflict is not None
    assert halt_ref(BRANCH) in git.ref_blobs
    assert git.branch_head(BRANCH) == repo.tip.sha


def test_resume_without_halted_operation_fails() -> None:
    repo = build_stack([("Add parser pr:a", {"a.txt": "a1\n"})])
    ctx = StackContext.for_test(git=repo.git())

    with pytest.raises(PreconditionError, match="No halted operation"):
        resume_rebuild(ctx, REPO_ROOT, HaltPolicy())


def test_resume_refuses_dirty_working_tree() -> None:
    repo, upstream = _conflicting_repo()
    halted_git = repo.git(remote_branches={"main": upstream.sha})
    execute_rebuild(
        StackContext.for_test(git=halted_git), REPO_ROOT, _plan(repo), HaltPolicy(), safe=False
    )
    # Operator edited files in their own tree instead of the scratch workspace
    git = repo.git(
        remote_branches={"main": upstream.sha},
        ref_blobs=halted_git.ref_blobs,
        uncommitted_changes=True,
    )
    ctx = StackContext.for_test(git=git)

    with pytest.raises(PreconditionError, match="uncommitted changes"):
        resume_rebuild(ctx, REPO_ROOT, HaltPolicy())

    assert git.moved_branches == []
    assert git.branch_head(BRANCH) == repo.tip.sha
    assert halt_ref(BRANCH) in git.ref_blobs


def test_resume_failure_discards_workspace_and_record() -> None:
    repo, upstream = _conflicting_repo()
    git = repo.git(
        remote_branches={"main": upstream.sha},
        conflict_resolutions={repo.sha(0): {"a.txt": "merged\n"}},
        failing_picks={repo.sha(1)},
    )
    ctx = StackContext.for_test(git=git)
    execute_rebuild(ctx, REPO_ROOT, _plan(repo), HaltPolicy(), safe=False)

    with pytest.raises(GatewayError, match="bad object"):
        resume_rebuild(ctx, REPO_ROOT, HaltPolicy())

    assert git.active_workspaces == []
    assert halt_ref(BRANCH) not in git.ref_blobs
    assert git.branch_head(BRANCH) == repo.tip.sha

def test_abort_discards_workspace_and_record() -> None:
    repo, upstream = _conflicting_repo()
    git = repo.git(remote_branches={"main": upstream.sha})
    ctx = StackContext.for_test(git=git)
    execute_rebuild(ctx, REPO_ROOT, _plan(repo), HaltPolicy(), safe=False)

    result = abort_rebuild(ctx, REPO_ROOT)

    assert result.status == "rolled_back"
    assert git.active_workspaces == []
    assert halt_ref(BRANCH) not in git.ref_blobs
    assert git.branch_head(BRANCH) == repo.tip.sha


def test_cleanup_failure_is_reported_as_warning() -> None:
    repo = build_stack([("Add parser pr:a", {"a.txt": "a1\n"})])
    git = repo.git(failing_cleanup=True)
    ctx = StackContext.for_test(git=git)
    plan = RebuildPlan(
        kind="move", target_base=repo.base.sha, steps=(ReplayStep.pick(repo.sha(0), "a"),)
    )

    result = execute_rebuild(ctx, REPO_ROOT, plan, RollbackPolicy(), safe=False)

    assert result.status == "completed"
    assert len(result.warnings) == 1
    assert "Clean up manually" in result.warnings[0]


def test_safe_creates_backup_branch() -> None:
    repo = build_stack([("Add parser pr:a", {"a.txt": "a1\n"})])
    git = repo.git()
    ctx = StackContext.for_test(git=git)
    plan = RebuildPlan(
        kind="move", target_base=repo.base.sha, steps=(ReplayStep.pick(repo.sha(0), "a"),)
    )

    result = execute_rebuild(ctx, REPO_ROOT, plan, RollbackPolicy(), safe=True)

    backup = f"backup/move/{BRANCH}-{repo.tip.sha[:7]}"
    assert result.backup_branch == backup
    assert git.branch_head(backup) == repo.tip.sha


def test_empty_plan_moves_branch_to_target() -> None:
    repo = build_stack([("Add parser pr:a", {"a.txt": "a1\n"})])
    git = repo.git()
    ctx = StackContext.for_test(git=git)
    plan = RebuildPlan(kind="restack", target_base="origin/main", steps=())

    result = execute_rebuild(ctx, REPO_ROOT, plan, RollbackPolicy(), safe=False)

    assert result.status == "completed"
    assert git.branch_head(BRANCH) == repo.base.sha
    assert git.created_workspaces == []


def test_dirty_tree_is_rejected() -> None:
    repo = build_stack([("Add parser pr:a", {"a.txt": "a1\n"})])
    git = repo.git(uncommitted_changes=True)
    ctx = StackContext.for_test(git=git)

    with pytest.raises(PreconditionError, match="uncommitted changes"):
        execute_rebuild(ctx, REPO_ROOT, _plan_single(repo), RollbackPolicy(), safe=False)
    assert git.created_workspaces == []


def test_detached_head_is_rejected() -> None:
    repo = build_stack([("Add parser pr:a", {"a.txt": "a1\n"})])
    git = repo.git(current_branch=None)
    ctx = StackContext.for_test(git=git)

    with pytest.raises(PreconditionError, match="detached"):
        execute_rebuild(ctx, REPO_ROOT, _plan_single(repo), RollbackPolicy(), safe=False)


def test_dry_run_never_moves_branch_or_records_halt() -> None:
    repo, upstream = _conflicting_repo()
    git = repo.git(remote_branches={"main": upstream.sha})
    ctx = StackContext.for_test(git=git, dry_run=True)

    result = execute_rebuild(ctx, REPO_ROOT, _plan(repo), HaltPolicy(), safe=True)

    assert result.status == "rolled_back"
    assert git.ref_blobs == {}
    assert git.forced_branches == []
    assert git.branch_head(BRANCH) == repo.tip.sha
    assert git.active_workspaces == []


def test_dry_run_replays_in_scratch_workspace_only() -> None:
    repo = build_stack([("Add parser pr:a", {"a.txt": "a1\n"})])
    upstream = make_commit(repo.base, "upstream", {"up.txt": "1\n"})
    repo.extra_commits.append(upstream)
    git = repo.git(remote_branches={"main": upstream.sha})
    ctx = StackContext.for_test(git=git, dry_run=True)
    plan = RebuildPlan(
        kind="restack", target_base="origin/main", steps=(ReplayStep.pick(repo.sha(0), "a"),)
    )

    result = execute_rebuild(ctx, REPO_ROOT, plan, RollbackPolicy(), safe=False)

    assert result.status == "completed"
    assert git.cherry_picks == [repo.sha(0)]
    assert git.moved_branches == []
    assert git.branch_head(BRANCH) == repo.tip.sha


def _plan_single(repo: StackRepo) -> RebuildPlan:
    return RebuildPlan(
        kind="restack", target_base="origin/main", steps=(ReplayStep.pick(repo.sha(0), "a"),)
    )


def test_failed_branch_move_discards_workspace() -> None:
    repo = build_stack([("Add parser pr:a", {"a.txt": "a1\n"})])
    upstream = make_commit(repo.base, "upstream", {"up.txt": "1\n"})
    repo.extra_commits.append(upstream)
    git = repo.git(remote_branches={"main": upstream.sha}, failing_branch_moves=True)
    ctx = StackContext.for_test(git=git)

    with pytest.raises(GatewayError) as exc_info:
        execute_rebuild(ctx, REPO_ROOT, _plan_single(repo), RollbackPolicy(), safe=False)

    assert exc_info.value.step == "move branch"
    assert f"{BRANCH} is unchanged" in str(exc_info.value)
    assert git.branch_head(BRANCH) == repo.tip.sha
    assert git.active_workspaces == []
    assert git.branch_head(scratch_workspace_for("restack", repo.tip.sha).branch) is None


def test_failed_pick_names_workspace_when_cleanup_fails() -> None:
    repo = build_stack([("Add parser pr:a", {"a.txt": "a1\n"})])
    git = repo.git(failing_picks={repo.sha(0)}, failing_cleanup=True)
    ctx = StackContext.for_test(git=git)
    workspace = scratch_workspace_for("restack", repo.tip.sha)

    with pytest.raises(GatewayError) as exc_info:
        execute_rebuild(ctx, REPO_ROOT, _plan_single(repo), RollbackPolicy(), safe=False)

    message = str(exc_info.value)
    assert exc_info.value.step == "replay"
    assert "bad object" in message
    assert f"git worktree remove -f {workspace.path}" in message
    assert git.moved_branches == []
