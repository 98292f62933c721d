"""Rebuild engine.

Replays a plan of steps onto a target base inside a scratch worktree, then
compare-and-moves the current branch to the result. The caller's branch and
working tree are never touched until every step has succeeded.
"""

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from stackpr.cli.output import user_output, warn
from stackpr.core.errors import CleanupError, ConflictError, GatewayError, PreconditionError
from stackpr.stack.conflict import ConflictPolicy, RollbackPolicy, load_halt_record
from stackpr.stack.scanner import Group
from stackpr.stack.types import HaltRecord, RebuildPlan, RebuildResult, ReplayStep
from stackpr.stack.workspace import (
    ScratchWorkspace,
    backup_branch_name,
    discard_workspace,
    halt_ref,
    scratch_workspace_for,
)

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)


def ignored_steps(commits: Sequence[str]) -> list[ReplayStep]:
    return [ReplayStep.pick(sha) for sha in commits]


def group_steps(group: Group) -> list[ReplayStep]:
    """Pick steps for a group's commits followed by its own ignore block."""
    steps = [ReplayStep.pick(sha, group.tag) for sha in group.commits]
    steps.extend(ignored_steps(group.ignored_after))
    return steps


def _require_branch(ctx: "StackContext", repo_root: Path) -> str:
    branch = ctx.git.get_current_branch(repo_root)
    if branch is None:
        msg = "HEAD is detached; check out the branch holding your stack first"
        raise PreconditionError(msg)
    return branch


def execute_rebuild(
    ctx: "StackContext",
    repo_root: Path,
    plan: RebuildPlan,
    policy: ConflictPolicy,
    *,
    safe: bool,
) -> RebuildResult:
    """Replay plan.steps onto plan.target_base and move the current branch there.

    Args:
        ctx: Context holding the git gateway
        repo_root: Repository root
        plan: Precomputed replay plan
        policy: What to do if a step conflicts
        safe: Save HEAD to a backup branch before rewriting

    Returns:
        RebuildResult; status is completed, rolled_back or halted

    Raises:
        PreconditionError: Detached HEAD, dirty working tree, an operation
            already halted on this branch, or an unknown target base
    """
    branch = _require_branch(ctx, repo_root)
    if ctx.git.has_uncommitted_changes(repo_root):
        msg = "Working tree has uncommitted changes; commit or stash them first"
        raise PreconditionError(msg)
    if ctx.git.read_ref_blob(repo_root, halt_ref(branch)) is not None:
        msg = (
            f"A halted operation exists for {branch}. "
            "Run `stackpr resume` to finish it or `stackpr abort` to discard it."
        )
        raise PreconditionError(msg)

    original_head = ctx.git.resolve_ref(repo_root, "HEAD")
    if original_head is None:
        msg = f"Cannot resolve HEAD of {branch}"
        raise PreconditionError(msg)
    target = ctx.git.resolve_ref(repo_root, plan.target_base)
    if target is None:
        msg = f"Cannot resolve rebuild target {plan.target_base}"
        raise PreconditionError(msg)

    if ctx.dry_run and policy.name == "halt":
        # A dry run never records a halt, so it must not leave a workspace behind
        policy = RollbackPolicy()

    backup: str | None = None
    if safe:
        backup = backup_branch_name(plan.kind, branch, original_head)
        ctx.git.force_branch(repo_root, backup, original_head)
        user_output(f"Saved backup branch {backup}")

    if not plan.steps:
        logger.debug("Empty %s plan; moving %s to %s", plan.kind, branch, target[:8])
        _move_branch(ctx, repo_root, branch, target, original_head)
        return RebuildResult(status="completed", new_tip=target, backup_branch=backup)

    workspace = scratch_workspace_for(plan.kind, original_head)
    warnings: list[str] = []
    if ctx.git.path_exists(workspace.path):
        logger.debug("Removing stale scratch workspace %s", workspace.path)
        try:
            discard_workspace(ctx, repo_root, workspace)
        except CleanupError as e:
            warnings.append(str(e))

    ctx.git.add_scratch_workspace(repo_root, workspace.path, workspace.branch, target)
    checkpoint = HaltRecord(
        kind=plan.kind,
        branch=branch,
        original_head=original_head,
        target_base=target,
        workspace_path=str(workspace.path),
        workspace_branch=workspace.branch,
        steps=plan.steps,
        cursor=0,
    )
    result = _replay_from(ctx, repo_root, checkpoint, policy)
    return _with_extras(result, warnings, backup)


def _with_extras(result: RebuildResult, warnings: list[str], backup: str | None) -> RebuildResult:
    return RebuildResult(
        status=result.status,
        new_tip=result.new_tip,
        workspace=result.workspace,
        conflict=result.conflict,
        warnings=tuple(warnings) + result.warnings,
        backup_branch=backup,
    )


def _replay_from(
    ctx: "StackContext",
    repo_root: Path,
    checkpoint: HaltRecord,
    policy: ConflictPolicy,
) -> RebuildResult:
    """Replay steps from checkpoint.cursor, then move the branch to the result.

    Raises:
        GatewayError: A step or the branch move failed for a reason other than
            a conflict; the scratch workspace is discarded first
    """
    workspace = checkpoint.workspace
    steps = checkpoint.steps
    try:
        for index in range(checkpoint.cursor, len(steps)):
            step = steps[index]
            if step.kind == "squash":
                _apply_squash(ctx, repo_root, workspace, step)
                continue

            sha = step.commits[0]
            outcome = ctx.git.cherry_pick(workspace, sha)
            if outcome.succeeded:
                logger.debug("Step %d/%d: picked %s", index + 1, len(steps), sha[:8])
                continue

            conflict = ConflictError(
                step_index=index,
                commit=sha,
                group=step.group,
                paths=outcome.conflicted_paths,
            )
            logger.debug("%s", conflict)
            return policy.handle(
                ctx, repo_root, checkpoint.model_copy(update={"cursor": index}), conflict
            )

        new_tip = ctx.git.get_workspace_head(workspace)
        _move_branch(ctx, repo_root, checkpoint.branch, new_tip, checkpoint.original_head)
    except (RuntimeError, GatewayError) as e:
        raise _abandon_workspace(ctx, repo_root, checkpoint, e) from e

    return _finish(ctx, repo_root, checkpoint, new_tip)


def _abandon_workspace(
    ctx: "StackContext", repo_root: Path, checkpoint: HaltRecord, error: Exception
) -> GatewayError:
    """Discard the scratch workspace of a failed run and describe the failure."""
    detail = f"The {checkpoint.kind} was abandoned; {checkpoint.branch} is unchanged."
    try:
        discard_workspace(
            ctx,
            repo_root,
            ScratchWorkspace(path=checkpoint.workspace, branch=checkpoint.workspace_branch),
        )
    except CleanupError as cleanup:
        detail = f"{detail} {cleanup}"
    step = error.step if isinstance(error, GatewayError) else "replay"
    return GatewayError(f"{error}\n{detail}", step=step)


def _apply_squash(ctx: "StackContext", repo_root: Path, workspace: Path, step: ReplayStep) -> None:
    """Collapse a group into one commit carrying the tree of its last commit."""
    tree = ctx.git.get_tree(repo_root, step.commits[-1])
    head = ctx.git.get_workspace_head(workspace)
    if ctx.git.get_tree(repo_root, head) == tree:
        logger.debug("Squash of %s is empty; skipping", step.group)
        return
    message = step.message if step.message is not None else ""
    squashed = ctx.git.commit_tree(repo_root, tree, head, message)
    ctx.git.reset_workspace(workspace, squashed)
    logger.debug(
        "Squashed %d commit(s) of %s into %s", len(step.commits), step.group, squashed[:8]
    )


def _finish(
    ctx: "StackContext", repo_root: Path, checkpoint: HaltRecord, new_tip: str
) -> RebuildResult:
    warnings: list[str] = []
    try:
        discard_workspace(
            ctx,
            repo_root,
            ScratchWorkspace(path=checkpoint.workspace, branch=checkpoint.workspace_branch),
        )
    except CleanupError as e:
        warnings.append(str(e))
    return RebuildResult(status="completed", new_tip=new_tip, warnings=tuple(warnings))


def _move_branch(
    ctx: "StackContext", repo_root: Path, branch: str, new_tip: str, original_head: str
) -> None:
    try:
        ctx.git.move_branch(repo_root, branch, new_tip, original_head)
    except RuntimeError as e:
        msg = (
            f"Could not move {branch} from {original_head[:8]} to {new_tip[:8]}; "
            f"it may have changed during the operation. The rebuilt tip is {new_tip}.\n{e}"
        )
        raise GatewayError(msg, step="move branch") from e


def resume_rebuild(
    ctx: "StackContext", repo_root: Path, policy: ConflictPolicy
) -> RebuildResult:
    """Continue the operation halted on the current branch.

    The conflicting pick is committed from the workspace state (or retried if
    the operator abandoned it), then the remaining steps are replayed.

    Raises:
        PreconditionError: No halted operation, its workspace is gone, or the
            main working tree has uncommitted changes
        GatewayError: A later step or the branch move failed; the workspace
            and the halt record are discarded
    """
    branch = _require_branch(ctx, repo_root)
    if ctx.git.has_uncommitted_changes(repo_root):
        msg = (
            "Working tree has uncommitted changes; resume would overwrite them. "
            "Conflicts are resolved inside the scratch workspace, not here: "
            "commit or stash your changes first"
        )
        raise PreconditionError(msg)
    record = load_halt_record(ctx, repo_root, branch)
    if record is None:
        msg = f"No halted operation for {branch}"
        raise PreconditionError(msg)

    workspace = record.workspace
    if not ctx.git.path_exists(workspace):
        msg = (
            f"Scratch workspace {workspace} for the halted {record.kind} is missing. "
            "Run `stackpr abort` to clear the record."
        )
        raise PreconditionError(msg)

    cursor = record.cursor
    if ctx.git.is_cherry_pick_in_progress(workspace):
        outcome = ctx.git.continue_cherry_pick(workspace)
        if not outcome.succeeded:
            step = record.steps[cursor]
            conflict = ConflictError(
                step_index=cursor,
                commit=step.commits[0],
                group=step.group,
                paths=outcome.conflicted_paths,
            )
            warn(f"Conflicts remain unresolved in {workspace}")
            return RebuildResult(status="halted", workspace=workspace, conflict=conflict)
        cursor += 1
    elif ctx.git.get_workspace_head(workspace) != record.halted_head:
        # Committed by hand inside the workspace
        cursor += 1

    logger.debug("Resuming %s of %s at step %d", record.kind, branch, cursor + 1)
    try:
        result = _replay_from(
            ctx, repo_root, record.model_copy(update={"cursor": cursor}), policy
        )
    except GatewayError:
        ctx.git.delete_ref(repo_root, halt_ref(branch))
        raise
    if result.status != "halted":
        ctx.git.delete_ref(repo_root, halt_ref(branch))
    return result


def abort_rebuild(ctx: "StackContext", repo_root: Path) -> RebuildResult:
    """Discard the operation halted on the current branch.

    The branch itself was never moved, so only the workspace and the record
    are removed.
    """
    branch = _require_branch(ctx, repo_root)
    record = load_halt_record(ctx, repo_root, branch)
    if record is None:
        msg = f"No halted operation for {branch}"
        raise PreconditionError(msg)

    warnings: list[str] = []
    workspace = ScratchWorkspace(path=record.workspace, branch=record.workspace_branch)
    if ctx.git.path_exists(workspace.path):
        if ctx.git.is_cherry_pick_in_progress(workspace.path):
            ctx.git.abort_cherry_pick(workspace.path)
        try:
            discard_workspace(ctx, repo_root, workspace)
        except CleanupError as e:
            warnings.append(str(e))

    ctx.git.delete_ref(repo_root, halt_ref(branch))
    return RebuildResult(status="rolled_back", warnings=tuple(warnings))
