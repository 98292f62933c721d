"""Conflict policies for the rebuild engine.

When a replay step conflicts, the engine hands the checkpoint to a policy:

- RollbackPolicy: abort the pick, drop the scratch workspace, leave the
  branch exactly as it was.
- HaltPolicy: leave the workspace mid-pick and persist the checkpoint in a
  ref so `stackpr resume` or `stackpr abort` can pick it up later.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from stackpr.core.config import ConflictStrategy
from stackpr.core.errors import CleanupError, ConflictError
from stackpr.stack.types import HaltRecord, RebuildResult
from stackpr.stack.workspace import ScratchWorkspace, discard_workspace, halt_ref

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)


class ConflictPolicy(ABC):
    """Decides what happens to a rebuild when a replay step conflicts."""

    name: ConflictStrategy

    @abstractmethod
    def handle(
        self,
        ctx: "StackContext",
        repo_root: Path,
        checkpoint: HaltRecord,
        conflict: ConflictError,
    ) -> RebuildResult:
        """Resolve the run's fate after `conflict` at step checkpoint.cursor.

        Args:
            ctx: Context holding the git gateway
            repo_root: Repository root
            checkpoint: State of the run, cursor pointing at the conflicting step
            conflict: The conflict being handled

        Returns:
            RebuildResult with status rolled_back or halted
        """
        ...


class RollbackPolicy(ConflictPolicy):
    name: ConflictStrategy = "rollback"

    def handle(
        self,
        ctx: "StackContext",
        repo_root: Path,
        checkpoint: HaltRecord,
        conflict: ConflictError,
    ) -> RebuildResult:
        workspace = ScratchWorkspace(path=checkpoint.workspace, branch=checkpoint.workspace_branch)
        logger.debug("Rolling back %s of %s: %s", checkpoint.kind, checkpoint.branch, conflict)

        if ctx.git.is_cherry_pick_in_progress(workspace.path):
            ctx.git.abort_cherry_pick(workspace.path)

        warnings: list[str] = []
        try:
            discard_workspace(ctx, repo_root, workspace)
        except CleanupError as e:
            warnings.append(str(e))

        return RebuildResult(
            status="rolled_back",
            conflict=conflict,
            warnings=tuple(warnings),
        )


class HaltPolicy(ConflictPolicy):
    name: ConflictStrategy = "halt"

    def handle(
        self,
        ctx: "StackContext",
        repo_root: Path,
        checkpoint: HaltRecord,
        conflict: ConflictError,
    ) -> RebuildResult:
        record = checkpoint.model_copy(
            update={"halted_head": ctx.git.get_workspace_head(checkpoint.workspace)}
        )
        ctx.git.write_ref_blob(repo_root, halt_ref(record.branch), record.model_dump_json())
        logger.debug(
            "Halted %s of %s at step %d in %s",
            record.kind,
            record.branch,
            record.cursor + 1,
            record.workspace,
        )
        return RebuildResult(status="halted", workspace=record.workspace, conflict=conflict)


def policy_for(strategy: ConflictStrategy) -> ConflictPolicy:
    if strategy == "halt":
        return HaltPolicy()
    return RollbackPolicy()


def load_halt_record(ctx: "StackContext", repo_root: Path, branch: str) -> HaltRecord | None:
    raw = ctx.git.read_ref_blob(repo_root, halt_ref(branch))
    if raw is None:
        return None
    return HaltRecord.model_validate_json(raw)


def halt_instructions(workspace: Path) -> list[str]:
    """Operator instructions printed after a halt."""
    return [
        f"Resolve the conflict inside {workspace}:",
        f"  cd {workspace}",
        "  # edit the conflicting files, then",
        "  git add <files>",
        "Then run `stackpr resume` from your stack branch, or `stackpr abort` to give up.",
        "Changes made in your own working tree have no effect on the halted operation.",
    ]
