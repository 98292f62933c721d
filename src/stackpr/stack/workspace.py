"""Deterministic names for scratch workspaces, backups and halt records."""

import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from stackpr.core.errors import CleanupError

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

HALT_REF_PREFIX = "refs/stackpr/halted/"


@dataclass(frozen=True)
class ScratchWorkspace:
    path: Path
    branch: str


def short_id(sha: str) -> str:
    return sha[:7]


def scratch_workspace_for(kind: str, original_head: str) -> ScratchWorkspace:
    """Workspace for one operation on one starting commit."""
    short = short_id(original_head)
    return ScratchWorkspace(
        path=Path(tempfile.gettempdir()) / f"stackpr-{kind}-{short}",
        branch=f"stackpr/tmp-{kind}-{short}",
    )


def backup_branch_name(kind: str, branch: str, original_head: str) -> str:
    return f"backup/{kind}/{branch}-{short_id(original_head)}"


def halt_ref(branch: str) -> str:
    return f"{HALT_REF_PREFIX}{branch}"


def discard_workspace(ctx: "StackContext", repo_root: Path, workspace: ScratchWorkspace) -> None:
    """Remove a scratch workspace and its branch.

    Raises:
        CleanupError: If removal fails; the message says how to finish by hand
    """
    try:
        ctx.git.remove_scratch_workspace(repo_root, workspace.path, workspace.branch)
    except RuntimeError as e:
        msg = (
            f"Could not remove scratch workspace {workspace.path} ({e}). "
            f"Clean up manually: git worktree remove -f {workspace.path} && "
            f"git branch -D {workspace.branch}"
        )
        raise CleanupError(msg) from e
