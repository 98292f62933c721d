"""Types shared by the rebuild engine and its consumers."""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict

from stackpr.core.errors import ConflictError

RebuildKind = Literal["restack", "move", "fix-tail", "prep"]
RebuildStatus = Literal["completed", "rolled_back", "halted"]


@dataclass(frozen=True)
class ReplayStep:
    """One unit of replay work.

    A `pick` step cherry-picks its single commit. A `squash` step replaces all
    of its commits with one commit carrying the tree of the last one.
    """

    kind: Literal["pick", "squash"]
    commits: tuple[str, ...]
    group: str | None = None
    message: str | None = None

    @staticmethod
    def pick(sha: str, group: str | None = None) -> "ReplayStep":
        return ReplayStep(kind="pick", commits=(sha,), group=group)

    @staticmethod
    def squash(commits: tuple[str, ...], group: str, message: str) -> "ReplayStep":
        return ReplayStep(kind="squash", commits=commits, group=group, message=message)


@dataclass(frozen=True)
class RebuildPlan:
    """Everything execute_rebuild needs, computed before any mutation."""

    kind: RebuildKind
    target_base: str
    steps: tuple[ReplayStep, ...]
    description: str = ""


class HaltRecord(BaseModel):
    """Checkpoint of a rebuild stopped on a conflict.

    Serialized as JSON into a ref so a later invocation can resume it.
    """

    model_config = ConfigDict(frozen=True)

    kind: RebuildKind
    branch: str
    original_head: str
    target_base: str
    workspace_path: str
    workspace_branch: str
    steps: tuple[ReplayStep, ...]
    cursor: int = 0
    halted_head: str | None = None

    @property
    def workspace(self) -> Path:
        return Path(self.workspace_path)


@dataclass(frozen=True)
class RebuildResult:
    """Outcome of a rebuild, resume, or abort."""

    status: RebuildStatus
    new_tip: str | None = None
    workspace: Path | None = None
    conflict: ConflictError | None = None
    warnings: tuple[str, ...] = ()
    backup_branch: str | None = None
