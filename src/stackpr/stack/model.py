"""Stack model.

A Stack is a pure view over commit history: scanner output plus the root
base, merge-base and branch prefix. It is recomputed on every invocation and
never mutated; operations that need remote state get a new Stack from
correlate().
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from stackpr.core.config import StackSettings
from stackpr.core.errors import PreconditionError, ValidationError
from stackpr.core.github.types import PullRequest
from stackpr.stack.scanner import Group, scan_commits

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)


def sanitize_base_ref(ref: str) -> str:
    """Turn a local remote-tracking ref into the branch name GitHub expects."""
    return ref.removeprefix("origin/")


@dataclass(frozen=True)
class Extent:
    """How much of the stack an operation covers, counted from the bottom.

    A count of 0 means the whole stack.
    """

    kind: Literal["pr", "commits"]
    count: int

    @staticmethod
    def by_pr(count: int) -> "Extent":
        return Extent(kind="pr", count=count)

    @staticmethod
    def by_commits(count: int) -> "Extent":
        return Extent(kind="commits", count=count)

    @staticmethod
    def whole() -> "Extent":
        return Extent(kind="pr", count=0)


def limit_groups(groups: Sequence[Group], extent: Extent) -> tuple[Group, ...]:
    """Truncate groups to an extent.

    By commits, a group cut mid-way keeps only its first commits and loses
    its ignore block, which lies beyond the cut.
    """
    if extent.count < 0:
        msg = f"Extent must be non-negative, got {extent.count}"
        raise ValidationError(msg)
    if extent.count == 0:
        return tuple(groups)
    if extent.kind == "pr":
        return tuple(groups[: extent.count])

    remaining = extent.count
    limited: list[Group] = []
    for group in groups:
        if remaining <= 0:
            break
        if len(group.commits) <= remaining:
            limited.append(group)
            remaining -= len(group.commits)
            continue
        limited.append(
            replace(
                group,
                commits=group.commits[:remaining],
                subjects=group.subjects[:remaining],
                ignored_after=(),
            )
        )
        remaining = 0
    return tuple(limited)


@dataclass(frozen=True)
class Stack:
    """Ordered groups from the root base (bottom) to HEAD (top).

    Group indices are 1-based.
    """

    root_base: str
    merge_base: str
    prefix: str
    leading_ignored: tuple[str, ...]
    groups: tuple[Group, ...]
    remote: Mapping[str, PullRequest] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.groups)

    @property
    def root_branch(self) -> str:
        return sanitize_base_ref(self.root_base)

    def group(self, index: int) -> Group:
        if index < 1 or index > self.count:
            msg = f"Group index {index} is out of range (stack has {self.count} groups)"
            raise ValidationError(msg)
        return self.groups[index - 1]

    def branch_for(self, index: int) -> str:
        return f"{self.prefix}{self.group(index).tag}"

    def expected_base(self, index: int) -> str:
        """Base branch group `index` should target on GitHub."""
        if index == 1:
            self.group(index)
            return self.root_branch
        return self.branch_for(index - 1)

    def head_base_chain(self) -> list[tuple[str, str]]:
        """(head branch, expected base branch) for every group, bottom to top."""
        return [(self.branch_for(i), self.expected_base(i)) for i in range(1, self.count + 1)]

    def ignored_commits(self) -> list[str]:
        ignored = list(self.leading_ignored)
        for group in self.groups:
            ignored.extend(group.ignored_after)
        return ignored

    def all_commits(self) -> list[str]:
        """Every commit in history order, ignore blocks included."""
        commits = list(self.leading_ignored)
        for group in self.groups:
            commits.extend(group.commits)
            commits.extend(group.ignored_after)
        return commits

    def index_of_commit(self, sha: str) -> int | None:
        """1-based index of the group owning sha, or None for ignored commits."""
        for i, group in enumerate(self.groups, start=1):
            if sha in group.commits:
                return i
        return None

    def correlate(self, prs_by_head: Mapping[str, PullRequest]) -> "Stack":
        """Return a copy that knows the open PR for each head branch."""
        return replace(self, remote=dict(prs_by_head))

    def remote_for(self, index: int) -> PullRequest | None:
        return self.remote.get(self.branch_for(index))

    def with_groups(self, groups: Sequence[Group]) -> "Stack":
        return replace(self, groups=tuple(groups))


def load_stack(
    ctx: "StackContext",
    repo_root: Path,
    settings: StackSettings,
    head: str = "HEAD",
) -> Stack:
    """Scan merge-base(root base, head)..head into a Stack.

    Raises:
        PreconditionError: If head shares no history with the root base
        StackInvariantError: If the commits cannot be grouped
    """
    merge_base = ctx.git.get_merge_base(repo_root, settings.root_base, head)
    if merge_base is None:
        msg = (
            f"No merge base between {settings.root_base} and {head}. "
            f"Is {settings.root_base} fetched? Try: git fetch origin"
        )
        raise PreconditionError(msg)

    commits = ctx.git.list_commits(repo_root, merge_base, head)
    result = scan_commits(commits, settings.ignore_tag)
    logger.debug(
        "Loaded %d group(s) from %d commit(s) above %s",
        len(result.groups),
        len(commits),
        merge_base[:8],
    )
    return Stack(
        root_base=settings.root_base,
        merge_base=merge_base,
        prefix=settings.prefix,
        leading_ignored=result.leading_ignored,
        groups=result.groups,
    )
