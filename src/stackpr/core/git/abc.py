"""High-level git operations interface.

This module provides the abstraction over git used by the stack engine.

Architecture:
- Git: Abstract base class defining the interface
- RealGit: Production implementation using subprocess
- FakeGit: In-memory commit graph for tests
- DryRunGit: Wrapper that runs scratch-workspace steps but prints every
  other mutation instead of executing it
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CommitRecord:
    """A commit as observed in history. Immutable once read."""

    sha: str
    parent: str | None
    message: str

    @property
    def subject(self) -> str:
        lines = self.message.splitlines()
        return lines[0] if lines else ""


@dataclass(frozen=True)
class ReplayOutcome:
    """Result of replaying one commit into a scratch workspace.

    Exactly one of `sha` (the new workspace head) and `conflicted_paths`
    is meaningful: a conflict leaves `sha` as None.
    """

    sha: str | None
    conflicted_paths: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.sha is not None


# ============================================================================
# Abstract Interface
# ============================================================================


class Git(ABC):
    """Abstract interface for git operations.

    All implementations (real and fake) must implement this interface.
    This interface contains ONLY runtime operations - no test setup methods.
    """

    # Read-only operations

    @abstractmethod
    def get_repo_root(self, cwd: Path) -> Path | None:
        """Get the top-level directory of the repository containing cwd."""
        ...

    @abstractmethod
    def get_current_branch(self, cwd: Path) -> str | None:
        """Get the checked-out branch, or None on a detached HEAD."""
        ...

    @abstractmethod
    def resolve_ref(self, repo_root: Path, ref: str) -> str | None:
        """Resolve a ref to a full commit SHA, or None if it does not exist."""
        ...

    @abstractmethod
    def get_merge_base(self, repo_root: Path, ref_a: str, ref_b: str) -> str | None:
        """Get the best common ancestor of two refs."""
        ...

    @abstractmethod
    def list_commits(self, repo_root: Path, start: str, end: str) -> list[CommitRecord]:
        """List commits in start..end, oldest first.

        Args:
            repo_root: Path to the repository root
            start: Exclusive lower bound
            end: Inclusive upper bound

        Returns:
            Commits with their first parent and full message
        """
        ...

    @abstractmethod
    def get_commit_message(self, repo_root: Path, sha: str) -> str | None:
        """Get the full message of a commit."""
        ...

    @abstractmethod
    def get_tree(self, repo_root: Path, ref: str) -> str:
        """Get the tree id of a commit."""
        ...

    @abstractmethod
    def count_commits(self, repo_root: Path, base_ref: str, head_ref: str) -> int:
        """Count commits reachable from head_ref but not from base_ref."""
        ...

    @abstractmethod
    def is_ancestor(self, repo_root: Path, ancestor: str, descendant: str) -> bool:
        """Check whether ancestor is reachable from descendant."""
        ...

    @abstractmethod
    def has_uncommitted_changes(self, cwd: Path) -> bool:
        """Check for staged, unstaged, or untracked changes."""
        ...

    @abstractmethod
    def get_remote_default_branch(self, repo_root: Path) -> str | None:
        """Get the remote default branch (e.g. 'origin/main') from origin/HEAD."""
        ...

    @abstractmethod
    def get_remote_branch_heads(self, repo_root: Path, branches: list[str]) -> dict[str, str]:
        """Get the current SHA of each branch on origin.

        Branches absent on the remote are omitted from the result.
        """
        ...

    @abstractmethod
    def list_remote_branches_with_prefix(self, repo_root: Path, prefix: str) -> list[str]:
        """List branch names on origin starting with prefix."""
        ...

    @abstractmethod
    def path_exists(self, path: Path) -> bool:
        """Check if a path exists on the filesystem."""
        ...

    @abstractmethod
    def read_ref_blob(self, repo_root: Path, ref: str) -> str | None:
        """Read the text content of the blob a ref points at, if any."""
        ...

    @abstractmethod
    def is_cherry_pick_in_progress(self, workspace: Path) -> bool:
        """Check whether a cherry-pick is stopped mid-way in a worktree."""
        ...

    @abstractmethod
    def get_workspace_head(self, workspace: Path) -> str:
        """Get the HEAD commit of a worktree."""
        ...

    # Scratch workspace operations (local only, never touch the caller's branch)

    @abstractmethod
    def add_scratch_workspace(
        self, repo_root: Path, path: Path, branch: str, start_point: str
    ) -> None:
        """Create a detached worktree on a new branch at start_point.

        Existing worktree registrations at the same path are overwritten.
        """
        ...

    @abstractmethod
    def remove_scratch_workspace(self, repo_root: Path, path: Path, branch: str) -> None:
        """Force-remove a worktree and delete its branch."""
        ...

    @abstractmethod
    def cherry_pick(self, workspace: Path, sha: str) -> ReplayOutcome:
        """Replay one commit onto the worktree head.

        A content conflict is reported in the outcome rather than raised, and
        leaves the cherry-pick in progress.
        """
        ...

    @abstractmethod
    def continue_cherry_pick(self, workspace: Path) -> ReplayOutcome:
        """Commit a resolved in-progress cherry-pick."""
        ...

    @abstractmethod
    def abort_cherry_pick(self, workspace: Path) -> None:
        """Abort an in-progress cherry-pick, restoring the worktree head."""
        ...

    @abstractmethod
    def commit_tree(self, repo_root: Path, tree: str, parent: str, message: str) -> str:
        """Create a commit object from a tree without touching any ref."""
        ...

    @abstractmethod
    def reset_workspace(self, workspace: Path, sha: str) -> None:
        """Hard-reset a scratch worktree to a commit."""
        ...

    # Mutating operations

    @abstractmethod
    def fetch(self, repo_root: Path, remote: str) -> None:
        """Fetch from a remote."""
        ...

    @abstractmethod
    def force_branch(self, repo_root: Path, branch: str, target: str) -> None:
        """Create or move a local branch to target (git branch -f)."""
        ...

    @abstractmethod
    def move_branch(self, cwd: Path, branch: str, new_sha: str, expected_sha: str) -> None:
        """Atomically move a checked-out branch from expected_sha to new_sha.

        The ref update is a compare-and-swap: if the branch no longer points
        at expected_sha, nothing changes and RuntimeError is raised. On
        success the working tree is synced to the new tip.
        """
        ...

    @abstractmethod
    def write_ref_blob(self, repo_root: Path, ref: str, content: str) -> None:
        """Store text as a blob object and point ref at it."""
        ...

    @abstractmethod
    def delete_ref(self, repo_root: Path, ref: str) -> None:
        """Delete a ref."""
        ...

    @abstractmethod
    def push_branches(
        self,
        repo_root: Path,
        refspecs: list[str],
        *,
        leases: dict[str, str] | None = None,
    ) -> None:
        """Push refspecs to origin in a single call.

        Args:
            repo_root: Path to the repository root
            refspecs: Refspecs of the form '<sha>:refs/heads/<branch>'
            leases: When given, push with --force-with-lease, one lease per
                branch pinned to the expected remote SHA
        """
        ...

    @abstractmethod
    def delete_remote_branches(self, repo_root: Path, branches: list[str]) -> None:
        """Delete branches on origin in a single push."""
        ...
