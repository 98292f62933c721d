"""Abstract base class for GitHub operations."""

from abc import ABC, abstractmethod
from pathlib import Path

from stackpr.core.github.types import MergeMethod, PullRequest, PullRequestStatus


class GitHub(ABC):
    """Abstract interface for GitHub operations.

    All implementations (real and fake) must implement this interface.
    """

    @abstractmethod
    def get_open_pr_for_head(self, repo_root: Path, head: str) -> PullRequest | None:
        """Get the open PR whose head branch is `head`.

        Args:
            repo_root: Repository root directory
            head: Head branch name (without remote prefix)

        Returns:
            The open PR, or None if the branch has no open PR
        """
        ...

    @abstractmethod
    def get_pr(self, repo_root: Path, number: int) -> PullRequest | None:
        """Get a PR by number in any state, or None if it does not exist."""
        ...

    @abstractmethod
    def list_open_pr_heads(self, repo_root: Path) -> set[str]:
        """Get the head branch names of every open PR in the repository."""
        ...

    @abstractmethod
    def get_pr_status(self, repo_root: Path, number: int) -> PullRequestStatus:
        """Get CI rollup and review decision for a PR.

        Missing CI is reported as SUCCESS. A missing review decision is
        derived from the individual reviews.
        """
        ...

    @abstractmethod
    def list_comment_bodies(self, repo_root: Path, number: int) -> list[str]:
        """Get the body of every comment on a PR, oldest first."""
        ...

    @abstractmethod
    def create_pr(self, repo_root: Path, *, head: str, base: str, title: str, body: str) -> int:
        """Create a PR and return its number."""
        ...

    @abstractmethod
    def update_pr_base(self, repo_root: Path, number: int, base: str) -> None:
        """Change the base branch of a PR."""
        ...

    @abstractmethod
    def update_pr_body(self, repo_root: Path, number: int, body: str) -> None:
        """Replace the description of a PR."""
        ...

    @abstractmethod
    def add_comment(self, repo_root: Path, number: int, body: str) -> None:
        """Post a comment on a PR."""
        ...

    @abstractmethod
    def close_pr(self, repo_root: Path, number: int) -> None:
        """Close a PR without merging."""
        ...

    @abstractmethod
    def merge_pr(self, repo_root: Path, number: int, method: MergeMethod) -> None:
        """Merge a PR.

        Args:
            repo_root: Repository root directory
            number: PR number to merge
            method: "squash" collapses the PR into one commit, "rebase" keeps
                its commits
        """
        ...
