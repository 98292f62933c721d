"""Dry-run wrapper for GitHub operations."""

from pathlib import Path

from stackpr.cli.output import user_output
from stackpr.core.github.abc import GitHub
from stackpr.core.github.types import MergeMethod, PullRequest, PullRequestStatus

# Number handed back by create_pr when nothing was created
DRY_RUN_PR_NUMBER = -1


class DryRunGitHub(GitHub):
    """Dry-run wrapper for GitHub operations.

    Read operations are delegated to the wrapped implementation.
    Write operations print what would run and return without executing.
    """

    def __init__(self, wrapped: GitHub) -> None:
        """Initialize dry-run wrapper with a real implementation.

        Args:
            wrapped: The real GitHub operations implementation to wrap
        """
        self._wrapped = wrapped

    def get_open_pr_for_head(self, repo_root: Path, head: str) -> PullRequest | None:
        return self._wrapped.get_open_pr_for_head(repo_root, head)

    def get_pr(self, repo_root: Path, number: int) -> PullRequest | None:
        return self._wrapped.get_pr(repo_root, number)

    def list_open_pr_heads(self, repo_root: Path) -> set[str]:
        return self._wrapped.list_open_pr_heads(repo_root)

    def get_pr_status(self, repo_root: Path, number: int) -> PullRequestStatus:
        return self._wrapped.get_pr_status(repo_root, number)

    def list_comment_bodies(self, repo_root: Path, number: int) -> list[str]:
        return self._wrapped.list_comment_bodies(repo_root, number)

    def create_pr(self, repo_root: Path, *, head: str, base: str, title: str, body: str) -> int:
        user_output(
            f"[DRY RUN] Would run: gh pr create --head {head} --base {base} --title {title!r}"
        )
        return DRY_RUN_PR_NUMBER

    def update_pr_base(self, repo_root: Path, number: int, base: str) -> None:
        user_output(f"[DRY RUN] Would run: gh pr edit {number} --base {base}")

    def update_pr_body(self, repo_root: Path, number: int, body: str) -> None:
        user_output(f"[DRY RUN] Would run: gh pr edit {number} --body-file -")

    def add_comment(self, repo_root: Path, number: int, body: str) -> None:
        user_output(f"[DRY RUN] Would run: gh pr comment {number} --body {body!r}")

    def close_pr(self, repo_root: Path, number: int) -> None:
        user_output(f"[DRY RUN] Would run: gh pr close {number}")

    def merge_pr(self, repo_root: Path, number: int, method: MergeMethod) -> None:
        user_output(f"[DRY RUN] Would run: gh pr merge {number} --{method}")
