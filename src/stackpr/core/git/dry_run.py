"""Dry-run Git wrapper.

Read operations and scratch-workspace steps are delegated to the wrapped
implementation: they only create objects and throwaway worktrees, and later
steps need their results (e.g. a rebuilt tip) to stay realistic. Everything
that would move a user-visible ref or talk to the remote is printed instead.
"""

from pathlib import Path

from stackpr.cli.output import user_output
from stackpr.core.git.abc import CommitRecord, Git, ReplayOutcome

# ============================================================================
# Dry-run Wrapper
# ============================================================================


class DryRunGit(Git):
    """Wrapper that prints mutating git operations instead of executing them.

    Usage:
        real_ops = RealGit()
        dry_ops = DryRunGit(real_ops)

        # Prints "[DRY RUN] Would run: git push origin ..." and returns
        dry_ops.push_branches(repo_root, ["abc:refs/heads/feature"])
    """

    def __init__(self, wrapped: Git) -> None:
        """Create a dry-run wrapper around a Git implementation.

        Args:
            wrapped: The Git implementation to wrap (usually RealGit or FakeGit)
        """
        self._wrapped = wrapped

    # Read-only operations: delegate to wrapped implementation

    def get_repo_root(self, cwd: Path) -> Path | None:
        return self._wrapped.get_repo_root(cwd)

    def get_current_branch(self, cwd: Path) -> str | None:
        return self._wrapped.get_current_branch(cwd)

    def resolve_ref(self, repo_root: Path, ref: str) -> str | None:
        return self._wrapped.resolve_ref(repo_root, ref)

    def get_merge_base(self, repo_root: Path, ref_a: str, ref_b: str) -> str | None:
        return self._wrapped.get_merge_base(repo_root, ref_a, ref_b)

    def list_commits(self, repo_root: Path, start: str, end: str) -> list[CommitRecord]:
        return self._wrapped.list_commits(repo_root, start, end)

    def get_commit_message(self, repo_root: Path, sha: str) -> str | None:
        return self._wrapped.get_commit_message(repo_root, sha)

    def get_tree(self, repo_root: Path, ref: str) -> str:
        return self._wrapped.get_tree(repo_root, ref)

    def count_commits(self, repo_root: Path, base_ref: str, head_ref: str) -> int:
        return self._wrapped.count_commits(repo_root, base_ref, head_ref)

    def is_ancestor(self, repo_root: Path, ancestor: str, descendant: str) -> bool:
        return self._wrapped.is_ancestor(repo_root, ancestor, descendant)

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        return self._wrapped.has_uncommitted_changes(cwd)

    def get_remote_default_branch(self, repo_root: Path) -> str | None:
        return self._wrapped.get_remote_default_branch(repo_root)

    def get_remote_branch_heads(self, repo_root: Path, branches: list[str]) -> dict[str, str]:
        return self._wrapped.get_remote_branch_heads(repo_root, branches)

    def list_remote_branches_with_prefix(self, repo_root: Path, prefix: str) -> list[str]:
        return self._wrapped.list_remote_branches_with_prefix(repo_root, prefix)

    def path_exists(self, path: Path) -> bool:
        return self._wrapped.path_exists(path)

    def read_ref_blob(self, repo_root: Path, ref: str) -> str | None:
        return self._wrapped.read_ref_blob(repo_root, ref)

    def is_cherry_pick_in_progress(self, workspace: Path) -> bool:
        return self._wrapped.is_cherry_pick_in_progress(workspace)

    def get_workspace_head(self, workspace: Path) -> str:
        return self._wrapped.get_workspace_head(workspace)

    # Scratch workspace operations: local only, still executed

    def add_scratch_workspace(
        self, repo_root: Path, path: Path, branch: str, start_point: str
    ) -> None:
        self._wrapped.add_scratch_workspace(repo_root, path, branch, start_point)

    def remove_scratch_workspace(self, repo_root: Path, path: Path, branch: str) -> None:
        self._wrapped.remove_scratch_workspace(repo_root, path, branch)

    def cherry_pick(self, workspace: Path, sha: str) -> ReplayOutcome:
        return self._wrapped.cherry_pick(workspace, sha)

    def continue_cherry_pick(self, workspace: Path) -> ReplayOutcome:
        return self._wrapped.continue_cherry_pick(workspace)

    def abort_cherry_pick(self, workspace: Path) -> None:
        self._wrapped.abort_cherry_pick(workspace)

    def commit_tree(self, repo_root: Path, tree: str, parent: str, message: str) -> str:
        return self._wrapped.commit_tree(repo_root, tree, parent, message)

    def reset_workspace(self, workspace: Path, sha: str) -> None:
        self._wrapped.reset_workspace(workspace, sha)

    # Destructive operations: print dry-run message instead of executing

    def fetch(self, repo_root: Path, remote: str) -> None:
        user_output(f"[DRY RUN] Would run: git fetch {remote}")

    def force_branch(self, repo_root: Path, branch: str, target: str) -> None:
        user_output(f"[DRY RUN] Would run: git branch -f {branch} {target}")

    def move_branch(self, cwd: Path, branch: str, new_sha: str, expected_sha: str) -> None:
        user_output(
            f"[DRY RUN] Would run: git update-ref refs/heads/{branch} {new_sha} {expected_sha}"
        )

    def write_ref_blob(self, repo_root: Path, ref: str, content: str) -> None:
        user_output(f"[DRY RUN] Would record {ref}")

    def delete_ref(self, repo_root: Path, ref: str) -> None:
        user_output(f"[DRY RUN] Would run: git update-ref -d {ref}")

    def push_branches(
        self,
        repo_root: Path,
        refspecs: list[str],
        *,
        leases: dict[str, str] | None = None,
    ) -> None:
        if not refspecs:
            return
        flags = ""
        if leases is not None:
            flags = "--force-with-lease "
        user_output(f"[DRY RUN] Would run: git push origin {flags}{' '.join(refspecs)}")

    def delete_remote_branches(self, repo_root: Path, branches: list[str]) -> None:
        if not branches:
            return
        user_output(f"[DRY RUN] Would run: git push origin --delete {' '.join(branches)}")
