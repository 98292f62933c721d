"""Production Git implementation using subprocess.

This module provides the real Git implementation that executes actual git
commands via subprocess.
"""

from pathlib import Path

from stackpr.core.git.abc import CommitRecord, Git, ReplayOutcome
from stackpr.core.subprocess import run_subprocess_with_context

# Record and field separators for `git log` parsing
_RS = "\x1e"
_FS = "\x00"
LOG_FORMAT = "%H%x00%P%x00%B%x1e"


def parse_log_records(raw: str) -> list[CommitRecord]:
    """Parse `git log --format=%H%x00%P%x00%B%x1e` output into records."""
    records: list[CommitRecord] = []
    for chunk in raw.split(_RS):
        chunk = chunk.lstrip("\n")
        if not chunk.strip():
            continue
        parts = chunk.split(_FS, 2)
        if len(parts) != 3:
            continue
        sha, parents, message = parts
        parent_list = parents.split()
        records.append(
            CommitRecord(
                sha=sha.strip(),
                parent=parent_list[0] if parent_list else None,
                message=message.rstrip("\n"),
            )
        )
    return records


# ============================================================================
# Production Implementation
# ============================================================================


class RealGit(Git):
    """Production implementation using subprocess.

    All git operations execute actual git commands via subprocess.
    """

    def get_repo_root(self, cwd: Path) -> Path | None:
        result = run_subprocess_with_context(
            ["git", "rev-parse", "--show-toplevel"],
            operation_context="find repository root",
            cwd=cwd,
            check=False,
        )
        if result.returncode != 0:
            return None
        return Path(result.stdout.strip())

    def get_current_branch(self, cwd: Path) -> str | None:
        result = run_subprocess_with_context(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            operation_context="get current branch",
            cwd=cwd,
            check=False,
        )
        if result.returncode != 0:
            return None

        branch = result.stdout.strip()
        if branch == "HEAD":
            return None
        return branch

    def resolve_ref(self, repo_root: Path, ref: str) -> str | None:
        result = run_subprocess_with_context(
            ["git", "rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"],
            operation_context=f"resolve ref '{ref}'",
            cwd=repo_root,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def get_merge_base(self, repo_root: Path, ref_a: str, ref_b: str) -> str | None:
        result = run_subprocess_with_context(
            ["git", "merge-base", ref_a, ref_b],
            operation_context=f"find merge base of '{ref_a}' and '{ref_b}'",
            cwd=repo_root,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def list_commits(self, repo_root: Path, start: str, end: str) -> list[CommitRecord]:
        result = run_subprocess_with_context(
            ["git", "log", f"--format={LOG_FORMAT}", "--reverse", f"{start}..{end}"],
            operation_context=f"list commits in {start}..{end}",
            cwd=repo_root,
        )
        return parse_log_records(result.stdout)

    def get_commit_message(self, repo_root: Path, sha: str) -> str | None:
        result = run_subprocess_with_context(
            ["git", "log", "-n", "1", "--format=%B", sha],
            operation_context=f"read message of {sha}",
            cwd=repo_root,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.rstrip("\n")

    def get_tree(self, repo_root: Path, ref: str) -> str:
        result = run_subprocess_with_context(
            ["git", "rev-parse", f"{ref}^{{tree}}"],
            operation_context=f"resolve tree of {ref}",
            cwd=repo_root,
        )
        return result.stdout.strip()

    def count_commits(self, repo_root: Path, base_ref: str, head_ref: str) -> int:
        result = run_subprocess_with_context(
            ["git", "rev-list", "--count", f"{base_ref}..{head_ref}"],
            operation_context=f"count commits in {base_ref}..{head_ref}",
            cwd=repo_root,
        )
        return int(result.stdout.strip() or "0")

    def is_ancestor(self, repo_root: Path, ancestor: str, descendant: str) -> bool:
        result = run_subprocess_with_context(
            ["git", "merge-base", "--is-ancestor", ancestor, descendant],
            operation_context=f"check whether {ancestor} is an ancestor of {descendant}",
            cwd=repo_root,
            check=False,
        )
        if result.returncode in (0, 1):
            return result.returncode == 0
        msg = f"Failed to compare {ancestor} and {descendant}: {result.stderr.strip()}"
        raise RuntimeError(msg)

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        result = run_subprocess_with_context(
            ["git", "status", "--porcelain"],
            operation_context="check for uncommitted changes",
            cwd=cwd,
        )
        return bool(result.stdout.strip())

    def get_remote_default_branch(self, repo_root: Path) -> str | None:
        result = run_subprocess_with_context(
            ["git", "symbolic-ref", "--short", "refs/remotes/origin/HEAD"],
            operation_context="detect remote default branch",
            cwd=repo_root,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def get_remote_branch_heads(self, repo_root: Path, branches: list[str]) -> dict[str, str]:
        if not branches:
            return {}
        result = run_subprocess_with_context(
            ["git", "ls-remote", "--heads", "origin", *branches],
            operation_context="read remote branch heads",
            cwd=repo_root,
        )
        wanted = set(branches)
        heads: dict[str, str] = {}
        for line in result.stdout.splitlines():
            sha, _, ref = line.partition("\t")
            name = ref.removeprefix("refs/heads/")
            if name in wanted:
                heads[name] = sha.strip()
        return heads

    def list_remote_branches_with_prefix(self, repo_root: Path, prefix: str) -> list[str]:
        result = run_subprocess_with_context(
            ["git", "ls-remote", "--heads", "origin"],
            operation_context="list remote branches",
            cwd=repo_root,
        )
        names: list[str] = []
        for line in result.stdout.splitlines():
            _, _, ref = line.partition("\t")
            name = ref.removeprefix("refs/heads/")
            if name.startswith(prefix):
                names.append(name)
        return names

    def path_exists(self, path: Path) -> bool:
        return path.exists()

    def read_ref_blob(self, repo_root: Path, ref: str) -> str | None:
        result = run_subprocess_with_context(
            ["git", "cat-file", "-p", ref],
            operation_context=f"read {ref}",
            cwd=repo_root,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout

    def is_cherry_pick_in_progress(self, workspace: Path) -> bool:
        result = run_subprocess_with_context(
            ["git", "rev-parse", "--verify", "--quiet", "CHERRY_PICK_HEAD"],
            operation_context="check for in-progress cherry-pick",
            cwd=workspace,
            check=False,
        )
        return result.returncode == 0

    def get_workspace_head(self, workspace: Path) -> str:
        result = run_subprocess_with_context(
            ["git", "rev-parse", "HEAD"],
            operation_context=f"read HEAD of {workspace}",
            cwd=workspace,
        )
        return result.stdout.strip()

    def add_scratch_workspace(
        self, repo_root: Path, path: Path, branch: str, start_point: str
    ) -> None:
        run_subprocess_with_context(
            ["git", "worktree", "add", "-f", "-B", branch, str(path), start_point],
            operation_context=f"create scratch worktree at {path}",
            cwd=repo_root,
        )

    def remove_scratch_workspace(self, repo_root: Path, path: Path, branch: str) -> None:
        run_subprocess_with_context(
            ["git", "worktree", "remove", "-f", str(path)],
            operation_context=f"remove scratch worktree at {path}",
            cwd=repo_root,
        )
        run_subprocess_with_context(
            ["git", "branch", "-D", branch],
            operation_context=f"delete scratch branch {branch}",
            cwd=repo_root,
        )

    def _unmerged_paths(self, workspace: Path) -> tuple[str, ...]:
        result = run_subprocess_with_context(
            ["git", "diff", "--name-only", "--diff-filter=U"],
            operation_context="list conflicted paths",
            cwd=workspace,
        )
        return tuple(line for line in result.stdout.splitlines() if line.strip())

    def cherry_pick(self, workspace: Path, sha: str) -> ReplayOutcome:
        result = run_subprocess_with_context(
            ["git", "cherry-pick", "--allow-empty", "--keep-redundant-commits", sha],
            operation_context=f"cherry-pick {sha}",
            cwd=workspace,
            check=False,
        )
        if result.returncode == 0:
            return ReplayOutcome(sha=self.get_workspace_head(workspace))

        if not self.is_cherry_pick_in_progress(workspace):
            msg = f"Failed to cherry-pick {sha} in {workspace}: {result.stderr.strip()}"
            raise RuntimeError(msg)
        return ReplayOutcome(sha=None, conflicted_paths=self._unmerged_paths(workspace))

    def continue_cherry_pick(self, workspace: Path) -> ReplayOutcome:
        result = run_subprocess_with_context(
            ["git", "-c", "core.editor=true", "cherry-pick", "--continue"],
            operation_context="continue cherry-pick",
            cwd=workspace,
            check=False,
        )
        if result.returncode == 0:
            return ReplayOutcome(sha=self.get_workspace_head(workspace))
        return ReplayOutcome(sha=None, conflicted_paths=self._unmerged_paths(workspace))

    def abort_cherry_pick(self, workspace: Path) -> None:
        run_subprocess_with_context(
            ["git", "cherry-pick", "--abort"],
            operation_context="abort cherry-pick",
            cwd=workspace,
        )

    def commit_tree(self, repo_root: Path, tree: str, parent: str, message: str) -> str:
        result = run_subprocess_with_context(
            ["git", "commit-tree", tree, "-p", parent, "-F", "-"],
            operation_context=f"create commit from tree {tree}",
            cwd=repo_root,
            input_text=message,
        )
        return result.stdout.strip()

    def reset_workspace(self, workspace: Path, sha: str) -> None:
        run_subprocess_with_context(
            ["git", "reset", "--hard", sha],
            operation_context=f"reset scratch worktree to {sha}",
            cwd=workspace,
        )

    def fetch(self, repo_root: Path, remote: str) -> None:
        run_subprocess_with_context(
            ["git", "fetch", remote],
            operation_context=f"fetch {remote}",
            cwd=repo_root,
        )

    def force_branch(self, repo_root: Path, branch: str, target: str) -> None:
        run_subprocess_with_context(
            ["git", "branch", "-f", branch, target],
            operation_context=f"point branch {branch} at {target}",
            cwd=repo_root,
        )

    def move_branch(self, cwd: Path, branch: str, new_sha: str, expected_sha: str) -> None:
        run_subprocess_with_context(
            [
                "git",
                "update-ref",
                "-m",
                "stackpr: rewrite stack",
                f"refs/heads/{branch}",
                new_sha,
                expected_sha,
            ],
            operation_context=f"move branch {branch} from {expected_sha[:8]} to {new_sha[:8]}",
            cwd=cwd,
        )
        # HEAD follows the ref; bring index and working tree along
        run_subprocess_with_context(
            ["git", "reset", "--hard", "HEAD"],
            operation_context=f"sync working tree to {new_sha[:8]}",
            cwd=cwd,
        )

    def write_ref_blob(self, repo_root: Path, ref: str, content: str) -> None:
        result = run_subprocess_with_context(
            ["git", "hash-object", "-w", "--stdin"],
            operation_context=f"store {ref}",
            cwd=repo_root,
            input_text=content,
        )
        run_subprocess_with_context(
            ["git", "update-ref", ref, result.stdout.strip()],
            operation_context=f"update {ref}",
            cwd=repo_root,
        )

    def delete_ref(self, repo_root: Path, ref: str) -> None:
        run_subprocess_with_context(
            ["git", "update-ref", "-d", ref],
            operation_context=f"delete {ref}",
            cwd=repo_root,
        )

    def push_branches(
        self,
        repo_root: Path,
        refspecs: list[str],
        *,
        leases: dict[str, str] | None = None,
    ) -> None:
        if not refspecs:
            return
        cmd = ["git", "push", "origin"]
        if leases is not None:
            if leases:
                cmd.extend(
                    f"--force-with-lease=refs/heads/{branch}:{sha}"
                    for branch, sha in sorted(leases.items())
                )
            else:
                cmd.append("--force-with-lease")
        cmd.extend(refspecs)
        run_subprocess_with_context(
            cmd,
            operation_context=f"push {len(refspecs)} branch(es)",
            cwd=repo_root,
        )

    def delete_remote_branches(self, repo_root: Path, branches: list[str]) -> None:
        if not branches:
            return
        run_subprocess_with_context(
            ["git", "push", "origin", "--delete", *branches],
            operation_context=f"delete {len(branches)} remote branch(es)",
            cwd=repo_root,
        )
