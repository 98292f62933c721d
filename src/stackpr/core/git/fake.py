"""Fake Git operations for testing.

FakeGit is an in-memory commit graph that accepts pre-configured state in its
constructor. Construct instances directly with keyword arguments.

Commits carry full file snapshots so that cherry-picks can be merged
three-way. SHAs are derived from (parent, message, tree), which makes
replaying the same commit onto the same parent reproducible.
"""

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from stackpr.core.git.abc import CommitRecord, Git, ReplayOutcome


def _tree_id(files: Mapping[str, str]) -> str:
    payload = "\0".join(f"{path}\0{content}" for path, content in sorted(files.items()))
    return hashlib.sha1(("tree\0" + payload).encode()).hexdigest()


def _commit_id(parent: str | None, message: str, tree: str) -> str:
    payload = f"commit\0{parent or ''}\0{tree}\0{message}"
    return hashlib.sha1(payload.encode()).hexdigest()


@dataclass(frozen=True)
class FakeCommit:
    """A commit in the fake graph. `files` is the full snapshot, not a diff."""

    sha: str
    parent: str | None
    message: str
    files: Mapping[str, str] = field(default_factory=dict)

    @property
    def tree(self) -> str:
        return _tree_id(self.files)


def make_commit(
    parent: FakeCommit | None,
    message: str,
    changes: Mapping[str, str | None] | None = None,
) -> FakeCommit:
    """Create a commit on top of parent, applying changes to its snapshot.

    A change whose value is None deletes the path.
    """
    files = dict(parent.files) if parent is not None else {}
    for path, content in (changes or {}).items():
        if content is None:
            files.pop(path, None)
        else:
            files[path] = content
    parent_sha = parent.sha if parent is not None else None
    return FakeCommit(
        sha=_commit_id(parent_sha, message, _tree_id(files)),
        parent=parent_sha,
        message=message,
        files=files,
    )


def linear_history(
    base: FakeCommit, entries: list[tuple[str, Mapping[str, str | None]]]
) -> list[FakeCommit]:
    """Build a chain of commits on top of base from (message, changes) pairs."""
    chain: list[FakeCommit] = []
    parent = base
    for message, changes in entries:
        commit = make_commit(parent, message, changes)
        chain.append(commit)
        parent = commit
    return chain


@dataclass
class _PendingPick:
    sha: str
    files: dict[str, str]
    conflicted: tuple[str, ...]


@dataclass
class _Workspace:
    branch: str
    head: str
    pending: _PendingPick | None = None


class FakeGit(Git):
    """In-memory fake implementation of git operations.

    This class has NO public setup methods. All state is provided via constructor
    using keyword arguments with sensible defaults.
    """

    def __init__(
        self,
        *,
        commits: list[FakeCommit] | None = None,
        branches: dict[str, str] | None = None,
        current_branch: str | None = "main",
        repo_root: Path | None = None,
        remote_branches: dict[str, str] | None = None,
        remote_default_branch: str | None = None,
        uncommitted_changes: bool = False,
        conflict_resolutions: dict[str, dict[str, str]] | None = None,
        failing_cleanup: bool = False,
        ref_blobs: dict[str, str] | None = None,
        push_failures: int = 0,
        failing_picks: set[str] | None = None,
        failing_branch_moves: bool = False,
    ) -> None:
        """Create FakeGit with pre-configured state.

        Args:
            commits: Every commit reachable in the fake repository
            branches: Mapping of ref name -> sha. Remote-tracking refs use the
                'origin/<name>' form.
            current_branch: Checked-out branch (None for detached HEAD)
            repo_root: Path returned as the repository root
            remote_branches: Mapping of branch name -> sha on origin. When
                given, fetch() refreshes the 'origin/<name>' refs from it.
            remote_default_branch: Value of refs/remotes/origin/HEAD
            uncommitted_changes: Whether the main working tree is dirty
            conflict_resolutions: Mapping of picked sha -> resolved file
                contents, applied when a stopped cherry-pick is continued
            failing_cleanup: Make scratch workspace removal raise
            ref_blobs: Pre-existing ref -> blob text entries
            push_failures: Number of pushes (deletions included) that fail before succeeding
            failing_picks: SHAs whose cherry-pick fails outright (not a conflict)
            failing_branch_moves: Make every move_branch() raise
        """
        self._commits: dict[str, FakeCommit] = {c.sha: c for c in commits or []}
        self._trees: dict[str, dict[str, str]] = {
            c.tree: dict(c.files) for c in self._commits.values()
        }
        self._branches = dict(branches or {})
        self._current_branch = current_branch
        self._repo_root = repo_root if repo_root is not None else Path("/repo")
        self._remote_branches = dict(remote_branches or {})
        self._remote_default_branch = remote_default_branch
        self._uncommitted_changes = uncommitted_changes
        self._conflict_resolutions = conflict_resolutions or {}
        self._failing_cleanup = failing_cleanup
        self._ref_blobs = dict(ref_blobs or {})
        self._push_failures = push_failures
        self._failing_picks = failing_picks or set()
        self._failing_branch_moves = failing_branch_moves
        self._workspaces: dict[Path, _Workspace] = {}

        self._fetch_calls: list[str] = []
        self._forced_branches: list[tuple[str, str]] = []
        self._moved_branches: list[tuple[str, str, str]] = []
        self._pushes: list[tuple[tuple[str, ...], dict[str, str] | None]] = []
        self._deleted_remote_branches: list[str] = []
        self._created_workspaces: list[tuple[Path, str]] = []
        self._removed_workspaces: list[Path] = []
        self._cherry_picks: list[str] = []

    # Tracking properties

    @property
    def fetch_calls(self) -> list[str]:
        """Remotes passed to fetch()."""
        return self._fetch_calls

    @property
    def forced_branches(self) -> list[tuple[str, str]]:
        """(branch, sha) pairs set via force_branch()."""
        return self._forced_branches

    @property
    def moved_branches(self) -> list[tuple[str, str, str]]:
        """(branch, new_sha, expected_sha) for each successful move_branch()."""
        return self._moved_branches

    @property
    def pushes(self) -> list[tuple[tuple[str, ...], dict[str, str] | None]]:
        """(refspecs, leases) for each successful push_branches() call."""
        return self._pushes

    @property
    def deleted_remote_branches(self) -> list[str]:
        return self._deleted_remote_branches

    @property
    def created_workspaces(self) -> list[tuple[Path, str]]:
        """(path, branch) for each scratch workspace created."""
        return self._created_workspaces

    @property
    def removed_workspaces(self) -> list[Path]:
        return self._removed_workspaces

    @property
    def active_workspaces(self) -> list[Path]:
        """Scratch workspaces that still exist."""
        return list(self._workspaces)

    @property
    def cherry_picks(self) -> list[str]:
        """SHAs passed to cherry_pick(), in call order."""
        return self._cherry_picks

    @property
    def ref_blobs(self) -> dict[str, str]:
        return dict(self._ref_blobs)

    @property
    def remote_branches(self) -> dict[str, str]:
        return dict(self._remote_branches)

    def branch_head(self, branch: str) -> str | None:
        """Current sha of a local ref, for test assertions."""
        return self._branches.get(branch)

    def files_at(self, ref: str) -> dict[str, str]:
        """File snapshot of a commit, for test assertions."""
        sha = self.resolve_ref(self._repo_root, ref)
        if sha is None:
            msg = f"Unknown ref: {ref}"
            raise ValueError(msg)
        return dict(self._commits[sha].files)

    def messages_between(self, start: str, end: str) -> list[str]:
        """Commit messages in start..end, oldest first, for test assertions."""
        return [r.message for r in self.list_commits(self._repo_root, start, end)]

    # Internal graph helpers

    def _ancestors(self, sha: str) -> list[str]:
        chain: list[str] = []
        current: str | None = sha
        while current is not None:
            chain.append(current)
            current = self._commits[current].parent
        return chain

    def _require(self, ref: str) -> str:
        sha = self.resolve_ref(self._repo_root, ref)
        if sha is None:
            msg = f"Unknown ref: {ref}"
            raise RuntimeError(msg)
        return sha

    def _add_commit(self, parent: str | None, message: str, files: dict[str, str]) -> str:
        tree = _tree_id(files)
        self._trees[tree] = dict(files)
        sha = _commit_id(parent, message, tree)
        self._commits[sha] = FakeCommit(sha=sha, parent=parent, message=message, files=files)
        return sha

    def _workspace(self, path: Path) -> _Workspace:
        workspace = self._workspaces.get(path)
        if workspace is None:
            msg = f"Not a worktree: {path}"
            raise RuntimeError(msg)
        return workspace

    # Read-only operations

    def get_repo_root(self, cwd: Path) -> Path | None:
        return self._repo_root

    def get_current_branch(self, cwd: Path) -> str | None:
        workspace = self._workspaces.get(cwd)
        if workspace is not None:
            return workspace.branch
        return self._current_branch

    def resolve_ref(self, repo_root: Path, ref: str) -> str | None:
        if ref == "HEAD":
            if self._current_branch is None:
                return None
            return self._branches.get(self._current_branch)
        name = ref.removeprefix("refs/heads/").removeprefix("refs/remotes/")
        if name in self._branches:
            return self._branches[name]
        if ref in self._commits:
            return ref
        matches = [sha for sha in self._commits if len(ref) >= 4 and sha.startswith(ref)]
        if len(matches) == 1:
            return matches[0]
        return None

    def get_merge_base(self, repo_root: Path, ref_a: str, ref_b: str) -> str | None:
        sha_a = self.resolve_ref(repo_root, ref_a)
        sha_b = self.resolve_ref(repo_root, ref_b)
        if sha_a is None or sha_b is None:
            return None
        seen = set(self._ancestors(sha_a))
        for sha in self._ancestors(sha_b):
            if sha in seen:
                return sha
        return None

    def list_commits(self, repo_root: Path, start: str, end: str) -> list[CommitRecord]:
        start_sha = self._require(start)
        end_sha = self._require(end)
        excluded = set(self._ancestors(start_sha))
        records: list[CommitRecord] = []
        for sha in self._ancestors(end_sha):
            if sha in excluded:
                break
            commit = self._commits[sha]
            records.append(CommitRecord(sha=sha, parent=commit.parent, message=commit.message))
        records.reverse()
        return records

    def get_commit_message(self, repo_root: Path, sha: str) -> str | None:
        resolved = self.resolve_ref(repo_root, sha)
        if resolved is None:
            return None
        return self._commits[resolved].message

    def get_tree(self, repo_root: Path, ref: str) -> str:
        return self._commits[self._require(ref)].tree

    def count_commits(self, repo_root: Path, base_ref: str, head_ref: str) -> int:
        return len(self.list_commits(repo_root, base_ref, head_ref))

    def is_ancestor(self, repo_root: Path, ancestor: str, descendant: str) -> bool:
        return self._require(ancestor) in self._ancestors(self._require(descendant))

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        if cwd in self._workspaces:
            return False
        return self._uncommitted_changes

    def get_remote_default_branch(self, repo_root: Path) -> str | None:
        return self._remote_default_branch

    def get_remote_branch_heads(self, repo_root: Path, branches: list[str]) -> dict[str, str]:
        return {b: self._remote_branches[b] for b in branches if b in self._remote_branches}

    def list_remote_branches_with_prefix(self, repo_root: Path, prefix: str) -> list[str]:
        return sorted(b for b in self._remote_branches if b.startswith(prefix))

    def path_exists(self, path: Path) -> bool:
        return path in self._workspaces

    def read_ref_blob(self, repo_root: Path, ref: str) -> str | None:
        return self._ref_blobs.get(ref)

    def is_cherry_pick_in_progress(self, workspace: Path) -> bool:
        return self._workspace(workspace).pending is not None

    def get_workspace_head(self, workspace: Path) -> str:
        return self._workspace(workspace).head

    # Scratch workspace operations

    def add_scratch_workspace(
        self, repo_root: Path, path: Path, branch: str, start_point: str
    ) -> None:
        sha = self._require(start_point)
        self._workspaces[path] = _Workspace(branch=branch, head=sha)
        self._branches[branch] = sha
        self._created_workspaces.append((path, branch))

    def remove_scratch_workspace(self, repo_root: Path, path: Path, branch: str) -> None:
        if self._failing_cleanup:
            msg = f"Failed to remove scratch worktree at {path}"
            raise RuntimeError(msg)
        self._workspaces.pop(path, None)
        self._branches.pop(branch, None)
        self._removed_workspaces.append(path)

    def cherry_pick(self, workspace: Path, sha: str) -> ReplayOutcome:
        ws = self._workspace(workspace)
        if ws.pending is not None:
            msg = f"Cherry-pick already in progress in {workspace}"
            raise RuntimeError(msg)
        self._cherry_picks.append(sha)
        if sha in self._failing_picks:
            msg = f"Failed to cherry-pick {sha[:8]}: fatal: bad object"
            raise RuntimeError(msg)

        picked = self._commits[self._require(sha)]
        base = self._commits[picked.parent].files if picked.parent is not None else {}
        theirs = picked.files
        ours = self._commits[ws.head].files

        merged: dict[str, str] = {}
        conflicted: list[str] = []
        for path in sorted(set(base) | set(theirs) | set(ours)):
            b, t, o = base.get(path), theirs.get(path), ours.get(path)
            if t == b:
                result = o
            elif o == b or o == t:
                result = t
            else:
                conflicted.append(path)
                result = o
            if result is not None:
                merged[path] = result

        if conflicted:
            ws.pending = _PendingPick(sha=picked.sha, files=merged, conflicted=tuple(conflicted))
            return ReplayOutcome(sha=None, conflicted_paths=tuple(conflicted))

        ws.head = self._add_commit(ws.head, picked.message, merged)
        self._branches[ws.branch] = ws.head
        return ReplayOutcome(sha=ws.head)

    def continue_cherry_pick(self, workspace: Path) -> ReplayOutcome:
        ws = self._workspace(workspace)
        pending = ws.pending
        if pending is None:
            msg = f"No cherry-pick in progress in {workspace}"
            raise RuntimeError(msg)

        resolution = self._conflict_resolutions.get(pending.sha, {})
        unresolved = tuple(path for path in pending.conflicted if path not in resolution)
        if unresolved:
            return ReplayOutcome(sha=None, conflicted_paths=unresolved)

        files = dict(pending.files)
        files.update(resolution)
        message = self._commits[pending.sha].message
        ws.head = self._add_commit(ws.head, message, files)
        ws.pending = None
        self._branches[ws.branch] = ws.head
        return ReplayOutcome(sha=ws.head)

    def abort_cherry_pick(self, workspace: Path) -> None:
        ws = self._workspace(workspace)
        if ws.pending is None:
            msg = f"No cherry-pick in progress in {workspace}"
            raise RuntimeError(msg)
        ws.pending = None

    def commit_tree(self, repo_root: Path, tree: str, parent: str, message: str) -> str:
        files = self._trees.get(tree)
        if files is None:
            msg = f"Unknown tree: {tree}"
            raise RuntimeError(msg)
        return self._add_commit(self._require(parent), message, dict(files))

    def reset_workspace(self, workspace: Path, sha: str) -> None:
        ws = self._workspace(workspace)
        ws.head = self._require(sha)
        ws.pending = None
        self._branches[ws.branch] = ws.head

    # Mutating operations

    def fetch(self, repo_root: Path, remote: str) -> None:
        self._fetch_calls.append(remote)
        for name, sha in self._remote_branches.items():
            self._branches[f"{remote}/{name}"] = sha

    def force_branch(self, repo_root: Path, branch: str, target: str) -> None:
        sha = self._require(target)
        self._branches[branch] = sha
        self._forced_branches.append((branch, sha))

    def move_branch(self, cwd: Path, branch: str, new_sha: str, expected_sha: str) -> None:
        if self._failing_branch_moves:
            msg = f"Failed to move branch {branch}: cannot lock ref"
            raise RuntimeError(msg)
        if self._branches.get(branch) != expected_sha:
            msg = f"Failed to move branch {branch}: ref changed since {expected_sha[:8]}"
            raise RuntimeError(msg)
        self._branches[branch] = self._require(new_sha)
        self._moved_branches.append((branch, new_sha, expected_sha))

    def write_ref_blob(self, repo_root: Path, ref: str, content: str) -> None:
        self._ref_blobs[ref] = content

    def delete_ref(self, repo_root: Path, ref: str) -> None:
        self._ref_blobs.pop(ref, None)

    def push_branches(
        self,
        repo_root: Path,
        refspecs: list[str],
        *,
        leases: dict[str, str] | None = None,
    ) -> None:
        if not refspecs:
            return
        if self._push_failures > 0:
            self._push_failures -= 1
            msg = "Failed to push: remote unavailable"
            raise RuntimeError(msg)
        for branch, expected in (leases or {}).items():
            if self._remote_branches.get(branch) != expected:
                msg = f"Failed to push {branch}: stale info (force-with-lease)"
                raise RuntimeError(msg)
        for refspec in refspecs:
            source, _, dest = refspec.partition(":")
            branch = dest.removeprefix("refs/heads/")
            sha = self._require(source)
            self._remote_branches[branch] = sha
            self._branches[f"origin/{branch}"] = sha
        self._pushes.append((tuple(refspecs), dict(leases) if leases is not None else None))

    def delete_remote_branches(self, repo_root: Path, branches: list[str]) -> None:
        if self._push_failures > 0:
            self._push_failures -= 1
            msg = "Failed to push: remote rejected deletion"
            raise RuntimeError(msg)
        for branch in branches:
            self._remote_branches.pop(branch, None)
            self._branches.pop(f"origin/{branch}", None)
            self._deleted_remote_branches.append(branch)
