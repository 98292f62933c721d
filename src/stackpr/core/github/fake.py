"""Fake GitHub operations for testing.

FakeGitHub is an in-memory implementation that accepts pre-configured state
in its constructor. Construct instances directly with keyword arguments.
"""

from dataclasses import replace
from pathlib import Path

from stackpr.core.github.abc import GitHub
from stackpr.core.github.types import MergeMethod, PullRequest, PullRequestStatus


def make_pr(
    number: int,
    head: str,
    base: str,
    *,
    title: str = "",
    body: str = "",
    state: str = "OPEN",
) -> PullRequest:
    """Build a PullRequest with a canonical fake URL."""
    return PullRequest(
        number=number,
        head=head,
        base=base,
        title=title or head,
        body=body,
        state=state,  # type: ignore[arg-type]
        url=f"https://github.com/owner/repo/pull/{number}",
    )


class FakeGitHub(GitHub):
    """In-memory fake implementation of GitHub operations.

    This class has NO public setup methods. All state is provided via constructor
    using keyword arguments with sensible defaults (empty dicts).

    Failure injection keys have the form "<method>:<number>", e.g.
    "merge_pr:3" or "update_pr_base:2".
    """

    def __init__(
        self,
        *,
        prs: list[PullRequest] | None = None,
        statuses: dict[int, PullRequestStatus] | None = None,
        fail_on: set[str] | None = None,
        transient_failures: dict[str, int] | None = None,
        lost_responses: set[str] | None = None,
        next_pr_number: int = 100,
    ) -> None:
        """Create FakeGitHub with pre-configured state.

        Args:
            prs: Existing pull requests in any state
            statuses: Mapping of PR number -> CI/review status. PRs without an
                entry report passing CI and REVIEW_REQUIRED.
            fail_on: Operations that always raise RuntimeError
            transient_failures: Operation -> number of leading calls that raise
                before the operation starts succeeding
            lost_responses: Operations whose first call takes effect on the
                remote but still raises, as if the response was lost
            next_pr_number: Number assigned to the first created PR
        """
        self._prs: dict[int, PullRequest] = {pr.number: pr for pr in prs or []}
        self._statuses = statuses or {}
        self._fail_on = fail_on or set()
        self._transient_failures = dict(transient_failures or {})
        self._lost_responses = set(lost_responses or set())
        self._next_pr_number = next_pr_number

        self._created_prs: list[tuple[int, str, str, str]] = []
        self._updated_bases: list[tuple[int, str]] = []
        self._updated_bodies: list[tuple[int, str]] = []
        self._comments: list[tuple[int, str]] = []
        self._closed_prs: list[int] = []
        self._merged_prs: list[tuple[int, MergeMethod]] = []
        self._attempts: list[str] = []

    @property
    def created_prs(self) -> list[tuple[int, str, str, str]]:
        """(number, head, base, title) for each created PR."""
        return self._created_prs

    @property
    def updated_bases(self) -> list[tuple[int, str]]:
        """(number, new_base) for each base change."""
        return self._updated_bases

    @property
    def updated_bodies(self) -> list[tuple[int, str]]:
        return self._updated_bodies

    @property
    def comments(self) -> list[tuple[int, str]]:
        return self._comments

    @property
    def closed_prs(self) -> list[int]:
        return self._closed_prs

    @property
    def merged_prs(self) -> list[tuple[int, MergeMethod]]:
        """(number, method) for each merged PR."""
        return self._merged_prs

    @property
    def attempts(self) -> list[str]:
        """Every mutating call as "<method>:<number>", including failed ones."""
        return self._attempts

    @property
    def mutation_count(self) -> int:
        """Number of mutations that took effect."""
        return (
            len(self._created_prs)
            + len(self._updated_bases)
            + len(self._updated_bodies)
            + len(self._comments)
            + len(self._closed_prs)
            + len(self._merged_prs)
        )

    def pr(self, number: int) -> PullRequest:
        """Current state of a PR, for test assertions."""
        return self._prs[number]

    def _check_failure(self, key: str) -> None:
        self._attempts.append(key)
        if key in self._fail_on:
            msg = f"Failed to {key}: HTTP 502"
            raise RuntimeError(msg)
        remaining = self._transient_failures.get(key, 0)
        if remaining > 0:
            self._transient_failures[key] = remaining - 1
            msg = f"Failed to {key}: HTTP 503 (transient)"
            raise RuntimeError(msg)

    def _check_lost_response(self, key: str) -> None:
        if key in self._lost_responses:
            self._lost_responses.discard(key)
            msg = f"Failed to {key}: connection reset"
            raise RuntimeError(msg)

    def _require(self, number: int) -> PullRequest:
        pr = self._prs.get(number)
        if pr is None:
            msg = f"Failed to find PR #{number}"
            raise RuntimeError(msg)
        return pr

    # Read operations

    def get_open_pr_for_head(self, repo_root: Path, head: str) -> PullRequest | None:
        for pr in self._prs.values():
            if pr.head == head and pr.state == "OPEN":
                return pr
        return None

    def get_pr(self, repo_root: Path, number: int) -> PullRequest | None:
        return self._prs.get(number)

    def list_open_pr_heads(self, repo_root: Path) -> set[str]:
        return {pr.head for pr in self._prs.values() if pr.state == "OPEN"}

    def get_pr_status(self, repo_root: Path, number: int) -> PullRequestStatus:
        return self._statuses.get(
            number, PullRequestStatus(ci_state="SUCCESS", review_decision="REVIEW_REQUIRED")
        )

    def list_comment_bodies(self, repo_root: Path, number: int) -> list[str]:
        return [body for pr_number, body in self._comments if pr_number == number]

    # Write operations

    def create_pr(self, repo_root: Path, *, head: str, base: str, title: str, body: str) -> int:
        self._check_failure(f"create_pr:{head}")
        number = self._next_pr_number
        self._next_pr_number += 1
        self._prs[number] = make_pr(number, head, base, title=title, body=body)
        self._created_prs.append((number, head, base, title))
        return number

    def update_pr_base(self, repo_root: Path, number: int, base: str) -> None:
        key = f"update_pr_base:{number}"
        self._check_failure(key)
        self._prs[number] = replace(self._require(number), base=base)
        self._updated_bases.append((number, base))
        self._check_lost_response(key)

    def update_pr_body(self, repo_root: Path, number: int, body: str) -> None:
        key = f"update_pr_body:{number}"
        self._check_failure(key)
        self._prs[number] = replace(self._require(number), body=body)
        self._updated_bodies.append((number, body))
        self._check_lost_response(key)

    def add_comment(self, repo_root: Path, number: int, body: str) -> None:
        key = f"add_comment:{number}"
        self._check_failure(key)
        self._require(number)
        self._comments.append((number, body))
        self._check_lost_response(key)

    def close_pr(self, repo_root: Path, number: int) -> None:
        key = f"close_pr:{number}"
        self._check_failure(key)
        pr = self._require(number)
        if pr.state != "OPEN":
            msg = f"Failed to close PR #{number}: already {pr.state.lower()}"
            raise RuntimeError(msg)
        self._prs[number] = replace(pr, state="CLOSED")
        self._closed_prs.append(number)
        self._check_lost_response(key)

    def merge_pr(self, repo_root: Path, number: int, method: MergeMethod) -> None:
        key = f"merge_pr:{number}"
        self._check_failure(key)
        pr = self._require(number)
        if pr.state != "OPEN":
            msg = f"Failed to merge PR #{number}: already {pr.state.lower()}"
            raise RuntimeError(msg)
        self._prs[number] = replace(pr, state="MERGED")
        self._merged_prs.append((number, method))
        self._check_lost_response(key)
