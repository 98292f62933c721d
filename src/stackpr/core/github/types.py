"""Type definitions for GitHub operations."""

from dataclasses import dataclass
from typing import Literal

PRState = Literal["OPEN", "MERGED", "CLOSED"]
MergeMethod = Literal["squash", "rebase"]


@dataclass(frozen=True)
class PullRequest:
    """A pull request as seen on GitHub."""

    number: int
    head: str
    base: str
    title: str
    body: str
    state: PRState
    url: str


@dataclass(frozen=True)
class PullRequestStatus:
    """CI and review state of a pull request."""

    ci_state: str  # SUCCESS | FAILURE | ERROR | PENDING | EXPECTED
    review_decision: str  # APPROVED | CHANGES_REQUESTED | REVIEW_REQUIRED

    @property
    def ci_passing(self) -> bool:
        return self.ci_state == "SUCCESS"

    @property
    def approved(self) -> bool:
        return self.review_decision == "APPROVED"
