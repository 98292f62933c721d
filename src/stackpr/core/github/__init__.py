"""GitHub operations subpackage."""

from stackpr.core.github.abc import GitHub
from stackpr.core.github.dry_run import DRY_RUN_PR_NUMBER, DryRunGitHub
from stackpr.core.github.real import RealGitHub
from stackpr.core.github.types import MergeMethod, PRState, PullRequest, PullRequestStatus

__all__ = [
    "DRY_RUN_PR_NUMBER",
    "DryRunGitHub",
    "GitHub",
    "MergeMethod",
    "PRState",
    "PullRequest",
    "PullRequestStatus",
    "RealGitHub",
]
