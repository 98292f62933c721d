"""Git operations subpackage.

This subpackage provides abstractions over git operations with support for
testing via fakes and dry-run via wrappers.
"""

from stackpr.core.git.abc import CommitRecord, Git, ReplayOutcome
from stackpr.core.git.dry_run import DryRunGit
from stackpr.core.git.real import RealGit

__all__ = [
    "CommitRecord",
    "DryRunGit",
    "Git",
    "RealGit",
    "ReplayOutcome",
]
