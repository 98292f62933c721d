"""Application context with dependency injection."""

from dataclasses import dataclass, replace
from pathlib import Path

import click

from stackpr.cli.output import user_output
from stackpr.core.config import ConfigStore, RealConfigStore
from stackpr.core.git.abc import Git
from stackpr.core.git.dry_run import DryRunGit
from stackpr.core.git.real import RealGit
from stackpr.core.github.abc import GitHub
from stackpr.core.github.dry_run import DryRunGitHub
from stackpr.core.github.real import RealGitHub
from stackpr.core.time.abc import Time
from stackpr.core.time.real import RealTime


@dataclass(frozen=True)
class StackContext:
    """Immutable context holding all dependencies for stack operations.

    Created at CLI entry point and threaded through the application.
    Frozen to prevent accidental modification at runtime.
    """

    git: Git
    github: GitHub
    config_store: ConfigStore
    time: Time
    cwd: Path
    dry_run: bool
    base_override: str | None = None
    prefix_override: str | None = None

    @staticmethod
    def for_test(
        git: Git | None = None,
        github: GitHub | None = None,
        config_store: ConfigStore | None = None,
        time: Time | None = None,
        cwd: Path | None = None,
        dry_run: bool = False,
        base_override: str | None = None,
        prefix_override: str | None = None,
    ) -> "StackContext":
        """Create test context with optional pre-configured fakes.

        Args:
            git: Optional Git implementation. If None, creates empty FakeGit.
            github: Optional GitHub implementation. If None, creates empty FakeGitHub.
            config_store: Optional ConfigStore. If None, creates empty FakeConfigStore.
            time: Optional Time implementation. If None, creates FakeTime.
            cwd: Optional current working directory. If None, uses Path("/repo").
            dry_run: Whether to wrap the gateways in dry-run wrappers.
            base_override: Root base as if passed via --base.
            prefix_override: Branch prefix as if passed via --prefix.

        Example:
            >>> git = FakeGit(commits=[...], branches={"main": sha})
            >>> github = FakeGitHub(prs=[make_pr(1, "alice-stack/a", "main")])
            >>> ctx = StackContext.for_test(git=git, github=github)
        """
        from stackpr.core.config import FakeConfigStore
        from stackpr.core.git.fake import FakeGit
        from stackpr.core.github.fake import FakeGitHub
        from stackpr.core.time.fake import FakeTime

        if git is None:
            git = FakeGit()

        if github is None:
            github = FakeGitHub()

        if config_store is None:
            config_store = FakeConfigStore()

        if time is None:
            time = FakeTime()

        ctx = StackContext(
            git=git,
            github=github,
            config_store=config_store,
            time=time,
            cwd=cwd or Path("/repo"),
            dry_run=False,
            base_override=base_override,
            prefix_override=prefix_override,
        )
        if dry_run:
            return ctx.with_dry_run()
        return ctx

    def with_dry_run(self) -> "StackContext":
        """Return a copy whose gateways print mutations instead of running them."""
        if self.dry_run:
            return self
        return replace(
            self,
            git=DryRunGit(self.git),
            github=DryRunGitHub(self.github),
            dry_run=True,
        )

    def with_overrides(self, *, base: str | None, prefix: str | None) -> "StackContext":
        """Return a copy carrying --base/--prefix values from the command line."""
        return replace(
            self,
            base_override=base if base is not None else self.base_override,
            prefix_override=prefix if prefix is not None else self.prefix_override,
        )


def safe_cwd() -> tuple[Path | None, str | None]:
    """Get current working directory, detecting if it no longer exists.

    Returns:
        (path, None) on success, (None, error_message) if the directory is gone
    """
    try:
        return (Path.cwd(), None)
    except (FileNotFoundError, OSError):
        return (None, "Current working directory no longer exists")


def create_context(*, dry_run: bool) -> StackContext:
    """Create production context with real implementations.

    Args:
        dry_run: If True, wrap the gateways with dry-run wrappers that print
            intended actions without executing them

    Returns:
        StackContext with real implementations
    """
    cwd, error_msg = safe_cwd()
    if cwd is None:
        user_output(click.style("Error: ", fg="red") + str(error_msg))
        user_output("Please change to a valid directory and try again.")
        raise SystemExit(1)

    ctx = StackContext(
        git=RealGit(),
        github=RealGitHub(),
        config_store=RealConfigStore(),
        time=RealTime(),
        cwd=cwd,
        dry_run=False,
    )
    if dry_run:
        return ctx.with_dry_run()
    return ctx
