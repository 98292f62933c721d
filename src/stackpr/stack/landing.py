"""Landing orchestrator.

Lands the bottom N groups of the stack through their top PR:

1. Read phase: open PRs and their CI/review status, fetched concurrently.
2. Preconditions, all checked before the first write.
3. Plan: retarget the top PR onto the root base, merge it, then comment on
   and close every PR below it.
4. Write phase: one step at a time, each retried with a remote re-check so a
   step whose response was lost is not applied twice.

A write that fails after retries stops the run with LandingIncompleteError.
Completed steps are never undone; the attached report says exactly what
happened on the remote.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import click
from rich.panel import Panel
from rich.text import Text

from stackpr.cli.output import user_output
from stackpr.core.config import LandMode, StackSettings
from stackpr.core.errors import GatewayError, PreconditionError, ValidationError
from stackpr.core.github.types import MergeMethod
from stackpr.core.retry import retry_with_backoff
from stackpr.stack.conflict import ConflictPolicy
from stackpr.stack.model import Stack, load_stack
from stackpr.stack.remote import fetch_open_prs, fetch_statuses
from stackpr.stack.restack import RestackOutcome, restack

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)

MERGE_METHODS: dict[LandMode, MergeMethod] = {"flatten": "squash", "per-pr": "rebase"}

LandingStepKind = Literal["set_base", "merge", "comment", "close"]


@dataclass(frozen=True)
class LandingStep:
    kind: LandingStepKind
    pr: int
    group: str
    base: str | None = None
    method: MergeMethod | None = None
    top: int | None = None

    @property
    def description(self) -> str:
        if self.kind == "set_base":
            return f"set base of #{self.pr} to {self.base}"
        if self.kind == "merge":
            return f"{self.method}-merge #{self.pr}"
        if self.kind == "comment":
            return f"comment on #{self.pr}"
        return f"close #{self.pr}"


@dataclass(frozen=True)
class LandingPlan:
    mode: LandMode
    top: int
    groups: tuple[str, ...]
    steps: tuple[LandingStep, ...]


@dataclass(frozen=True)
class LandingReport:
    """What the write phase did on the remote."""

    plan: LandingPlan
    completed: tuple[LandingStep, ...]
    failed: LandingStep | None = None
    pending: tuple[LandingStep, ...] = ()
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.failed is None

    @property
    def completed_groups(self) -> list[str]:
        """Groups whose final step (merge or close) went through."""
        done = {step.group for step in self.completed if step.kind in ("merge", "close")}
        return [group for group in self.plan.groups if group in done]

    @property
    def failed_groups(self) -> list[str]:
        done = set(self.completed_groups)
        return [group for group in self.plan.groups if group not in done]


class LandingIncompleteError(GatewayError):
    """A landing write failed after retries; earlier writes stay applied."""

    def __init__(self, report: LandingReport) -> None:
        failed = report.failed.description if report.failed is not None else "unknown step"
        message = (
            f"Landing stopped at '{failed}': {report.error}. "
            f"{len(report.completed)} step(s) completed, {len(report.pending)} pending."
        )
        super().__init__(message, step=failed)
        self.report = report


@dataclass(frozen=True)
class LandOutcome:
    report: LandingReport
    restack: RestackOutcome | None = None


def plan_landing(stack: Stack, count: int, mode: LandMode) -> LandingPlan:
    """Steps landing groups 1..count through the PR of group `count`.

    Requires a stack correlated with open PRs for every target.
    """
    top_pr = _require_pr(stack, count)
    top_group = stack.group(count).tag
    steps = [
        LandingStep(kind="set_base", pr=top_pr, group=top_group, base=stack.root_branch),
        LandingStep(kind="merge", pr=top_pr, group=top_group, method=MERGE_METHODS[mode]),
    ]
    for index in range(1, count):
        number = _require_pr(stack, index)
        tag = stack.group(index).tag
        steps.append(LandingStep(kind="comment", pr=number, group=tag, top=top_pr))
        steps.append(LandingStep(kind="close", pr=number, group=tag))
    return LandingPlan(
        mode=mode,
        top=top_pr,
        groups=tuple(stack.group(i).tag for i in range(1, count + 1)),
        steps=tuple(steps),
    )


def _require_pr(stack: Stack, index: int) -> int:
    pr = stack.remote_for(index)
    if pr is None:
        msg = f"Group {index} ({stack.group(index).tag}) has no open PR"
        raise PreconditionError(msg)
    return pr.number


def land(
    ctx: "StackContext",
    repo_root: Path,
    settings: StackSettings,
    mode: LandMode,
    *,
    until: int = 0,
    unsafe: bool = False,
    no_restack: bool = False,
    policy: ConflictPolicy,
) -> LandOutcome:
    """Land the bottom `until` groups (0 for all) and restack what remains.

    Only the top PR is merged; it carries every lower group, so the PRs
    below it are commented on and closed rather than merged one by one.

    Raises:
        PreconditionError: A target has no open PR, fails the CI/review gate
            (flatten), or has other than one commit over its base (per-pr)
        LandingIncompleteError: A write failed after retries
    """
    if until < 0:
        msg = f"--until must be non-negative (got {until})"
        raise ValidationError(msg)

    stack = load_stack(ctx, repo_root, settings)
    if stack.count == 0:
        msg = f"No local groups above {settings.root_base}; nothing to land"
        raise PreconditionError(msg)
    count = stack.count if until == 0 else min(until, stack.count)

    heads = [stack.branch_for(i) for i in range(1, count + 1)]
    prs = fetch_open_prs(ctx, repo_root, heads)
    missing = [head for head in heads if head not in prs]
    if missing:
        msg = f"No open PR for {', '.join(missing)}. Run `stackpr update` first."
        raise PreconditionError(msg)
    stack = stack.correlate(prs)

    if mode == "flatten" and not unsafe:
        _check_review_gate(ctx, repo_root, stack, count)
    if mode == "per-pr":
        _check_single_commits(ctx, repo_root, stack, count)

    plan = plan_landing(stack, count, mode)
    logger.debug("Landing plan: %s", [step.description for step in plan.steps])
    user_output(f"Landing {count} group(s) through PR #{plan.top} ({mode})...")

    report = execute_landing(ctx, repo_root, plan)
    if not report.succeeded:
        raise LandingIncompleteError(report)

    if no_restack:
        return LandOutcome(report=report)
    return LandOutcome(
        report=report,
        restack=restack(ctx, repo_root, settings, count, safe=False, policy=policy),
    )


def _check_review_gate(ctx: "StackContext", repo_root: Path, stack: Stack, count: int) -> None:
    numbers = [_require_pr(stack, i) for i in range(1, count + 1)]
    statuses = fetch_statuses(ctx, repo_root, numbers)
    offenders: list[str] = []
    for number in numbers:
        status = statuses[number]
        reasons = []
        if not status.ci_passing:
            reasons.append(f"CI {status.ci_state}")
        if not status.approved:
            reasons.append(f"review {status.review_decision}")
        if reasons:
            offenders.append(f"#{number} ({', '.join(reasons)})")
    if offenders:
        msg = (
            "Not all PRs are green and approved: "
            + "; ".join(offenders)
            + ". Use --unsafe to land anyway."
        )
        raise PreconditionError(msg)


def _check_single_commits(
    ctx: "StackContext", repo_root: Path, stack: Stack, count: int
) -> None:
    ctx.git.fetch(repo_root, "origin")
    offenders: list[str] = []
    for index in range(1, count + 1):
        base_ref = f"origin/{stack.expected_base(index)}"
        head_ref = f"origin/{stack.branch_for(index)}"
        commits = ctx.git.count_commits(repo_root, base_ref, head_ref)
        if commits != 1:
            offenders.append(f"#{_require_pr(stack, index)} ({commits} commits)")
    if offenders:
        msg = (
            f"The following PRs have != 1 commit: {', '.join(offenders)}. "
            "Run `stackpr prep` to squash them first"
        )
        raise PreconditionError(msg)


def execute_landing(ctx: "StackContext", repo_root: Path, plan: LandingPlan) -> LandingReport:
    completed: list[LandingStep] = []
    for position, step in enumerate(plan.steps):
        try:
            _run_step(ctx, repo_root, step)
        except RuntimeError as e:
            logger.debug("Landing step '%s' failed: %s", step.description, e)
            return LandingReport(
                plan=plan,
                completed=tuple(completed),
                failed=step,
                pending=plan.steps[position + 1 :],
                error=str(e),
            )
        completed.append(step)
    return LandingReport(plan=plan, completed=tuple(completed))


def _run_step(ctx: "StackContext", repo_root: Path, step: LandingStep) -> None:
    @retry_with_backoff(max_attempts=3, base_delay=1.0, ctx=ctx)
    def attempt() -> None:
        current = ctx.github.get_pr(repo_root, step.pr)
        if current is None:
            msg = f"PR #{step.pr} not found"
            raise RuntimeError(msg)

        if step.kind == "set_base":
            if current.base == step.base:
                logger.debug("PR #%d already based on %s", step.pr, step.base)
                return
            ctx.github.update_pr_base(repo_root, step.pr, step.base or "")
        elif step.kind == "merge":
            if current.state == "MERGED":
                logger.debug("PR #%d already merged", step.pr)
                return
            ctx.github.merge_pr(repo_root, step.pr, step.method or "squash")
        elif step.kind == "comment":
            if current.state != "OPEN":
                logger.debug("PR #%d is %s; not commenting", step.pr, current.state)
                return
            body = f"Merged as part of PR #{step.top}"
            if body in ctx.github.list_comment_bodies(repo_root, step.pr):
                logger.debug("PR #%d already has the landing comment", step.pr)
                return
            ctx.github.add_comment(repo_root, step.pr, body)
        else:
            if current.state == "CLOSED":
                logger.debug("PR #%d already closed", step.pr)
                return
            ctx.github.close_pr(repo_root, step.pr)

    attempt()
    check = click.style("✓", fg="green")
    user_output(f"  {check} {step.description}")


def format_landing_report(report: LandingReport) -> Panel:
    """Render a landing report as a rich Panel.

    Example:
        >>> console = Console(stderr=True)
        >>> console.print(format_landing_report(report))
    """
    lines: list[Text] = []
    if report.succeeded:
        lines.append(Text(f"✅ Landed through PR #{report.plan.top}", style="green"))
    else:
        lines.append(Text("❌ Landing incomplete", style="red"))

    for step in report.completed:
        lines.append(Text(f"  ✓ {step.description}"))
    if report.failed is not None:
        lines.append(Text(f"  ✗ {report.failed.description}", style="red bold"))
        if report.error:
            lines.append(Text(f"    {report.error}", style="red"))
    for step in report.pending:
        lines.append(Text(f"  · {step.description} (pending)", style="dim"))

    lines.append(Text(""))
    lines.append(Text(f"Completed groups: {', '.join(report.completed_groups) or 'none'}"))
    if report.failed_groups:
        lines.append(
            Text(f"Not landed: {', '.join(report.failed_groups)}", style="yellow")
        )

    title = "Landing Complete" if report.succeeded else "Landing Incomplete"
    return Panel(
        Text("\n").join(lines),
        title=title,
        border_style="green" if report.succeeded else "red",
        padding=(1, 2),
    )
