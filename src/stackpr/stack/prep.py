"""Prep: squash multi-commit groups so each PR carries a single commit.

Per-pr landing merges with rebase and therefore needs one commit per PR.
After the rewrite the affected extent is published and the first PR above
it is flagged, since its parent branch changed underneath it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from stackpr.cli.output import user_output
from stackpr.core.config import StackSettings
from stackpr.core.errors import ValidationError
from stackpr.core.retry import retry_with_backoff
from stackpr.stack.conflict import ConflictPolicy
from stackpr.stack.model import Extent, Stack, load_stack
from stackpr.stack.publish import PublishResult, publish_stack
from stackpr.stack.rebuild import execute_rebuild, group_steps, ignored_steps
from stackpr.stack.remote import fetch_open_prs
from stackpr.stack.types import RebuildPlan, RebuildResult, ReplayStep

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)

PARENT_CHANGED_WARNING = (
    "🚨🚨 parent PRs have changed, this PR may show extra diffs from parent PR 🚨🚨"
)


def targeted_groups(stack: Stack, *, until: int | None, exact: int | None) -> list[int]:
    """1-based indices prep operates on.

    Raises:
        ValidationError: Both selectors given, or --exact out of range
    """
    if until is not None and exact is not None:
        msg = "--until and --exact are mutually exclusive"
        raise ValidationError(msg)
    if exact is not None:
        if exact < 1 or exact > stack.count:
            msg = f"--exact out of range (1..={stack.count}, got {exact})"
            raise ValidationError(msg)
        return [exact]
    if until is not None and until < 0:
        msg = f"--until must be non-negative (got {until})"
        raise ValidationError(msg)
    upper = stack.count if not until else min(until, stack.count)
    return list(range(1, upper + 1))


def plan_prep(stack: Stack, targets: list[int]) -> RebuildPlan | None:
    """Squash every targeted group with more than one commit.

    The rebuild starts at the base commit of the lowest squashed group; the
    groups above it are replayed as they are. Returns None when no targeted
    group needs squashing.
    """
    squashed = {i for i in targets if len(stack.group(i).commits) > 1}
    if not squashed:
        return None

    first = min(squashed)
    base = stack.group(first).base_commit or stack.merge_base
    steps: list[ReplayStep] = []
    for index in range(first, stack.count + 1):
        group = stack.group(index)
        if index in squashed:
            steps.append(ReplayStep.squash(group.commits, group.tag, group.squash_message))
            steps.extend(ignored_steps(group.ignored_after))
        else:
            steps.extend(group_steps(group))

    tags = ", ".join(stack.group(i).tag for i in sorted(squashed))
    return RebuildPlan(
        kind="prep",
        target_base=base,
        steps=tuple(steps),
        description=f"Squash {len(squashed)} group(s): {tags}",
    )


def _publish_scope(until: int | None, exact: int | None) -> tuple[Extent, int | None]:
    """Extent to publish and the 1-based index of the PR to warn, if any."""
    if exact is not None:
        return Extent.by_pr(exact), exact + 1
    if until:
        return Extent.by_pr(until), until + 1
    return Extent.whole(), None


@dataclass(frozen=True)
class PrepOutcome:
    rebuild: RebuildResult | None
    publish: PublishResult | None = None
    warned_pr: int | None = None


def prep(
    ctx: "StackContext",
    repo_root: Path,
    settings: StackSettings,
    *,
    until: int | None = None,
    exact: int | None = None,
    policy: ConflictPolicy,
) -> PrepOutcome:
    """Squash the selected groups, then publish them.

    Args:
        ctx: Context holding both gateways
        repo_root: Repository root
        settings: Resolved settings
        until: Prep the first N groups (0 or None for all)
        exact: Prep only group i
        policy: What to do if replaying a later group conflicts
    """
    stack = load_stack(ctx, repo_root, settings)
    if stack.count == 0:
        user_output("Nothing to prep")
        return PrepOutcome(rebuild=None)

    targets = targeted_groups(stack, until=until, exact=exact)
    plan = plan_prep(stack, targets)
    if plan is None:
        user_output("No multi-commit PR found in the selected range; nothing to squash")
        return PrepOutcome(rebuild=None)

    user_output(plan.description)
    result = execute_rebuild(ctx, repo_root, plan, policy, safe=False)
    if result.status != "completed":
        return PrepOutcome(rebuild=result)

    extent, next_index = _publish_scope(until, exact)
    published = publish_stack(ctx, repo_root, settings, extent, no_pr=False)

    warned: int | None = None
    if next_index is not None and next_index <= stack.count:
        warned = _flag_next_pr(ctx, repo_root, stack.branch_for(next_index))
    return PrepOutcome(rebuild=result, publish=published, warned_pr=warned)


def _flag_next_pr(ctx: "StackContext", repo_root: Path, head: str) -> int | None:
    pr = fetch_open_prs(ctx, repo_root, [head]).get(head)
    if pr is None:
        logger.debug("No open PR for %s; nothing to flag", head)
        return None

    @retry_with_backoff(max_attempts=3, base_delay=1.0, ctx=ctx)
    def prepend_warning() -> None:
        current = ctx.github.get_pr(repo_root, pr.number)
        body = current.body if current is not None else pr.body
        if PARENT_CHANGED_WARNING in body:
            logger.debug("Warning already present in PR #%d; skipping", pr.number)
            return
        updated = (
            PARENT_CHANGED_WARNING
            if not body.strip()
            else f"{PARENT_CHANGED_WARNING}\n\n{body}"
        )
        ctx.github.update_pr_body(repo_root, pr.number, updated)
        user_output(f"Flagged PR #{pr.number}: parent PRs have changed")

    prepend_warning()
    return pr.number
