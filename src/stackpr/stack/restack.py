"""Restack: drop the bottom N groups and rebuild the rest onto the root base.

Dropped groups are assumed landed upstream. Their ignore blocks are local
work and survive: they are replayed onto the base before the remaining
groups.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from stackpr.core.config import StackSettings
from stackpr.core.errors import ValidationError
from stackpr.stack.conflict import ConflictPolicy
from stackpr.stack.model import Stack, load_stack
from stackpr.stack.rebuild import execute_rebuild, group_steps, ignored_steps
from stackpr.stack.types import RebuildPlan, RebuildResult, ReplayStep

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)


def parse_after(value: str, group_count: int) -> int:
    """Parse an --after value into a group position, clamped to the stack.

    Accepts a non-negative integer, `bottom` (0), or `top`/`last`/`all`
    (every group).
    """
    keyword = value.strip().lower()
    if keyword == "bottom":
        return 0
    if keyword in ("top", "last", "all"):
        return group_count
    if not keyword.isdigit():
        msg = f"Invalid position '{value}': expected a number, 'bottom' or 'top'"
        raise ValidationError(msg)
    return min(int(keyword), group_count)


def restack_upstream(ctx: "StackContext", repo_root: Path, stack: Stack, after: int) -> str:
    """Commit the remaining groups currently sit on.

    For after=0 that is merge-base(root base, HEAD); otherwise the parent of
    the first commit of group after+1. With nothing remaining, HEAD itself.
    """
    if after == 0:
        return stack.merge_base
    if after >= stack.count:
        head = ctx.git.resolve_ref(repo_root, "HEAD")
        return head if head is not None else stack.merge_base
    base_commit = stack.group(after + 1).base_commit
    return base_commit if base_commit is not None else stack.merge_base


def plan_restack(stack: Stack, after: int) -> RebuildPlan:
    steps: list[ReplayStep] = ignored_steps(stack.leading_ignored)
    for group in stack.groups[:after]:
        steps.extend(ignored_steps(group.ignored_after))
    for group in stack.groups[after:]:
        steps.extend(group_steps(group))
    return RebuildPlan(
        kind="restack",
        target_base=stack.root_base,
        steps=tuple(steps),
        description=f"Restack {stack.count - after} group(s) onto {stack.root_base}",
    )


@dataclass(frozen=True)
class RestackOutcome:
    after: int
    upstream: str | None
    remaining: int
    result: RebuildResult | None


def restack(
    ctx: "StackContext",
    repo_root: Path,
    settings: StackSettings,
    after: str | int,
    *,
    safe: bool,
    policy: ConflictPolicy,
) -> RestackOutcome:
    """Fetch origin, then rebuild everything above group `after` onto the root base.

    Returns:
        RestackOutcome; `result` is None when the stack has no groups
    """
    ctx.git.fetch(repo_root, "origin")
    stack = load_stack(ctx, repo_root, settings)
    if stack.count == 0:
        logger.debug("No groups above %s; nothing to restack", settings.root_base)
        return RestackOutcome(after=0, upstream=None, remaining=0, result=None)

    position = parse_after(after, stack.count) if isinstance(after, str) else after
    if position < 0:
        msg = f"Invalid position {position}: must be non-negative"
        raise ValidationError(msg)
    position = min(position, stack.count)

    upstream = restack_upstream(ctx, repo_root, stack, position)
    plan = plan_restack(stack, position)
    logger.debug("%s (upstream %s, %d step(s))", plan.description, upstream[:8], len(plan.steps))
    result = execute_rebuild(ctx, repo_root, plan, policy, safe=safe)
    return RestackOutcome(
        after=position,
        upstream=upstream,
        remaining=stack.count - position,
        result=result,
    )
