"""Reordering groups (move) and reassigning top commits (fix-tail).

Both rebuild from the merge-base with nothing dropped. Ignore blocks stay
attached to the group they follow and move with it.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from stackpr.core.config import StackSettings
from stackpr.core.errors import ValidationError
from stackpr.stack.conflict import ConflictPolicy
from stackpr.stack.model import Stack, load_stack
from stackpr.stack.rebuild import execute_rebuild, group_steps, ignored_steps
from stackpr.stack.scanner import find_tags
from stackpr.stack.types import RebuildPlan, RebuildResult, ReplayStep

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)


def parse_move_range(value: str) -> tuple[int, int]:
    """Parse `A` or `A..B` into a 1-based inclusive range."""
    text = value.strip()
    first, sep, second = text.partition("..")
    try:
        start = int(first.strip())
        end = int(second.strip()) if sep else start
    except ValueError:
        msg = f"Invalid range '{value}': expected A or A..B"
        raise ValidationError(msg) from None
    if sep and start >= end:
        msg = f"Invalid range {start}..{end}: require A<B"
        raise ValidationError(msg)
    return start, end


def parse_move_target(value: str, group_count: int) -> int:
    keyword = value.strip().lower()
    if keyword == "bottom":
        return 0
    if keyword == "top":
        return group_count
    if not keyword.isdigit():
        msg = (
            f"--after must be a number in 0..{group_count} "
            f"or one of: bottom, top (got '{value}')"
        )
        raise ValidationError(msg)
    return int(keyword)


@dataclass(frozen=True)
class MovePlan:
    old_order: tuple[int, ...]
    new_order: tuple[int, ...]
    text: str

    @property
    def unchanged(self) -> bool:
        return self.old_order == self.new_order


def plan_move(group_count: int, start: int, end: int, after: int) -> MovePlan:
    """Excise [start, end] and reinsert it after position `after`.

    Raises:
        ValidationError: Out-of-range indices, or `after` inside the range
    """
    if start < 1 or end > group_count or start > end:
        msg = f"Range out of bounds: {start}..{end} with {group_count} groups"
        raise ValidationError(msg)
    if after < 0 or after > group_count:
        msg = f"--after must be in 0..{group_count} (got {after})"
        raise ValidationError(msg)

    old_order = tuple(range(1, group_count + 1))
    label = str(start) if start == end else f"{start}..{end}"
    if start == end == after:
        return MovePlan(old_order, old_order, f"{label}→{after}: already in position")
    if start <= after <= end:
        msg = f"--after target {after} must not be within [{start}..{end}]"
        raise ValidationError(msg)

    moved = old_order[start - 1 : end]
    rest = old_order[: start - 1] + old_order[end:]
    insert_at = after if after < start else after - len(moved)
    new_order = rest[:insert_at] + moved + rest[insert_at:]

    text = (
        f"{label}→{after}: [{','.join(map(str, old_order))}] → [{','.join(map(str, new_order))}]"
    )
    return MovePlan(old_order, new_order, text)


def _reordered_steps(stack: Stack, order: Sequence[int]) -> tuple[ReplayStep, ...]:
    steps = ignored_steps(stack.leading_ignored)
    for index in order:
        steps.extend(group_steps(stack.group(index)))
    return tuple(steps)


@dataclass(frozen=True)
class ReorderOutcome:
    plan_text: str
    result: RebuildResult | None


def move_groups(
    ctx: "StackContext",
    repo_root: Path,
    settings: StackSettings,
    range_spec: str,
    after: str,
    *,
    safe: bool,
    policy: ConflictPolicy,
) -> ReorderOutcome:
    """Move group(s) A..B to sit after group C.

    Returns:
        ReorderOutcome; `result` is None when the order does not change
    """
    stack = load_stack(ctx, repo_root, settings)
    if stack.count == 0:
        return ReorderOutcome(plan_text="No local groups found; nothing to move", result=None)

    start, end = parse_move_range(range_spec)
    target = parse_move_target(after, stack.count)
    move = plan_move(stack.count, start, end, target)
    logger.debug("Move plan: %s", move.text)
    if move.unchanged:
        return ReorderOutcome(plan_text=move.text, result=None)

    plan = RebuildPlan(
        kind="move",
        target_base=stack.merge_base,
        steps=_reordered_steps(stack, move.new_order),
        description=move.text,
    )
    return ReorderOutcome(
        plan_text=move.text,
        result=execute_rebuild(ctx, repo_root, plan, policy, safe=safe),
    )


def plan_fix_tail(
    ctx: "StackContext", repo_root: Path, stack: Stack, target: int, tail: int
) -> tuple[str, ...] | None:
    """New commit order with the top `tail` commits appended to group `target`.

    Returns None when the order would not change.

    Raises:
        ValidationError: Target out of range, or a tail commit carries a
            marker or sits in an ignore block
    """
    stack.group(target)
    if tail < 0:
        msg = f"--tail must be non-negative (got {tail})"
        raise ValidationError(msg)

    history = stack.all_commits()
    count = min(tail, len(history))
    if count == 0:
        return None
    moved = history[len(history) - count :]
    remainder = history[: len(history) - count]

    tagged = [
        sha[:8] for sha in moved if find_tags(ctx.git.get_commit_message(repo_root, sha) or "")
    ]
    if tagged:
        msg = (
            "Tail commit(s) carry pr:<tag> markers and start or belong to other groups: "
            + ", ".join(tagged)
        )
        raise ValidationError(msg)

    ignored = set(stack.ignored_commits())
    in_ignore_block = [sha[:8] for sha in moved if sha in ignored]
    if in_ignore_block:
        msg = (
            "Tail commit(s) are in an ignore block, which must not be split: "
            + ", ".join(in_ignore_block)
        )
        raise ValidationError(msg)

    anchor = stack.group(target).last_commit
    if anchor not in remainder:
        # Only part of group `target` itself was selected
        return None
    insert_at = remainder.index(anchor) + 1
    new_order = tuple(remainder[:insert_at] + moved + remainder[insert_at:])
    if list(new_order) == history:
        return None
    return new_order


def fix_tail(
    ctx: "StackContext",
    repo_root: Path,
    settings: StackSettings,
    target: int,
    tail: int,
    *,
    safe: bool,
    policy: ConflictPolicy,
) -> ReorderOutcome:
    """Move the top `tail` commits to the end of group `target`."""
    stack = load_stack(ctx, repo_root, settings)
    if stack.count == 0:
        return ReorderOutcome(plan_text="No local groups found; nothing to fix", result=None)

    new_order = plan_fix_tail(ctx, repo_root, stack, target, tail)
    text = f"Move top {tail} commit(s) to the end of group {target} ({stack.group(target).tag})"
    if new_order is None:
        return ReorderOutcome(plan_text=f"{text}: order unchanged", result=None)

    history = stack.all_commits()
    moved = set(history[len(history) - min(tail, len(history)) :])
    owner = {sha: group.tag for group in stack.groups for sha in group.commits}
    destination = stack.group(target).tag
    steps = tuple(
        ReplayStep.pick(sha, destination if sha in moved else owner.get(sha)) for sha in new_order
    )
    plan = RebuildPlan(kind="fix-tail", target_base=stack.merge_base, steps=steps, description=text)
    return ReorderOutcome(
        plan_text=text,
        result=execute_rebuild(ctx, repo_root, plan, policy, safe=safe),
    )
