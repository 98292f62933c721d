"""Relink: make every open PR's base match the local stack order."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from stackpr.cli.output import user_output, warn
from stackpr.core.config import StackSettings
from stackpr.stack.model import load_stack
from stackpr.stack.remote import fetch_open_prs, set_pr_base

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BaseCorrection:
    number: int
    head: str
    old_base: str
    new_base: str


@dataclass(frozen=True)
class RelinkResult:
    corrections: tuple[BaseCorrection, ...] = ()
    unchanged: tuple[int, ...] = ()
    missing: tuple[str, ...] = ()


def relink(ctx: "StackContext", repo_root: Path, settings: StackSettings) -> RelinkResult:
    """Correct the base of every open PR whose base disagrees with the stack.

    Idempotent: a second run with no local change issues no updates.
    """
    stack = load_stack(ctx, repo_root, settings)
    if stack.count == 0:
        user_output("No local groups found; nothing to fix.")
        return RelinkResult()

    chain = stack.head_base_chain()
    prs = fetch_open_prs(ctx, repo_root, [head for head, _ in chain])

    corrections: list[BaseCorrection] = []
    unchanged: list[int] = []
    missing: list[str] = []
    for head, expected in chain:
        pr = prs.get(head)
        if pr is None:
            warn(f"No open PR found for {head}; skipping")
            missing.append(head)
            continue
        if pr.base == expected:
            logger.debug("%s (#%d) already basing on %s", head, pr.number, expected)
            unchanged.append(pr.number)
            continue

        user_output(f"Updating base of {head} (#{pr.number}) from {pr.base} to {expected}")
        set_pr_base(ctx, repo_root, pr.number, expected)
        corrections.append(
            BaseCorrection(number=pr.number, head=head, old_base=pr.base, new_base=expected)
        )

    return RelinkResult(
        corrections=tuple(corrections),
        unchanged=tuple(unchanged),
        missing=tuple(missing),
    )

