"""Publish the stack: push one branch per group and keep one PR per branch.

Reads happen first (open PRs, remote heads). Pushes are planned per branch as
skip, fast-forward, or force-with-lease pinned to the observed remote SHA.
PR bases and descriptions are then brought in line with the local stack,
editing only what differs.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from stackpr.cli.output import user_output
from stackpr.core.config import DescriptionMode, StackSettings
from stackpr.core.github.types import PullRequest
from stackpr.stack.model import Extent, Stack, limit_groups, load_stack
from stackpr.stack.remote import fetch_open_prs, set_pr_base, set_pr_body

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)

STACK_START = "<!-- stack:start -->"
STACK_END = "<!-- stack:end -->"
EM_SPACE = "\u2003"
CURRENT_MARKER = "➡"
STACK_NOTICE = (
    "⚠️ *Part of a stack managed by stackpr. "
    "Do not merge manually using the UI - doing so may have unexpected results.*"
)
PLACEHOLDER_BLOCK = f"{STACK_START}\n(placeholder; filled in by stackpr)\n{STACK_END}"


def render_stack_block(numbers: list[int], current: int) -> str:
    """Stack listing for one PR, top of the stack first.

    Args:
        numbers: PR numbers bottom to top
        current: The PR whose description receives this block
    """
    lines = [
        f"- {CURRENT_MARKER if number == current else EM_SPACE} #{number}"
        for number in reversed(numbers)
    ]
    return f"{STACK_START}\n**Stack**:\n" + "\n".join(lines) + f"\n\n{STACK_NOTICE}\n{STACK_END}"


def update_stack_block(body: str, block: str) -> str:
    """Replace the delimited stack block in body, or append it."""
    start = body.find(STACK_START)
    end = body.find(STACK_END)
    if start != -1 and end != -1 and end >= start:
        return body[:start] + block + body[end + len(STACK_END) :]
    if not body.strip():
        return block
    return f"{body}\n\n{block}"


def compose_body(mode: DescriptionMode, base_body: str, current_body: str, block: str) -> str:
    if mode == "stack_only":
        return update_stack_block(current_body, block)
    if not base_body.strip():
        return block
    return f"{base_body}\n\n{block}"


PushKind = Literal["skip", "fast-forward", "force-with-lease"]


@dataclass(frozen=True)
class PlannedPush:
    branch: str
    target_sha: str
    kind: PushKind
    remote_sha: str | None

    @property
    def refspec(self) -> str:
        return f"{self.target_sha}:refs/heads/{self.branch}"


def plan_push(
    ctx: "StackContext", repo_root: Path, branch: str, target_sha: str, remote_sha: str | None
) -> PlannedPush:
    if remote_sha == target_sha:
        kind: PushKind = "skip"
    elif remote_sha is None:
        kind = "fast-forward"
    else:
        try:
            fast_forward = ctx.git.is_ancestor(repo_root, remote_sha, target_sha)
        except RuntimeError as e:
            # Remote commit not present locally; a lease still protects it
            logger.debug("Cannot compare %s with %s: %s", remote_sha[:8], target_sha[:8], e)
            fast_forward = False
        kind = "fast-forward" if fast_forward else "force-with-lease"
    return PlannedPush(branch=branch, target_sha=target_sha, kind=kind, remote_sha=remote_sha)


@dataclass(frozen=True)
class PublishedPR:
    number: int
    title: str
    url: str


@dataclass(frozen=True)
class PublishResult:
    pushes: tuple[PlannedPush, ...] = ()
    created: tuple[int, ...] = ()
    base_updates: tuple[tuple[int, str], ...] = ()
    body_updates: tuple[int, ...] = ()
    prs: tuple[PublishedPR, ...] = ()


def publish_stack(
    ctx: "StackContext",
    repo_root: Path,
    settings: StackSettings,
    extent: Extent,
    *,
    no_pr: bool,
) -> PublishResult:
    """Push group branches and create or refresh their PRs.

    Args:
        ctx: Context holding both gateways
        repo_root: Repository root
        settings: Resolved settings
        extent: Which groups, from the bottom, to publish
        no_pr: Push branches only; leave PRs alone
    """
    full = load_stack(ctx, repo_root, settings)
    stack = full.with_groups(limit_groups(full.groups, extent))
    if stack.count == 0:
        user_output("No groups found; nothing to publish.")
        return PublishResult()

    heads = [stack.branch_for(i) for i in range(1, stack.count + 1)]
    prs = {} if no_pr else fetch_open_prs(ctx, repo_root, heads)
    remote_heads = ctx.git.get_remote_branch_heads(repo_root, [*heads, stack.root_branch])

    pushes = [
        plan_push(ctx, repo_root, head, group.last_commit, remote_heads.get(head))
        for head, group in zip(heads, stack.groups, strict=True)
    ]
    base_updates: list[tuple[int, str]] = []

    if not no_pr:
        base_updates.extend(_park_misbased_prs(ctx, repo_root, stack, prs, remote_heads))

    _push(ctx, repo_root, pushes)

    if no_pr:
        return PublishResult(pushes=tuple(pushes))

    created = _create_missing_prs(ctx, repo_root, stack, prs)
    final_bases, body_updates = _sync_prs(ctx, repo_root, stack, prs, settings.description_mode)
    base_updates.extend(final_bases)

    ordered = [
        PublishedPR(number=prs[head].number, title=group.pr_title, url=prs[head].url)
        for head, group in zip(heads, stack.groups, strict=True)
        if head in prs
    ]
    if settings.list_order == "recent_on_top":
        ordered.reverse()
    return PublishResult(
        pushes=tuple(pushes),
        created=tuple(created),
        base_updates=tuple(base_updates),
        body_updates=tuple(body_updates),
        prs=tuple(ordered),
    )


def _park_misbased_prs(
    ctx: "StackContext",
    repo_root: Path,
    stack: Stack,
    prs: dict[str, PullRequest],
    remote_heads: dict[str, str],
) -> list[tuple[int, str]]:
    """Move existing PRs to the root base when the chain is out of order.

    Pushing reordered branches under a broken chain can make GitHub reject
    or auto-close PRs, so every PR is parked on the root base first and
    re-chained after the push.
    """
    chain = stack.head_base_chain()
    if all(prs[head].base == base for head, base in chain if head in prs):
        return []

    root = stack.root_branch
    updates: list[tuple[int, str]] = []
    for head, _ in chain:
        pr = prs.get(head)
        if pr is None or pr.base == root:
            continue
        if remote_heads.get(head) is not None and remote_heads.get(head) == remote_heads.get(root):
            # GitHub refuses a base whose head equals the PR head
            continue
        set_pr_base(ctx, repo_root, pr.number, root)
        prs[head] = replace(pr, base=root)
        updates.append((pr.number, root))
    logger.debug("Parked %d PR(s) on %s before pushing", len(updates), root)
    return updates


def _push(ctx: "StackContext", repo_root: Path, pushes: list[PlannedPush]) -> None:
    fast_forwards = [p.refspec for p in pushes if p.kind == "fast-forward"]
    forced = [p for p in pushes if p.kind == "force-with-lease"]
    if fast_forwards:
        user_output(f"Pushing {len(fast_forwards)} branch(es)...")
        ctx.git.push_branches(repo_root, fast_forwards)
    if forced:
        user_output(f"Force-pushing {len(forced)} rewritten branch(es) with lease...")
        leases = {p.branch: p.remote_sha for p in forced if p.remote_sha is not None}
        ctx.git.push_branches(repo_root, [p.refspec for p in forced], leases=leases)


def _create_missing_prs(
    ctx: "StackContext", repo_root: Path, stack: Stack, prs: dict[str, PullRequest]
) -> list[int]:
    created: list[int] = []
    for index in range(1, stack.count + 1):
        head = stack.branch_for(index)
        if head in prs:
            continue
        group = stack.group(index)
        base = stack.expected_base(index)
        body = compose_body("overwrite", group.pr_body_base, "", PLACEHOLDER_BLOCK)
        number = ctx.github.create_pr(
            repo_root, head=head, base=base, title=group.pr_title, body=body
        )
        fetched = ctx.github.get_pr(repo_root, number)
        prs[head] = fetched or PullRequest(
            number=number,
            head=head,
            base=base,
            title=group.pr_title,
            body=body,
            state="OPEN",
            url="",
        )
        user_output(f"Created PR #{number} for {head}")
        created.append(number)
    return created


def _sync_prs(
    ctx: "StackContext",
    repo_root: Path,
    stack: Stack,
    prs: dict[str, PullRequest],
    mode: DescriptionMode,
) -> tuple[list[tuple[int, str]], list[int]]:
    numbers = [
        prs[stack.branch_for(i)].number
        for i in range(1, stack.count + 1)
        if stack.branch_for(i) in prs
    ]
    base_updates: list[tuple[int, str]] = []
    body_updates: list[int] = []
    for index in range(1, stack.count + 1):
        pr = prs.get(stack.branch_for(index))
        if pr is None:
            continue
        expected = stack.expected_base(index)
        if pr.base != expected:
            set_pr_base(ctx, repo_root, pr.number, expected)
            base_updates.append((pr.number, expected))

        block = render_stack_block(numbers, pr.number)
        body = compose_body(mode, stack.group(index).pr_body_base, pr.body, block)
        if body != pr.body:
            set_pr_body(ctx, repo_root, pr.number, body)
            body_updates.append(pr.number)
        prs[pr.head] = replace(pr, base=expected, body=body)

    if not base_updates and not body_updates:
        logger.debug("All PR descriptions and bases up to date")
    return base_updates, body_updates
