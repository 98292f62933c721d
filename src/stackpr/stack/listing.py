"""Rows for `stackpr list`.

Numbering always follows the stack, bottom-up. `list_order` only decides
which end is printed first.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from stackpr.core.config import ListOrder, StackSettings
from stackpr.core.github.types import PullRequestStatus
from stackpr.stack.model import load_stack
from stackpr.stack.remote import fetch_open_prs, fetch_statuses

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)

EM_SPACE = "\u2003"

CI_ICONS = {"SUCCESS": "✓", "FAILURE": "✗", "ERROR": "✗", "PENDING": "◐", "EXPECTED": "◐"}
REVIEW_ICONS = {"APPROVED": "✓", "CHANGES_REQUESTED": "✗", "REVIEW_REQUIRED": "◐"}

T = TypeVar("T")


def ordered_for_display(rows: Sequence[T], order: ListOrder) -> list[T]:
    if order == "recent_on_top":
        return list(reversed(rows))
    return list(rows)


def status_icons(status: PullRequestStatus | None) -> tuple[str, str]:
    if status is None:
        return "?", "?"
    return CI_ICONS.get(status.ci_state, "?"), REVIEW_ICONS.get(status.review_decision, "?")


@dataclass(frozen=True)
class PrRow:
    index: int
    ci_icon: str
    review_icon: str
    first_sha: str
    branch: str
    number: int | None
    commit_count: int
    subject: str

    def render(self) -> str:
        remote = f" (#{self.number})" if self.number is not None else ""
        plural = "commit" if self.commit_count == 1 else "commits"
        return (
            f"{self.ci_icon}{self.review_icon} LPR #{self.index} - {self.first_sha[:8]} : "
            f"{self.branch}{remote} - {self.commit_count} {plural}\n"
            f"{EM_SPACE * 5}{self.subject}"
        )


@dataclass(frozen=True)
class CommitRow:
    index: int
    sha: str
    owner: str
    subject: str

    def render(self) -> str:
        return f"{self.index:>4}  {self.sha[:8]} [{self.owner}] - {self.subject}"


PR_LIST_HEADER = (f"┏━━{EM_SPACE}CI status", f"┃┏━{EM_SPACE}review status")


def list_pr_rows(ctx: "StackContext", repo_root: Path, settings: StackSettings) -> list[PrRow]:
    """One row per group, in display order."""
    stack = load_stack(ctx, repo_root, settings)
    if stack.count == 0:
        return []

    heads = [stack.branch_for(i) for i in range(1, stack.count + 1)]
    prs = fetch_open_prs(ctx, repo_root, heads)
    statuses = fetch_statuses(ctx, repo_root, [pr.number for pr in prs.values()])

    rows: list[PrRow] = []
    for index, head in enumerate(heads, start=1):
        group = stack.group(index)
        pr = prs.get(head)
        ci_icon, review_icon = status_icons(statuses.get(pr.number) if pr else None)
        rows.append(
            PrRow(
                index=index,
                ci_icon=ci_icon,
                review_icon=review_icon,
                first_sha=group.commits[0],
                branch=head,
                number=pr.number if pr else None,
                commit_count=len(group.commits),
                subject=group.subjects[0] if group.subjects else "",
            )
        )
    return ordered_for_display(rows, settings.list_order)


def list_commit_rows(
    ctx: "StackContext", repo_root: Path, settings: StackSettings
) -> list[CommitRow]:
    """One row per commit above the merge-base, ignored ones included."""
    stack = load_stack(ctx, repo_root, settings)
    records = ctx.git.list_commits(repo_root, stack.merge_base, "HEAD")
    owners = {sha: group.tag for group in stack.groups for sha in group.commits}

    rows = [
        CommitRow(
            index=index,
            sha=record.sha,
            owner=owners.get(record.sha, "ignored"),
            subject=record.subject,
        )
        for index, record in enumerate(records, start=1)
    ]
    logger.debug("Listing %d commit(s) in %d group(s)", len(rows), stack.count)
    return ordered_for_display(rows, settings.list_order)
