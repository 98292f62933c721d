"""GitHub helpers shared by the stack operations.

Reads fan out on a bounded thread pool; every operation finishes its reads
before it decides anything or writes anything. PR edits are retried, and
each attempt re-reads the PR so an edit whose response was lost is not
sent again.
"""

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from stackpr.core.errors import GatewayError
from stackpr.core.github.types import PullRequest, PullRequestStatus
from stackpr.core.retry import retry_with_backoff

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)

MAX_READ_WORKERS = 8

K = TypeVar("K")
V = TypeVar("V")


def fan_out(keys: Iterable[K], fetch: Callable[[K], V], *, what: str) -> dict[K, V]:
    """Run fetch(key) for every key on a bounded thread pool.

    Results are joined before returning. A failing read is re-raised as a
    GatewayError naming the key.
    """
    ordered = list(dict.fromkeys(keys))
    if not ordered:
        return {}

    results: dict[K, V] = {}
    with ThreadPoolExecutor(max_workers=min(MAX_READ_WORKERS, len(ordered))) as executor:
        futures = {key: executor.submit(fetch, key) for key in ordered}
        for key, future in futures.items():
            try:
                results[key] = future.result()
            except RuntimeError as e:
                msg = f"Failed to fetch {what} for {key}: {e}"
                raise GatewayError(msg, step=f"read {what}") from e
    logger.debug("Fetched %s for %d key(s)", what, len(results))
    return results


def fetch_open_prs(
    ctx: "StackContext", repo_root: Path, heads: Iterable[str]
) -> dict[str, PullRequest]:
    """Open PR per head branch. Heads without one are omitted."""
    found = fan_out(
        heads,
        lambda head: ctx.github.get_open_pr_for_head(repo_root, head),
        what="open PR",
    )
    return {head: pr for head, pr in found.items() if pr is not None}


def fetch_statuses(
    ctx: "StackContext", repo_root: Path, numbers: Iterable[int]
) -> dict[int, PullRequestStatus]:
    return fan_out(
        numbers,
        lambda number: ctx.github.get_pr_status(repo_root, number),
        what="CI/review status",
    )


def set_pr_base(ctx: "StackContext", repo_root: Path, number: int, base: str) -> None:
    @retry_with_backoff(max_attempts=3, base_delay=1.0, ctx=ctx)
    def attempt() -> None:
        current = ctx.github.get_pr(repo_root, number)
        if current is not None and current.base == base:
            logger.debug("PR #%d already on %s; skipping update", number, base)
            return
        ctx.github.update_pr_base(repo_root, number, base)

    attempt()


def set_pr_body(ctx: "StackContext", repo_root: Path, number: int, body: str) -> None:
    @retry_with_backoff(max_attempts=3, base_delay=1.0, ctx=ctx)
    def attempt() -> None:
        current = ctx.github.get_pr(repo_root, number)
        if current is not None and current.body == body:
            logger.debug("PR #%d description already up to date", number)
            return
        ctx.github.update_pr_body(repo_root, number, body)

    attempt()
