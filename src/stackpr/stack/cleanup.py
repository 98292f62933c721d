"""Delete remote stack branches that no longer back an open PR."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from stackpr.cli.output import user_output
from stackpr.core.config import StackSettings
from stackpr.core.errors import GatewayError

if TYPE_CHECKING:
    from stackpr.core.context import StackContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupResult:
    deleted: tuple[str, ...] = ()
    kept: tuple[str, ...] = ()


def cleanup_remote_branches(
    ctx: "StackContext", repo_root: Path, settings: StackSettings
) -> CleanupResult:
    """Delete `{prefix}*` branches on origin that have no open PR, in one push."""
    with ThreadPoolExecutor(max_workers=2) as executor:
        branches_future = executor.submit(
            ctx.git.list_remote_branches_with_prefix, repo_root, settings.prefix
        )
        heads_future = executor.submit(ctx.github.list_open_pr_heads, repo_root)
        branches = branches_future.result()
        open_heads = heads_future.result()

    if not branches:
        user_output(f"No remote branches found with prefix {settings.prefix}")
        return CleanupResult()

    to_delete = [name for name in branches if name not in open_heads]
    kept = [name for name in branches if name in open_heads]
    if not to_delete:
        user_output(f"Nothing to delete; {len(kept)} branch(es) have open PRs")
        return CleanupResult(kept=tuple(kept))

    user_output(f"Deleting {len(to_delete)} remote branch(es) with no open PRs...")
    try:
        ctx.git.delete_remote_branches(repo_root, to_delete)
    except RuntimeError as e:
        raise GatewayError(str(e), step="delete remote branches") from e
    logger.debug("Deleted %s; kept %s", to_delete, kept)
    user_output(f"Deleted {len(to_delete)} branch(es); skipped {len(kept)} with open PRs")
    return CleanupResult(deleted=tuple(to_delete), kept=tuple(kept))
