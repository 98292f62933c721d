"""Retry with exponential backoff for remote mutations.

Landing and relinking wrap every GitHub write in this decorator. Callers put
a remote re-check inside the retried function, so an attempt that follows a
lost response sees the already-applied change and skips it.
"""

import logging
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

import click

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    *,
    backoff_factor: float = 2.0,
    ctx: Any = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Retry a function with exponentially increasing delays.

    The last failure is re-raised once max_attempts is exhausted. Delays are
    base_delay * backoff_factor ** (retry - 1): 1s, 2s, 4s with defaults.
    Sleeping goes through ctx.time so tests use FakeTime.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        base_delay: Delay before the first retry, in seconds (default: 1.0)
        backoff_factor: Multiplier applied per retry (default: 2.0)
        ctx: StackContext for closures; otherwise taken from the first argument

    Example:
        def close(ctx: StackContext, number: int) -> None:
            @retry_with_backoff(max_attempts=3, base_delay=1.0, ctx=ctx)
            def attempt() -> None:
                pr = ctx.github.get_pr(repo_root, number)
                if pr is not None and pr.state == "CLOSED":
                    return
                ctx.github.close_pr(repo_root, number)

            attempt()
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            # Inline import: context imports gateways that import this package
            from stackpr.core.context import StackContext

            context: StackContext
            if ctx is not None:
                context = ctx
            elif len(args) > 0 and isinstance(args[0], StackContext):
                context = args[0]
            else:
                msg = (
                    f"Function {func.__name__} must either take StackContext "
                    "as first parameter or decorator must receive ctx"
                )
                raise TypeError(msg)

            for attempt in range(max_attempts):
                if attempt > 0:
                    delay = base_delay * (backoff_factor ** (attempt - 1))
                    click.echo(
                        f"Retrying after {delay:.1f}s (attempt {attempt + 1}/{max_attempts})...",
                        err=True,
                    )
                    context.time.sleep(delay)

                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if attempt == max_attempts - 1:
                        raise
                    logger.debug("%s failed on attempt %d: %s", func.__name__, attempt + 1, e)
                    click.echo(f"Operation failed: {e}", err=True)

            msg = f"Function {func.__name__} ran zero attempts (max_attempts={max_attempts})"
            raise RuntimeError(msg)

        return wrapper

    return decorator
