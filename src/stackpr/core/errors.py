"""Error taxonomy for stack operations.

Gateways raise RuntimeError (see stackpr.core.subprocess); the engine wraps
those into GatewayError where the failing step matters. Everything the CLI
reports to the user derives from StackError.
"""


class StackError(Exception):
    """Base class for all stack operation failures."""


class ValidationError(StackError):
    """Malformed range or index arguments. Raised before any mutation."""


class StackInvariantError(StackError):
    """Commit history cannot be mapped onto a well-formed stack."""


class PreconditionError(StackError):
    """An operation's precondition is unmet. Raised before any mutation."""


class GatewayError(StackError):
    """A remote or version-control call failed at a specific step."""

    def __init__(self, message: str, *, step: str | None = None) -> None:
        super().__init__(message)
        self.step = step


class ConflictError(StackError):
    """A replay step produced conflicting content.

    Not fatal on its own: the rebuild engine routes it to the configured
    conflict policy.
    """

    def __init__(
        self,
        *,
        step_index: int,
        commit: str,
        group: str | None,
        paths: tuple[str, ...],
    ) -> None:
        self.step_index = step_index
        self.commit = commit
        self.group = group
        self.paths = paths
        where = f" (group {group})" if group else ""
        files = ", ".join(paths) if paths else "unknown paths"
        super().__init__(
            f"Conflict replaying commit {commit[:8]}{where} at step {step_index + 1}: {files}"
        )


class CleanupError(StackError):
    """Scratch workspace removal failed. Reported as a warning only."""
