"""Subprocess execution with operation context in error messages.

Gateways call external tools (git, gh) through these helpers so that a
failure surfaces as a RuntimeError describing what was being attempted,
the exact command, its exit code, and its output.
"""

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path

logger = logging.getLogger(__name__)


def _describe_failure(
    cmd: Sequence[str], operation_context: str, returncode: int, stdout: str, stderr: str
) -> str:
    cmd_str = " ".join(str(arg) for arg in cmd)
    error_msg = f"Failed to {operation_context}"
    error_msg += f"\nCommand: {cmd_str}"
    error_msg += f"\nExit code: {returncode}"

    if stdout.strip():
        error_msg += f"\nstdout: {stdout.strip()}"
    if stderr.strip():
        error_msg += f"\nstderr: {stderr.strip()}"
    return error_msg


def run_subprocess_with_context(
    cmd: Sequence[str],
    operation_context: str,
    cwd: Path | None = None,
    *,
    check: bool = True,
    input_text: str | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a command, re-raising failures as RuntimeError with context.

    Args:
        cmd: Command and arguments to execute
        operation_context: Human-readable description, e.g. "push branches"
        cwd: Working directory for the command
        check: When False, a non-zero exit is returned to the caller instead
            of raised (use for commands whose exit code carries meaning)
        input_text: Optional text passed on stdin

    Returns:
        The completed process with text stdout/stderr

    Raises:
        RuntimeError: If the command exits non-zero (when check=True) or the
            binary cannot be found
    """
    logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        result = subprocess.run(
            list(cmd),
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=False,
            input=input_text,
        )
    except FileNotFoundError as e:
        error_msg = f"Command not found while trying to {operation_context}: {cmd[0]}"
        error_msg += f"\nFull command: {' '.join(cmd)}"
        raise RuntimeError(error_msg) from e

    if check and result.returncode != 0:
        raise RuntimeError(
            _describe_failure(
                cmd, operation_context, result.returncode, result.stdout or "", result.stderr or ""
            )
        )
    return result


def execute_gh_command(cmd: list[str], cwd: Path, operation_context: str) -> str:
    """Execute a gh CLI command and return its stdout.

    Raises:
        RuntimeError: If gh fails or is not installed
    """
    result = run_subprocess_with_context(cmd, operation_context=operation_context, cwd=cwd)
    return result.stdout
