"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running git, npm and
lerna, plus output formatting helpers. Every failure of an external tool is
re-raised as UnderlyingToolFailure so callers only deal with one error type.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from .errors import UnderlyingToolFailure


def git(*args: str, cwd: Path | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--porcelain").
        cwd: Directory to run in. Defaults to the current directory.
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail.

    Returns:
        Stripped stdout from the git command.

    Raises:
        UnderlyingToolFailure: If git exits non-zero (with check=True) or
            cannot be started at all.
    """
    return capture("git", *args, cwd=cwd, check=check)


def capture(*args: str, cwd: Path | None = None, check: bool = True) -> str:
    """Run a command with captured output and return its stripped stdout."""
    try:
        result = subprocess.run(
            args, capture_output=True, text=True, check=check, cwd=cwd
        )
    except subprocess.CalledProcessError as exc:
        raise UnderlyingToolFailure(
            list(args), exc.returncode, exc.stderr or exc.stdout or ""
        ) from exc
    except OSError as exc:
        raise UnderlyingToolFailure(list(args), None, str(exc)) from exc
    return result.stdout.strip()


def run(*args: str, cwd: Path | None = None) -> subprocess.CompletedProcess[bytes]:
    """Run an arbitrary shell command.

    Unlike git(), this doesn't capture output - it streams directly to
    the terminal so users can see npm/lerna progress.

    Args:
        *args: Command and arguments (e.g., "npm", "update", "@scope/a").
        cwd: Directory to run in. Defaults to the current directory.

    Returns:
        CompletedProcess for the finished command.

    Raises:
        UnderlyingToolFailure: If the command exits non-zero or cannot start.
    """
    try:
        return subprocess.run(args, check=True, cwd=cwd)
    except subprocess.CalledProcessError as exc:
        raise UnderlyingToolFailure(list(args), exc.returncode, "") from exc
    except OSError as exc:
        raise UnderlyingToolFailure(list(args), None, str(exc)) from exc


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate the steps of a workflow in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")
