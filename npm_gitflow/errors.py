"""Error taxonomy for npm-gitflow.

Every failure a workflow can hit is one of these. None of them is handled
inside a workflow: they propagate to the CLI, which prints the message and
exits with status 1.
"""

from __future__ import annotations

from collections.abc import Sequence


class GitflowError(Exception):
    """Base exception for all npm-gitflow failures."""


class UncommittedChanges(GitflowError):
    """Raised when the working tree has uncommitted changes."""

    def __init__(self) -> None:
        super().__init__(
            "You have uncommitted changes in your working directory.\n"
            "Please commit or stash your changes before proceeding."
        )


class WrongBranch(GitflowError):
    """Raised when a finish command runs on a branch of the wrong type."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"You are trying to finish a branch that is not a {expected} branch: "
            f"{actual}"
        )


class WorkflowAlreadyInProgress(GitflowError):
    """Raised when a singleton branch (release/hotfix) already exists remotely."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(
            f"The {branch} branch already exists on the remote. "
            f"A {branch} is already in progress."
        )


class InvalidVersionFormat(GitflowError):
    """Raised when a version string is not valid semver."""

    def __init__(self, version: str, reason: str | None = None) -> None:
        self.version = version
        message = f"Invalid version format: {version!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class InvalidDependencies(GitflowError):
    """Raised when dependencies break the tag policy of a branch type.

    Carries every offender so the user can fix them all in one go.
    """

    def __init__(self, branch_type: str, offenders: Sequence[str]) -> None:
        self.branch_type = branch_type
        self.offenders = list(offenders)
        lines = "\n".join(f"  - {dep}" for dep in self.offenders)
        super().__init__(
            f"Cannot proceed with {branch_type} branch type rules. "
            f"The following dependencies must be updated to allowed versions:\n"
            f"{lines}"
        )


class NoLockFileFound(GitflowError):
    """Raised when neither package-lock.json nor npm-shrinkwrap.json exists."""

    def __init__(self, root: str) -> None:
        super().__init__(
            f"No package-lock.json or npm-shrinkwrap.json found in {root}"
        )


class InvalidScopeFormat(GitflowError):
    """Raised when an npm scope is empty or malformed."""

    def __init__(self, scope: str) -> None:
        self.scope = scope
        super().__init__(
            f"Invalid scope format: {scope!r}. It should start with '@' "
            f"and not contain '/' (e.g. '@company')"
        )


class InvalidBranchName(GitflowError):
    """Raised when a topic branch name is empty."""


class InvalidManifest(GitflowError):
    """Raised when a package.json/lerna.json cannot be read or is malformed."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        super().__init__(f"Invalid manifest {path}: {detail}")


class UnderlyingToolFailure(GitflowError):
    """Wraps a failed git, npm or lerna invocation."""

    def __init__(
        self, command: Sequence[str], returncode: int | None, output: str
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output.strip()
        message = f"Command failed: {' '.join(self.command)}"
        if returncode is not None:
            message += f" (exit {returncode})"
        if self.output:
            message += f"\n{self.output}"
        super().__init__(message)
