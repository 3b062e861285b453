"""Version control capability used by the workflows.

The :class:`VersionControl` protocol lists the git operations a workflow
needs. :class:`GitCLI` implements it by shelling out to ``git`` in the
repository root; tests substitute an in-memory fake.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from .models import REMOTE
from .shell import git


class VersionControl(Protocol):
    """Protocol for the git operations the branch workflows issue."""

    def is_clean(self) -> bool:
        """Return True if the working tree has no uncommitted changes."""
        ...

    def is_merging(self) -> bool:
        """Return True while a merge is waiting to be committed."""
        ...

    def current_branch(self) -> str: ...

    def checkout(self, branch: str) -> None: ...

    def pull(
        self,
        remote: str | None = None,
        ref: str | None = None,
        options: Sequence[str] = (),
    ) -> None: ...

    def checkout_local_branch(self, name: str) -> None:
        """Create a branch from HEAD and switch to it."""
        ...

    def checkout_branch(self, name: str, start_point: str) -> None:
        """Create a branch from start_point and switch to it."""
        ...

    def merge(self, branch: str, options: Sequence[str] = ()) -> None:
        """Merge branch into the current branch."""
        ...

    def merge_from_to(
        self, source: str, target: str, options: Sequence[str] = ()
    ) -> None:
        """Switch to target and merge source into it."""
        ...

    def commit(self, message: str, options: Sequence[str] = ()) -> None: ...

    def push(
        self,
        remote: str | None = None,
        branch: str | None = None,
        options: Sequence[str] = (),
    ) -> None: ...

    def push_tags(self, tags: Sequence[str] = ()) -> None:
        """Push the given tags, or every tag when none are named."""
        ...

    def add_annotated_tag(self, tag: str, message: str) -> None: ...

    def delete_local_branch(self, branch: str) -> None: ...

    def delete_remote_branch(self, branch: str) -> None: ...

    def show_file(self, revision: str, path: str) -> str:
        """Return the content of path as committed on revision."""
        ...

    def list_remote_heads(self) -> list[str]:
        """Return the ref names of every branch on the remote."""
        ...


class GitCLI:
    """VersionControl backed by the ``git`` command line.

    Args:
        root: Repository root every command runs in.
        remote: Name of the canonical remote.
    """

    def __init__(self, root: Path, remote: str = REMOTE) -> None:
        self.root = root
        self.remote = remote

    def _git(self, *args: str) -> str:
        return git(*args, cwd=self.root)

    def is_clean(self) -> bool:
        return self._git("status", "--porcelain") == ""

    def is_merging(self) -> bool:
        # rev-parse exits 1 when MERGE_HEAD is absent
        head = git("rev-parse", "-q", "--verify", "MERGE_HEAD", cwd=self.root, check=False)
        return head != ""

    def current_branch(self) -> str:
        return self._git("rev-parse", "--abbrev-ref", "HEAD")

    def checkout(self, branch: str) -> None:
        self._git("checkout", branch)

    def pull(
        self,
        remote: str | None = None,
        ref: str | None = None,
        options: Sequence[str] = (),
    ) -> None:
        args = ["pull", *options]
        if remote:
            args.append(remote)
            if ref:
                args.append(ref)
        self._git(*args)

    def checkout_local_branch(self, name: str) -> None:
        self._git("checkout", "-b", name)

    def checkout_branch(self, name: str, start_point: str) -> None:
        self._git("checkout", "-b", name, start_point)

    def merge(self, branch: str, options: Sequence[str] = ()) -> None:
        self._git("merge", *options, branch)

    def merge_from_to(
        self, source: str, target: str, options: Sequence[str] = ()
    ) -> None:
        self.checkout(target)
        self.merge(source, options)

    def commit(self, message: str, options: Sequence[str] = ()) -> None:
        self._git("commit", *options, "-m", message)

    def push(
        self,
        remote: str | None = None,
        branch: str | None = None,
        options: Sequence[str] = (),
    ) -> None:
        args = ["push", *options]
        if remote:
            args.append(remote)
            if branch:
                args.append(branch)
        self._git(*args)

    def push_tags(self, tags: Sequence[str] = ()) -> None:
        if tags:
            self._git("push", self.remote, *tags)
        else:
            self._git("push", self.remote, "--tags")

    def add_annotated_tag(self, tag: str, message: str) -> None:
        self._git("tag", "-a", tag, "-m", message)

    def delete_local_branch(self, branch: str) -> None:
        self._git("branch", "-D", branch)

    def delete_remote_branch(self, branch: str) -> None:
        self._git("push", self.remote, "--delete", branch)

    def show_file(self, revision: str, path: str) -> str:
        return self._git("show", f"{revision}:{path}")

    def list_remote_heads(self) -> list[str]:
        output = self._git("ls-remote", "--heads", self.remote)
        # Each line is "<sha>\trefs/heads/<branch>"
        return [line.split("\t", 1)[1] for line in output.splitlines() if "\t" in line]


def remote_branch_exists(vcs: VersionControl, branch: str) -> bool:
    """Check whether refs/heads/<branch> exists on the remote."""
    return f"refs/heads/{branch}" in vcs.list_remote_heads()
