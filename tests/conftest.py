"""Shared test fixtures."""

from __future__ import annotations

import copy
import json
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import pytest

from npm_gitflow.errors import UnderlyingToolFailure
from npm_gitflow.manifest import PACKAGE_JSON
from npm_gitflow.models import Manifest, ManifestSet

Files = dict[str, dict[str, Any]]


class FakeGit:
    """In-memory VersionControl.

    Tracks committed files per branch and a separate working tree, so a
    ``--no-commit`` merge is visible in the working tree while
    ``show_file(branch, ...)`` still returns the committed content. Like git,
    a commit with no changes fails unless a ``--no-commit`` merge is pending.
    """

    def __init__(
        self,
        branches: dict[str, Files],
        current: str,
        remote: Iterable[str] | None = None,
        clean: bool = True,
    ) -> None:
        self.files: dict[str, Files] = copy.deepcopy(branches)
        self.current = current
        self.working: Files = copy.deepcopy(self.files[current])
        self.remote_heads = set(remote if remote is not None else branches)
        self.clean = clean
        self.merging = False
        self.tags: dict[str, str] = {}
        self.pushed_tags: set[str] = set()
        self.commits: list[tuple[str, str]] = []
        self.pushes: list[tuple[str | None, tuple[str, ...]]] = []
        self.merges: list[tuple[str, str, tuple[str, ...]]] = []
        self.pulls: list[tuple[str, str | None, str | None]] = []
        self.deleted: list[str] = []

    def is_clean(self) -> bool:
        return self.clean and self.working == self.files[self.current]

    def is_merging(self) -> bool:
        return self.merging

    def current_branch(self) -> str:
        return self.current

    def checkout(self, branch: str) -> None:
        if branch not in self.files:
            raise UnderlyingToolFailure(["git", "checkout", branch], 1, "no such branch")
        self.current = branch
        self.working = copy.deepcopy(self.files[branch])
        self.merging = False

    def pull(
        self,
        remote: str | None = None,
        ref: str | None = None,
        options: Sequence[str] = (),
    ) -> None:
        self.pulls.append((self.current, remote, ref))

    def checkout_local_branch(self, name: str) -> None:
        self.files[name] = copy.deepcopy(self.files[self.current])
        self.current = name

    def checkout_branch(self, name: str, start_point: str) -> None:
        self.files[name] = copy.deepcopy(self.files[start_point])
        self.checkout(name)

    def merge(self, branch: str, options: Sequence[str] = ()) -> None:
        self.merges.append((branch, self.current, tuple(options)))
        self.working = copy.deepcopy(self.files[branch])
        if "--squash" in options:
            return
        if "--no-commit" in options:
            self.merging = True
        else:
            self.files[self.current] = copy.deepcopy(self.working)

    def merge_from_to(self, source: str, target: str, options: Sequence[str] = ()) -> None:
        self.checkout(target)
        self.merge(source, options)

    def commit(self, message: str, options: Sequence[str] = ()) -> None:
        if self.working == self.files[self.current] and not self.merging:
            raise UnderlyingToolFailure(
                ["git", "commit", *options, "-m", message],
                1,
                "nothing to commit, working tree clean",
            )
        self.merging = False
        self.commits.append((self.current, message))
        self.files[self.current] = copy.deepcopy(self.working)

    def push(
        self,
        remote: str | None = None,
        branch: str | None = None,
        options: Sequence[str] = (),
    ) -> None:
        self.pushes.append((branch, tuple(options)))
        if branch:
            self.remote_heads.add(branch)

    def push_tags(self, tags: Sequence[str] = ()) -> None:
        self.pushed_tags.update(tags or self.tags)

    def add_annotated_tag(self, tag: str, message: str) -> None:
        self.tags[tag] = self.current

    def delete_local_branch(self, branch: str) -> None:
        self.files.pop(branch)
        self.deleted.append(branch)

    def delete_remote_branch(self, branch: str) -> None:
        self.remote_heads.discard(branch)

    def show_file(self, revision: str, path: str) -> str:
        try:
            return json.dumps(self.files[revision][path])
        except KeyError as exc:
            raise UnderlyingToolFailure(
                ["git", "show", f"{revision}:{path}"], 128, "path not found"
            ) from exc

    def list_remote_heads(self) -> list[str]:
        return [f"refs/heads/{branch}" for branch in sorted(self.remote_heads)]


class FakeStore:
    """In-memory PackageManifestStore working on FakeGit's working tree."""

    version_file = PACKAGE_JSON

    def __init__(self, git: FakeGit, root: Path) -> None:
        self.git = git
        self.root = root
        self.versions_set: list[tuple[str, str | None]] = []
        self.updated: list[list[str]] = []

    def is_monorepo(self) -> bool:
        return False

    def read_root_manifest(self) -> Manifest:
        return Manifest.from_document(
            self.root / PACKAGE_JSON, copy.deepcopy(self.git.working[PACKAGE_JSON])
        )

    def read_sub_package_manifests(self) -> list[Manifest]:
        return []

    def read_manifests(self) -> ManifestSet:
        return ManifestSet(root=self.read_root_manifest())

    def write_manifest(self, manifest: Manifest) -> None:
        self.git.working[PACKAGE_JSON] = manifest.to_document()

    def set_version(self, version: str, branch: str | None = None) -> None:
        self.versions_set.append((version, branch))
        self.git.working[PACKAGE_JSON]["version"] = version

    def update_packages(self, names: Iterable[str]) -> None:
        self.updated.append(sorted(names))


def package(version: str, **dependencies: str) -> Files:
    """Files of a branch holding a single package.json."""
    return {
        PACKAGE_JSON: {
            "name": "app",
            "version": version,
            "dependencies": dict(dependencies),
        }
    }


def write_package_json(root: Path, doc: dict[str, Any]) -> Path:
    path = root / PACKAGE_JSON
    path.write_text(json.dumps(doc, indent=2) + "\n")
    return path


@pytest.fixture
def make_repo(tmp_path: Path):
    """Factory building a FakeGit/FakeStore pair rooted at tmp_path."""

    def factory(
        branches: dict[str, Files],
        current: str,
        remote: Iterable[str] | None = None,
        clean: bool = True,
    ) -> tuple[FakeGit, FakeStore]:
        git = FakeGit(branches, current, remote=remote, clean=clean)
        return git, FakeStore(git, tmp_path)

    return factory


@pytest.fixture
def tmp_package(tmp_path: Path) -> Path:
    """Create a temporary npm project with a package.json."""
    write_package_json(
        tmp_path,
        {
            "name": "test-package",
            "version": "1.0.0",
            "private": True,
            "dependencies": {
                "@scope/a": "^1.0.0",
                "left-pad": "1.3.0",
            },
            "devDependencies": {
                "@scope/b": "dev",
                "jest": "^29.0.0",
            },
            "peerDependencies": {
                "react": ">=18",
            },
        },
    )
    return tmp_path
