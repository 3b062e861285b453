"""Data models for npm-gitflow.

These Pydantic models represent the core data structures used throughout
the branch workflows: the branch taxonomy, package manifests, and the
per-invocation workflow record.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

REMOTE = "origin"

# Dist-tags that integration branches publish under
DEV_TAG = "dev"
NEXT_TAG = "next"
HOTFIX_TAG = "hotfix"

DEPENDENCY_FIELDS = ("dependencies", "devDependencies", "peerDependencies")


class BranchType(str, Enum):
    """The fixed gitflow branch taxonomy.

    Topology: feature/bugfix → develop → release/hotfix → main → develop.
    """

    MAIN = "main"
    DEVELOP = "develop"
    RELEASE = "release"
    HOTFIX = "hotfix"
    FEATURE = "feature"
    BUGFIX = "bugfix"

    @property
    def is_topic(self) -> bool:
        """Topic branches are named ``{type}/{name}`` and merge into develop."""
        return self in (BranchType.FEATURE, BranchType.BUGFIX)

    @property
    def branch_prefix(self) -> str:
        """Prefix a branch of this type must carry to be finished."""
        return f"{self.value}/" if self.is_topic else self.value

    def topic_branch(self, name: str) -> str:
        """Full branch name for a topic branch, e.g. ``feature/login``."""
        return f"{self.value}/{name}"


class Manifest(BaseModel):
    """One package descriptor (package.json).

    Only the fields the workflows read or rewrite are typed. The parsed
    document is kept in ``raw`` so unknown fields and key order survive
    a write-back.

    Attributes:
        path: Location of the package.json this manifest was read from.
        name: Package name, if declared.
        version: Package version, if declared.
        dependencies: Runtime dependency map (name → specifier).
        dev_dependencies: Development dependency map.
        peer_dependencies: Peer dependency map.
        raw: The full JSON document as read.
    """

    model_config = ConfigDict(populate_by_name=True)

    path: Path
    name: str | None = None
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(
        default_factory=dict, alias="devDependencies"
    )
    peer_dependencies: dict[str, str] = Field(
        default_factory=dict, alias="peerDependencies"
    )
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    @classmethod
    def from_document(cls, path: Path, doc: Any) -> Manifest:
        """Validate a parsed JSON document into a Manifest.

        Raises:
            pydantic.ValidationError: If the document is not an object or a
                typed field has the wrong shape.
        """
        if not isinstance(doc, dict):
            # Let pydantic produce the error for a non-object document
            return cls.model_validate({"path": path, "raw": doc})
        fields = {k: doc[k] for k in ("name", "version", *DEPENDENCY_FIELDS) if k in doc}
        return cls.model_validate({**fields, "path": path, "raw": doc})

    @property
    def display_name(self) -> str:
        """Package name, falling back to the directory name."""
        return self.name or self.path.parent.name

    def dependency_maps(self) -> list[tuple[str, dict[str, str]]]:
        """The three dependency maps, keyed by their package.json field."""
        return [
            ("dependencies", self.dependencies),
            ("devDependencies", self.dev_dependencies),
            ("peerDependencies", self.peer_dependencies),
        ]

    def iter_dependencies(self) -> Iterator[tuple[str, str, str]]:
        """Yield (field, package name, specifier) for every dependency."""
        for field, deps in self.dependency_maps():
            for name, specifier in deps.items():
                yield field, name, specifier

    def to_document(self) -> dict[str, Any]:
        """Merge the typed fields back into the raw document."""
        doc = dict(self.raw)
        if self.version is not None:
            doc["version"] = self.version
        for field, deps in self.dependency_maps():
            if deps or field in doc:
                doc[field] = dict(deps)
        return doc


class ManifestSet(BaseModel):
    """Root manifest plus the sub-package manifests of a monorepo.

    ``packages`` is empty for single-package projects.
    """

    root: Manifest
    packages: list[Manifest] = Field(default_factory=list)

    def all(self) -> list[Manifest]:
        return [self.root, *self.packages]


class DistTagRewrite(BaseModel):
    """Records what one dist-tag rewrite changed.

    Attributes:
        dependencies: Names of dependencies whose specifier was rewritten.
            These are what the lock file has to re-resolve.
        manifests: Names of the packages whose manifest was changed and
            written back.
    """

    dependencies: set[str] = Field(default_factory=set)
    manifests: set[str] = Field(default_factory=set)

    def __bool__(self) -> bool:
        return bool(self.dependencies)


class WorkflowRun(BaseModel):
    """In-memory record of one workflow invocation.

    Values computed by one step and needed by a later one (the branch being
    finished, the version being released) are stored here rather than in
    module globals. Never persisted.

    Attributes:
        workflow: Command name, e.g. "release-finish".
        source_branch: Branch the workflow operates on or creates.
        version: Version computed for the branch.
        next_version: Version develop moves to after a release or hotfix.
        completed: Labels of the steps that finished, in order.
        summary: Human-readable lines reported when the workflow completes.
    """

    workflow: str
    source_branch: str | None = None
    version: str | None = None
    next_version: str | None = None
    completed: list[str] = Field(default_factory=list)
    summary: list[str] = Field(default_factory=list)
