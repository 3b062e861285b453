"""package.json reading and writing utilities.

Manifests are parsed into typed models on read and written back as
2-space-indented JSON, which is what npm itself produces, so rewrites stay
diff-friendly. Version changes go through npm (single package) or lerna
(monorepo) so lock files and sub-packages follow along.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from .errors import InvalidManifest, UnderlyingToolFailure
from .models import Manifest, ManifestSet
from .shell import capture, run

PACKAGE_JSON = "package.json"
LERNA_JSON = "lerna.json"


class PackageManifestStore(Protocol):
    """Protocol for manifest access used by the workflows."""

    root: Path

    def is_monorepo(self) -> bool:
        """True when the project is a lerna monorepo."""
        ...

    @property
    def version_file(self) -> str:
        """File (relative to root) that holds the project version."""
        ...

    def read_root_manifest(self) -> Manifest: ...

    def read_sub_package_manifests(self) -> list[Manifest]: ...

    def read_manifests(self) -> ManifestSet: ...

    def write_manifest(self, manifest: Manifest) -> None: ...

    def set_version(self, version: str, branch: str | None = None) -> None: ...

    def update_packages(self, names: Iterable[str]) -> None:
        """Re-resolve the named dependencies into the lock file."""
        ...


def read_json(path: Path) -> Any:
    """Load a JSON file, converting read and parse errors to InvalidManifest."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise InvalidManifest(str(path), exc.strerror or str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise InvalidManifest(str(path), f"not valid JSON ({exc})") from exc


def write_json(path: Path, data: Any) -> None:
    """Write JSON atomically: a sibling temp file replaces the target."""
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    os.replace(tmp, path)


def load_manifest(path: Path) -> Manifest:
    """Load and validate a package.json file.

    Raises:
        InvalidManifest: If the file is missing, not JSON, or has a
            malformed version or dependency map.
    """
    doc = read_json(path)
    try:
        return Manifest.from_document(path, doc)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidManifest(str(path), problems) from exc


def version_from_document(content: str, source: str) -> str:
    """Extract the "version" field from raw package.json/lerna.json text.

    Used on file contents read from another branch via git.

    Args:
        content: Raw JSON text.
        source: Description of where the text came from, for errors.
    """
    try:
        doc = json.loads(content)
    except json.JSONDecodeError as exc:
        raise InvalidManifest(source, f"not valid JSON ({exc})") from exc
    version = doc.get("version") if isinstance(doc, dict) else None
    if not isinstance(version, str):
        raise InvalidManifest(source, "missing string 'version' field")
    return version


class NpmManifestStore:
    """PackageManifestStore backed by the filesystem, npm and lerna.

    Args:
        root: Project root containing package.json (and lerna.json for
            monorepos).
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def is_monorepo(self) -> bool:
        return (self.root / LERNA_JSON).exists()

    @property
    def version_file(self) -> str:
        return LERNA_JSON if self.is_monorepo() else PACKAGE_JSON

    def read_root_manifest(self) -> Manifest:
        return load_manifest(self.root / PACKAGE_JSON)

    def read_sub_package_manifests(self) -> list[Manifest]:
        """Enumerate monorepo packages via ``lerna list --json``.

        Returns an empty list for single-package projects.
        """
        if not self.is_monorepo():
            return []
        output = capture("lerna", "list", "--json", cwd=self.root)
        try:
            entries = json.loads(output or "[]")
        except json.JSONDecodeError as exc:
            raise UnderlyingToolFailure(
                ["lerna", "list", "--json"], None, f"unexpected output: {output}"
            ) from exc
        manifests: list[Manifest] = []
        for entry in entries:
            location = Path(entry["location"])
            if not location.is_absolute():
                location = self.root / location
            manifests.append(load_manifest(location / PACKAGE_JSON))
        return manifests

    def read_manifests(self) -> ManifestSet:
        return ManifestSet(
            root=self.read_root_manifest(),
            packages=self.read_sub_package_manifests(),
        )

    def write_manifest(self, manifest: Manifest) -> None:
        write_json(manifest.path, manifest.to_document())

    def set_version(self, version: str, branch: str | None = None) -> None:
        """Set the project version without creating a commit or tag.

        Args:
            version: New version string.
            branch: Branch lerna should allow the version change on
                (monorepos only).
        """
        if self.is_monorepo():
            args = [
                "lerna",
                "version",
                version,
                "--no-push",
                "--no-private",
                "--no-git-tag-version",
            ]
            if branch:
                args += ["--allow-branch", branch]
            run(*args, "--yes", cwd=self.root)
            print(f"  Version of {LERNA_JSON} changed to {version}")
        else:
            run(
                "npm",
                "version",
                version,
                "--no-git-tag-version",
                "--allow-same-version",
                cwd=self.root,
            )
            print(f"  Version of {PACKAGE_JSON} changed to {version}")

    def update_packages(self, names: Iterable[str]) -> None:
        packages = sorted(set(names))
        if not packages:
            return
        print(f"  Running: npm update {' '.join(packages)}")
        run("npm", "update", *packages, cwd=self.root)
