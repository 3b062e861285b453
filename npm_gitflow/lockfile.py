"""Lock-file maintenance for scoped packages.

npm keeps resolving a dist-tag dependency (e.g. "@company/ui": "dev") to
whatever the lock file recorded when it was first installed. Dropping the
lock entries for a scope and running ``npm update`` on the affected
packages forces them to be resolved again from the registry.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from .errors import InvalidScopeFormat, NoLockFileFound
from .manifest import PackageManifestStore, read_json, write_json
from .models import Manifest
from .shell import step

LOCK_FILE_CANDIDATES = ("package-lock.json", "npm-shrinkwrap.json")


def validate_scopes(scopes: Sequence[str]) -> None:
    """Check every scope looks like "@company".

    Raises:
        InvalidScopeFormat: If no scope is given, or one is empty, does not
            start with "@", or contains "/".
    """
    if not scopes:
        raise InvalidScopeFormat("")
    for scope in scopes:
        if not scope or not scope.startswith("@") or "/" in scope:
            raise InvalidScopeFormat(scope)


def find_lock_file(root: Path) -> Path:
    """Return package-lock.json, falling back to npm-shrinkwrap.json.

    Raises:
        NoLockFileFound: If neither exists in root.
    """
    for candidate in LOCK_FILE_CANDIDATES:
        path = root / candidate
        if path.exists():
            return path
    raise NoLockFileFound(str(root))


def collect_scope_packages(manifest: Manifest, scopes: Sequence[str]) -> list[str]:
    """List the declared dependencies that belong to any of the scopes.

    Looks at dependencies, devDependencies and peerDependencies.

    Returns:
        Sorted, de-duplicated package names such as "@company/ui".
    """
    prefixes = tuple(f"{scope}/" for scope in scopes)
    return sorted(
        {name for _field, name, _spec in manifest.iter_dependencies() if name.startswith(prefixes)}
    )


def _is_installation_of(key: str, names: set[str]) -> bool:
    """True if a lock "packages" key is an install path of one of names.

    Matches node_modules/<name>, nested .../node_modules/<name>, and
    anything installed beneath either.
    """
    marker = "node_modules/"
    # Each "node_modules/" segment starts a package path: check what follows
    start = key.find(marker)
    while start != -1:
        rest = key[start + len(marker) :]
        for name in names:
            if rest == name or rest.startswith(f"{name}/"):
                return True
        start = key.find(marker, start + 1)
    return False


def prune_lock_data(lock_data: dict[str, Any], names: Iterable[str]) -> dict[str, Any]:
    """Drop the resolved entries of the named packages from lock-file data.

    Only the "packages" map is touched. The input is not modified.

    Returns:
        A shallow copy of lock_data with the filtered "packages" map.
    """
    targets = set(names)
    result = dict(lock_data)
    packages = result.get("packages")
    if isinstance(packages, dict) and targets:
        result["packages"] = {
            key: value
            for key, value in packages.items()
            if not _is_installation_of(key, targets)
        }
    return result


def update_lock_file(store: PackageManifestStore, scopes: Sequence[str]) -> list[str]:
    """Refresh the lock-file entries of every dependency under the scopes.

    1. Validate the scope syntax
    2. Locate the lock file
    3. Collect declared dependencies under the scopes from package.json
    4. Remove their entries from the lock file and save it
    5. Run ``npm update`` for exactly those packages

    Returns:
        The affected package names (empty if none were declared).
    """
    validate_scopes(scopes)
    scopes_str = ", ".join(scopes)

    step(f"Updating lock file for scope(s) {scopes_str}")
    lock_path = find_lock_file(store.root)
    print(f"  Processing {lock_path.name}")

    names = collect_scope_packages(store.read_root_manifest(), scopes)
    if not names:
        print(f"  No packages found with scope(s) {scopes_str}")
        return []
    print(f"  Found {len(names)} packages: {' '.join(names)}")

    lock_data = read_json(lock_path)
    write_json(lock_path, prune_lock_data(lock_data, names))
    print(f"  Updated {lock_path.name} - removed entries for {' '.join(names)}")

    store.update_packages(names)
    return names
