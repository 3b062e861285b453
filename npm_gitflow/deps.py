"""Dependency dist-tag rewriting.

When a branch is promoted (feature → develop, develop → release) the
dist-tags its dependencies point at have to be promoted with it, e.g. every
"dev" dependency becomes "next" when a release starts.
"""

from __future__ import annotations

from collections.abc import Callable

from .manifest import PackageManifestStore
from .models import DEV_TAG, BranchType, DistTagRewrite, Manifest

SpecifierPredicate = Callable[[str], bool]


def is_topic_tag(specifier: str) -> bool:
    """Matches dist-tags published from feature or bugfix branches."""
    return specifier.startswith((BranchType.FEATURE.value, BranchType.BUGFIX.value))


def is_dev_tag(specifier: str) -> bool:
    """Matches the develop branch dist-tag exactly."""
    return specifier == DEV_TAG


def rewrite_manifest(
    manifest: Manifest, predicate: SpecifierPredicate, new_tag: str
) -> set[str]:
    """Rewrite matching dependency specifiers of one manifest in place.

    The predicate only ever sees the specifier as read, so an entry is
    rewritten at most once even if new_tag itself would match.

    Returns:
        Names of the dependencies that were rewritten.
    """
    rewritten: set[str] = set()
    for field, deps in manifest.dependency_maps():
        # Snapshot the items so every entry is judged on its original value
        for name, specifier in list(deps.items()):
            if predicate(specifier):
                deps[name] = new_tag
                rewritten.add(name)
                print(f"  Updated {name} from {specifier} to {new_tag} in {field}")
    return rewritten


def rewrite_dist_tags(
    store: PackageManifestStore, predicate: SpecifierPredicate, new_tag: str
) -> DistTagRewrite:
    """Rewrite matching dependencies across the root and all sub-packages.

    Every manifest that changed is written back before returning, so later
    steps (commit, lock-file refresh) see the new values.

    Args:
        store: Manifest store for the project.
        predicate: Selects the specifiers to replace.
        new_tag: Replacement specifier.

    Returns:
        What was rewritten. Empty when nothing matched, which is not an error.
    """
    result = DistTagRewrite()
    for manifest in store.read_manifests().all():
        rewritten = rewrite_manifest(manifest, predicate, new_tag)
        if rewritten:
            store.write_manifest(manifest)
            result.dependencies |= rewritten
            result.manifests.add(manifest.display_name)

    if not result:
        print(f"  No dependencies to update to {new_tag}")
    return result


def refresh_lock_file(store: PackageManifestStore, rewrite: DistTagRewrite) -> None:
    """Re-resolve rewritten dependencies so the lock file matches the new tags."""
    if not rewrite:
        return
    store.update_packages(rewrite.dependencies)
    print("  Updated lock files")
