"""Dependency validation against per-branch dist-tag policies.

Each branch type allows release versions plus a closed set of dist-tags:

    branch type   exact tags   prefix tags
    main          -            -
    release       next         -
    hotfix        hotfix       -
    develop       dev          -
    feature       dev          feature
    bugfix        dev          bugfix

Source-location references (git URLs, hosted-git shorthands such as
"github:org/repo" or "org/repo", and http(s) URLs) are always allowed.
"""

from __future__ import annotations

import re
from collections.abc import Collection

from pydantic import BaseModel, ConfigDict

from .errors import InvalidDependencies
from .models import DEV_TAG, HOTFIX_TAG, NEXT_TAG, BranchType, ManifestSet
from .versions import is_release_version

SOURCE_REFERENCE_PREFIXES = (
    "git:",
    "git+https:",
    "git+http:",
    "git+ssh:",
    "git+file:",
    "github:",
    "gitlab:",
    "bitbucket:",
    "gist:",
    "http://",
    "https://",
)
# npm reads "owner/repo" (optionally "#ref") as a GitHub repository
_GITHUB_SHORTHAND = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*/[A-Za-z0-9_.-]+(?:#\S*)?$")


class TagPolicy(BaseModel):
    """Dist-tags a branch type may depend on besides release versions.

    Attributes:
        exact: Specifiers allowed only when equal to one of these.
        prefixes: Specifiers allowed when starting with one of these.
    """

    model_config = ConfigDict(frozen=True)

    exact: frozenset[str] = frozenset()
    prefixes: tuple[str, ...] = ()


TAG_POLICIES: dict[BranchType, TagPolicy] = {
    BranchType.MAIN: TagPolicy(),
    BranchType.RELEASE: TagPolicy(exact=frozenset({NEXT_TAG})),
    BranchType.HOTFIX: TagPolicy(exact=frozenset({HOTFIX_TAG})),
    BranchType.DEVELOP: TagPolicy(exact=frozenset({DEV_TAG})),
    BranchType.FEATURE: TagPolicy(exact=frozenset({DEV_TAG}), prefixes=("feature",)),
    BranchType.BUGFIX: TagPolicy(exact=frozenset({DEV_TAG}), prefixes=("bugfix",)),
}


def is_source_reference(specifier: str) -> bool:
    """True for direct VCS or URL references such as git+https://host/repo.git."""
    return specifier.startswith(SOURCE_REFERENCE_PREFIXES) or bool(
        _GITHUB_SHORTHAND.match(specifier)
    )


def is_specifier_allowed(specifier: str, branch_type: BranchType) -> bool:
    """Decide whether one dependency specifier is allowed on a branch type."""
    if is_release_version(specifier) or is_source_reference(specifier):
        return True
    policy = TAG_POLICIES[branch_type]
    if specifier in policy.exact:
        return True
    return specifier.startswith(policy.prefixes) if policy.prefixes else False


def find_invalid_dependencies(
    manifests: ManifestSet,
    branch_type: BranchType,
    excluded: Collection[str] = (),
) -> list[str]:
    """Collect every dependency that breaks the branch type's policy.

    Returns:
        "name@specifier" strings in manifest order, without duplicates.
    """
    offenders: list[str] = []
    for manifest in manifests.all():
        for _field, name, specifier in manifest.iter_dependencies():
            # Excluded packages are never checked
            if name in excluded:
                continue
            if not is_specifier_allowed(specifier, branch_type):
                offender = f"{name}@{specifier}"
                if offender not in offenders:
                    offenders.append(offender)
    return offenders


def validate_dependencies(
    manifests: ManifestSet,
    branch_type: BranchType,
    excluded: Collection[str] = (),
) -> None:
    """Fail with the full list of offenders if any dependency is not allowed.

    Args:
        manifests: Root manifest and, for monorepos, its sub-packages.
        branch_type: Branch type whose policy applies.
        excluded: Package names exempt from validation.

    Raises:
        InvalidDependencies: If one or more dependencies break the policy.
    """
    offenders = find_invalid_dependencies(manifests, branch_type, excluded)
    if offenders:
        raise InvalidDependencies(branch_type.value, offenders)
    print(f"  Dependencies validation passed for {branch_type.value} branch type rules")
