"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, plus the
npm-range check used to decide whether a dependency specifier points at
release versions only.
"""

from __future__ import annotations

import re

import semver

from .errors import InvalidVersionFormat
from .models import BranchType

# One comparator of an npm range: optional operator, then a full or partial
# version where any missing/x component is a wildcard.
_IDENTIFIERS = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"
_COMPARATOR = re.compile(
    r"^(?:\^|~>?|>=|<=|>|<|=)?v?"
    r"(?:0|[1-9]\d*|[xX*])"
    r"(?:\.(?:0|[1-9]\d*|[xX*]))?"
    r"(?:\.(?:0|[1-9]\d*|[xX*]))?"
    rf"(?:-(?P<prerelease>{_IDENTIFIERS}))?"
    rf"(?:\+(?P<build>{_IDENTIFIERS}))?$"
)
_OPERATOR_SPACE = re.compile(r"(\^|~>?|>=|<=|>|<|=)\s+")
_HYPHEN_RANGE = re.compile(r"^(\S+)\s+-\s+(\S+)$")
_NOT_IDENTIFIER = re.compile(r"[^0-9A-Za-z-]")


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Surrounding whitespace and a single leading "v" are tolerated, anything
    else must be a complete semantic version:
    - "1.2.3" → 1.2.3
    - "v1.2.3-dev.0" → 1.2.3-dev.0
    - "1.2" → InvalidVersionFormat

    Raises:
        InvalidVersionFormat: If the string is not valid semver.
    """
    text = version_str.strip() if isinstance(version_str, str) else ""
    if text.startswith("v"):
        text = text[1:]
    try:
        return semver.Version.parse(text)
    except (ValueError, TypeError) as exc:
        raise InvalidVersionFormat(str(version_str)) from exc


def version_core(version_str: str) -> str:
    """Return major.minor.patch, dropping prerelease and build metadata.

    Examples:
        "2.3.0-next.0" → "2.3.0"
        "1.0.0+build.5" → "1.0.0"
    """
    return str(parse_version(version_str).finalize_version())


def bump_patch(version_str: str) -> str:
    """Increment the patch component of the version core.

    Prerelease and build metadata are stripped before incrementing.

    Examples:
        "1.2.3" → "1.2.4"
        "1.2.3-dev.0" → "1.2.4"
    """
    return str(parse_version(version_str).finalize_version().bump_patch())


def is_version_core(version_str: str) -> bool:
    """True if the string is exactly a bare major.minor.patch version."""
    try:
        return version_str == version_core(version_str)
    except InvalidVersionFormat:
        return False


def topic_version(core: str, branch_type: BranchType, name: str) -> str:
    """Version carried by a topic branch while it is in progress.

    The branch type and name become the prerelease tag, so a feature
    "login/oauth" started from develop at 1.4.0 gets "1.4.0-feature-login-oauth.0".
    Characters not allowed in semver identifiers are replaced with "-".
    """
    slug = _NOT_IDENTIFIER.sub("-", name)
    return f"{version_core(core)}-{branch_type.value}-{slug}.0"


def is_release_version(specifier: str) -> bool:
    """Check whether an npm version specifier only targets release versions.

    Accepts exact versions and npm ranges (caret, tilde, comparison
    operators, x-ranges, hyphen ranges, "||" alternatives). Returns False
    for anything that is not a range at all (dist-tags, URLs) and for ranges
    where any comparator carries prerelease or build metadata.

    Examples:
        "1.0.0", "^1.2.0", ">=1.0.0 <2.0.0", "1.x", "*" → True
        "1.0.0-dev.0", "dev", "feature-foo" → False
    """
    for alternative in specifier.split("||"):
        for comparator in _comparators(alternative):
            match = _COMPARATOR.match(comparator)
            if match is None:
                return False
            if match["prerelease"] or match["build"]:
                return False
    return True


def _comparators(alternative: str) -> list[str]:
    """Split one "||" alternative of an npm range into comparator strings."""
    text = alternative.strip()
    hyphen = _HYPHEN_RANGE.match(text)
    if hyphen:
        return [hyphen.group(1), hyphen.group(2)]
    # npm allows whitespace between an operator and its version
    return _OPERATOR_SPACE.sub(r"\1", text).split()
