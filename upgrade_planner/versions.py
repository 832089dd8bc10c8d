"""Version parsing and comparison utilities.

Handles conversion between short version strings and semver, with special
handling for incomplete versions (e.g., "1.2" → "1.2.0", "1-beta" →
"1.0.0-beta"). Precedence comes from semver; range matching follows the npm
range grammar ("^1.0.0", "~1.2", ">=1 <2", "1.x || 2.x").
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import nodesemver
import semver

from .errors import InvalidVersionSpec

_LEADING_NUMBERS = re.compile(r"^\d{1,30}(?:\.\d{1,30})*")


def coerce_version(version_str: str) -> str | None:
    """Turn a short version string into a valid semver string.

    Missing minor/patch components are padded with zeros, inserted before
    any pre-release or build suffix:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1-beta" → "1.0.0-beta"

    Returns None for strings with more than three numeric components or
    without a numeric leading segment.
    """
    match = _LEADING_NUMBERS.match(version_str)
    if not match:
        return None

    numbers = match.group(0).split(".")
    if len(numbers) > 3:
        return None

    numbers += ["0"] * (3 - len(numbers))
    candidate = ".".join(numbers) + version_str[match.end() :]
    if not semver.Version.is_valid(candidate):
        return None
    return candidate


def format_migration_version(version_str: str) -> str:
    """Coerce a user-supplied migration bound, failing loudly if invalid."""
    version = coerce_version(version_str)
    if version is None:
        raise InvalidVersionSpec(version_str)
    return version


def parse_version(version_str: str) -> semver.Version:
    """Parse an exact version into a semver.Version object."""
    return semver.Version.parse(version_str)


def is_valid(version_str: str) -> bool:
    return semver.Version.is_valid(version_str)


def compare(a: str, b: str) -> int:
    """Compare two exact versions by semver precedence (-1, 0 or 1)."""
    return parse_version(a).compare(b)


def gt(a: str, b: str) -> bool:
    return compare(a, b) > 0


def lte(a: str, b: str) -> bool:
    return compare(a, b) <= 0


def satisfies(version: str, range_: str) -> bool:
    """Check whether an exact version is inside an npm-style range."""
    return nodesemver.satisfies(version, range_, loose=False)


def max_satisfying(versions: Iterable[str], range_: str) -> str | None:
    """Return the highest version inside the range, or None.

    Unparsable ranges (dist-tag names, URLs, git refs) match nothing.
    """
    try:
        return nodesemver.max_satisfying(list(versions), range_, loose=False)
    except ValueError:
        return None
