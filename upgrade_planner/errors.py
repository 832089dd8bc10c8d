"""Error types raised by the upgrade planner.

Every exception here describes a condition caused by user input (manifest
content, command-line arguments, registry state). The CLI turns them into a
fatal message; anything else escaping the planner is a bug.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import PeerViolation


class UpgradeError(Exception):
    """Base class for expected, user-facing planning failures."""


class ManifestError(UpgradeError):
    """The project manifest is missing or cannot be parsed."""


class RegistryError(UpgradeError):
    """The registry transport failed for a package."""


class PackageNotInManifest(UpgradeError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Package {name!r} was not found in the project manifest.")
        self.name = name


class NoInstallableVersion(UpgradeError):
    def __init__(self, name: str, range_: str) -> None:
        super().__init__(
            f"Package {name!r} has no published version satisfying {range_!r} "
            "and no locally installed version."
        )
        self.name = name
        self.range = range_


class PackageNotFoundOnRegistry(UpgradeError):
    def __init__(self, name: str) -> None:
        super().__init__(
            f"Package {name!r} was not found on the registry. "
            "Cannot continue as this may be an error."
        )
        self.name = name


class InvalidVersionSpec(UpgradeError):
    def __init__(self, spec: str) -> None:
        super().__init__(f"Invalid version: {spec!r}")
        self.spec = spec


class MigrateOnlyRequiresSinglePackage(UpgradeError):
    def __init__(self, count: int) -> None:
        super().__init__(
            f"--from requires that only a single package be passed (got {count})."
        )
        self.count = count


class PeerValidationFailed(UpgradeError):
    """One or more peer dependency constraints would be violated.

    Carries the complete list so the user sees every problem at once.
    """

    def __init__(self, violations: list[PeerViolation]) -> None:
        lines = "\n".join(f"  - {v}" for v in violations)
        super().__init__(
            f"Incompatible peer dependencies found ({len(violations)}):\n{lines}"
        )
        self.violations = violations
