"""Data models for upgrade-planner.

These Pydantic models represent the core data structures used throughout
the planning run: registry metadata, per-package records, peer violations,
and the migration plan handed to the task runner.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .versions import gt


class UpdateMetadata(BaseModel):
    """Update hints a package publishes alongside one of its versions.

    Attributes:
        package_group: Packages meant to move together with this one.
        package_group_name: Display name for the group; defaults to the
              first member when unset.
        requirements: Extra ranges the package expects other packages to
              satisfy before updating.
        migrations: Path (package-relative when starting with "." or "/")
              or external identifier of the migration collection.
    """

    model_config = ConfigDict(frozen=True)

    package_group: list[str] = Field(default_factory=list)
    package_group_name: str | None = None
    requirements: dict[str, str] = Field(default_factory=dict)
    migrations: str | None = None


class VersionManifest(BaseModel):
    """One published version of a package, as declared on the registry."""

    model_config = ConfigDict(frozen=True)

    version: str
    peer_dependencies: dict[str, str] = Field(default_factory=dict)
    update_metadata: UpdateMetadata | None = None


class PackageMetadata(BaseModel):
    """Registry view of a package: dist-tags plus every published version."""

    model_config = ConfigDict(frozen=True)

    name: str
    dist_tags: dict[str, str] = Field(default_factory=dict)
    versions: dict[str, VersionManifest] = Field(default_factory=dict)


class ResolvedVersion(BaseModel):
    """An exact version chosen for a package, with its manifest."""

    model_config = ConfigDict(frozen=True)

    version: str
    manifest: VersionManifest

    @property
    def update_metadata(self) -> UpdateMetadata:
        return self.manifest.update_metadata or UpdateMetadata()


class PackageRecord(BaseModel):
    """Everything the planner knows about one dependency of the project.

    Attributes:
        name: Package name.
        manifest_range: Range declared in the project manifest.
        installed: Version currently installed (or the best match of the
              manifest range when nothing is installed locally).
        target: Version to move to, or None when the package stays put.
              Always strictly newer than the installed version.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    manifest_range: str
    installed: ResolvedVersion
    target: ResolvedVersion | None = None

    @model_validator(mode="after")
    def _target_is_newer(self) -> PackageRecord:
        if self.target is not None and not gt(
            self.target.version, self.installed.version
        ):
            raise ValueError(
                f"{self.name}: target {self.target.version} is not newer than "
                f"installed {self.installed.version}"
            )
        return self

    @property
    def effective(self) -> ResolvedVersion:
        """The version that will be installed once the plan is applied."""
        return self.target or self.installed


class VersionBump(BaseModel):
    """Records a version change for a package.

    Used for the manifest diff so we can rewrite the manifest and report
    what moved.

    Attributes:
        old: The installed version before the update.
        new: The target version.
    """

    old: str
    new: str


class MigrationStep(BaseModel):
    """A migration collection to run for one package between two versions."""

    model_config = ConfigDict(frozen=True)

    package: str
    collection: str
    from_version: str
    to_version: str


class MigrationEntry(BaseModel):
    """A single migration inside a collection, tagged with its version."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str


class PeerViolation(BaseModel):
    """A peer dependency constraint the update would break."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["missing", "incompatible"]
    consumer: str
    peer: str
    required: str
    would_install: str | None = None

    def __str__(self) -> str:
        if self.kind == "missing":
            return (
                f"Package {self.consumer!r} has a missing peer dependency of "
                f"{self.peer!r} @ {self.required!r}."
            )
        return (
            f"Package {self.consumer!r} has an incompatible peer dependency to "
            f"{self.peer!r} (requires {self.required!r}, "
            f"would install {self.would_install!r})."
        )


class Diagnostic(BaseModel):
    """A message produced by the planning core for the shell to print."""

    model_config = ConfigDict(frozen=True)

    level: Literal["debug", "info", "warning", "error"]
    message: str


class UpdateSuggestion(BaseModel):
    """One row of the "available updates" table."""

    name: str
    installed: str
    available: str
    command: str


class UpdatePlan(BaseModel):
    """Result of a planning run, ready to be applied."""

    records: dict[str, PackageRecord] = Field(default_factory=dict)
    candidates: dict[str, str] = Field(default_factory=dict)
    changes: dict[str, VersionBump] = Field(default_factory=dict)
    migrations: list[MigrationStep] = Field(default_factory=list)
    violations: list[PeerViolation] = Field(default_factory=list)
    suggestions: list[UpdateSuggestion] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    migrate_only: bool = False
