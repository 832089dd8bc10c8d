"""Per-package record construction.

A PackageRecord combines three views of one dependency:
- the range the project manifest declares,
- the installed version (local lock file, else best match of that range),
- the target version requested for this run (dist-tag, range or exact).

Records are built once and never patched. A target that would not move the
package forward is dropped at construction time.
"""

from __future__ import annotations

from collections.abc import Mapping

from .errors import InvalidVersionSpec, NoInstallableVersion
from .models import (
    Diagnostic,
    PackageMetadata,
    PackageRecord,
    ResolvedVersion,
    VersionManifest,
)
from .versions import coerce_version, lte, max_satisfying


def resolve_spec(metadata: PackageMetadata, spec: str) -> str | None:
    """Resolve a requested spec to a published version.

    A dist-tag name ("latest", "next") wins; anything else is treated as a
    range, and an exact version is simply a range matching itself.
    """
    tagged = metadata.dist_tags.get(spec)
    if tagged is not None:
        return tagged if tagged in metadata.versions else None
    return max_satisfying(metadata.versions, spec)


def build_record(
    name: str,
    manifest_range: str,
    metadata: PackageMetadata,
    spec: str | None = None,
    installed_version: str | None = None,
) -> tuple[PackageRecord, list[Diagnostic]]:
    """Build the record of one dependency.

    Args:
        name: Package name.
        manifest_range: Range declared in the project manifest.
        metadata: Registry metadata for the package.
        spec: Requested spec from the candidate set, if any.
        installed_version: Exact version installed locally, if known.

    Returns:
        Tuple of (record, diagnostics).

    Raises:
        InvalidVersionSpec: If the local version is not a valid version.
        NoInstallableVersion: If neither the local state nor the registry
            gives an installed version.
    """
    diagnostics: list[Diagnostic] = []

    if installed_version is not None:
        version = coerce_version(installed_version)
        if version is None:
            raise InvalidVersionSpec(installed_version)
    else:
        version = max_satisfying(metadata.versions, manifest_range)
    if version is None:
        raise NoInstallableVersion(name, manifest_range)

    installed_manifest = metadata.versions.get(version)
    if installed_manifest is None:
        # Installed locally but not published (e.g. a local build)
        diagnostics.append(
            Diagnostic(
                level="debug",
                message=f"Package {name} has no published version {version}.",
            )
        )
        installed_manifest = VersionManifest(version=version)
    installed = ResolvedVersion(version=version, manifest=installed_manifest)

    target: ResolvedVersion | None = None
    target_version = resolve_spec(metadata, spec) if spec else None
    if target_version is not None and lte(target_version, version):
        diagnostics.append(
            Diagnostic(
                level="debug",
                message=f"Package {name} already satisfied by the manifest "
                f"({manifest_range}).",
            )
        )
    elif target_version is not None:
        target = ResolvedVersion(
            version=target_version, manifest=metadata.versions[target_version]
        )

    record = PackageRecord(
        name=name, manifest_range=manifest_range, installed=installed, target=target
    )
    return record, diagnostics


def build_records(
    deps: Mapping[str, str],
    candidates: Mapping[str, str],
    metadata: Mapping[str, PackageMetadata | None],
    installed_versions: Mapping[str, str] | None = None,
) -> tuple[dict[str, PackageRecord], list[Diagnostic]]:
    """Build a record for every manifest dependency found on the registry.

    Packages that are not candidates still get a record (their peer
    requirements matter for reverse validation) but a failure to resolve
    their installed version is only a warning. Candidates the manifest does
    not declare, such as inferred peers, get no record.

    Returns:
        Tuple of (records keyed by name, diagnostics).
    """
    installed_versions = installed_versions or {}
    records: dict[str, PackageRecord] = {}
    diagnostics: list[Diagnostic] = []

    for name, manifest_range in deps.items():
        package = metadata.get(name)
        if package is None:
            continue
        try:
            record, record_diagnostics = build_record(
                name,
                manifest_range,
                package,
                spec=candidates.get(name),
                installed_version=installed_versions.get(name),
            )
        except NoInstallableVersion as exc:
            if name in candidates:
                raise
            diagnostics.append(Diagnostic(level="warning", message=str(exc)))
            continue
        records[name] = record
        diagnostics.extend(record_diagnostics)

    return records, diagnostics
