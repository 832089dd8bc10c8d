"""Migration planning.

Packages can publish a migration collection with a version. After the
manifest is updated, the collections of every moved package run in
ascending target-version order (ties broken by package name), so earlier
schema/API versions are migrated before later ones, across packages.

Inside a collection, the same rule picks and orders the individual
migrations falling between the installed and target versions.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path

import tomlkit
from tomlkit.exceptions import ParseError

from .errors import InvalidVersionSpec, ManifestError
from .models import MigrationEntry, MigrationStep, PackageRecord, VersionBump
from .versions import coerce_version, gt, lte, parse_version


def collection_ref(package: str, migrations: str) -> str:
    """Resolve the migrations path a package declares into a collection id.

    Paths starting with "." or "/" live inside the package itself, so they
    are namespaced under the package name; anything else is an external
    collection used as is.
    """
    if migrations.startswith((".", "/")):
        return f"{package}/{migrations}"
    return migrations


def plan_migrations(records: Iterable[PackageRecord]) -> list[MigrationStep]:
    """Order the migration steps for every package that is moving.

    Only records with a target whose update metadata declares migrations
    qualify. Sorted by target version, then by package name.
    """
    qualifying = [
        r
        for r in records
        if r.target is not None and r.target.update_metadata.migrations
    ]
    qualifying.sort(key=lambda r: (parse_version(r.target.version), r.name))

    return [
        MigrationStep(
            package=r.name,
            collection=collection_ref(r.name, r.target.update_metadata.migrations),
            from_version=r.installed.version,
            to_version=r.target.version,
        )
        for r in qualifying
    ]


def manifest_diff(records: Iterable[PackageRecord]) -> dict[str, VersionBump]:
    """Old → new version for every package with a target."""
    return {
        r.name: VersionBump(old=r.installed.version, new=r.target.version)
        for r in records
        if r.target is not None
    }


def plan_migrate_only(
    record: PackageRecord | None, from_version: str, to_version: str | None = None
) -> list[MigrationStep]:
    """Plan the migrations of a single, already installed package.

    The from/to bounds come straight from the user and are not required to
    move forward. `to_version` defaults to the installed version.
    """
    if record is None:
        return []
    migrations = record.installed.update_metadata.migrations
    if not migrations:
        return []
    return [
        MigrationStep(
            package=record.name,
            collection=collection_ref(record.name, migrations),
            from_version=from_version,
            to_version=to_version or record.installed.version,
        )
    ]


def select_migrations(
    entries: Mapping[str, object], from_version: str, to_version: str
) -> list[MigrationEntry]:
    """Pick the migrations of a collection that apply to an update.

    A migration applies when from_version < its version <= to_version.
    Entries whose version is not a string are not versioned migrations and
    are skipped.

    Args:
        entries: Migration name → declared version.
        from_version: Version being updated from (exclusive).
        to_version: Version being updated to (inclusive).

    Raises:
        InvalidVersionSpec: If a declared version cannot be coerced.
    """
    selected: list[MigrationEntry] = []
    for name, declared in entries.items():
        if not isinstance(declared, str):
            continue
        version = coerce_version(declared)
        if version is None:
            raise InvalidVersionSpec(declared)
        if gt(version, from_version) and lte(version, to_version):
            selected.append(MigrationEntry(name=name, version=version))

    selected.sort(key=lambda e: (parse_version(e.version), e.name))
    return selected


def load_migration_collection(path: Path) -> dict[str, object]:
    """Read a migration collection file.

    Expected layout:

        [migrations.rename-config]
        version = "2"
        description = "Rename the config file"

    Returns:
        Migration name → declared version (None when not declared).
    """
    if not path.exists():
        raise ManifestError(f"Migration collection {path} does not exist.")
    try:
        doc = tomlkit.parse(path.read_text()).unwrap()
    except ParseError as exc:
        raise ManifestError(f"{path} could not be parsed: {exc}") from exc

    migrations = doc.get("migrations", {})
    return {
        name: (entry.get("version") if isinstance(entry, dict) else None)
        for name, entry in migrations.items()
    }
