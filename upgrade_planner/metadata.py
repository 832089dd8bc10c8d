"""Decoding of raw registry documents into validated models.

Registry metadata is loosely typed JSON published by package authors, so
every field we rely on is checked here, once. Each check yields either
Valid(value) or Malformed(raw); malformed fields fall back to an empty value
and produce a warning, never an error. Downstream code only ever sees
PackageMetadata / VersionManifest / UpdateMetadata instances.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from .models import Diagnostic, PackageMetadata, UpdateMetadata, VersionManifest
from .versions import is_valid

DEFAULT_METADATA_KEY = "ng-update"

T = TypeVar("T")


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T


@dataclass(frozen=True)
class Malformed:
    raw: Any


ParseResult = Union[Valid[T], Malformed]


def parse_string_list(raw: Any) -> ParseResult[list[str]]:
    if isinstance(raw, list) and all(isinstance(x, str) for x in raw):
        return Valid(list(raw))
    return Malformed(raw)


def parse_string_map(raw: Any) -> ParseResult[dict[str, str]]:
    if isinstance(raw, dict) and all(
        isinstance(k, str) and isinstance(v, str) for k, v in raw.items()
    ):
        return Valid(dict(raw))
    return Malformed(raw)


def parse_string(raw: Any) -> ParseResult[str]:
    if isinstance(raw, str):
        return Valid(raw)
    return Malformed(raw)


def _malformed(package: str, field: str) -> Diagnostic:
    return Diagnostic(
        level="warning",
        message=f"{field} metadata of package {package} is malformed. Ignoring.",
    )


def decode_update_metadata(
    package: str, raw: Any
) -> tuple[UpdateMetadata | None, list[Diagnostic]]:
    """Validate the update metadata block of one version manifest.

    Returns None when the version carries no update metadata at all (absent
    or not an object), so callers can tell "no hints" from "empty hints".
    """
    if not isinstance(raw, dict):
        return None, []

    diagnostics: list[Diagnostic] = []
    fields: dict[str, Any] = {}

    # (raw key, model field, parser)
    checks = (
        ("packageGroup", "package_group", parse_string_list),
        ("packageGroupName", "package_group_name", parse_string),
        ("requirements", "requirements", parse_string_map),
        ("migrations", "migrations", parse_string),
    )
    for key, field, parse in checks:
        if not raw.get(key):
            continue
        result = parse(raw[key])
        if isinstance(result, Valid):
            fields[field] = result.value
        else:
            diagnostics.append(_malformed(package, key))

    return UpdateMetadata(**fields), diagnostics


def decode_version_manifest(
    package: str,
    version: str,
    raw: Any,
    metadata_key: str = DEFAULT_METADATA_KEY,
) -> tuple[VersionManifest, list[Diagnostic]]:
    """Validate one entry of a packument's "versions" map."""
    if not isinstance(raw, dict):
        return VersionManifest(version=version), [_malformed(package, version)]

    diagnostics: list[Diagnostic] = []
    peers: dict[str, str] = {}
    if raw.get("peerDependencies"):
        result = parse_string_map(raw["peerDependencies"])
        if isinstance(result, Valid):
            peers = result.value
        else:
            diagnostics.append(_malformed(package, "peerDependencies"))

    update_metadata, update_diagnostics = decode_update_metadata(
        package, raw.get(metadata_key)
    )
    diagnostics.extend(update_diagnostics)

    manifest = VersionManifest(
        version=version,
        peer_dependencies=peers,
        update_metadata=update_metadata,
    )
    return manifest, diagnostics


def decode_package_metadata(
    name: str,
    raw: dict[str, Any],
    metadata_key: str = DEFAULT_METADATA_KEY,
) -> tuple[PackageMetadata, list[Diagnostic]]:
    """Validate a full registry document (npm "packument") for a package.

    Every version is decoded since any of them can become the installed or
    target version of a record. Version keys that are not exact semver
    versions are dropped with a warning, and so are dist-tags that point to
    a version the document does not publish.
    """
    diagnostics: list[Diagnostic] = []

    dist_tags: dict[str, str] = {}
    tags_result = parse_string_map(raw.get("dist-tags", {}))
    if isinstance(tags_result, Valid):
        dist_tags = dict(tags_result.value)
    else:
        diagnostics.append(_malformed(name, "dist-tags"))

    versions: dict[str, VersionManifest] = {}
    raw_versions = raw.get("versions", {})
    if not isinstance(raw_versions, dict):
        diagnostics.append(_malformed(name, "versions"))
        raw_versions = {}

    for version, raw_manifest in raw_versions.items():
        if not is_valid(version):
            diagnostics.append(_malformed(name, f"Version {version!r}"))
            continue
        manifest, version_diagnostics = decode_version_manifest(
            name, version, raw_manifest, metadata_key
        )
        versions[version] = manifest
        diagnostics.extend(version_diagnostics)

    for tag, version in list(dist_tags.items()):
        if version not in versions:
            diagnostics.append(_malformed(name, f"Dist-tag {tag!r}"))
            del dist_tags[tag]

    metadata = PackageMetadata(name=name, dist_tags=dist_tags, versions=versions)
    return metadata, diagnostics
