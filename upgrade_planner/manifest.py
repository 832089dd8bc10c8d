"""Project manifest reading and writing.

Uses tomlkit to preserve formatting and comments when rewriting the
manifest. This is important for maintaining readable, diff-friendly files.

A manifest declares dependency ranges in three sections:

    [dependencies]
    left-pad = "^1.0.0"

    [dev-dependencies]
    "@scope/test-utils" = "~2.1.0"

    [peer-dependencies]
    framework = ">=3 <5"

When a name appears in several sections, dependencies win over
dev-dependencies, which win over peer-dependencies.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import ParseError

from .errors import ManifestError
from .models import Diagnostic

# Weakest first; later sections override earlier ones in the merged view
SECTIONS = ("peer-dependencies", "dev-dependencies", "dependencies")


def load_manifest(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a manifest file.

    Returns a TOMLDocument that preserves formatting when modified and saved.

    Raises:
        ManifestError: If the file is missing or is not valid TOML.
    """
    if not path.exists():
        raise ManifestError(f"Could not find {path}. Are you in the project root?")
    try:
        return tomlkit.parse(path.read_text())
    except ParseError as exc:
        raise ManifestError(f"{path} could not be parsed: {exc}") from exc


def save_manifest(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc))


def get_dependency_sections(doc: tomlkit.TOMLDocument) -> dict[str, dict[str, str]]:
    """Extract each dependency section as a plain name → range mapping.

    Missing sections come back empty. Non-string entries (inline tables
    and the like) are not ranges and are left out.
    """
    sections: dict[str, dict[str, str]] = {}
    for section in SECTIONS:
        table = doc.get(section, {})
        sections[section] = {
            str(name): str(range_)
            for name, range_ in table.items()
            if isinstance(range_, str)
        }
    return sections


def get_merged_dependencies(doc: tomlkit.TOMLDocument) -> dict[str, str]:
    """Merge all dependency sections into one name → range view.

    Peer dependencies have the lowest precedence, regular dependencies the
    highest.
    """
    merged: dict[str, str] = {}
    for deps in get_dependency_sections(doc).values():
        merged.update(deps)
    return merged


def get_tool_config(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Extract the [tool.upgrade-planner] table as plain Python values."""
    table = doc.get("tool", {}).get("upgrade-planner", {})
    return dict(table.unwrap()) if hasattr(table, "unwrap") else dict(table)


def set_resolved_versions(
    doc: tomlkit.TOMLDocument, versions: Mapping[str, str]
) -> list[Diagnostic]:
    """Write exact versions into the sections that reference each package.

    The strongest section holding the name gets the new version and the
    weaker duplicates are removed:
    - in [dependencies]: updated, dropped from dev/peer
    - else in [dev-dependencies]: updated, dropped from peer
    - else in [peer-dependencies]: updated

    Returns:
        Warnings for packages that no section references.
    """
    diagnostics: list[Diagnostic] = []
    peer, dev, regular = (doc.get(section) for section in SECTIONS)

    for name, version in versions.items():
        if regular is not None and name in regular:
            regular[name] = version
            for weaker in (dev, peer):
                if weaker is not None and name in weaker:
                    del weaker[name]
        elif dev is not None and name in dev:
            dev[name] = version
            if peer is not None and name in peer:
                del peer[name]
        elif peer is not None and name in peer:
            peer[name] = version
        else:
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"Package {name} was not found in dependencies.",
                )
            )

    return diagnostics


def read_installed_versions(path: Path | None) -> dict[str, str]:
    """Read exact installed versions from an optional lock file.

    The lock file lists one [[package]] table per installed package:

        [[package]]
        name = "left-pad"
        version = "1.0.0"

    Returns an empty mapping when there is no lock file.
    """
    if path is None or not path.exists():
        return {}
    try:
        doc = tomlkit.parse(path.read_text()).unwrap()
    except ParseError as exc:
        raise ManifestError(f"{path} could not be parsed: {exc}") from exc

    installed: dict[str, str] = {}
    for entry in doc.get("package", []):
        name = entry.get("name") if isinstance(entry, dict) else None
        version = entry.get("version") if isinstance(entry, dict) else None
        if isinstance(name, str) and isinstance(version, str):
            installed[name] = version
    return installed


class ManifestStore:
    """The project manifest on disk, loaded once per run."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.doc = load_manifest(path)

    def read_dependencies(self) -> dict[str, str]:
        return get_merged_dependencies(self.doc)

    def sections(self) -> dict[str, dict[str, str]]:
        return get_dependency_sections(self.doc)

    def tool_config(self) -> dict[str, Any]:
        return get_tool_config(self.doc)

    def write_resolved_versions(self, versions: Mapping[str, str]) -> list[Diagnostic]:
        """Update the manifest in place and save it if anything changed."""
        before = tomlkit.dumps(self.doc)
        diagnostics = set_resolved_versions(self.doc, versions)
        if tomlkit.dumps(self.doc) != before:
            save_manifest(self.path, self.doc)
        return diagnostics
