"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import tomlkit

from upgrade_planner.metadata import decode_package_metadata
from upgrade_planner.models import PackageMetadata


def packument(
    versions: dict[str, dict[str, Any]],
    tags: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build a raw registry document.

    `versions` maps each version to the extra fields of its manifest
    (peerDependencies, ng-update, ...). "latest" defaults to the last
    version listed.
    """
    if tags is None:
        tags = {"latest": list(versions)[-1]}
    return {
        "dist-tags": tags,
        "versions": {v: {"version": v, **extra} for v, extra in versions.items()},
    }


class FakeRegistry:
    """In-memory transport that records every request it serves."""

    def __init__(self, documents: dict[str, dict[str, Any]]) -> None:
        self.documents = documents
        self.calls: list[str] = []

    async def __call__(self, name: str) -> dict[str, Any] | None:
        self.calls.append(name)
        # Yield so concurrent fetches actually overlap
        await asyncio.sleep(0)
        return self.documents.get(name)


@pytest.fixture(autouse=True)
def clean_planner_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep UPGRADE_PLANNER_* variables from the host out of every test."""
    for key in list(os.environ):
        if key.startswith("UPGRADE_PLANNER_"):
            monkeypatch.delenv(key)


@pytest.fixture
def make_packument() -> Callable[..., dict[str, Any]]:
    return packument


@pytest.fixture
def make_metadata() -> Callable[..., PackageMetadata]:
    """Factory building decoded PackageMetadata from packument arguments."""

    def _make(
        name: str,
        versions: dict[str, dict[str, Any]],
        tags: dict[str, str] | None = None,
    ) -> PackageMetadata:
        metadata, _ = decode_package_metadata(name, packument(versions, tags))
        return metadata

    return _make


@pytest.fixture
def fake_registry() -> Callable[[dict[str, dict[str, Any]]], FakeRegistry]:
    return FakeRegistry


@pytest.fixture
def tmp_manifest(tmp_path: Path) -> Path:
    """Create a temporary package.toml file."""
    content = """\
[package]
name = "my-app"

[dependencies]
left-pad = "^1.0.0"
framework = "^3.0.0"

[dev-dependencies]
"@scope/test-utils" = "~2.1.0"
left-pad = "^0.9.0"

[peer-dependencies]
framework = ">=2"
react = "^17.0.0"

[tool.upgrade-planner]
registry = "https://registry.example.com"
max-concurrency = 4
"""
    manifest = tmp_path / "package.toml"
    manifest.write_text(content)
    return manifest


@pytest.fixture
def tmp_lockfile(tmp_path: Path) -> Path:
    """Create a temporary package-lock.toml file."""
    content = """\
[[package]]
name = "left-pad"
version = "1.0.0"

[[package]]
name = "framework"
version = "3.1.0"
"""
    lockfile = tmp_path / "package-lock.toml"
    lockfile.write_text(content)
    return lockfile


@pytest.fixture
def sample_manifest_doc() -> tomlkit.TOMLDocument:
    """Create a sample manifest document."""
    content = """\
# Project dependencies
[dependencies]
left-pad = "^1.0.0"  # keep this comment
shared = "^1.0.0"

[dev-dependencies]
shared = "^0.5.0"
linter = "~4.0.0"

[peer-dependencies]
shared = ">=0.1"
linter = ">=3"
framework = "^3.0.0"
"""
    return tomlkit.parse(content)
