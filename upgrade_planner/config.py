"""Planner configuration.

Settings come from, lowest to highest precedence:
1. Defaults below
2. The [tool.upgrade-planner] table of the project manifest
3. UPGRADE_PLANNER_* environment variables
4. Command-line flags (applied by the CLI)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .errors import ManifestError
from .metadata import DEFAULT_METADATA_KEY

DEFAULT_REGISTRY = "https://registry.npmjs.org"


class PlannerConfig(BaseSettings):
    """Settings for one planning run.

    Attributes:
        registry: Base URL of the npm-compatible registry.
        timeout: Per-request timeout in seconds.
        max_concurrency: Maximum number of registry requests in flight.
        metadata_key: Version manifest key holding update metadata.
        lockfile: Lock file with installed versions, relative to the
              manifest directory.
    """

    model_config = SettingsConfigDict(env_prefix="UPGRADE_PLANNER_", extra="forbid")

    registry: str = DEFAULT_REGISTRY
    timeout: float = 30.0
    max_concurrency: int = 10
    metadata_key: str = DEFAULT_METADATA_KEY
    lockfile: str | None = "package-lock.toml"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Init values come from the manifest table, which the environment
        # overrides
        return env_settings, init_settings


def load_config(table: Mapping[str, Any]) -> PlannerConfig:
    """Build the configuration from the manifest table and the environment.

    Keys in the table use dashes (max-concurrency); environment variables
    use the upper-case field name (UPGRADE_PLANNER_TIMEOUT).

    Raises:
        ManifestError: If the table has unknown keys or invalid values.
    """
    values = {key.replace("-", "_"): value for key, value in table.items()}
    try:
        return PlannerConfig(**values)
    except ValidationError as exc:
        raise ManifestError(f"Invalid [tool.upgrade-planner] settings:\n{exc}") from exc
