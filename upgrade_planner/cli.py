"""CLI entry point for upgrade-planner."""

from __future__ import annotations

from pathlib import Path

import click

from upgrade_planner.config import load_config
from upgrade_planner.errors import UpgradeError
from upgrade_planner.manifest import ManifestStore
from upgrade_planner.migrations import load_migration_collection, select_migrations
from upgrade_planner.pipeline import UpdateOptions, run_update
from upgrade_planner.shell import fatal, info, step
from upgrade_planner.versions import format_migration_version


@click.group()
@click.version_option(package_name="upgrade-planner")
def cli() -> None:
    """Plan safe dependency upgrades: peers checked, migrations ordered."""


@cli.command()
@click.argument("packages", nargs=-1)
@click.option("--all", "all_packages", is_flag=True, help="Update every dependency.")
@click.option("--next", "next_tag", is_flag=True, help='Use the "next" dist-tag.')
@click.option(
    "--force", is_flag=True, help="Report peer dependency conflicts as warnings."
)
@click.option(
    "--best-effort",
    is_flag=True,
    help="With --all, skip packages that are not on the registry.",
)
@click.option(
    "--migrate-only", is_flag=True, help="Only run migrations, keep the manifest."
)
@click.option("--from", "from_version", help="Migrate-only: version to migrate from.")
@click.option("--to", "to_version", help="Migrate-only: version to migrate to.")
@click.option(
    "--manifest",
    type=click.Path(dir_okay=False, path_type=Path),
    default="package.toml",
    show_default=True,
    help="Project manifest.",
)
@click.option(
    "--lockfile",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Lock file with installed versions (default from config).",
)
@click.option("--registry", default=None, help="Registry URL (default from config).")
@click.option(
    "--plan-out",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the scheduled tasks to this JSON file.",
)
@click.option("--dry-run", is_flag=True, help="Print the plan without writing.")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output.")
def update(
    packages: tuple[str, ...],
    all_packages: bool,
    next_tag: bool,
    force: bool,
    best_effort: bool,
    migrate_only: bool,
    from_version: str | None,
    to_version: str | None,
    manifest: Path,
    lockfile: Path | None,
    registry: str | None,
    plan_out: Path | None,
    dry_run: bool,
    verbose: bool,
) -> None:
    """Update PACKAGES (name, name@version, name@range or name@tag).

    Without PACKAGES and without --all, lists the available updates.
    """
    options = UpdateOptions(
        packages=list(packages),
        all_packages=all_packages,
        next_tag=next_tag,
        force=force,
        best_effort=best_effort,
        migrate_only=migrate_only,
        from_version=from_version,
        to_version=to_version,
    )

    try:
        store = ManifestStore(manifest)
        config = load_config(store.tool_config())
        if registry:
            config = config.model_copy(update={"registry": registry})
        if lockfile is None and config.lockfile:
            lockfile = manifest.parent / config.lockfile

        run_update(
            options,
            store,
            config,
            lockfile=lockfile,
            plan_out=plan_out,
            dry_run=dry_run,
            verbose=verbose,
        )
    except UpgradeError as exc:
        fatal(str(exc))


@cli.command()
@click.argument(
    "collection", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option("--from", "from_version", required=True, help="Version updated from.")
@click.option("--to", "to_version", required=True, help="Version updated to.")
def migrations(collection: Path, from_version: str, to_version: str) -> None:
    """List the migrations of COLLECTION that apply between two versions."""
    try:
        start = format_migration_version(from_version)
        end = format_migration_version(to_version)
        selected = select_migrations(load_migration_collection(collection), start, end)
    except UpgradeError as exc:
        fatal(str(exc))
        return

    step(f"Migrations from {start} to {end}")
    if not selected:
        info("No migrations to run.")
    for entry in selected:
        info(f"{entry.version}  {entry.name}")
