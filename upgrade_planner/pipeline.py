"""Update pipeline: seed → fetch → expand → build → validate → plan → apply.

This module orchestrates an upgrade-planner run:
1. Seed the candidate set from the command line (or the whole manifest)
2. Fetch registry metadata for every manifest dependency, concurrently
3. Expand candidates through package groups and peer dependencies,
   fetching newly discovered names in further concurrent batches
4. Build one record per dependency (installed and target versions)
5. Validate peer dependencies, forward and reverse
6. Plan the manifest diff and the ordered migrations
7. Apply: rewrite the manifest and schedule install + migration tasks

Steps 3-6 are pure; only metadata fetching suspends, and each expansion
pass waits for the previous batch to complete.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from pathlib import Path

from pydantic import BaseModel, Field

from .candidates import Expansion, build_seed, expand_candidates, is_custom_version
from .config import PlannerConfig
from .errors import MigrateOnlyRequiresSinglePackage, PackageNotFoundOnRegistry
from .manifest import ManifestStore, read_installed_versions
from .migrations import manifest_diff, plan_migrate_only, plan_migrations
from .models import (
    Diagnostic,
    PackageMetadata,
    PackageRecord,
    UpdatePlan,
    UpdateSuggestion,
)
from .peers import enforce_peer_violations, validate_peer_dependencies
from .records import build_records
from .registry import HttpRegistryTransport, MetadataGateway
from .shell import info, report, step
from .tasks import TaskQueue, TaskRunner
from .versions import compare, format_migration_version


class UpdateOptions(BaseModel):
    """What the user asked for.

    Attributes:
        packages: `name[@spec]` tokens from the command line.
        all_packages: Update every manifest dependency.
        next_tag: Default to the "next" dist-tag instead of "latest".
        force: Downgrade peer validation failures to warnings.
        best_effort: In all mode, skip packages missing from the registry.
        migrate_only: Only run migrations, don't touch the manifest.
        from_version: Migrate-only lower bound (requires a single package).
        to_version: Migrate-only upper bound.
    """

    packages: list[str] = Field(default_factory=list)
    all_packages: bool = False
    next_tag: bool = False
    force: bool = False
    best_effort: bool = False
    migrate_only: bool = False
    from_version: str | None = None
    to_version: str | None = None


def normalize_options(options: UpdateOptions) -> UpdateOptions:
    """Check flag combinations and coerce the migrate-only bounds.

    Raises:
        MigrateOnlyRequiresSinglePackage: If --from is used with several
            (or no) packages.
        InvalidVersionSpec: If --from/--to is not a valid version.
    """
    if options.migrate_only and options.from_version:
        if len(options.packages) != 1:
            raise MigrateOnlyRequiresSinglePackage(len(options.packages))

    return options.model_copy(
        update={
            "from_version": options.from_version
            and format_migration_version(options.from_version),
            "to_version": options.to_version
            and format_migration_version(options.to_version),
        }
    )


async def fetch_metadata(
    gateway: MetadataGateway,
    names: Iterable[str],
    *,
    required: Iterable[str] = (),
) -> tuple[dict[str, PackageMetadata | None], list[Diagnostic]]:
    """Fetch one batch and apply the not-found policy.

    A package that is missing from the registry could be private, so it is
    skipped with a warning, unless it is required for the run.

    Raises:
        PackageNotFoundOnRegistry: If a required package is missing. The
            rest of the batch has completed by then and is discarded.
    """
    required = set(required)
    batch = await gateway.fetch_many(names)
    diagnostics: list[Diagnostic] = []
    for name, package in batch.items():
        if package is not None:
            continue
        if name in required:
            raise PackageNotFoundOnRegistry(name)
        diagnostics.append(
            Diagnostic(
                level="warning",
                message=f"Package {name!r} was not found on the registry. Skipping.",
            )
        )
    return batch, diagnostics


async def collect_candidates(
    seed: Mapping[str, str],
    deps: Mapping[str, str],
    gateway: MetadataGateway,
    metadata: dict[str, PackageMetadata | None],
) -> tuple[Expansion, list[Diagnostic]]:
    """Expand the seed until every candidate's metadata is known.

    Each pass reruns the (pure) expansion over everything fetched so far;
    names it could not resolve are fetched together before the next pass.
    `metadata` is extended in place.
    """
    diagnostics: list[Diagnostic] = []
    while True:
        expansion = expand_candidates(seed, deps, metadata)
        if not expansion.unresolved:
            return expansion, diagnostics
        # Inferred names are never required: missing ones are just dropped
        batch, batch_diagnostics = await fetch_metadata(gateway, expansion.unresolved)
        metadata.update(batch)
        diagnostics.extend(batch_diagnostics)


def suggest_updates(
    records: Mapping[str, PackageRecord],
    metadata: Mapping[str, PackageMetadata | None],
    next_tag: bool = False,
) -> list[UpdateSuggestion]:
    """List the packages with a newer tagged release that supports updates.

    Packages in the same package group are collapsed under the group name
    (packageGroupName, else the first member). The suggested command names
    the first member found in the manifest, since updating it pulls in the
    rest of the group.
    """
    tag = "next" if next_tag else "latest"
    groups: dict[str, str] = {}
    suggestions: list[UpdateSuggestion] = []

    for name, record in records.items():
        package = metadata.get(name)
        version = package.dist_tags.get(tag) if package else None
        target = package.versions.get(version) if version else None
        if target is None or compare(record.installed.version, version) >= 0:
            continue
        # Only packages publishing update metadata know how to be updated
        if target.update_metadata is None:
            continue

        display = name
        group = target.update_metadata.package_group
        if group:
            if name in groups:
                continue
            group_name = target.update_metadata.package_group_name or group[0]
            for member in group:
                groups[member] = group_name
            groups[group_name] = group_name
            display = group_name

        command = f"upgrade-planner update {name}"
        if next_tag:
            command += " --next"
        suggestions.append(
            UpdateSuggestion(
                name=display,
                installed=record.installed.version,
                available=version,
                command=command,
            )
        )

    return sorted(suggestions, key=lambda s: s.name)


async def plan_update(
    options: UpdateOptions,
    deps: Mapping[str, str],
    gateway: MetadataGateway,
    installed_versions: Mapping[str, str] | None = None,
) -> UpdatePlan:
    """Compute the full update plan for one run.

    Args:
        options: User request.
        deps: Merged manifest dependencies (name → range).
        gateway: Metadata gateway for this run.
        installed_versions: Exact versions from the lock file, if any.

    Returns:
        The plan. With no packages and no all mode, the plan only carries
        suggestions.

    Raises:
        UpgradeError: On any fatal planning condition.
    """
    options = normalize_options(options)
    diagnostics: list[Diagnostic] = []

    seed, seed_diagnostics = build_seed(
        options.packages,
        deps,
        all_mode=options.all_packages,
        next_tag=options.next_tag,
    )
    diagnostics.extend(seed_diagnostics)

    # Explicit packages must exist; so must everything seeded by all mode,
    # unless the user accepted a best-effort run
    seeded_by_all = not options.packages
    required = set() if seeded_by_all and options.best_effort else set(seed)

    # Custom versions (URLs, git refs, local paths) don't come from the registry
    names = [name for name, range_ in deps.items() if not is_custom_version(range_)]
    metadata, fetch_diagnostics = await fetch_metadata(
        gateway, [*names, *seed], required=required
    )
    diagnostics.extend(fetch_diagnostics)

    expansion, expand_diagnostics = await collect_candidates(
        seed, deps, gateway, metadata
    )
    diagnostics.extend(expand_diagnostics)
    diagnostics.extend(expansion.diagnostics)

    records, record_diagnostics = build_records(
        deps, expansion.candidates, metadata, installed_versions
    )
    diagnostics.extend(record_diagnostics)

    plan = UpdatePlan(
        records=records,
        candidates=expansion.candidates,
        migrate_only=options.migrate_only,
    )

    if not seed:
        plan.suggestions = suggest_updates(records, metadata, options.next_tag)
    elif options.migrate_only and options.from_version:
        name = next(iter(seed))
        plan.migrations = plan_migrate_only(
            records.get(name), options.from_version, options.to_version
        )
    else:
        violations, peer_diagnostics = validate_peer_dependencies(records)
        diagnostics.extend(peer_diagnostics)
        diagnostics.extend(enforce_peer_violations(violations, options.force))
        plan.violations = violations
        plan.changes = manifest_diff(records.values())
        plan.migrations = plan_migrations(records.values())

    plan.diagnostics = gateway.diagnostics + diagnostics
    return plan


def apply_plan(
    plan: UpdatePlan, store: ManifestStore, runner: TaskRunner
) -> list[Diagnostic]:
    """Rewrite the manifest and schedule follow-up tasks.

    In migrate-only mode the manifest is left alone and no install is
    scheduled; the migrations still run.
    """
    diagnostics: list[Diagnostic] = []
    if plan.changes and not plan.migrate_only:
        versions = {name: bump.new for name, bump in plan.changes.items()}
        diagnostics.extend(store.write_resolved_versions(versions))
        runner.run_install()

    # Migrations could fail and leave side effects on disk, so they are
    # scheduled after the install
    for migration in plan.migrations:
        runner.run_migration(migration)
    return diagnostics


async def _plan_with_registry(
    options: UpdateOptions,
    deps: Mapping[str, str],
    config: PlannerConfig,
    installed_versions: Mapping[str, str],
) -> UpdatePlan:
    async with HttpRegistryTransport(
        config.registry,
        timeout=config.timeout,
        max_concurrency=config.max_concurrency,
    ) as transport:
        gateway = MetadataGateway(transport, config.metadata_key)
        return await plan_update(options, deps, gateway, installed_versions)


def print_suggestions(suggestions: list[UpdateSuggestion], width: int) -> None:
    """Print the table of available updates."""
    if not suggestions:
        info("We analyzed your manifest and everything seems to be in order.")
        return

    info("We analyzed your manifest, there are some packages to update:\n")
    pad = max(width, max(len(s.name) for s in suggestions)) + 2
    info(f"{'Name':<{pad}}{'Version':<25}Command to update")
    info("-" * (pad + 45))
    for s in suggestions:
        info(f"{s.name:<{pad}}{f'{s.installed} -> {s.available}':<25}{s.command}")
    print()
    info("There might be additional packages that are outdated.")
    info("Run with --all to try to update all at the same time.")


def run_update(
    options: UpdateOptions,
    store: ManifestStore,
    config: PlannerConfig,
    *,
    lockfile: Path | None = None,
    plan_out: Path | None = None,
    dry_run: bool = False,
    verbose: bool = False,
) -> UpdatePlan:
    """Execute a full planning run against the configured registry.

    Args:
        options: User request.
        store: Project manifest.
        config: Planner settings.
        lockfile: Lock file with installed versions (optional).
        plan_out: Write the scheduled tasks as JSON to this path.
        dry_run: Compute and print the plan without writing anything.
        verbose: Show debug diagnostics.
    """
    step("Reading project manifest")
    deps = store.read_dependencies()
    installed_versions = read_installed_versions(lockfile)
    info(f"{len(deps)} dependencies ({len(installed_versions)} locked)")

    step(f"Resolving packages from {config.registry}")
    plan = asyncio.run(_plan_with_registry(options, deps, config, installed_versions))
    report(plan.diagnostics, verbose)

    if not plan.candidates:
        print_suggestions(plan.suggestions, width=max(map(len, deps), default=28))
        return plan

    step("Planned updates")
    if not plan.changes:
        info("Nothing to update.")
    for name, bump in plan.changes.items():
        info(f"{name}: {bump.old} → {bump.new}")

    if plan.migrations:
        step("Migrations")
        for migration in plan.migrations:
            info(
                f"{migration.package} ({migration.collection}): "
                f"{migration.from_version} → {migration.to_version}"
            )

    if dry_run:
        return plan

    queue = TaskQueue()
    report(apply_plan(plan, store, queue), verbose)
    if plan_out is not None:
        queue.dump(plan_out)
        info(f"Wrote {len(queue.tasks)} tasks to {plan_out}")

    print(f"\n{'=' * 60}\nDone!\n{'=' * 60}")
    return plan
