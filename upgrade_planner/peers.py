"""Peer dependency validation over a complete record set.

Two passes, both always run to completion so the user gets the whole list
of problems in one go:

- Forward: for every package being updated, do the peers declared by its
  target version still hold against what will be installed?
- Reverse: for every package being updated, do the peer ranges other
  packages declare on it still accept its target version?

A constraint broken in a way both passes notice is reported once.
"""

from __future__ import annotations

from collections.abc import Mapping

from .errors import PeerValidationFailed
from .models import Diagnostic, PackageRecord, PeerViolation
from .versions import satisfies


def _check_forward(
    record: PackageRecord, records: Mapping[str, PackageRecord]
) -> list[PeerViolation]:
    """Peers the record's target declares must hold at their effective version."""
    if record.target is None:
        return []
    violations: list[PeerViolation] = []

    for peer, range_ in record.target.manifest.peer_dependencies.items():
        peer_record = records.get(peer)
        if peer_record is None:
            violations.append(
                PeerViolation(
                    kind="missing", consumer=record.name, peer=peer, required=range_
                )
            )
            continue

        peer_version = peer_record.effective.version
        if not satisfies(peer_version, range_):
            violations.append(
                PeerViolation(
                    kind="incompatible",
                    consumer=record.name,
                    peer=peer,
                    required=range_,
                    would_install=peer_version,
                )
            )

    return violations


def _check_reverse(
    mover: PackageRecord, records: Mapping[str, PackageRecord]
) -> list[PeerViolation]:
    if mover.target is None:
        return []
    violations: list[PeerViolation] = []

    for name, record in records.items():
        if name == mover.name:
            continue
        # Only peers on the package we're moving matter here; unmet peers
        # we have no effect on are not our concern
        range_ = record.effective.manifest.peer_dependencies.get(mover.name)
        if range_ is None:
            continue
        if not satisfies(mover.target.version, range_):
            violations.append(
                PeerViolation(
                    kind="incompatible",
                    consumer=name,
                    peer=mover.name,
                    required=range_,
                    would_install=mover.target.version,
                )
            )

    return violations


def validate_peer_dependencies(
    records: Mapping[str, PackageRecord],
) -> tuple[list[PeerViolation], list[Diagnostic]]:
    """Check forward and reverse peer constraints for every moving package.

    Args:
        records: The complete record set, keyed by package name.

    Returns:
        Tuple of (violations in discovery order, diagnostics).
    """
    diagnostics: list[Diagnostic] = [
        Diagnostic(level="debug", message="Updating the following packages:")
    ]
    movers = [r for r in records.values() if r.target is not None]
    for record in movers:
        diagnostics.append(
            Diagnostic(
                level="debug",
                message=f"  {record.name} => {record.target.version}",
            )
        )

    # Keyed on (kind, consumer, peer) so both passes can't double-report
    found: dict[tuple[str, str, str], PeerViolation] = {}
    for check in (_check_forward, _check_reverse):
        for record in movers:
            for v in check(record, records):
                found.setdefault((v.kind, v.consumer, v.peer), v)

    return list(found.values()), diagnostics


def enforce_peer_violations(
    violations: list[PeerViolation], force: bool
) -> list[Diagnostic]:
    """Fail the run on peer violations unless forced.

    Raises:
        PeerValidationFailed: If there are violations and force is False.

    Returns:
        Warning diagnostics for each violation when forced.
    """
    if violations and not force:
        raise PeerValidationFailed(violations)
    return [Diagnostic(level="warning", message=str(v)) for v in violations]
