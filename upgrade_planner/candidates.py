"""Candidate set construction: which packages this run tries to move.

The set starts from the command line (or every manifest dependency in
"all" mode) and grows through package groups and peer dependencies:
1. Seed from the explicit `name[@spec]` tokens, or the whole manifest
2. Pop a candidate, resolve its requested spec against its metadata
3. Add the group members of that version (only manifest dependencies)
4. Add the peer dependencies of that version, using the peer range as spec
5. Repeat until the worklist is empty

Earlier entries always win: a name already in the set is never overwritten,
so explicit command-line specs beat inferred group or peer specs.
"""

from __future__ import annotations

import re
from collections import deque
from collections.abc import Iterable, Mapping

from pydantic import BaseModel, Field

from .errors import PackageNotInManifest
from .models import Diagnostic, PackageMetadata
from .records import resolve_spec

_PACKAGE_TOKEN = re.compile(r"^((?:@[^/]{1,100}/)?[^@]{1,100})(?:@(.{1,100}))?$")
_GITHUB_SHORTHAND = re.compile(r"^\w{1,100}/\w{1,100}")
_LOCAL_PATH = re.compile(r"^(?:\.{0,2}/)\w{1,100}")
_CUSTOM_PREFIXES = ("http:", "https:", "file:", "git:", "git+")


class Expansion(BaseModel):
    """Result of one expansion pass.

    Attributes:
        candidates: Requested spec per package, in discovery order.
        unresolved: Candidates whose metadata has not been fetched yet.
              Fetch them and run the expansion again.
        diagnostics: Messages for the shell.
    """

    candidates: dict[str, str] = Field(default_factory=dict)
    unresolved: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)


def parse_package_token(token: str) -> tuple[str, str | None] | None:
    """Split a command-line package argument into name and optional spec.

    Examples:
        "left-pad" → ("left-pad", None)
        "left-pad@^1.2" → ("left-pad", "^1.2")
        "@scope/pkg@next" → ("@scope/pkg", "next")
    """
    match = _PACKAGE_TOKEN.match(token)
    if not match:
        return None
    name, spec = match.groups()
    return name, spec


def is_custom_version(range_: str) -> bool:
    """True for manifest entries that are not semver ranges.

    URLs, git references, local paths and GitHub "user/repo" shorthands have
    no well-defined registry target.
    """
    return (
        range_.startswith(_CUSTOM_PREFIXES)
        or bool(_GITHUB_SHORTHAND.match(range_))
        or bool(_LOCAL_PATH.match(range_))
    )


def build_seed(
    tokens: Iterable[str],
    deps: Mapping[str, str],
    *,
    all_mode: bool = False,
    next_tag: bool = False,
) -> tuple[dict[str, str], list[Diagnostic]]:
    """Build the initial candidate set from user input.

    Args:
        tokens: Package arguments from the command line.
        deps: Merged manifest dependencies (name → range).
        all_mode: Seed with every manifest dependency when no token is given.
        next_tag: Default unversioned tokens to "next" instead of "latest".

    Returns:
        Tuple of (seed, diagnostics).

    Raises:
        PackageNotInManifest: If an explicit package is not a dependency.
    """
    default_spec = "next" if next_tag else "latest"
    diagnostics: list[Diagnostic] = []
    seed: dict[str, str] = {}

    tokens = list(tokens)
    if tokens:
        for token in tokens:
            parsed = parse_package_token(token)
            if parsed is None:
                diagnostics.append(
                    Diagnostic(
                        level="warning",
                        message=f"Invalid package argument: {token!r}. Skipping.",
                    )
                )
                continue
            name, spec = parsed
            if name not in deps:
                raise PackageNotInManifest(name)
            seed[name] = spec or default_spec
    elif all_mode:
        for name, range_ in deps.items():
            if is_custom_version(range_):
                diagnostics.append(
                    Diagnostic(
                        level="warning",
                        message=f"Package {name!r} has a custom version: "
                        f"{range_!r}. Skipping.",
                    )
                )
                continue
            seed[name] = default_spec

    return seed, diagnostics


def expand_candidates(
    seed: Mapping[str, str],
    deps: Mapping[str, str],
    metadata: Mapping[str, PackageMetadata | None],
) -> Expansion:
    """Grow the seed through package groups and peer dependencies.

    A name present in `metadata` with a None value was not found on the
    registry and is dropped from the candidates. A name missing from
    `metadata` entirely is reported as unresolved.

    The result only depends on the inputs, so running it again with the
    same seed and metadata yields the same candidate set.
    """
    candidates = dict(seed)
    worklist = deque(seed)
    unresolved: list[str] = []
    diagnostics: list[Diagnostic] = []

    while worklist:
        name = worklist.popleft()
        if name not in metadata:
            unresolved.append(name)
            continue

        package = metadata[name]
        if package is None:
            continue

        spec = candidates[name]
        version = resolve_spec(package, spec)
        if version is None:
            continue
        manifest = package.versions[version]

        update_metadata = manifest.update_metadata
        if update_metadata is not None:
            for member in update_metadata.package_group:
                # Don't override names from the command line, and only
                # touch packages the project actually depends on
                if member in candidates or member not in deps:
                    continue
                diagnostics.append(
                    Diagnostic(
                        level="debug",
                        message=f"Adding {member} (package group of {name}) @ {spec}",
                    )
                )
                candidates[member] = spec
                worklist.append(member)

        for peer, range_ in manifest.peer_dependencies.items():
            if peer in candidates:
                continue
            diagnostics.append(
                Diagnostic(
                    level="debug",
                    message=f"Adding {peer} (peer dependency of {name}) @ {range_}",
                )
            )
            candidates[peer] = range_
            worklist.append(peer)

    found = {
        name: spec
        for name, spec in candidates.items()
        if name not in metadata or metadata[name] is not None
    }
    return Expansion(candidates=found, unresolved=unresolved, diagnostics=diagnostics)
