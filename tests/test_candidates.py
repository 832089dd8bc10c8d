"""Tests for upgrade_planner.candidates."""

from __future__ import annotations

import pytest

from upgrade_planner.candidates import (
    build_seed,
    expand_candidates,
    is_custom_version,
    parse_package_token,
)
from upgrade_planner.errors import PackageNotInManifest


class TestParsePackageToken:
    def test_plain_name(self) -> None:
        """A bare name has no spec."""
        assert parse_package_token("left-pad") == ("left-pad", None)

    def test_name_with_range(self) -> None:
        """The part after @ is the requested spec."""
        assert parse_package_token("left-pad@^1.2") == ("left-pad", "^1.2")

    def test_scoped_name(self) -> None:
        """The scope's leading @ is part of the name, not a separator."""
        assert parse_package_token("@scope/pkg") == ("@scope/pkg", None)
        assert parse_package_token("@scope/pkg@next") == ("@scope/pkg", "next")

    def test_invalid_token(self) -> None:
        """An empty token names no package."""
        assert parse_package_token("") is None


class TestIsCustomVersion:
    @pytest.mark.parametrize(
        "range_",
        [
            "https://example.com/pkg.tgz",
            "file:../pkg",
            "git+ssh://git@github.com/user/repo.git",
            "user/repo",
            "./local/pkg",
            "../sibling",
        ],
    )
    def test_custom(self, range_: str) -> None:
        """URLs, file and git references, GitHub shorthands and paths are custom."""
        assert is_custom_version(range_)

    @pytest.mark.parametrize("range_", ["^1.0.0", "~2.1", ">=3 <5", "1.x", "latest"])
    def test_semver_ranges(self, range_: str) -> None:
        """Ranges and dist-tag names come from the registry."""
        assert not is_custom_version(range_)


class TestBuildSeed:
    DEPS = {"left-pad": "^1.0.0", "framework": "^3.0.0", "local": "file:../local"}

    def test_explicit_tokens_default_to_latest(self) -> None:
        """Names without a spec get "latest"; explicit specs are kept."""
        seed, diagnostics = build_seed(["left-pad", "framework@^4"], self.DEPS)
        assert seed == {"left-pad": "latest", "framework": "^4"}
        assert diagnostics == []

    def test_next_tag(self) -> None:
        """--next changes the default spec."""
        seed, _ = build_seed(["left-pad"], self.DEPS, next_tag=True)
        assert seed == {"left-pad": "next"}

    def test_unknown_package_raises(self) -> None:
        """Only manifest dependencies can be updated."""
        with pytest.raises(PackageNotInManifest, match="ghost"):
            build_seed(["ghost"], self.DEPS)

    def test_invalid_token_is_skipped(self) -> None:
        """A token that doesn't parse is skipped with a warning."""
        seed, diagnostics = build_seed(["", "left-pad"], self.DEPS)
        assert seed == {"left-pad": "latest"}
        assert diagnostics[0].level == "warning"

    def test_all_mode_skips_custom_versions(self) -> None:
        """All mode seeds every registry dependency and warns about the others."""
        seed, diagnostics = build_seed([], self.DEPS, all_mode=True)
        assert seed == {"left-pad": "latest", "framework": "latest"}
        assert "custom version" in diagnostics[0].message

    def test_no_tokens_no_all_mode(self) -> None:
        """With nothing requested there is nothing to seed."""
        assert build_seed([], self.DEPS) == ({}, [])


class TestExpandCandidates:
    def test_adds_group_members_with_leader_spec(self, make_metadata) -> None:
        """Group members in the manifest inherit the leader's spec."""
        group = {"ng-update": {"packageGroup": ["core", "forms", "router"]}}
        metadata = {
            "core": make_metadata("core", {"1.0.0": group, "2.0.0": group}),
            "forms": make_metadata("forms", {"1.0.0": {}, "2.0.0": {}}),
        }
        deps = {"core": "^1.0.0", "forms": "^1.0.0"}

        expansion = expand_candidates({"core": "^2.0.0"}, deps, metadata)

        # router is not a dependency of the project
        assert expansion.candidates == {"core": "^2.0.0", "forms": "^2.0.0"}
        assert expansion.unresolved == []

    def test_adds_peers_with_their_range(self, make_metadata) -> None:
        """Peers are added with the range the target declares."""
        metadata = {
            "plugin": make_metadata(
                "plugin", {"2.0.0": {"peerDependencies": {"framework": "^4.0.0"}}}
            ),
        }
        deps = {"plugin": "^1.0.0", "framework": "^3.0.0"}

        expansion = expand_candidates({"plugin": "latest"}, deps, metadata)

        assert expansion.candidates == {"plugin": "latest", "framework": "^4.0.0"}
        assert expansion.unresolved == ["framework"]

    def test_peer_missing_from_registry_is_dropped(self, make_metadata) -> None:
        """A peer the registry doesn't know is not kept as a candidate."""
        metadata = {
            "plugin": make_metadata(
                "plugin", {"2.0.0": {"peerDependencies": {"helper": "^1.0.0"}}}
            ),
            "helper": None,
        }

        expansion = expand_candidates({"plugin": "latest"}, {"plugin": "^1"}, metadata)

        assert expansion.candidates == {"plugin": "latest"}
        assert expansion.unresolved == []

    def test_peer_not_in_manifest_is_still_added(self, make_metadata) -> None:
        """Peers are candidates even when the project doesn't depend on them."""
        metadata = {
            "plugin": make_metadata(
                "plugin", {"2.0.0": {"peerDependencies": {"helper": "^1.0.0"}}}
            ),
            "helper": make_metadata("helper", {"1.0.0": {}}),
        }

        expansion = expand_candidates({"plugin": "latest"}, {"plugin": "^1"}, metadata)

        assert expansion.candidates["helper"] == "^1.0.0"

    def test_explicit_spec_wins_over_inferred(self, make_metadata) -> None:
        """A spec from the command line is never replaced."""
        metadata = {
            "plugin": make_metadata(
                "plugin", {"2.0.0": {"peerDependencies": {"framework": "^4.0.0"}}}
            ),
            "framework": make_metadata("framework", {"4.0.0": {}, "5.0.0": {}}),
        }
        deps = {"plugin": "^1.0.0", "framework": "^3.0.0"}
        seed = {"plugin": "latest", "framework": "5.0.0"}

        expansion = expand_candidates(seed, deps, metadata)

        assert expansion.candidates == seed

    def test_is_idempotent(self, make_metadata) -> None:
        """Expanding twice with the same inputs gives the same set."""
        group = {"ng-update": {"packageGroup": ["core", "forms"]}}
        metadata = {
            "core": make_metadata(
                "core", {"2.0.0": {**group, "peerDependencies": {"rx": "^7"}}}
            ),
            "forms": make_metadata("forms", {"2.0.0": group}),
            "rx": make_metadata("rx", {"7.1.0": {}}),
        }
        deps = {"core": "^1", "forms": "^1", "rx": "^6"}

        first = expand_candidates({"core": "latest"}, deps, metadata)
        second = expand_candidates(first.candidates, deps, metadata)

        assert first.candidates == {"core": "latest", "forms": "latest", "rx": "^7"}
        assert second.candidates == first.candidates

    def test_unresolvable_spec_adds_nothing(self, make_metadata) -> None:
        """A spec that resolves to no version contributes no peers."""
        metadata = {
            "plugin": make_metadata(
                "plugin", {"2.0.0": {"peerDependencies": {"framework": "^4.0.0"}}}
            ),
        }

        expansion = expand_candidates({"plugin": "^9.0.0"}, {"plugin": "^1"}, metadata)

        assert expansion.candidates == {"plugin": "^9.0.0"}

    def test_debug_diagnostics(self, make_metadata) -> None:
        """Each inferred name is logged with its origin."""
        metadata = {
            "plugin": make_metadata(
                "plugin", {"2.0.0": {"peerDependencies": {"framework": "^4.0.0"}}}
            ),
            "framework": None,
        }

        expansion = expand_candidates({"plugin": "latest"}, {"plugin": "^1"}, metadata)

        assert [d.message for d in expansion.diagnostics] == [
            "Adding framework (peer dependency of plugin) @ ^4.0.0"
        ]
