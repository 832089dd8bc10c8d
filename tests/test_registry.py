"""Tests for upgrade_planner.registry."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from upgrade_planner.errors import RegistryError
from upgrade_planner.registry import HttpRegistryTransport, MetadataGateway


class TestMetadataGateway:
    def test_fetch_decodes_document(self, fake_registry, make_packument) -> None:
        """Fetched documents are decoded into metadata."""
        registry = fake_registry({"left-pad": make_packument({"1.0.0": {}})})
        gateway = MetadataGateway(registry)

        metadata = asyncio.run(gateway.fetch("left-pad"))

        assert metadata.name == "left-pad"
        assert metadata.dist_tags == {"latest": "1.0.0"}

    def test_missing_package_returns_none(self, fake_registry) -> None:
        """Unknown packages come back as None."""
        gateway = MetadataGateway(fake_registry({}))
        assert asyncio.run(gateway.fetch("ghost")) is None

    def test_concurrent_fetches_share_one_request(
        self, fake_registry, make_packument
    ) -> None:
        """Asking for the same package while it is in flight coalesces."""
        registry = fake_registry({"left-pad": make_packument({"1.0.0": {}})})
        gateway = MetadataGateway(registry)

        async def run():
            return await asyncio.gather(
                gateway.fetch("left-pad"),
                gateway.fetch("left-pad"),
                gateway.fetch("left-pad"),
            )

        results = asyncio.run(run())

        assert registry.calls == ["left-pad"]
        assert results[0] is results[1] is results[2]

    def test_fetch_many_dedupes_names(self, fake_registry, make_packument) -> None:
        """Duplicates and repeat batches reuse earlier fetches."""
        registry = fake_registry(
            {"a": make_packument({"1.0.0": {}}), "b": make_packument({"2.0.0": {}})}
        )
        gateway = MetadataGateway(registry)

        async def run():
            first = await gateway.fetch_many(["a", "b", "a", "ghost"])
            second = await gateway.fetch_many(["b"])
            return first, second

        first, second = asyncio.run(run())

        assert set(first) == {"a", "b", "ghost"}
        assert first["ghost"] is None
        assert second["b"] is first["b"]
        assert sorted(registry.calls) == ["a", "b", "ghost"]

    def test_transport_error_becomes_warning(self) -> None:
        """A failing transport degrades to a warning and a missing package."""
        async def broken(name: str):
            raise RegistryError(f"Registry returned HTTP 500 for {name!r}.")

        gateway = MetadataGateway(broken)

        assert asyncio.run(gateway.fetch("left-pad")) is None
        assert [d.level for d in gateway.diagnostics] == ["warning"]
        assert "HTTP 500" in gateway.diagnostics[0].message

    def test_malformed_metadata_warnings_collected(self, fake_registry) -> None:
        """Decode warnings end up on the gateway."""
        registry = fake_registry({"pkg": {"dist-tags": [], "versions": {}}})
        gateway = MetadataGateway(registry)

        asyncio.run(gateway.fetch("pkg"))

        assert len(gateway.diagnostics) == 1


class TestHttpRegistryTransport:
    @staticmethod
    def _fetch(handler, name: str):
        async def run():
            transport = httpx.MockTransport(handler)
            async with HttpRegistryTransport(
                "https://registry.example.com/", transport=transport
            ) as registry:
                return await registry(name)

        return asyncio.run(run())

    def test_returns_document(self) -> None:
        """Scoped names are escaped in the request path."""
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.raw_path.decode())
            return httpx.Response(200, json={"dist-tags": {"latest": "1.0.0"}})

        document = self._fetch(handler, "@scope/pkg")

        assert document == {"dist-tags": {"latest": "1.0.0"}}
        assert seen == ["/@scope%2Fpkg"]

    def test_404_returns_none(self) -> None:
        """404 means the package doesn't exist."""
        assert self._fetch(lambda request: httpx.Response(404), "ghost") is None

    def test_server_error_raises(self) -> None:
        """Other HTTP errors raise RegistryError."""
        with pytest.raises(RegistryError, match="HTTP 503"):
            self._fetch(lambda request: httpx.Response(503), "pkg")

    def test_invalid_json_raises(self) -> None:
        """A body that isn't JSON raises RegistryError."""
        with pytest.raises(RegistryError, match="Invalid JSON"):
            self._fetch(lambda request: httpx.Response(200, text="<html>"), "pkg")

    def test_non_object_document_raises(self) -> None:
        """A JSON body that isn't an object raises RegistryError."""
        with pytest.raises(RegistryError, match="Unexpected document"):
            self._fetch(
                lambda request: httpx.Response(200, text=json.dumps([1, 2])), "pkg"
            )

    def test_connection_error_raises(self) -> None:
        """Network failures raise RegistryError."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RegistryError, match="failed"):
            self._fetch(handler, "pkg")

    def test_used_outside_context_manager(self) -> None:
        """Requests need an open client."""
        registry = HttpRegistryTransport("https://registry.example.com")
        with pytest.raises(RuntimeError):
            asyncio.run(registry("pkg"))
