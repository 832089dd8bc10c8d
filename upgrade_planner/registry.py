"""Registry access: per-run metadata cache and the HTTP transport.

The MetadataGateway is created once per planning run and discarded with it.
It memoizes one asyncio.Task per package name, so concurrent consumers asking
for the same package share a single underlying request. The transport is any
async callable returning the raw registry document, or None when the package
does not exist.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any
from urllib.parse import quote

import httpx

from .errors import RegistryError
from .metadata import DEFAULT_METADATA_KEY, decode_package_metadata
from .models import Diagnostic, PackageMetadata

Transport = Callable[[str], Awaitable[dict[str, Any] | None]]


class MetadataGateway:
    """Coalescing, append-only cache in front of a registry transport."""

    def __init__(
        self, transport: Transport, metadata_key: str = DEFAULT_METADATA_KEY
    ) -> None:
        self._transport = transport
        self._metadata_key = metadata_key
        self._tasks: dict[str, asyncio.Task[PackageMetadata | None]] = {}
        self.diagnostics: list[Diagnostic] = []

    async def fetch(self, name: str) -> PackageMetadata | None:
        """Return the metadata for a package, or None when it is not found.

        The first call for a name starts the request; later calls (including
        ones made while it is still pending) await the same task.
        """
        task = self._tasks.get(name)
        if task is None:
            task = asyncio.ensure_future(self._load(name))
            self._tasks[name] = task
        return await task

    async def fetch_many(
        self, names: Iterable[str]
    ) -> dict[str, PackageMetadata | None]:
        """Fetch a batch of packages concurrently.

        Results are keyed by name; completion order does not matter.
        """
        unique = list(dict.fromkeys(names))
        results = await asyncio.gather(*(self.fetch(name) for name in unique))
        return dict(zip(unique, results))

    async def _load(self, name: str) -> PackageMetadata | None:
        try:
            raw = await self._transport(name)
        except RegistryError as exc:
            self.diagnostics.append(Diagnostic(level="warning", message=str(exc)))
            return None

        if raw is None:
            return None

        metadata, diagnostics = decode_package_metadata(
            name, raw, self._metadata_key
        )
        self.diagnostics.extend(diagnostics)
        return metadata


class HttpRegistryTransport:
    """Fetch package documents from an npm-compatible registry over HTTP.

    Use as an async context manager so the underlying client is closed at
    the end of the run.
    """

    def __init__(
        self,
        registry_url: str,
        timeout: float = 30.0,
        max_concurrency: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpRegistryTransport:
        self._client = httpx.AsyncClient(
            base_url=self.registry_url,
            timeout=httpx.Timeout(self.timeout),
            headers={"Accept": "application/json"},
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __call__(self, name: str) -> dict[str, Any] | None:
        if self._client is None:
            raise RuntimeError("HttpRegistryTransport used outside 'async with'")

        # Scoped packages keep their "@" but the slash must be encoded
        path = "/" + quote(name, safe="@")
        async with self._semaphore:
            try:
                response = await self._client.get(path)
            except httpx.RequestError as exc:
                raise RegistryError(f"Request for {name!r} failed: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise RegistryError(
                f"Registry returned HTTP {response.status_code} for {name!r}."
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise RegistryError(f"Invalid JSON returned for {name!r}.") from exc
        if not isinstance(data, dict):
            raise RegistryError(f"Unexpected document returned for {name!r}.")
        return data
