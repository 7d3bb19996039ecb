"""Async, version-namespaced response store.

:class:`VersionedCacheStore` is the only owner of cached response bytes.
Each cache version gets its own namespace in the underlying
:class:`~cachegate.store.blob.BlobStore`; a :class:`StoreHandle` returned by
:meth:`VersionedCacheStore.open` binds operations to one version.

Blob store calls run in a worker thread via :func:`asyncio.to_thread`, so a
slow disk never stalls other in-flight requests.  Every blob store failure
surfaces as :class:`~cachegate.exceptions.StoreError`.

Stored value layout::

    {"url": "<request url>", "response": {<ResponseBlob fields>}}
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from cachegate.exceptions import StoreError
from cachegate.models import CacheRequest, CacheVersion, ResponseBlob
from cachegate.store.blob import BlobStore

T = TypeVar("T")


@dataclass(frozen=True)
class StoreHandle:
    """A version namespace opened with :meth:`VersionedCacheStore.open`."""

    version: CacheVersion


class VersionedCacheStore:
    """Request -> response store partitioned by cache version.

    Args:
        blob_store: Persistence backend.
    """

    def __init__(self, blob_store: BlobStore) -> None:
        self._blobs = blob_store

    async def open(self, version: CacheVersion) -> StoreHandle:
        """Return a handle for *version*, creating its namespace if absent.

        Opening an existing version leaves its entries untouched.
        """
        await self._call(self._blobs.create_namespace, version)
        return StoreHandle(version)

    async def put(
        self, handle: StoreHandle, request: CacheRequest, response: ResponseBlob
    ) -> None:
        """Store *response* for *request*, replacing any previous entry.

        Raises:
            StoreError: If *response* is not a 2xx response or the write fails.
        """
        if not response.ok:
            raise StoreError(
                f"Refusing to cache {request.url}: HTTP {response.status_code}"
            )
        value = {"url": request.url, "response": response.model_dump()}

        def _write() -> None:
            # A cleared version is recreated on the next write.
            self._blobs.create_namespace(handle.version)
            self._blobs.set(handle.version, request.cache_key(), value)

        await self._call(_write)

    async def match(
        self, handle: StoreHandle, request: CacheRequest
    ) -> Optional[ResponseBlob]:
        """Return the stored response for *request*, or ``None`` on a miss."""
        value = await self._call(self._blobs.get, handle.version, request.cache_key())
        if value is None:
            return None
        return ResponseBlob.model_validate(value["response"])

    async def keys(self, handle: StoreHandle) -> list[str]:
        """Return the URLs of every request stored in *handle*'s version."""

        def _urls() -> list[str]:
            urls = []
            for key in self._blobs.keys(handle.version):
                value = self._blobs.get(handle.version, key)
                if value is not None:
                    urls.append(value["url"])
            return urls

        return await self._call(_urls)

    async def list_versions(self) -> set[CacheVersion]:
        """Return every version namespace present, stale ones included."""
        return await self._call(self._blobs.namespaces)

    async def delete_version(self, version: CacheVersion) -> None:
        """Remove *version* and all of its entries. Irreversible."""
        await self._call(self._blobs.drop_namespace, version)

    async def total_bytes(self, handle: StoreHandle) -> int:
        """Sum of stored response body sizes in *handle*'s version."""

        def _sum() -> int:
            total = 0
            for key in self._blobs.keys(handle.version):
                value = self._blobs.get(handle.version, key)
                if value is not None:
                    total += len(value["response"]["body"])
            return total

        return await self._call(_sum)

    def close(self) -> None:
        self._blobs.close()

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"Cache store failure: {exc}") from exc
