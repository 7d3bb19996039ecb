"""Tests for the version-namespaced response store."""

from __future__ import annotations

import asyncio

import pytest

from cachegate.exceptions import StoreError
from cachegate.models import CacheRequest, ResponseBlob
from cachegate.store import StoreHandle, VersionedCacheStore

URL = "https://cdn.example.com/icons/logo.svg"


def _blob(body: bytes = b"<svg/>", status: int = 200) -> ResponseBlob:
    return ResponseBlob(
        status_code=status,
        reason="OK",
        headers={"content-type": "image/svg+xml"},
        body=body,
        url=URL,
    )


@pytest.fixture(params=["memory", "disk"])
def versioned(request, memory_blobs, disk_blobs) -> VersionedCacheStore:
    return VersionedCacheStore(memory_blobs if request.param == "memory" else disk_blobs)


class TestPutAndMatch:
    def test_round_trip(self, versioned: VersionedCacheStore) -> None:
        async def scenario():
            handle = await versioned.open("v3")
            await versioned.put(handle, CacheRequest(url=URL), _blob())
            return await versioned.match(handle, CacheRequest(url=URL))

        assert asyncio.run(scenario()) == _blob()

    def test_repeated_headers_are_kept(self, versioned: VersionedCacheStore) -> None:
        stored = ResponseBlob(
            status_code=200,
            headers=[("set-cookie", "a=1"), ("set-cookie", "b=2")],
            body=b"ok",
        )

        async def scenario():
            handle = await versioned.open("v3")
            await versioned.put(handle, CacheRequest(url=URL), stored)
            return await versioned.match(handle, CacheRequest(url=URL))

        assert asyncio.run(scenario()).headers == [("set-cookie", "a=1"), ("set-cookie", "b=2")]

    def test_miss_is_none(self, versioned: VersionedCacheStore) -> None:
        async def scenario():
            handle = await versioned.open("v3")
            return await versioned.match(handle, CacheRequest(url=URL))

        assert asyncio.run(scenario()) is None

    def test_versions_are_isolated(self, versioned: VersionedCacheStore) -> None:
        async def scenario():
            v1 = await versioned.open("v1")
            v2 = await versioned.open("v2")
            await versioned.put(v1, CacheRequest(url=URL), _blob(b"one"))
            return await versioned.match(v2, CacheRequest(url=URL))

        assert asyncio.run(scenario()) is None

    def test_non_2xx_is_refused(self, versioned: VersionedCacheStore) -> None:
        async def scenario():
            handle = await versioned.open("v3")
            await versioned.put(handle, CacheRequest(url=URL), _blob(status=404))

        with pytest.raises(StoreError):
            asyncio.run(scenario())

    def test_equivalent_urls_share_an_entry(self, versioned: VersionedCacheStore) -> None:
        async def scenario():
            handle = await versioned.open("v3")
            await versioned.put(handle, CacheRequest(url=f"{URL}?b=2&a=1"), _blob())
            return await versioned.match(handle, CacheRequest(url=f"{URL}?a=1&b=2#x"))

        assert asyncio.run(scenario()) is not None


class TestVersions:
    def test_open_is_idempotent(self, versioned: VersionedCacheStore) -> None:
        async def scenario():
            handle = await versioned.open("v3")
            await versioned.put(handle, CacheRequest(url=URL), _blob())
            again = await versioned.open("v3")
            return again, await versioned.match(again, CacheRequest(url=URL))

        again, hit = asyncio.run(scenario())
        assert again == StoreHandle("v3")
        assert hit is not None

    def test_list_and_delete(self, versioned: VersionedCacheStore) -> None:
        async def scenario():
            for v in ("v1", "v2", "v3"):
                await versioned.open(v)
            await versioned.delete_version("v2")
            return await versioned.list_versions()

        assert asyncio.run(scenario()) == {"v1", "v3"}

    def test_put_recreates_deleted_version(self, versioned: VersionedCacheStore) -> None:
        async def scenario():
            handle = await versioned.open("v3")
            await versioned.delete_version("v3")
            await versioned.put(handle, CacheRequest(url=URL), _blob())
            return await versioned.list_versions()

        assert asyncio.run(scenario()) == {"v3"}

    def test_keys_and_total_bytes(self, versioned: VersionedCacheStore) -> None:
        other = "https://cdn.example.com/icons/other.svg"

        async def scenario():
            handle = await versioned.open("v3")
            await versioned.put(handle, CacheRequest(url=URL), _blob(b"x" * 100))
            await versioned.put(handle, CacheRequest(url=other), _blob(b"y" * 250))
            return await versioned.keys(handle), await versioned.total_bytes(handle)

        urls, size = asyncio.run(scenario())
        assert sorted(urls) == sorted([URL, other])
        assert size == 350


class TestFailures:
    def test_backend_errors_become_store_errors(self, flaky_blobs) -> None:
        versioned = VersionedCacheStore(flaky_blobs)
        flaky_blobs.fail_reads = True

        async def scenario():
            handle = await versioned.open("v3")
            await versioned.match(handle, CacheRequest(url=URL))

        with pytest.raises(StoreError, match="disk read error"):
            asyncio.run(scenario())

    def test_write_failure(self, flaky_blobs) -> None:
        versioned = VersionedCacheStore(flaky_blobs)
        flaky_blobs.fail_writes = True

        async def scenario():
            handle = await versioned.open("v3")
            await versioned.put(handle, CacheRequest(url=URL), _blob())

        with pytest.raises(StoreError):
            asyncio.run(scenario())
