"""Shared test fixtures for cachegate.

Provides a scriptable fake network (served through :class:`httpx.MockTransport`),
store fixtures, isolated config directories, and a factory that assembles a
:class:`~cachegate.lifecycle.LifecycleManager` inside a running event loop.

Async code is driven with :func:`asyncio.run` from plain test functions.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Optional

import httpx
import pytest

from cachegate.classifier import Classifier
from cachegate.fetch import Fetcher
from cachegate.lifecycle import HostBridge, LifecycleManager, RecordingHost
from cachegate.models import ClassifierConfig, PrecacheConfig, RequestConfig
from cachegate.output import OutputFormat, OutputManager, reset_output, set_output
from cachegate.store import DiskBlobStore, MemoryBlobStore, VersionedCacheStore


# ---------------------------------------------------------------------------
# Fake network
# ---------------------------------------------------------------------------


class FakeNetwork:
    """Scriptable origin server for :class:`httpx.MockTransport`.

    Routes map a URL to a response, to an exception, or to "hang forever".
    Every request is counted per URL (query string included).
    """

    def __init__(self) -> None:
        self._routes: dict[str, Any] = {}
        self.calls: dict[str, int] = {}
        self.requests: list[httpx.Request] = []

    def serve(
        self,
        url: str,
        body: bytes | str = b"ok",
        status: int = 200,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        if isinstance(body, str):
            body = body.encode()
        self._routes[url] = ("response", status, body, headers or {})

    def fail(self, url: str) -> None:
        """Make *url* raise a connection error."""
        self._routes[url] = ("fail",)

    def hang(self, url: str) -> None:
        """Make *url* never answer."""
        self._routes[url] = ("hang",)

    def count(self, url: str) -> int:
        return self.calls.get(url, 0)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls[url] = self.calls.get(url, 0) + 1
        self.requests.append(request)
        route = self._routes.get(url)
        if route is None or route[0] == "fail":
            raise httpx.ConnectError("connection refused", request=request)
        if route[0] == "hang":
            await asyncio.Event().wait()
        _, status, body, headers = route
        return httpx.Response(status, content=body, headers=headers, request=request)


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def disk_blobs(tmp_path: Path) -> DiskBlobStore:
    store = DiskBlobStore(tmp_path / "store")
    yield store
    store.close()


@pytest.fixture
def store(memory_blobs: MemoryBlobStore) -> VersionedCacheStore:
    return VersionedCacheStore(memory_blobs)


# ---------------------------------------------------------------------------
# Lifecycle manager factory
# ---------------------------------------------------------------------------


@pytest.fixture
def make_manager(
    network: FakeNetwork, store: VersionedCacheStore
) -> Callable[..., Any]:
    """Return an async context manager factory building a LifecycleManager.

    Usage inside a coroutine::

        async with make_manager(version="v3") as manager:
            ...
    """

    @asynccontextmanager
    async def _factory(
        version: str = "v3",
        precache: Optional[PrecacheConfig] = None,
        host: Optional[HostBridge] = None,
        cache_store: Optional[VersionedCacheStore] = None,
        classifier: Optional[ClassifierConfig] = None,
        base_url: Optional[str] = None,
        skip_waiting_on_install: bool = False,
    ) -> AsyncIterator[LifecycleManager]:
        async with Fetcher(
            RequestConfig(max_retries=0),
            transport=network.transport,
            base_url=base_url,
        ) as fetcher:
            manager = LifecycleManager(
                version=version,
                store=cache_store or store,
                fetcher=fetcher,
                classifier=Classifier(classifier or ClassifierConfig()),
                precache=precache or PrecacheConfig(critical=[]),
                host=host or RecordingHost(),
                skip_waiting_on_install=skip_waiting_on_install,
            )
            yield manager
            await manager.lifetime.settle()

    return _factory


# ---------------------------------------------------------------------------
# Blob store that fails on demand
# ---------------------------------------------------------------------------


class FlakyBlobStore(MemoryBlobStore):
    """Memory store whose operations can be made to raise ``OSError``."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False
        self.fail_creates = False
        self.fail_drops: set[str] = set()

    def create_namespace(self, namespace: str) -> None:
        if self.fail_creates:
            raise OSError("permission denied")
        super().create_namespace(namespace)

    def get(self, namespace: str, key: str):
        if self.fail_reads:
            raise OSError("disk read error")
        return super().get(namespace, key)

    def set(self, namespace: str, key: str, value: dict[str, Any]) -> None:
        if self.fail_writes:
            raise OSError("quota exceeded")
        super().set(namespace, key, value)

    def drop_namespace(self, namespace: str) -> None:
        if namespace in self.fail_drops:
            raise OSError(f"cannot delete {namespace}")
        super().drop_namespace(namespace)


@pytest.fixture
def flaky_blobs() -> FlakyBlobStore:
    return FlakyBlobStore()


# ---------------------------------------------------------------------------
# Output / config isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _quiet_output_between_tests() -> None:
    """Install a quiet plain OutputManager and reset it after every test."""
    set_output(OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True))
    yield
    reset_output()


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME under tmp_path,
    forces XDG path resolution, clears CACHEGATE_* variables and changes
    the working directory to tmp_path.
    """
    monkeypatch.setattr("cachegate.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["CACHEGATE_VERSION", "CACHEGATE_BASE_URL"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
