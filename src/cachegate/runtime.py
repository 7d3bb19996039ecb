"""Wiring of the caching core from a resolved configuration.

:func:`open_runtime` builds the store, fetcher, classifier and lifecycle
manager described by a :class:`~cachegate.models.GlobalConfig` and tears them
down again, waiting for background cache writes before closing the store.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from cachegate.classifier import Classifier
from cachegate.config import get_store_dir
from cachegate.control import ControlChannel
from cachegate.fetch import Fetcher
from cachegate.lifecycle import HostBridge, LifecycleManager, RecordingHost
from cachegate.models import GlobalConfig
from cachegate.store import BlobStore, DiskBlobStore, VersionedCacheStore


@dataclass
class Runtime:
    """Everything a host needs to drive the caching core."""

    config: GlobalConfig
    store: VersionedCacheStore
    fetcher: Fetcher
    lifecycle: LifecycleManager
    control: ControlChannel
    host: HostBridge


@asynccontextmanager
async def open_runtime(
    config: GlobalConfig,
    blob_store: Optional[BlobStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    host: Optional[HostBridge] = None,
) -> AsyncIterator[Runtime]:
    """Assemble a :class:`Runtime` for *config*.

    Args:
        config: Resolved configuration.
        blob_store: Persistence backend; a :class:`DiskBlobStore` in the
            configured store directory when omitted.
        transport: Network transport for the fetcher (tests only).
        host: Host bridge; a :class:`RecordingHost` when omitted.
    """
    blobs = blob_store or DiskBlobStore(get_store_dir(config))
    store = VersionedCacheStore(blobs)
    host = host or RecordingHost()
    try:
        async with Fetcher(config.request, transport=transport, base_url=config.base_url) as fetcher:
            lifecycle = LifecycleManager(
                version=config.cache.namespace(),
                store=store,
                fetcher=fetcher,
                classifier=Classifier(config.classifier),
                precache=config.precache,
                host=host,
                skip_waiting_on_install=config.cache.skip_waiting_on_install,
            )
            try:
                yield Runtime(
                    config=config,
                    store=store,
                    fetcher=fetcher,
                    lifecycle=lifecycle,
                    control=ControlChannel(lifecycle),
                    host=host,
                )
            finally:
                await lifecycle.lifetime.settle()
    finally:
        store.close()
