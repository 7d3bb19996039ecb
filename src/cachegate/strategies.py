"""The three caching policies applied to intercepted requests.

Each operation on :class:`StrategyEngine` takes the request and a
:class:`~cachegate.store.StoreHandle` bound to the current cache version:

==========================  ==================================================
Operation                   Behaviour
==========================  ==================================================
:meth:`~StrategyEngine.cache_first`
                            Serve a hit without touching the network.  On a
                            miss, fetch, cache in the background and return;
                            if the fetch fails, answer with a synthesized 503.
:meth:`~StrategyEngine.network_first`
                            Fetch and cache before returning.  If the fetch
                            fails, fall back to the cache; if that misses
                            too, the :class:`FetchError` propagates.
:meth:`~StrategyEngine.stale_while_revalidate`
                            Serve a hit immediately while a background fetch
                            refreshes the entry.  On a miss, wait for that
                            fetch.
==========================  ==================================================

Only 2xx responses are ever written.  Store failures never cost the caller a
response: a failed read counts as a miss, and a failed write is logged while
the fetched response is still returned.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from cachegate.exceptions import FetchError, StoreError
from cachegate.fetch import Fetcher
from cachegate.models import CacheRequest, RequestCategory, ResponseBlob
from cachegate.output import debug, warning
from cachegate.store import StoreHandle, VersionedCacheStore
from cachegate.tasks import Lifetime

Strategy = Callable[[CacheRequest, StoreHandle], Awaitable[ResponseBlob]]


class StrategyEngine:
    """Applies caching policies over a store and a network fetcher.

    Args:
        fetcher: Network fetch capability (an entered :class:`Fetcher`).
        store: The versioned cache store.
        lifetime: Registry that keeps background cache writes and
            revalidations alive after the response has been returned.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        store: VersionedCacheStore,
        lifetime: Lifetime,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._lifetime = lifetime

    def for_category(self, category: RequestCategory) -> Strategy:
        """Return the strategy that serves *category*."""
        if category == RequestCategory.STATIC_ASSET:
            return self.cache_first
        if category == RequestCategory.REMOTE_API:
            return self.network_first
        return self.stale_while_revalidate

    # ------------------------------------------------------------------ #
    # Strategies
    # ------------------------------------------------------------------ #

    async def cache_first(
        self, request: CacheRequest, handle: StoreHandle
    ) -> ResponseBlob:
        """Serve from cache; fetch and cache on a miss; 503 when offline."""
        cached = await self._lookup(request, handle)
        if cached is not None:
            debug(f"Cache hit: {request.url}")
            return cached

        debug(f"Cache miss, fetching: {request.url}")
        try:
            response = await self._fetcher.fetch(request)
        except FetchError as exc:
            warning(f"Fetch failed: {request.url}: {exc}")
            return ResponseBlob.unavailable(request.url)

        if response.ok:
            self._lifetime.extend(self._store_quietly(request, handle, response))
        return response

    async def network_first(
        self, request: CacheRequest, handle: StoreHandle
    ) -> ResponseBlob:
        """Fetch and cache; fall back to cache; otherwise re-raise."""
        try:
            response = await self._fetcher.fetch(request)
        except FetchError:
            debug(f"Network failed, trying cache: {request.url}")
            cached = await self._lookup(request, handle)
            if cached is not None:
                return cached
            raise

        if response.ok:
            await self._store_quietly(request, handle, response)
        return response

    async def stale_while_revalidate(
        self, request: CacheRequest, handle: StoreHandle
    ) -> ResponseBlob:
        """Serve from cache while refreshing it; wait for the network on a miss."""
        cached = await self._lookup(request, handle)
        revalidation = self._lifetime.extend(self._revalidate(request, handle))

        if cached is not None:
            debug(f"Serving stale, revalidating: {request.url}")
            return cached

        # shield: a caller giving up must not cancel the cache update
        response = await asyncio.shield(revalidation)
        if response is None:
            raise FetchError(f"Fetch failed and nothing cached: {request.url}", url=request.url)
        return response

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _lookup(
        self, request: CacheRequest, handle: StoreHandle
    ) -> Optional[ResponseBlob]:
        try:
            return await self._store.match(handle, request)
        except StoreError as exc:
            warning(f"Cache read failed for {request.url}: {exc}")
            return None

    async def _store_quietly(
        self, request: CacheRequest, handle: StoreHandle, response: ResponseBlob
    ) -> None:
        try:
            await self._store.put(handle, request, response)
        except StoreError as exc:
            warning(f"Cache write failed for {request.url}: {exc}")

    async def _revalidate(
        self, request: CacheRequest, handle: StoreHandle
    ) -> Optional[ResponseBlob]:
        """Fetch *request* and update the cache. Returns ``None`` on fetch failure."""
        try:
            response = await self._fetcher.fetch(request)
        except FetchError as exc:
            debug(f"Revalidation failed: {request.url}: {exc}")
            return None
        if response.ok:
            await self._store_quietly(request, handle, response)
        return response
