"""Interception adapter for applications built on :mod:`httpx`.

Mounting :class:`InterceptingTransport` on an application's
:class:`httpx.AsyncClient` hands every outbound request to
:meth:`~cachegate.lifecycle.LifecycleManager.dispatch` before it reaches the
network, and lets the caching layer answer in place of the real server::

    async with Fetcher(config.request) as fetcher:
        manager = LifecycleManager(version, store, fetcher, classifier)
        await manager.install()
        await manager.activate()
        async with httpx.AsyncClient(transport=InterceptingTransport(manager)) as client:
            r = await client.get("https://example.com/fonts/Text.woff2")

The manager's own :class:`~cachegate.fetch.Fetcher` must use a real
transport; mounting this transport there would loop forever.
"""

from __future__ import annotations

import httpx

from cachegate.exceptions import FetchError
from cachegate.lifecycle import LifecycleManager
from cachegate.models import CacheRequest


class InterceptingTransport(httpx.AsyncBaseTransport):
    """Routes :mod:`httpx` requests through a :class:`LifecycleManager`.

    Args:
        lifecycle: The manager that serves every request.
    """

    def __init__(self, lifecycle: LifecycleManager) -> None:
        self._lifecycle = lifecycle

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        content = await request.aread()
        try:
            blob = await self._lifecycle.dispatch(
                CacheRequest.from_httpx(request), content or None
            )
        except FetchError as exc:
            raise httpx.ConnectError(str(exc), request=request) from exc
        return blob.to_httpx(request)

    async def aclose(self) -> None:
        await self._lifecycle.lifetime.settle()
