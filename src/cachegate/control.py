"""Control-plane commands from the host application.

The host sends small JSON-like messages and, for commands that answer,
supplies a :class:`ReplyPort` the reply is posted to:

====================  ==========================  ====================
Message               Effect                      Reply
====================  ==========================  ====================
``SKIP_WAITING``      activate immediately        none
``CLEAR_CACHE``       delete *all* versions       ``{"success": bool}``
``GET_CACHE_SIZE``    sum current body bytes      ``{"size": int}``
====================  ==========================  ====================

Unknown or malformed messages are ignored.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from cachegate.exceptions import StoreError
from cachegate.lifecycle import LifecycleManager
from cachegate.models import (
    CacheSizeReply,
    ClearCacheReply,
    ControlMessage,
    MessageType,
    reply_payload,
)
from cachegate.output import debug, info, warning
from cachegate.store import StoreHandle
from cachegate.tasks import settle_all


class ReplyPort(Protocol):
    """Response channel supplied with a control message."""

    def post_message(self, message: dict[str, Any]) -> None: ...


class FutureReply:
    """A :class:`ReplyPort` that resolves an :class:`asyncio.Future`.

    Example::

        reply = FutureReply()
        await channel.handle({"type": "GET_CACHE_SIZE"}, reply)
        size = (await reply.wait())["size"]
    """

    def __init__(self) -> None:
        self._future: asyncio.Future[dict[str, Any]] = (
            asyncio.get_running_loop().create_future()
        )

    def post_message(self, message: dict[str, Any]) -> None:
        if not self._future.done():
            self._future.set_result(message)

    @property
    def answered(self) -> bool:
        return self._future.done()

    async def wait(self) -> dict[str, Any]:
        return await self._future


class ControlChannel:
    """Executes control-plane commands against a lifecycle manager's store.

    Args:
        lifecycle: The manager whose store and host the commands act on.
    """

    def __init__(self, lifecycle: LifecycleManager) -> None:
        self._lifecycle = lifecycle
        self._store = lifecycle.store

    async def handle(self, data: Any, reply: Optional[ReplyPort] = None) -> None:
        """Process one message.

        Args:
            data: The raw message, e.g. ``{"type": "CLEAR_CACHE"}``.
            reply: Where to post the reply, if the command has one.
        """
        debug(f"Message received: {data!r}")
        try:
            message = ControlMessage.model_validate(data)
            kind = MessageType(message.type)
        except (ValidationError, ValueError):
            return

        if kind == MessageType.SKIP_WAITING:
            await self._lifecycle.skip_waiting()
        elif kind == MessageType.CLEAR_CACHE:
            result = await self.clear_cache()
            self._reply(reply, reply_payload(result))
        elif kind == MessageType.GET_CACHE_SIZE:
            result = await self.cache_size()
            self._reply(reply, reply_payload(result))

    async def clear_cache(self) -> ClearCacheReply:
        """Delete every version, the current one included."""
        try:
            versions = sorted(await self._store.list_versions())
        except StoreError as exc:
            warning(f"Could not list cache versions: {exc}")
            return ClearCacheReply(success=False)

        settled = await settle_all(self._store.delete_version(v) for v in versions)
        for index, exc in settled.failures:
            warning(f"Failed to delete cache {versions[index]}: {exc}")
        if settled.ok:
            info("All caches cleared")
        return ClearCacheReply(success=settled.ok)

    async def cache_size(self) -> CacheSizeReply:
        """Total stored body bytes of the current version (0 if unreadable).

        Reading never creates the version, so a later
        :meth:`~cachegate.lifecycle.LifecycleManager.adopt` still
        sees an uninstalled store as uninstalled.
        """
        try:
            size = await self._store.total_bytes(StoreHandle(self._lifecycle.version))
        except StoreError as exc:
            warning(f"Could not compute cache size: {exc}")
            size = 0
        return CacheSizeReply(size=size)

    @staticmethod
    def _reply(reply: Optional[ReplyPort], payload: dict[str, Any]) -> None:
        if reply is not None:
            reply.post_message(payload)
