"""Cache commands -- drive the lifecycle and the control channel from the shell.

Provides the commands registered at the top level of ``cachegate``:
``install``, ``activate``, ``fetch``, ``message`` and ``versions``.  Each
command resolves the configuration, opens a
:class:`~cachegate.runtime.Runtime` and acts as its host.

Because the store is durable, a version installed by one invocation is picked
up by the next one through
:meth:`~cachegate.lifecycle.LifecycleManager.adopt`.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import httpx
import typer

from cachegate.config import resolve_config
from cachegate.control import FutureReply
from cachegate.exceptions import InvalidUsageError, LifecycleError
from cachegate.models import CacheRequest, GlobalConfig, MessageType
from cachegate.output import (
    OutputFormat,
    format_response,
    get_output,
    info,
    print_table,
    set_output,
    success,
    warning,
)
from cachegate.runtime import Runtime, open_runtime
from cachegate.store import StoreHandle


def _config(ctx: typer.Context) -> GlobalConfig:
    obj = ctx.obj or {}
    config = resolve_config(
        cli_version=obj.get("cache_version"),
        cli_base_url=obj.get("base_url"),
        cli_format=obj.get("format"),
    )
    fmt = OutputFormat(config.output.format)
    if fmt != OutputFormat.AUTO:
        set_output(get_output().with_format(fmt))
    return config


async def _require_installed(runtime: Runtime) -> None:
    if not await runtime.lifecycle.adopt():
        raise LifecycleError(
            f"Cache {runtime.lifecycle.version} is not installed. Run 'cachegate install' first."
        )


def install_command(
    ctx: typer.Context,
    activate: bool = typer.Option(
        False, "--activate", help="Activate right after install."
    ),
) -> None:
    """Pre-populate the current cache version from the precache list.

    Individual URLs that cannot be fetched are reported and skipped.  With
    ``cache.skip_waiting_on_install`` (the default) the new version becomes
    active at once and every older version is deleted.

    Example::

        cachegate install
        cachegate --cache-version v4.1.0 install --activate
    """
    config = _config(ctx)

    async def _run() -> dict[str, Any]:
        async with open_runtime(config) as runtime:
            report = await runtime.lifecycle.install()
            if activate:
                await runtime.lifecycle.activate()
            return {
                "version": report.version,
                "cached": report.cached,
                "failed": report.failed,
                "active": runtime.lifecycle.is_active,
            }

    result = asyncio.run(_run())
    if result["failed"]:
        warning(f"{len(result['failed'])} resource(s) could not be cached")
    format_response(result)


def activate_command(ctx: typer.Context) -> None:
    """Delete every stale cache version and make the current one active."""
    config = _config(ctx)

    async def _run() -> list[str]:
        async with open_runtime(config) as runtime:
            await _require_installed(runtime)
            return await runtime.lifecycle.activate()

    deleted = asyncio.run(_run())
    success(f"Activated {config.cache.namespace()}")
    format_response({"deleted": deleted})


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="URL to request through the cache."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    body_file: Optional[Path] = typer.Option(
        None, "--save", "-s", help="Write the response body to this file."
    ),
) -> None:
    """Request a URL through the caching layer and report the outcome.

    Example::

        cachegate fetch https://example.com/fonts/Text.woff2
        cachegate -v fetch https://libretranslate.com/languages
    """
    config = _config(ctx)
    if not config.base_url and not httpx.URL(url).is_absolute_url:
        raise InvalidUsageError(
            f"Relative URL '{url}' needs --base-url or a configured base_url"
        )

    async def _run() -> dict[str, Any]:
        async with open_runtime(config) as runtime:
            await _require_installed(runtime)
            await runtime.lifecycle.activate()
            request = CacheRequest(method=method.upper(), url=runtime.fetcher.resolve(url))
            blob = await runtime.lifecycle.dispatch(request)
            if body_file is not None:
                body_file.write_bytes(blob.body)
            return {
                "url": request.url,
                "status": blob.status_code,
                "reason": blob.reason,
                "content_type": blob.header("content-type"),
                "bytes": blob.size,
            }

    result = asyncio.run(_run())
    info(f"HTTP {result['status']} {result['reason']}")
    format_response(result)


def message_command(
    ctx: typer.Context,
    message_type: str = typer.Argument(
        help="SKIP_WAITING, CLEAR_CACHE or GET_CACHE_SIZE."
    ),
) -> None:
    """Send a control message and print its reply.

    Example::

        cachegate message GET_CACHE_SIZE
        cachegate message CLEAR_CACHE
    """
    config = _config(ctx)
    kind = message_type.upper()
    if kind not in MessageType.__members__:
        warning(f"Unknown message type '{message_type}' ignored")

    async def _run() -> Optional[dict[str, Any]]:
        async with open_runtime(config) as runtime:
            await runtime.lifecycle.adopt()
            reply = FutureReply()
            await runtime.control.handle({"type": kind}, reply)
            return await reply.wait() if reply.answered else None

    result = asyncio.run(_run())
    if result is None:
        info("No reply")
    else:
        format_response(result)


def versions_command(ctx: typer.Context) -> None:
    """List every cache version in the store with its size."""
    config = _config(ctx)
    current = config.cache.namespace()

    async def _run() -> list[list[str]]:
        async with open_runtime(config) as runtime:
            rows = []
            for version in sorted(await runtime.store.list_versions()):
                handle = StoreHandle(version)
                entries = await runtime.store.keys(handle)
                size = await runtime.store.total_bytes(handle)
                rows.append([
                    version,
                    "yes" if version == current else "",
                    str(len(entries)),
                    str(size),
                ])
            return rows

    rows = asyncio.run(_run())
    print_table(["version", "current", "entries", "bytes"], rows, title="Cache versions")
