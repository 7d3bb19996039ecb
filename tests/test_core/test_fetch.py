"""Tests for the network fetcher."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from cachegate.exceptions import FetchError
from cachegate.fetch import Fetcher
from cachegate.models import CacheRequest, RequestConfig


def _fetch(transport, request, config=None, base_url=None, content=None):
    async def scenario():
        async with Fetcher(config or RequestConfig(), transport=transport, base_url=base_url) as f:
            return await f.fetch(request, content)

    return asyncio.run(scenario())


class TestFetch:
    def test_returns_blob(self, network) -> None:
        network.serve("https://example.com/a.json", b'{"a": 1}', headers={"content-type": "application/json"})
        blob = _fetch(network.transport, CacheRequest(url="https://example.com/a.json"))
        assert blob.status_code == 200
        assert blob.reason == "OK"
        assert blob.body == b'{"a": 1}'
        assert blob.header("content-type") == "application/json"
        assert blob.url == "https://example.com/a.json"

    def test_error_status_is_a_response(self, network) -> None:
        network.serve("https://example.com/missing", b"", status=404)
        blob = _fetch(network.transport, CacheRequest(url="https://example.com/missing"))
        assert blob.status_code == 404
        assert not blob.ok

    def test_connection_failure_raises(self, network) -> None:
        network.fail("https://example.com/down")
        with pytest.raises(FetchError) as exc_info:
            _fetch(network.transport, CacheRequest(url="https://example.com/down"))
        assert exc_info.value.url == "https://example.com/down"

    def test_forwards_method_headers_and_body(self, network) -> None:
        network.serve("https://example.com/submit", b"", status=204)
        request = CacheRequest(
            method="POST", url="https://example.com/submit", headers={"X-Trace": "t1"}
        )
        _fetch(network.transport, request, content=b"data")
        sent = network.requests[-1]
        assert sent.method == "POST"
        assert sent.headers["x-trace"] == "t1"
        assert sent.content == b"data"

    def test_relative_url_uses_base(self, network) -> None:
        network.serve("https://app.example.com/index.html", b"<html>")
        blob = _fetch(
            network.transport,
            CacheRequest(url="/index.html"),
            base_url="https://app.example.com",
        )
        assert blob.body == b"<html>"

    def test_retries_connection_errors(self, monkeypatch) -> None:
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, content=b"finally")

        async def no_sleep(delay: float) -> None:
            return None

        monkeypatch.setattr("cachegate.fetch.asyncio.sleep", no_sleep)
        blob = _fetch(
            httpx.MockTransport(handler),
            CacheRequest(url="https://example.com/flaky"),
            config=RequestConfig(max_retries=2),
        )
        assert blob.body == b"finally"
        assert len(attempts) == 3

    def test_gives_up_after_max_retries(self, monkeypatch) -> None:
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectTimeout("timed out", request=request)

        async def no_sleep(delay: float) -> None:
            return None

        monkeypatch.setattr("cachegate.fetch.asyncio.sleep", no_sleep)
        with pytest.raises(FetchError):
            _fetch(
                httpx.MockTransport(handler),
                CacheRequest(url="https://example.com/slow"),
                config=RequestConfig(max_retries=1),
            )
        assert len(attempts) == 2

    def test_protocol_errors_are_not_retried(self) -> None:
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.RemoteProtocolError("bad framing", request=request)

        with pytest.raises(FetchError):
            _fetch(
                httpx.MockTransport(handler),
                CacheRequest(url="https://example.com/garbled"),
                config=RequestConfig(max_retries=3),
            )
        assert len(attempts) == 1

    def test_resolve_without_base(self) -> None:
        assert Fetcher().resolve("https://x.example/a") == "https://x.example/a"
