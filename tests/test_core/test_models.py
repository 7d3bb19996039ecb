"""Tests for request keys, response blobs and config models."""

from __future__ import annotations

import httpx

from cachegate.models import (
    CacheConfig,
    CacheRequest,
    CacheSizeReply,
    ClearCacheReply,
    PrecacheConfig,
    ResponseBlob,
    normalize_url,
    reply_payload,
)


class TestCacheKey:
    def test_same_request_same_key(self) -> None:
        a = CacheRequest(url="https://example.com/a?x=1")
        b = CacheRequest(url="https://example.com/a?x=1")
        assert a.cache_key() == b.cache_key()

    def test_query_order_is_irrelevant(self) -> None:
        a = CacheRequest(url="https://example.com/a?x=1&y=2")
        b = CacheRequest(url="https://example.com/a?y=2&x=1")
        assert a.cache_key() == b.cache_key()

    def test_query_values_matter(self) -> None:
        a = CacheRequest(url="https://example.com/a?x=1")
        b = CacheRequest(url="https://example.com/a?x=2")
        assert a.cache_key() != b.cache_key()

    def test_fragment_is_ignored(self) -> None:
        a = CacheRequest(url="https://example.com/a#top")
        b = CacheRequest(url="https://example.com/a")
        assert a.cache_key() == b.cache_key()

    def test_host_case_is_ignored(self) -> None:
        a = CacheRequest(url="https://EXAMPLE.com/a")
        b = CacheRequest(url="https://example.com/a")
        assert a.cache_key() == b.cache_key()

    def test_headers_are_ignored(self) -> None:
        a = CacheRequest(url="https://example.com/a", headers={"Accept": "text/html"})
        b = CacheRequest(url="https://example.com/a")
        assert a.cache_key() == b.cache_key()

    def test_method_matters(self) -> None:
        a = CacheRequest(method="GET", url="https://example.com/a")
        b = CacheRequest(method="HEAD", url="https://example.com/a")
        assert a.cache_key() != b.cache_key()

    def test_normalize_url(self) -> None:
        assert normalize_url("https://Example.com/p?b=2&a=1#f") == "https://example.com/p?a=1&b=2"


class TestResponseBlob:
    def test_ok_range(self) -> None:
        assert ResponseBlob(status_code=200).ok
        assert ResponseBlob(status_code=299).ok
        assert not ResponseBlob(status_code=304).ok
        assert not ResponseBlob(status_code=404).ok

    def test_from_httpx(self) -> None:
        request = httpx.Request("GET", "https://example.com/a")
        response = httpx.Response(
            201, content=b"hello", headers={"x-test": "1"}, request=request
        )
        blob = ResponseBlob.from_httpx(response)
        assert blob.status_code == 201
        assert blob.body == b"hello"
        assert blob.header("X-Test") == "1"
        assert blob.url == "https://example.com/a"
        assert blob.size == 5

    def test_repeated_headers_survive_round_trip(self) -> None:
        response = httpx.Response(
            200,
            content=b"ok",
            headers=[("set-cookie", "a=1"), ("set-cookie", "b=2"), ("content-type", "text/plain")],
        )
        blob = ResponseBlob.from_httpx(response)
        assert blob.headers[:2] == [("set-cookie", "a=1"), ("set-cookie", "b=2")]
        assert blob.header("missing") == ""
        assert blob.to_httpx().headers.get_list("set-cookie") == ["a=1", "b=2"]

    def test_mapping_headers_accepted(self) -> None:
        blob = ResponseBlob(status_code=200, headers={"Content-Type": "text/html"})
        assert blob.headers == [("Content-Type", "text/html")]
        assert blob.header("content-type") == "text/html"

    def test_from_httpx_without_request(self) -> None:
        blob = ResponseBlob.from_httpx(httpx.Response(200, content=b"x"))
        assert blob.url == ""

    def test_to_httpx_drops_framing_headers(self) -> None:
        blob = ResponseBlob(
            status_code=200,
            headers={"content-encoding": "gzip", "content-type": "text/plain"},
            body=b"abc",
        )
        response = blob.to_httpx()
        assert response.content == b"abc"
        assert "content-encoding" not in response.headers
        assert response.headers["content-length"] == "3"
        assert response.headers["content-type"] == "text/plain"

    def test_unavailable(self) -> None:
        blob = ResponseBlob.unavailable("https://example.com/a.png")
        assert blob.status_code == 503
        assert blob.reason == "Service Unavailable"
        assert blob.body == b"Resource not available offline"


class TestConfigModels:
    def test_precache_flattens_in_category_order(self) -> None:
        cfg = PrecacheConfig(
            critical=["/"],
            fonts=["f.woff2"],
            backgrounds=["b.png"],
            icons=["i.svg"],
            audio=["a.mp3"],
        )
        assert cfg.urls() == ["/", "f.woff2", "b.png", "i.svg", "a.mp3"]

    def test_precache_drops_duplicates(self) -> None:
        cfg = PrecacheConfig(critical=["/", "/x"], icons=["/x"])
        assert cfg.urls() == ["/", "/x"]

    def test_default_critical_resources(self) -> None:
        assert PrecacheConfig().urls()[0] == "/"

    def test_namespace(self) -> None:
        cfg = CacheConfig(version="v4.0.0")
        assert cfg.namespace() == "performance-maker-v4.0.0"
        assert cfg.namespace("v1") == "performance-maker-v1"

    def test_reply_payloads(self) -> None:
        assert reply_payload(ClearCacheReply(success=True)) == {"success": True}
        assert reply_payload(CacheSizeReply(size=350)) == {"size": 350}
