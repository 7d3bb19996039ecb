"""Canonical Pydantic models shared across all cachegate modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`PrecacheConfig`, :class:`ClassifierConfig`, :class:`CacheConfig`,
    :class:`RequestConfig`, :class:`OutputConfig` and :class:`GlobalConfig`.

**Request/response models** -- the values flowing through the caching core:
    :class:`RequestCategory`, :class:`CacheRequest` and :class:`ResponseBlob`.

**Control-plane messages** -- the command/reply shapes exchanged with the host
application:
    :class:`MessageType`, :class:`ControlMessage`, :class:`ClearCacheReply`
    and :class:`CacheSizeReply`.

All models use Pydantic v2. :class:`ControlMessage` accepts extra keys so
that hosts may attach their own correlation data.
"""

from __future__ import annotations

import enum
import hashlib
from collections.abc import Mapping
from typing import Any, Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

CacheVersion = str
"""Opaque tag identifying one cache generation (e.g. ``"v4.0.0"``)."""

_FRAMING_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


# --- Configuration ---


class PrecacheConfig(BaseModel):
    """URLs fetched and stored during the install phase.

    The categories only document where a URL comes from; :meth:`urls`
    flattens them into the single ordered list that install populates.
    Relative URLs are resolved against :attr:`GlobalConfig.base_url`.
    """

    critical: list[str] = Field(
        default_factory=lambda: ["/", "/index.html", "/App.tsx", "/styles/globals.css"],
        description="Application shell resources",
    )
    fonts: list[str] = Field(default_factory=list, description="Font files")
    backgrounds: list[str] = Field(
        default_factory=list, description="Background images"
    )
    icons: list[str] = Field(default_factory=list, description="Application icons")
    audio: list[str] = Field(default_factory=list, description="Audio tracks")

    def urls(self) -> list[str]:
        """Return every configured URL in category order, without duplicates."""
        seen: set[str] = set()
        result: list[str] = []
        for group in (self.critical, self.fonts, self.backgrounds, self.icons, self.audio):
            for url in group:
                if url not in seen:
                    seen.add(url)
                    result.append(url)
        return result


class ClassifierConfig(BaseModel):
    """Rules that map a request onto a :class:`RequestCategory`.

    See Also:
        :class:`~cachegate.classifier.Classifier`: applies these rules.
    """

    static_suffixes: list[str] = Field(
        default_factory=lambda: [
            ".woff2", ".woff", ".svg", ".png", ".jpg", ".mp3", ".wav", ".ogg",
        ],
        description="Path suffixes served cache-first",
    )
    static_segments: list[str] = Field(
        default_factory=lambda: ["/backgrounds/", "/audio/"],
        description="Path substrings served cache-first",
    )
    api_hosts: list[str] = Field(
        default_factory=lambda: [
            "libretranslate.com", "languagetool.org", "githubusercontent.com",
        ],
        description="Hostname substrings served network-first",
    )
    passthrough_schemes: list[str] = Field(
        default_factory=lambda: ["chrome-extension"],
        description="URL schemes that are never intercepted",
    )


class CacheConfig(BaseModel):
    """Versioned cache store settings stored in :class:`GlobalConfig`."""

    version: CacheVersion = Field(default="v4.0.0", description="Current cache version")
    name_prefix: str = Field(
        default="performance-maker", description="Prefix of every version namespace"
    )
    directory: Optional[str] = Field(
        default=None, description="Store directory (defaults to the XDG cache dir)"
    )
    skip_waiting_on_install: bool = Field(
        default=True, description="Ask the host to activate right after install"
    )

    def namespace(self, version: Optional[CacheVersion] = None) -> str:
        """Return the store namespace for *version* (the current one by default)."""
        return f"{self.name_prefix}-{version or self.version}"


class RequestConfig(BaseModel):
    """Network fetch settings."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=0, description="Retries on connection errors")
    follow_redirects: bool = True


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/cachegate/config.json``.

    Loaded and saved by :func:`~cachegate.config.load_global_config` and
    :func:`~cachegate.config.save_global_config`. See
    :func:`~cachegate.config.resolve_config` for the precedence chain.
    """

    base_url: Optional[str] = Field(
        default=None, description="Origin used to resolve relative precache URLs"
    )
    precache: PrecacheConfig = Field(default_factory=PrecacheConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Requests and responses ---


class RequestCategory(str, enum.Enum):
    """Caching policy bucket a request falls into.

    Each category selects exactly one strategy in
    :meth:`~cachegate.strategies.StrategyEngine.for_category`.
    """

    STATIC_ASSET = "static_asset"
    REMOTE_API = "remote_api"
    DEFAULT = "default"


def normalize_url(url: str) -> str:
    """Return *url* with its fragment dropped and query parameters sorted.

    Scheme and host are lowercased by :class:`httpx.URL`.
    """
    parsed = httpx.URL(url)
    base = f"{parsed.scheme}://{parsed.netloc.decode('ascii')}{parsed.path}"
    if not parsed.query:
        return base
    params = httpx.QueryParams(parsed.query.decode("ascii"))
    query = str(httpx.QueryParams(sorted(params.multi_items())))
    return f"{base}?{query}"


class CacheRequest(BaseModel):
    """An outbound request as seen by the interception layer."""

    method: str = "GET"
    url: str
    headers: dict[str, str] = Field(default_factory=dict)

    @property
    def scheme(self) -> str:
        return self.url.split(":", 1)[0].lower() if ":" in self.url else ""

    def cache_key(self) -> str:
        """Derive the store key from method and normalized URL.

        The query string is part of the key; request headers are not.
        """
        raw = f"{self.method.upper()}|{normalize_url(self.url)}"
        return hashlib.sha256(raw.encode()).hexdigest()

    @classmethod
    def from_httpx(cls, request: httpx.Request) -> CacheRequest:
        return cls(
            method=request.method,
            url=str(request.url),
            headers=dict(request.headers),
        )


class ResponseBlob(BaseModel):
    """A fully-read response: status, headers and body bytes.

    This is what the cache store persists and what the strategy engine hands
    back to the host.  Headers are kept as ordered ``(name, value)`` pairs so
    that repeated fields such as ``Set-Cookie`` survive a round trip; a
    mapping is accepted on construction.
    """

    status_code: int
    reason: str = ""
    headers: list[tuple[str, str]] = Field(default_factory=list)
    body: bytes = b""
    url: str = ""

    @field_validator("headers", mode="before")
    @classmethod
    def _header_pairs(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return list(value.items())
        return value

    @property
    def ok(self) -> bool:
        """``True`` for 2xx responses, the only ones ever persisted."""
        return 200 <= self.status_code < 300

    @property
    def size(self) -> int:
        return len(self.body)

    def header(self, name: str, default: str = "") -> str:
        """Case-insensitive lookup; repeated fields are joined with commas."""
        return httpx.Headers(self.headers).get(name, default)

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> ResponseBlob:
        """Copy a read :class:`httpx.Response` into a blob."""
        try:
            url = str(response.request.url)
        except RuntimeError:
            # Response was built without a request.
            url = ""
        return cls(
            status_code=response.status_code,
            reason=response.reason_phrase or "",
            headers=list(response.headers.multi_items()),
            body=response.content,
            url=url,
        )

    def to_httpx(self, request: Optional[httpx.Request] = None) -> httpx.Response:
        """Build an :class:`httpx.Response` carrying this blob's content.

        Framing headers are dropped since the stored body is already
        decoded and complete.
        """
        headers = [(k, v) for k, v in self.headers if k.lower() not in _FRAMING_HEADERS]
        headers.append(("content-length", str(len(self.body))))
        return httpx.Response(
            status_code=self.status_code,
            headers=headers,
            content=self.body,
            request=request,
        )

    @classmethod
    def unavailable(cls, url: str = "") -> ResponseBlob:
        """Synthesized reply for a cache miss with the network down."""
        return cls(
            status_code=503,
            reason="Service Unavailable",
            headers=[("content-type", "text/plain; charset=utf-8")],
            body=b"Resource not available offline",
            url=url,
        )


# --- Control plane ---


class MessageType(str, enum.Enum):
    """Commands the host application can send over the control channel."""

    SKIP_WAITING = "SKIP_WAITING"
    CLEAR_CACHE = "CLEAR_CACHE"
    GET_CACHE_SIZE = "GET_CACHE_SIZE"


class ControlMessage(BaseModel):
    """An incoming control-plane message: ``{"type": "..."}``."""

    model_config = ConfigDict(extra="allow")

    type: str


class ClearCacheReply(BaseModel):
    """Reply to ``CLEAR_CACHE``."""

    success: bool


class CacheSizeReply(BaseModel):
    """Reply to ``GET_CACHE_SIZE``: total body bytes of the current version."""

    size: int


def reply_payload(reply: BaseModel) -> dict[str, Any]:
    """Serialise a reply model into the plain dict posted back to the host."""
    return reply.model_dump(mode="json")
