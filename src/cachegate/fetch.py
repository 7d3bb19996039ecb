"""Asynchronous network fetch capability backed by :mod:`httpx`.

:class:`Fetcher` is the only place the caching core touches the network.  It
wraps :class:`httpx.AsyncClient` and reduces every exchange to one of two
outcomes:

* a fully-read :class:`~cachegate.models.ResponseBlob` -- for *any* HTTP
  status, since a 404 is still a response the caller may want to see, and
* a :class:`~cachegate.exceptions.FetchError` -- for transport failures
  (DNS, refused connection, timeout, unsupported scheme).

Connection errors are retried with exponential backoff up to
:attr:`~cachegate.models.RequestConfig.max_retries` times (1 s, 2 s, 4 s,
...).  The default is no retry; timeouts come from
:attr:`~cachegate.models.RequestConfig.timeout`.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from cachegate.exceptions import FetchError
from cachegate.models import CacheRequest, RequestConfig, ResponseBlob
from cachegate.output import get_output


class Fetcher:
    """Network fetch for the caching core.

    Must be used as an async context manager so that the underlying
    connection pool is opened and closed properly.

    Args:
        config: Timeout, SSL and retry settings.
        transport: Optional transport for the inner client (tests pass an
            :class:`httpx.MockTransport`).
        base_url: Origin that relative request URLs are resolved against.

    Example::

        async with Fetcher(RequestConfig()) as fetcher:
            blob = await fetcher.fetch(CacheRequest(url="https://example.com/"))
    """

    def __init__(
        self,
        config: Optional[RequestConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: Optional[str] = None,
    ) -> None:
        self._config = config or RequestConfig()
        self._transport = transport
        self._base_url = base_url or ""
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> Fetcher:
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=self._config.follow_redirects,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def resolve(self, url: str) -> str:
        """Resolve *url* against the configured base URL."""
        if self._base_url:
            return str(httpx.URL(self._base_url).join(url))
        return url

    async def fetch(
        self, request: CacheRequest, content: Optional[bytes] = None
    ) -> ResponseBlob:
        """Send *request* and return the fully-read response.

        Args:
            request: Method, URL and headers to send.
            content: Optional request body (pass-through requests only).

        Returns:
            The response, whatever its status code.

        Raises:
            FetchError: On transport failure after all retries.
        """
        assert self._client is not None, "Fetcher not initialised -- use as async context manager"

        url = self.resolve(request.url)
        max_retries = self._config.max_retries
        output = get_output()

        for attempt in range(max_retries + 1):
            try:
                response = await self._client.request(
                    request.method,
                    url,
                    headers=request.headers,
                    content=content,
                )
                return ResponseBlob.from_httpx(response)

            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    output.debug(
                        f"Connection error: {exc}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise FetchError(
                    f"Fetch failed after {max_retries + 1} attempts: {url}: {exc}",
                    url=url,
                ) from exc

            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                raise FetchError(f"Fetch failed: {url}: {exc}", url=url) from exc

        raise FetchError(f"Fetch failed: {url}", url=url)  # pragma: no cover
