"""cachegate -- a request-interception caching layer for async HTTP clients.

This package sits between an application and the network and decides, per
request, whether to answer from a versioned on-disk cache, go to the network,
or do both at once.  It is the Python counterpart of an offline-first web
worker: static assets are served cache-first, remote API calls network-first,
and everything else stale-while-revalidate.

Typical workflow::

    cachegate install             # pre-populate the current cache version
    cachegate activate            # drop stale versions and take control
    cachegate fetch https://example.com/fonts/Text.woff2

Applications embed the layer by mounting
:class:`~cachegate.transport.InterceptingTransport` on their own
:class:`httpx.AsyncClient`.

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration loading and precedence resolution.
    classifier: Request classification into caching categories.
    store: Versioned cache store over an abstract blob store.
    strategies: Cache-first, network-first and stale-while-revalidate.
    lifecycle: Install / activate / dispatch orchestration.
    control: Control-plane message handling.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
