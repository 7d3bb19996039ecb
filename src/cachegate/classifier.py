"""Request classification into caching categories.

:class:`Classifier` decides two things about an outbound request:

1. Whether the layer intercepts it at all (:meth:`Classifier.should_intercept`).
   Only ``GET`` requests over fetchable schemes are intercepted; anything else
   passes straight through to the network.
2. Which :class:`~cachegate.models.RequestCategory` it belongs to
   (:meth:`Classifier.classify`), checked in priority order:

   * path suffix (case-sensitive) or path segment match -> ``STATIC_ASSET``
   * hostname substring match -> ``REMOTE_API``
   * otherwise -> ``DEFAULT``

Both are pure functions of the request and the
:class:`~cachegate.models.ClassifierConfig`.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from cachegate.models import CacheRequest, ClassifierConfig, RequestCategory


class Classifier:
    """Maps requests onto caching categories.

    Args:
        config: Suffixes, segments, API hosts and pass-through schemes.

    Example::

        classifier = Classifier(ClassifierConfig())
        req = CacheRequest(url="https://cdn.example.com/fonts/Text.woff2")
        classifier.classify(req)   # RequestCategory.STATIC_ASSET
    """

    def __init__(self, config: ClassifierConfig) -> None:
        self._suffixes = tuple(config.static_suffixes)
        self._segments = tuple(config.static_segments)
        self._api_hosts = tuple(h.lower() for h in config.api_hosts)
        self._passthrough_schemes = frozenset(
            s.lower().rstrip(":") for s in config.passthrough_schemes
        )

    def should_intercept(self, request: CacheRequest) -> bool:
        """Return ``False`` for requests that must go to the network untouched."""
        if request.method.upper() != "GET":
            return False
        if request.scheme in self._passthrough_schemes:
            return False
        return True

    def classify(self, request: CacheRequest) -> RequestCategory:
        """Return the category of an intercepted request."""
        parts = urlsplit(request.url)
        path = parts.path
        if path.endswith(self._suffixes) or any(
            segment in path for segment in self._segments
        ):
            return RequestCategory.STATIC_ASSET

        host = (parts.hostname or "").lower()
        if any(api_host in host for api_host in self._api_hosts):
            return RequestCategory.REMOTE_API

        return RequestCategory.DEFAULT
