"""Install, activate and dispatch orchestration.

:class:`LifecycleManager` owns the current :data:`~cachegate.models.CacheVersion`
and moves through three externally-triggered phases::

    PARSED --install()--> INSTALLING --> INSTALLED --activate()--> ACTIVATING --> ACTIVATED

* **install** pre-populates the current version from the precache list.
  Every URL is fetched concurrently; individual failures are logged and
  skipped, so a partially-populated cache is a normal outcome.
* **activate** deletes every version except the current one and then
  claims the host's traffic.
* **dispatch** serves one intercepted request: pass-through for anything the
  classifier declines, otherwise classify and apply the matching strategy.

The host is reached through :class:`HostBridge`: the manager signals
readiness and claims. It activates without an explicit :meth:`activate` call
only when told to skip waiting, by the host or by ``skip_waiting_on_install``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from cachegate.classifier import Classifier
from cachegate.exceptions import FetchError, LifecycleError, StoreError
from cachegate.fetch import Fetcher
from cachegate.models import CacheRequest, CacheVersion, PrecacheConfig, ResponseBlob
from cachegate.output import debug, info, warning
from cachegate.store import StoreHandle, VersionedCacheStore
from cachegate.strategies import StrategyEngine
from cachegate.tasks import Lifetime, settle_all


class Phase(str, enum.Enum):
    """Lifecycle phase of a :class:`LifecycleManager`."""

    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"


class HostBridge:
    """Signals from the lifecycle manager to the hosting environment.

    The default implementation ignores every signal. Hosts override the
    hooks they care about.
    """

    def on_installed(self) -> None:
        """Install finished; this instance is ready to become active."""

    def skip_waiting(self) -> None:
        """Activate without waiting for the previous instance to release."""

    def claim(self) -> None:
        """Start routing all in-scope traffic through this instance."""


class RecordingHost(HostBridge):
    """A host that records which signals it has received.

    Attributes:
        waiting: Installed but not yet told to skip waiting.
        skipped_waiting: ``skip_waiting`` was requested.
        claimed: ``claim`` was called.
    """

    def __init__(self) -> None:
        self.waiting = False
        self.skipped_waiting = False
        self.claimed = False

    def on_installed(self) -> None:
        self.waiting = True

    def skip_waiting(self) -> None:
        self.waiting = False
        self.skipped_waiting = True

    def claim(self) -> None:
        self.claimed = True


@dataclass
class InstallReport:
    """Outcome of :meth:`LifecycleManager.install`.

    Attributes:
        version: The version that was populated.
        cached: URLs now present in the store.
        failed: URL -> reason for every URL that was skipped.
    """

    version: CacheVersion
    cached: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


class LifecycleManager:
    """Drives one cache version through install, activate and dispatch.

    Args:
        version: The current cache version.
        store: Versioned store shared with the control channel.
        fetcher: An entered :class:`~cachegate.fetch.Fetcher`.
        classifier: Decides interception and category per request.
        precache: URLs to populate during install.
        host: Receiver of readiness / claim signals.
        lifetime: Registry for background work; created when omitted.
        skip_waiting_on_install: Call :meth:`skip_waiting` as soon as
            install completes.

    Example::

        manager = LifecycleManager("v4.0.0", store, fetcher, classifier, precache)
        await manager.install()
        await manager.activate()
        response = await manager.dispatch(CacheRequest(url=url))
    """

    def __init__(
        self,
        version: CacheVersion,
        store: VersionedCacheStore,
        fetcher: Fetcher,
        classifier: Classifier,
        precache: Optional[PrecacheConfig] = None,
        host: Optional[HostBridge] = None,
        lifetime: Optional[Lifetime] = None,
        skip_waiting_on_install: bool = False,
    ) -> None:
        self._version = version
        self._store = store
        self._fetcher = fetcher
        self._classifier = classifier
        self._precache = precache or PrecacheConfig()
        self._host = host or HostBridge()
        self._lifetime = lifetime or Lifetime()
        self._skip_waiting_on_install = skip_waiting_on_install
        self._engine = StrategyEngine(fetcher, store, self._lifetime)
        self._phase = Phase.PARSED
        self._handle: Optional[StoreHandle] = None
        self._skip_requested = False

    @property
    def version(self) -> CacheVersion:
        return self._version

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def store(self) -> VersionedCacheStore:
        return self._store

    @property
    def lifetime(self) -> Lifetime:
        return self._lifetime

    @property
    def is_active(self) -> bool:
        return self._phase == Phase.ACTIVATED

    # ------------------------------------------------------------------ #
    # Phases
    # ------------------------------------------------------------------ #

    async def install(self) -> InstallReport:
        """Populate the current version from the precache list.

        Never raises for individual URL failures; they are listed in the
        returned report.  A store that cannot even be opened yields a report
        with every URL failed.  With ``skip_waiting_on_install`` (or a skip
        request received meanwhile) the manager activates before returning.
        """
        self._phase = Phase.INSTALLING
        info(f"Installing cache {self._version}")
        report = InstallReport(version=self._version)
        urls = [self._fetcher.resolve(url) for url in self._precache.urls()]

        try:
            handle = await self._open()
        except StoreError as exc:
            warning(f"Precaching failed: {exc}")
            report.failed = {url: str(exc) for url in urls}
        else:
            debug(f"Precaching {len(urls)} resources")
            settled = await settle_all(self._precache_one(handle, url) for url in urls)
            for index, _ in settled.successes:
                report.cached.append(urls[index])
            for index, exc in settled.failures:
                warning(f"Failed to cache: {urls[index]}: {exc}")
                report.failed[urls[index]] = str(exc)

        self._phase = Phase.INSTALLED
        info(f"Precached {len(report.cached)}/{len(urls)} resources")
        self._host.on_installed()
        if self._skip_waiting_on_install or self._skip_requested:
            await self.skip_waiting()
        return report

    async def adopt(self) -> bool:
        """Resume from a store populated by an earlier process.

        If the current version already exists in the store, the manager
        moves straight to ``INSTALLED`` without fetching anything.

        Returns:
            ``True`` if the version was found.
        """
        if self._phase != Phase.PARSED:
            return True
        try:
            versions = await self._store.list_versions()
        except StoreError as exc:
            warning(f"Could not list cache versions: {exc}")
            return False
        if self._version not in versions:
            return False
        self._phase = Phase.INSTALLED
        return True

    async def activate(self) -> list[CacheVersion]:
        """Delete every version but the current one, then claim the host.

        Returns:
            The versions that were deleted.

        Raises:
            LifecycleError: If :meth:`install` has not run.
        """
        if self._phase == Phase.PARSED:
            raise LifecycleError(f"Cannot activate {self._version} before install")
        if self._phase in (Phase.ACTIVATING, Phase.ACTIVATED):
            return []

        self._phase = Phase.ACTIVATING
        info(f"Activating cache {self._version}")
        deleted: list[CacheVersion] = []
        try:
            stale = sorted(v for v in await self._store.list_versions() if v != self._version)
        except StoreError as exc:
            warning(f"Could not list cache versions: {exc}")
            stale = []

        settled = await settle_all(self._store.delete_version(v) for v in stale)
        for index, _ in settled.successes:
            debug(f"Deleted old cache: {stale[index]}")
            deleted.append(stale[index])
        for index, exc in settled.failures:
            warning(f"Failed to delete old cache {stale[index]}: {exc}")

        self._phase = Phase.ACTIVATED
        self._host.claim()
        return deleted

    async def dispatch(
        self, request: CacheRequest, content: Optional[bytes] = None
    ) -> ResponseBlob:
        """Serve one intercepted request.

        Requests arriving before activation, and requests the classifier
        declines, are passed through to the network unmodified.

        Args:
            request: The outbound request.
            content: Request body, forwarded on pass-through only.

        Raises:
            FetchError: When the chosen strategy cannot produce a response.
        """
        if not self.is_active or not self._classifier.should_intercept(request):
            return await self._fetcher.fetch(request, content)

        category = self._classifier.classify(request)
        debug(f"{category.value}: {request.url}")
        try:
            handle = await self._open()
        except StoreError as exc:
            # Strategies treat every store failure as a miss.
            warning(f"Cache unavailable: {exc}")
            handle = StoreHandle(self._version)
        strategy = self._engine.for_category(category)
        return await strategy(request, handle)

    async def skip_waiting(self) -> list[CacheVersion]:
        """Become active now instead of waiting for the previous instance.

        The host is told to skip waiting and an installed manager activates
        on the spot. A request that arrives during install takes effect as
        soon as install completes; before install it only reaches the host.

        Returns:
            The versions deleted by the activation, if one ran.
        """
        self._host.skip_waiting()
        if self._phase == Phase.INSTALLING:
            self._skip_requested = True
            return []
        if self._phase == Phase.PARSED:
            return []
        return await self.activate()

    async def current_handle(self) -> StoreHandle:
        """Return a handle on the current version, opening it if needed."""
        return await self._open()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _open(self) -> StoreHandle:
        if self._handle is None:
            self._handle = await self._store.open(self._version)
        return self._handle

    async def _precache_one(self, handle: StoreHandle, url: str) -> None:
        request = CacheRequest(url=url)
        response = await self._fetcher.fetch(request)
        if not response.ok:
            raise FetchError(f"HTTP {response.status_code}", url=url)
        await self._store.put(handle, request, response)
