"""Namespaced key-value blob stores.

Values are plain dicts (the serialised form of a cached response); the store
never inspects them.  Namespaces are created explicitly and dropped as a
whole, which is what version garbage collection needs.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import diskcache

_NAMESPACES_KEY = "__cachegate_namespaces__"


class BlobStore(ABC):
    """Abstract persistence interface behind :class:`~cachegate.store.VersionedCacheStore`.

    Implementations may block; the versioned store calls them from a worker
    thread.  Any exception they raise is reported to callers as
    :class:`~cachegate.exceptions.StoreError`.
    """

    @abstractmethod
    def namespaces(self) -> set[str]:
        """Return every namespace created and not yet dropped."""

    @abstractmethod
    def create_namespace(self, namespace: str) -> None:
        """Register *namespace*; a no-op if it already exists."""

    @abstractmethod
    def drop_namespace(self, namespace: str) -> None:
        """Remove *namespace* and all of its entries."""

    @abstractmethod
    def get(self, namespace: str, key: str) -> Optional[dict[str, Any]]:
        """Return the value stored under *key*, or ``None``."""

    @abstractmethod
    def set(self, namespace: str, key: str, value: dict[str, Any]) -> None:
        """Store *value* under *key*, replacing any previous value."""

    @abstractmethod
    def keys(self, namespace: str) -> list[str]:
        """Return the keys stored in *namespace*."""

    def close(self) -> None:
        """Release underlying resources."""


class MemoryBlobStore(BlobStore):
    """Dict-backed store. Contents are lost with the process."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def namespaces(self) -> set[str]:
        with self._lock:
            return set(self._data)

    def create_namespace(self, namespace: str) -> None:
        with self._lock:
            self._data.setdefault(namespace, {})

    def drop_namespace(self, namespace: str) -> None:
        with self._lock:
            self._data.pop(namespace, None)

    def get(self, namespace: str, key: str) -> Optional[dict[str, Any]]:
        with self._lock:
            return self._data.get(namespace, {}).get(key)

    def set(self, namespace: str, key: str, value: dict[str, Any]) -> None:
        with self._lock:
            self._data.setdefault(namespace, {})[key] = value

    def keys(self, namespace: str) -> list[str]:
        with self._lock:
            return list(self._data.get(namespace, {}))


class DiskBlobStore(BlobStore):
    """Disk-backed store using a single :class:`diskcache.Cache`.

    Entries are keyed by ``(namespace, key)`` and tagged with the namespace
    so that :meth:`drop_namespace` is one ``evict`` call.  The namespace
    registry lives in the same cache under a reserved key and is updated
    inside a diskcache transaction.

    Args:
        directory: Directory holding the cache database.

    Example::

        store = DiskBlobStore("/tmp/cachegate-store")
        store.create_namespace("performance-maker-v4.0.0")
        store.set("performance-maker-v4.0.0", "abc", {"status_code": 200})
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        self._cache = diskcache.Cache(str(self._directory), tag_index=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def namespaces(self) -> set[str]:
        return set(self._cache.get(_NAMESPACES_KEY, ()))

    def create_namespace(self, namespace: str) -> None:
        with self._cache.transact():
            names = set(self._cache.get(_NAMESPACES_KEY, ()))
            if namespace in names:
                return
            names.add(namespace)
            self._cache.set(_NAMESPACES_KEY, sorted(names))

    def drop_namespace(self, namespace: str) -> None:
        with self._cache.transact():
            self._cache.evict(namespace)
            names = set(self._cache.get(_NAMESPACES_KEY, ()))
            names.discard(namespace)
            self._cache.set(_NAMESPACES_KEY, sorted(names))

    def get(self, namespace: str, key: str) -> Optional[dict[str, Any]]:
        return self._cache.get((namespace, key))

    def set(self, namespace: str, key: str, value: dict[str, Any]) -> None:
        self._cache.set((namespace, key), value, tag=namespace)

    def keys(self, namespace: str) -> list[str]:
        return [
            k[1]
            for k in self._cache.iterkeys()
            if isinstance(k, tuple) and len(k) == 2 and k[0] == namespace
        ]

    def close(self) -> None:
        self._cache.close()
