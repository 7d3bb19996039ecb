"""Versioned response store for cachegate.

The store has two layers:

* :class:`BlobStore` -- a synchronous, namespaced key-value persistence
  interface. :class:`DiskBlobStore` backs it with :mod:`diskcache` so
  entries survive process restarts; :class:`MemoryBlobStore` keeps
  everything in a dict.
* :class:`VersionedCacheStore` -- the async API the caching core uses. One
  namespace per cache version; request keys are derived from
  :meth:`~cachegate.models.CacheRequest.cache_key`.
"""

from cachegate.store.blob import BlobStore, DiskBlobStore, MemoryBlobStore
from cachegate.store.versioned import StoreHandle, VersionedCacheStore

__all__ = [
    "BlobStore",
    "DiskBlobStore",
    "MemoryBlobStore",
    "StoreHandle",
    "VersionedCacheStore",
]
