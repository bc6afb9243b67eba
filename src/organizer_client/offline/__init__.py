"""
============================================================================
Kipi Organizer Client - Offline Cache
============================================================================
Persistent response cache, install/activate lifecycle and request routing
(network-first for the API, offline page for navigations,
stale-while-revalidate for static assets)
============================================================================
"""

from .cache import Cache, CachedResponse, CacheStorage
from .controller import OFFLINE_BODY, OfflineCacheController, Route, WorkerState
from .manifest import OFFLINE_ASSETS, build_manifest
from .transport import OfflineCacheTransport

__all__ = [
    "Cache",
    "CachedResponse",
    "CacheStorage",
    "OFFLINE_BODY",
    "OfflineCacheController",
    "Route",
    "WorkerState",
    "OFFLINE_ASSETS",
    "build_manifest",
    "OfflineCacheTransport",
]
