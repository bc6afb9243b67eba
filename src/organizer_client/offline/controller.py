"""
============================================================================
Kipi Organizer Client - Offline Cache Controller
============================================================================
Install / activate lifecycle and request routing of the offline cache.

Routing (first match wins):
1. Cross-origin  -> not intercepted, straight to the network
2. API           -> network-first, cache fallback, offline JSON (503)
3. Navigation    -> preload / network, cached page, offline page
4. Everything else -> stale-while-revalidate
============================================================================
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Awaitable, Coroutine, Any

import httpx
from prometheus_client import Counter

from organizer_client.config import CacheSettings
from organizer_client.exceptions import InstallError
from organizer_client.offline.cache import Cache, CachedResponse, CacheStorage, build_response
from organizer_client.offline.manifest import build_manifest

logger = logging.getLogger(__name__)

# Prometheus metrics
CACHE_RESPONSES = Counter(
    'organizer_cache_responses_total',
    'Responses produced by the offline cache controller',
    ['strategy', 'source']
)

OFFLINE_BODY = {"error": "Currently offline"}

OFFLINE_PAGE = (
    b"<!doctype html><html><head><title>Offline</title></head>"
    b"<body><h1>You are offline</h1></body></html>"
)


class WorkerState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class Route(str, Enum):
    PASSTHROUGH = "passthrough"
    API = "api"
    NAVIGATION = "navigation"
    STATIC = "static"


def is_navigation(request: httpx.Request) -> bool:
    """A full-page load rather than a sub-resource."""
    return (
        request.headers.get("sec-fetch-mode") == "navigate"
        or request.extensions.get("mode") == "navigate"
    )


def offline_json_response(request: httpx.Request) -> httpx.Response:
    return build_response(
        503,
        [("content-type", "application/json")],
        json.dumps(OFFLINE_BODY).encode(),
        request,
    )


class OfflineCacheController:
    """
    Offline cache for every request issued through :class:`OfflineCacheTransport`.

    One cache named ``<prefix>-<version>`` is used; bumping the version is
    the only way to invalidate it. Until the controller has been activated
    and has claimed its clients, requests go to the network untouched.

    Example:
        ```python
        controller = OfflineCacheController(settings.cache, CacheStorage())
        await controller.start()
        client = httpx.AsyncClient(transport=OfflineCacheTransport(controller))
        ```
    """

    def __init__(
        self,
        settings: CacheSettings,
        storage: CacheStorage,
        network: httpx.AsyncBaseTransport | None = None,
        manifest: tuple[str, ...] | None = None,
    ):
        """
        Initialize the controller.

        Args:
            settings: Cache settings (name, version, origin, routing)
            storage: Persistent cache storage
            network: Transport used to reach the network
            manifest: Asset paths cached at install (defaults to the app shell)
        """
        self.settings = settings
        self.storage = storage
        self.network = network or httpx.AsyncHTTPTransport()
        self.manifest = manifest if manifest is not None else build_manifest(settings.offline_url)
        self.origin = httpx.URL(settings.origin)

        self.state = WorkerState.PARSED
        self.skip_waiting_requested = False
        self.navigation_preload_enabled = False
        self.controlling = False

        # Strong references to detached revalidation tasks
        self._background: set[asyncio.Task] = set()

    @property
    def cache_name(self) -> str:
        return self.settings.cache_name

    def open_cache(self) -> Cache:
        return self.storage.open(self.cache_name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Install, then activate right away (skip-waiting)."""
        await self.install()
        if self.skip_waiting_requested:
            await self.activate()

    async def install(self) -> None:
        """
        Populate the cache with every manifest asset, all or nothing.

        Raises:
            InstallError: an asset could not be fetched; nothing was stored
        """
        self.state = WorkerState.INSTALLING
        logger.info(f"Installing offline cache {self.cache_name} ({len(self.manifest)} assets)")

        try:
            responses = await asyncio.gather(*(self._fetch_asset(path) for path in self.manifest))
        except InstallError as e:
            self.state = WorkerState.REDUNDANT
            logger.error(f"Offline cache install failed: {e}")
            raise

        self.open_cache().put_many(
            [(cached.url, cached) for cached in responses]
        )
        self.state = WorkerState.INSTALLED
        self.skip_waiting_requested = True
        logger.info(f"Installed offline cache {self.cache_name}")

    async def _fetch_asset(self, path: str) -> CachedResponse:
        url = self.origin.join(path)
        request = httpx.Request("GET", url)
        try:
            response = await self.fetch(request)
        except httpx.HTTPError as e:
            raise InstallError(f"Could not fetch {url}: {e}", url=str(url)) from e
        if not response.is_success:
            raise InstallError(
                f"Could not fetch {url}: status {response.status_code}", url=str(url)
            )
        return CachedResponse.from_response(response)

    async def activate(self) -> None:
        """Enable navigation preload, drop every other cache, claim clients."""
        if self.state is not WorkerState.INSTALLED:
            raise RuntimeError(f"Cannot activate from state {self.state.value}")
        self.state = WorkerState.ACTIVATING

        if self.settings.navigation_preload:
            self.navigation_preload_enabled = True

        for name in self.storage.keys():
            if name != self.cache_name:
                self.storage.delete(name)

        self.claim()
        self.state = WorkerState.ACTIVATED
        logger.info(f"Offline cache {self.cache_name} activated")

    def resume(self) -> bool:
        """
        Take over a cache installed by a previous run.

        Returns:
            True if the current cache version exists and the controller is now active
        """
        if not self.storage.has(self.cache_name) or not self.open_cache().keys():
            return False
        self.navigation_preload_enabled = self.settings.navigation_preload
        self.claim()
        self.state = WorkerState.ACTIVATED
        logger.info(f"Resumed offline cache {self.cache_name}")
        return True

    def claim(self) -> None:
        """Start intercepting requests immediately."""
        self.controlling = True

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def is_same_origin(self, request: httpx.Request) -> bool:
        url = request.url
        return (url.scheme, url.host, url.port) == (
            self.origin.scheme,
            self.origin.host,
            self.origin.port,
        )

    def classify(self, request: httpx.Request) -> Route:
        if not self.is_same_origin(request):
            return Route.PASSTHROUGH
        # Whole URL, query string included
        if self.settings.api_segment in str(request.url):
            return Route.API
        if is_navigation(request):
            return Route.NAVIGATION
        return Route.STATIC

    async def dispatch(self, request: httpx.Request) -> httpx.Response:
        """Answer one request according to its route."""
        if not self.controlling:
            return await self.network.handle_async_request(request)

        route = self.classify(request)
        if route is Route.PASSTHROUGH:
            return await self.network.handle_async_request(request)
        if route is Route.API:
            return await self.network_first(request)
        if route is Route.NAVIGATION:
            preload = self._spawn(self.fetch(request)) if self.navigation_preload_enabled else None
            return await self.navigate(request, preload)
        return await self.stale_while_revalidate(request)

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        """Network fetch with the body read, so it can be cached and returned."""
        response = await self.network.handle_async_request(request)
        try:
            content = await response.aread()
        finally:
            await response.aclose()
        return build_response(response.status_code, response.headers.multi_items(), content, request)

    async def network_first(self, request: httpx.Request) -> httpx.Response:
        try:
            response = await self.fetch(request)
        except httpx.HTTPError as e:
            logger.warning(f"Network error for {request.method} {request.url}: {e}")
        else:
            if response.is_success:
                self.open_cache().put(request, CachedResponse.from_response(response))
                CACHE_RESPONSES.labels("network_first", "network").inc()
                return response
            logger.warning(f"{request.method} {request.url} answered {response.status_code}")

        cached = self.storage.match(request)
        if cached is not None:
            CACHE_RESPONSES.labels("network_first", "cache").inc()
            return cached.to_response(request)

        CACHE_RESPONSES.labels("network_first", "offline").inc()
        return offline_json_response(request)

    async def navigate(
        self,
        request: httpx.Request,
        preload: Awaitable[httpx.Response | None] | None = None,
    ) -> httpx.Response:
        try:
            if preload is not None:
                response = await preload
                if response is not None:
                    CACHE_RESPONSES.labels("navigation", "preload").inc()
                    return response
            response = await self.fetch(request)
            CACHE_RESPONSES.labels("navigation", "network").inc()
            return response
        except httpx.HTTPError as e:
            logger.warning(f"Navigation to {request.url} failed: {e}")

        cache = self.open_cache()
        cached = cache.match(request)
        if cached is not None:
            CACHE_RESPONSES.labels("navigation", "cache").inc()
            return cached.to_response(request)

        CACHE_RESPONSES.labels("navigation", "offline").inc()
        offline_page = cache.match(str(self.origin.join(self.settings.offline_url)))
        if offline_page is not None:
            return offline_page.to_response(request)
        return build_response(503, [("content-type", "text/html")], OFFLINE_PAGE, request)

    async def stale_while_revalidate(self, request: httpx.Request) -> httpx.Response:
        cache = self.open_cache()
        cached = cache.match(request)

        # Detached on purpose: the refresh only prepares the next request and
        # must never hold up or fail the response returned below.
        revalidation = self._spawn(self._revalidate(cache, request))

        if cached is not None:
            CACHE_RESPONSES.labels("stale_while_revalidate", "cache").inc()
            return cached.to_response(request)

        response = await revalidation
        if response is not None:
            CACHE_RESPONSES.labels("stale_while_revalidate", "network").inc()
            return response
        CACHE_RESPONSES.labels("stale_while_revalidate", "offline").inc()
        return offline_json_response(request)

    async def _revalidate(self, cache: Cache, request: httpx.Request) -> httpx.Response | None:
        try:
            response = await self.fetch(request)
        except httpx.HTTPError as e:
            logger.debug(f"Background refresh of {request.url} failed: {e}")
            return None
        if response.status_code != 206:
            cache.put(request, CachedResponse.from_response(response))
        return response

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait_for_background(self) -> None:
        """Wait until every pending revalidation has finished."""
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def aclose(self) -> None:
        await self.wait_for_background()
        await self.network.aclose()
