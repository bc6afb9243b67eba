"""
Kipi Organizer Client - Application Entry Point

Builds every service object once and wires them together:
1. Offline cache controller and the HTTP client routed through it
2. Remote row store client
3. Session provider, subject store and note store
4. User notifications
"""

import asyncio
import logging
import sys
from typing import TextIO

import httpx
from prometheus_client import start_http_server

from organizer_client.config import ApplicationSettings, Settings
from organizer_client.db.remote import RemoteStoreClient
from organizer_client.exceptions import InstallError
from organizer_client.models import Identity
from organizer_client.notifications import Notifier
from organizer_client.offline import CacheStorage, OfflineCacheController, OfflineCacheTransport
from organizer_client.session import SessionProvider
from organizer_client.stores import NoteStore, SubjectStore

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(settings: ApplicationSettings, stream: TextIO | None = None) -> None:
    """Log to ``stream`` (stdout by default), and to a file when one is configured."""
    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT, handlers=handlers, force=True)


class Organizer:
    """
    Composition root of the organizer client.

    Example:
        ```python
        async with Organizer(Settings()) as organizer:
            await organizer.sign_in(Identity(user_id="user-1"))
            for subject in organizer.subjects.snapshot:
                print(subject.name)
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        network: httpx.AsyncBaseTransport | None = None,
        storage: CacheStorage | None = None,
    ):
        """
        Build the service graph.

        Args:
            settings: Application settings
            network: Transport that reaches the network (tests pass a mock)
            storage: Cache storage (defaults to the configured SQLite file)
        """
        self.settings = settings or Settings()
        self.notifier = Notifier(history=self.settings.app.notification_history)
        self.session = SessionProvider()

        self.cache_storage = storage or CacheStorage(self.settings.cache.storage_path)
        self.cache_controller = OfflineCacheController(
            self.settings.cache,
            self.cache_storage,
            network=network,
        )
        self.http_client = httpx.AsyncClient(
            transport=OfflineCacheTransport(self.cache_controller),
            timeout=self.settings.backend.timeout,
        )
        self.remote = RemoteStoreClient(self.settings.backend, self.http_client)

        # Token must be switched before the stores reload
        self.session.subscribe(self._on_identity_change)
        self.subjects = SubjectStore(
            self.remote, self.session, self.notifier, self.settings.subjects_table
        )
        self.notes = NoteStore(self.remote, self.session, self.notifier, self.settings.notes_table)
        self.subjects.on_delete(self.notes.purge_subject)

    async def _on_identity_change(self, previous: Identity | None, current: Identity | None) -> None:
        token = current.access_token.get_secret_value() if current and current.access_token else None
        self.remote.set_access_token(token)

    async def startup(self, install_cache: bool = True) -> None:
        """
        Bring the offline cache up and start metrics if enabled.

        An already installed cache of the current version is resumed; otherwise
        it is installed and activated when ``install_cache`` is set.
        """
        logger.info("=" * 80)
        logger.info("Kipi Organizer Client - Starting Up")
        logger.info("=" * 80)

        if self.settings.app.enable_metrics:
            start_http_server(self.settings.app.metrics_port)
            logger.info(f"✓ Metrics exposed on port {self.settings.app.metrics_port}")

        if self.cache_controller.resume():
            logger.info(f"✓ Offline cache {self.cache_controller.cache_name} resumed")
        elif install_cache:
            try:
                await self.cache_controller.start()
                logger.info(f"✓ Offline cache {self.cache_controller.cache_name} active")
            except InstallError as e:
                logger.warning(f"Offline cache not installed, requests go to the network: {e}")

        logger.info(f"  • Backend: {self.settings.backend.rest_url}")
        logger.info(f"  • Origin:  {self.settings.cache.origin}")

    async def sign_in(self, identity: Identity) -> None:
        """Attach an identity; both stores reload."""
        await self.session.sign_in(identity)

    async def sign_out(self) -> None:
        """Detach the identity; both stores clear."""
        await self.session.sign_out()

    async def shutdown(self) -> None:
        """Close the HTTP client, the network transport and the cache storage."""
        logger.info("Kipi Organizer Client - Shutting Down")
        self.subjects.close()
        self.notes.close()
        await self.http_client.aclose()
        self.cache_storage.close()

    async def __aenter__(self) -> "Organizer":
        await self.startup()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()


async def main() -> None:
    """Start the client, sign in with the configured identity and report what was loaded."""
    settings = Settings()
    configure_logging(settings.app)

    async with Organizer(settings) as organizer:
        if not settings.session.user_id:
            logger.info("No SESSION_USER_ID configured, nothing to load")
            return
        await organizer.sign_in(
            Identity(
                user_id=settings.session.user_id,
                email=settings.session.email,
                access_token=settings.session.access_token,
            )
        )
        logger.info(
            f"Loaded {len(organizer.subjects.snapshot)} subjects "
            f"and {len(organizer.notes.snapshot)} notes"
        )


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("\nShutdown complete")
