"""
============================================================================
Entity Store Base
============================================================================
In-memory authoritative list of one record type for the current identity,
synchronized with the remote row store.

Handles:
- Load: full replace from the remote store, fail soft (stale data stays)
- Add / Update / Delete: remote first, local state after success only
- Subscriptions: listeners receive the new snapshot after every change
- Identity changes: reload on sign-in, clear on sign-out

There is no version check: two overlapping updates of the same record both
reach the remote store and the later completion wins in memory. This is an
accepted limitation, not something the store tries to resolve.
============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, TypeVar

from prometheus_client import Counter
from pydantic import BaseModel, ValidationError

from organizer_client.db.remote import RemoteStoreClient
from organizer_client.exceptions import NotAuthenticatedError, OrganizerError, RemoteStoreError
from organizer_client.models import Identity
from organizer_client.notifications import Notifier
from organizer_client.session import SessionProvider

logger = logging.getLogger(__name__)

# Prometheus metrics
STORE_OPERATIONS = Counter(
    'organizer_store_operations_total',
    'Entity store operations by outcome',
    ['entity', 'operation', 'outcome']
)

T = TypeVar("T", bound=BaseModel)
C = TypeVar("C", bound=BaseModel)

SnapshotListener = Callable[[tuple], None]


class EntityStore(ABC, Generic[T, C]):
    """
    Base class for the subject and note stores.

    Subclasses define the entity name and the row <-> model conversion.
    State is a tuple replaced wholesale on every change; nothing awaits
    between reading the current tuple and assigning the new one, so
    overlapping operations cannot tear it.
    """

    entity: str = "record"
    plural: str = "records"

    def __init__(
        self,
        remote: RemoteStoreClient,
        session: SessionProvider,
        notifier: Notifier,
        table: str,
    ):
        """
        Initialize the store and attach it to the session.

        Args:
            remote: Remote row store client
            session: Provider of the current identity
            notifier: Sink for user-visible notifications
            table: Remote table name
        """
        self.remote = remote
        self.session = session
        self.notifier = notifier
        self.table = table

        self._items: tuple[T, ...] = ()
        self._listeners: list[SnapshotListener] = []
        self._delete_listeners: list[Callable[[str], None]] = []
        self._detach = session.subscribe(self._on_identity_change)

    # ------------------------------------------------------------------
    # Conversion hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _from_row(self, row: dict[str, Any]) -> T:
        """Build a model from a remote row."""

    @abstractmethod
    def _to_row(self, item: C | T) -> dict[str, Any]:
        """Build the remote row for a model, without id and owner."""

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> tuple[T, ...]:
        """Current records in load/insertion order."""
        return self._items

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener(snapshot)`` after every change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_delete(self, listener: Callable[[str], None]) -> None:
        """Call ``listener(record_id)`` after a successful delete."""
        self._delete_listeners.append(listener)

    def close(self) -> None:
        """Detach from the session provider."""
        self._detach()

    def _replace(self, items: tuple[T, ...]) -> None:
        self._items = items
        for listener in list(self._listeners):
            listener(items)

    async def _on_identity_change(self, previous: Identity | None, current: Identity | None) -> None:
        if current is None:
            self.clear()
        elif previous is None:
            await self.load()
        elif previous.user_id != current.user_id:
            # Rows of the previous owner must not survive a failed load
            self.clear()
            await self.load()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Drop every record (identity cleared)."""
        logger.info(f"Clearing {self.plural}")
        self._replace(())

    def get_by_id(self, record_id: str) -> T | None:
        """In-memory lookup; never fetches."""
        for item in self._items:
            if item.id == record_id:
                return item
        return None

    async def load(self) -> None:
        """
        Replace state with every row owned by the current identity.

        Failures are surfaced as a notification and not raised; the previous
        state stays visible.
        """
        owner = self.session.owner_id
        if not owner:
            self._replace(())
            return

        try:
            rows = await self.remote.select(self.table, owner)
            items = tuple(self._parse_row(row) for row in rows)
        except RemoteStoreError as e:
            STORE_OPERATIONS.labels(self.entity, "load", "failure").inc()
            self.notifier.error(f"Could not load {self.plural}", str(e))
            return

        if self.session.owner_id != owner:
            logger.info(f"Discarding {self.plural} loaded for a previous identity")
            return

        STORE_OPERATIONS.labels(self.entity, "load", "success").inc()
        logger.info(f"Loaded {len(items)} {self.plural}")
        self._replace(items)

    async def add(self, data: C) -> T:
        """
        Insert a record and append the server-returned version.

        Raises:
            NotAuthenticatedError: no current identity
            RemoteStoreError: the insert failed; local state is untouched
        """
        owner = self._require_owner("add")
        try:
            created = await self.remote.insert(self.table, self._to_row(data), owner)
            item = self._parse_row(created)
        except RemoteStoreError as e:
            self._fail("add", f"Could not create {self.entity}", e)
            raise

        if self.session.owner_id == owner:
            self._replace(self._items + (item,))
        STORE_OPERATIONS.labels(self.entity, "add", "success").inc()
        self.notifier.info(f"{self.entity.capitalize()} created")
        return item

    async def update(self, item: T) -> T:
        """
        Send every editable field of ``item`` and replace the local entry by id.

        Raises:
            NotAuthenticatedError: no current identity
            RemoteStoreError: the update failed; local state is untouched
        """
        owner = self._require_owner("update")
        try:
            await self.remote.update(self.table, item.id, owner, self._to_row(item))
        except RemoteStoreError as e:
            self._fail("update", f"Could not update {self.entity}", e)
            raise

        if self.session.owner_id == owner:
            self._replace(tuple(item if x.id == item.id else x for x in self._items))
        STORE_OPERATIONS.labels(self.entity, "update", "success").inc()
        self.notifier.info(f"{self.entity.capitalize()} updated")
        return item

    async def delete(self, record_id: str) -> None:
        """
        Delete a record remotely, then locally.

        Raises:
            NotAuthenticatedError: no current identity
            RemoteStoreError: the delete failed; local state is untouched
        """
        owner = self._require_owner("delete")
        try:
            await self.remote.delete(self.table, record_id, owner)
        except RemoteStoreError as e:
            self._fail("delete", f"Could not delete {self.entity}", e)
            raise

        if self.session.owner_id == owner:
            self._replace(tuple(x for x in self._items if x.id != record_id))
        STORE_OPERATIONS.labels(self.entity, "delete", "success").inc()
        self.notifier.info(f"{self.entity.capitalize()} deleted")
        for listener in list(self._delete_listeners):
            listener(record_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _parse_row(self, row: dict[str, Any]) -> T:
        try:
            return self._from_row(row)
        except ValidationError as e:
            raise RemoteStoreError(f"Malformed {self.entity} row: {e}") from e

    def _require_owner(self, operation: str) -> str:
        owner = self.session.owner_id
        if not owner:
            error = NotAuthenticatedError(f"Sign in to {operation} {self.plural}")
            self._fail(operation, f"Could not {operation} {self.entity}", error)
            raise error
        return owner

    def _fail(self, operation: str, title: str, error: OrganizerError) -> None:
        STORE_OPERATIONS.labels(self.entity, operation, "failure").inc()
        self.notifier.error(title, str(error))
