"""
Session provider: holds the current identity and tells subscribers when it changes.
"""

import logging
from typing import Awaitable, Callable

from organizer_client.models import Identity

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Identity | None, Identity | None], Awaitable[None]]


class SessionProvider:
    """
    Current identity or None.

    Listeners are coroutine functions called with ``(previous, current)``
    after every change, in subscription order, and awaited one after the
    other so that a sign-in completes once every store has reloaded.
    """

    def __init__(self, identity: Identity | None = None):
        self._identity = identity
        self._listeners: list[IdentityListener] = []

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def owner_id(self) -> str | None:
        return self._identity.user_id if self._identity else None

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def sign_in(self, identity: Identity) -> None:
        await self._set(identity)

    async def sign_out(self) -> None:
        await self._set(None)

    async def _set(self, identity: Identity | None) -> None:
        previous = self._identity
        if previous == identity:
            return
        self._identity = identity
        if identity:
            logger.info(f"Identity changed to user {identity.user_id}")
        else:
            logger.info("Identity cleared")
        for listener in list(self._listeners):
            await listener(previous, identity)
