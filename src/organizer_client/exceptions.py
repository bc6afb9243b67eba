"""
============================================================================
Kipi Organizer Client - Exceptions
============================================================================
Error taxonomy shared by the stores, the remote client and the offline cache
============================================================================
"""


class OrganizerError(Exception):
    """Base class for every error raised by the organizer client."""


class RemoteStoreError(OrganizerError):
    """
    A call to the remote row store failed.

    Covers unreachable network, non-success status and malformed payloads.
    Authorization mismatches (owner filter excluding the row) surface here too.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotAuthenticatedError(OrganizerError):
    """An operation that must be scoped to an identity was attempted without one."""


class ScheduleDecodeError(OrganizerError):
    """A stored schedule payload could not be decoded."""


class InstallError(OrganizerError):
    """Populating the offline cache from the asset manifest failed."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url
