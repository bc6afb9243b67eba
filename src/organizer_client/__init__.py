"""
============================================================================
Kipi Organizer Client
============================================================================
Data and cache layer of the Kipi academic organizer: subject and Cornell
note stores synchronized with a remote row store, and an offline cache
for every HTTP request the client issues
============================================================================
"""

__version__ = "0.1.0"

from organizer_client.config import Settings
from organizer_client.main import Organizer
from organizer_client.session import SessionProvider
from organizer_client.stores import NoteStore, SubjectStore
from organizer_client.offline import OfflineCacheController, OfflineCacheTransport

__all__ = [
    "Settings",
    "Organizer",
    "SessionProvider",
    "NoteStore",
    "SubjectStore",
    "OfflineCacheController",
    "OfflineCacheTransport",
]
