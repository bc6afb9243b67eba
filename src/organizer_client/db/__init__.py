"""
============================================================================
Kipi Organizer Client - Remote Store Module
============================================================================
HTTP client for the remote row store
============================================================================
"""

from organizer_client.db.remote import RemoteStoreClient

__all__ = ["RemoteStoreClient"]
