"""
============================================================================
Kipi Organizer Client - Entity Stores
============================================================================
"""

from organizer_client.stores.base import EntityStore
from organizer_client.stores.notes import NoteStore
from organizer_client.stores.subjects import ScheduleSlot, SubjectStore, parse_schedule

__all__ = ["EntityStore", "NoteStore", "ScheduleSlot", "SubjectStore", "parse_schedule"]
