"""
============================================================================
Kipi Organizer Client - Pydantic Models
============================================================================
Type-safe data models for subjects, schedules, notes and identities
============================================================================
"""

from .identity import Identity
from .subject import DAY_NAMES, Schedule, Subject, SubjectCreate, dump_schedule, load_schedule
from .note import Note, NoteCreate

__all__ = [
    # Identity
    "Identity",
    # Subject
    "DAY_NAMES",
    "Schedule",
    "Subject",
    "SubjectCreate",
    "dump_schedule",
    "load_schedule",
    # Note
    "Note",
    "NoteCreate",
]
