"""
============================================================================
Cornell note model
============================================================================
One note per class session: cue column, note body, summary and attendance.
============================================================================
"""

from pydantic import Field, field_validator

from organizer_client.models.base import OrganizerModel


class NoteCreate(OrganizerModel):
    """Note fields supplied by the user; the id is assigned remotely."""

    subject_id: str
    title: str = ""
    date: str = Field(default="", description="Session date, YYYY-MM-DD")
    cues: str = ""
    notes: str = ""
    summary: str = ""
    attendance: bool = False

    @field_validator("title", "date", "cues", "notes", "summary", mode="before")
    @classmethod
    def empty_text_for_missing(cls, v):
        """Absent text columns come back as null; keep them as empty strings."""
        return "" if v is None else v

    @field_validator("attendance", mode="before")
    @classmethod
    def absent_attendance(cls, v):
        return False if v is None else v


class Note(NoteCreate):
    """A note as stored remotely."""

    id: str
