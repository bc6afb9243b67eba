"""
============================================================================
Note Store
============================================================================
Cornell notes of the current identity. Each note belongs to one subject
through ``subject_id``; absent text columns are normalized to "".
============================================================================
"""

import logging
from typing import Any

from organizer_client.models import Note, NoteCreate
from organizer_client.stores.base import EntityStore

logger = logging.getLogger(__name__)


class NoteStore(EntityStore[Note, NoteCreate]):
    """Store of :class:`Note` records."""

    entity = "note"
    plural = "notes"

    def _from_row(self, row: dict[str, Any]) -> Note:
        return Note.model_validate(row)

    def _to_row(self, item: NoteCreate | Note) -> dict[str, Any]:
        return item.model_dump(exclude={"id"})

    @property
    def notes(self) -> tuple[Note, ...]:
        return self.snapshot

    def get_notes_by_subject(self, subject_id: str) -> list[Note]:
        """Notes whose ``subject_id`` equals ``subject_id``; empty when there are none."""
        return [note for note in self._items if note.subject_id == subject_id]

    def notes_for_subject_by_date(self, subject_id: str) -> list[Note]:
        """Notes of a subject, newest session first."""
        return sorted(self.get_notes_by_subject(subject_id), key=lambda n: n.date, reverse=True)

    def attendance_count(self, subject_id: str) -> int:
        return sum(1 for note in self.get_notes_by_subject(subject_id) if note.attendance)

    def purge_subject(self, subject_id: str) -> None:
        """
        Drop local notes of a deleted subject.

        The remote store cascades on its side; this keeps the local
        projection consistent without waiting for the next load.
        """
        remaining = tuple(note for note in self._items if note.subject_id != subject_id)
        dropped = len(self._items) - len(remaining)
        if dropped:
            logger.info(f"Purged {dropped} notes of deleted subject {subject_id}")
            self._replace(remaining)
