"""
============================================================================
Subject Store
============================================================================
Subjects of the current identity plus their weekly schedules. The schedule
column is serialized JSON text; a malformed value never breaks a load, the
subject is kept with an empty schedule instead.
============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Any

from organizer_client.exceptions import ScheduleDecodeError
from organizer_client.models import Schedule, Subject, SubjectCreate, dump_schedule, load_schedule
from organizer_client.stores.base import EntityStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleSlot:
    """One weekly occurrence of a subject."""

    subject: Subject
    slot: Schedule


def parse_schedule(raw: Any, subject_id: str | None = None) -> list[Schedule]:
    """Decode a stored schedule, falling back to an empty one on bad data."""
    try:
        return load_schedule(raw)
    except ScheduleDecodeError as e:
        logger.error(f"Error parsing schedule of subject {subject_id}: {e}")
        return []


class SubjectStore(EntityStore[Subject, SubjectCreate]):
    """Store of :class:`Subject` records."""

    entity = "subject"
    plural = "subjects"

    def _from_row(self, row: dict[str, Any]) -> Subject:
        data = dict(row)
        data["schedule"] = parse_schedule(row.get("schedule"), row.get("id"))
        return Subject.model_validate(data)

    def _to_row(self, item: SubjectCreate | Subject) -> dict[str, Any]:
        return {
            "name": item.name,
            "color": item.color,
            "schedule": dump_schedule(item.schedule),
            "classroom": item.classroom,
            "teacher": item.teacher,
        }

    @property
    def subjects(self) -> tuple[Subject, ...]:
        return self.snapshot

    def subjects_on_day(self, day: int) -> list[Subject]:
        """Subjects with at least one slot on ``day`` (0 = Sunday)."""
        return [s for s in self._items if any(slot.day == day for slot in s.schedule)]

    def weekly_slots(self) -> dict[int, list[ScheduleSlot]]:
        """Every slot of every subject, grouped by weekday and ordered by start time."""
        week: dict[int, list[ScheduleSlot]] = {day: [] for day in range(7)}
        for subject in self._items:
            for slot in subject.schedule:
                week[slot.day].append(ScheduleSlot(subject=subject, slot=slot))
        for slots in week.values():
            slots.sort(key=lambda s: s.slot.start_time)
        return week
