"""
============================================================================
Subject and Schedule models
============================================================================
A subject is a class the user attends; its schedule is a list of weekly
recurring slots stored in the remote row as serialized JSON text.
============================================================================
"""

import json
from typing import Any

from pydantic import Field, TypeAdapter, ValidationError

from organizer_client.exceptions import ScheduleDecodeError
from organizer_client.models.base import OrganizerModel

DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)


class Schedule(OrganizerModel):
    """One weekly slot. ``day`` is 0..6 with 0 = Sunday.

    ``start_time < end_time`` is left to input validation upstream.
    """

    day: int = Field(ge=0, le=6)
    start_time: str
    end_time: str

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day]


class SubjectCreate(OrganizerModel):
    """Subject fields supplied by the user; the id is assigned remotely."""

    name: str
    color: str
    schedule: list[Schedule] = Field(default_factory=list)
    classroom: str | None = None
    teacher: str | None = None


class Subject(SubjectCreate):
    """A subject as stored remotely, identified by a server-assigned id."""

    id: str


_schedule_list = TypeAdapter(list[Schedule])


def dump_schedule(schedule: list[Schedule]) -> str:
    """Serialize a schedule to the JSON text stored in the ``schedule`` column."""
    return json.dumps([slot.model_dump(by_alias=True) for slot in schedule])


def load_schedule(raw: Any) -> list[Schedule]:
    """
    Decode a stored schedule.

    Accepts the JSON text written by :func:`dump_schedule` or an already
    decoded list (json/jsonb columns). ``None`` and empty text decode to an
    empty schedule.

    Raises:
        ScheduleDecodeError: payload is not valid JSON or not a list of slots
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ScheduleDecodeError(f"Schedule is not valid JSON: {e}") from e
    try:
        return _schedule_list.validate_python(raw)
    except ValidationError as e:
        raise ScheduleDecodeError(f"Schedule has an invalid shape: {e}") from e
