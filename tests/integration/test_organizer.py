"""End-to-end: Organizer over the offline transport against the fake backend."""

import json

import httpx
import pytest

from organizer_client import Organizer
from organizer_client.exceptions import RemoteStoreError
from organizer_client.models import Identity, NoteCreate, Schedule, SubjectCreate
from organizer_client.offline import CacheStorage, WorkerState


@pytest.fixture
async def organizer(settings, backend):
    backend.rows["subjects"] = [
        {
            "id": "subject-a", "user_id": "alice", "name": "Algebra", "color": "#3b82f6",
            "schedule": json.dumps([{"day": 1, "startTime": "08:00", "endTime": "10:00"}]),
            "classroom": "A1", "teacher": None,
        },
        {"id": "subject-b", "user_id": "bob", "name": "History", "color": "#000", "schedule": "[]"},
    ]
    backend.rows["notes"] = [
        {
            "id": "note-a", "user_id": "alice", "subject_id": "subject-a", "title": "Groups",
            "date": "2025-03-03", "cues": None, "notes": "", "summary": "", "attendance": True,
        },
    ]
    organizer = Organizer(settings, network=httpx.MockTransport(backend), storage=CacheStorage())
    await organizer.startup()
    yield organizer
    await organizer.shutdown()


async def test_startup_activates_offline_cache(organizer):
    assert organizer.cache_controller.state is WorkerState.ACTIVATED
    assert organizer.cache_storage.keys() == ["kipi-v1"]


async def test_sign_in_loads_both_stores(organizer, alice):
    await organizer.sign_in(alice)

    assert [s.name for s in organizer.subjects.snapshot] == ["Algebra"]
    assert organizer.subjects.snapshot[0].schedule[0].day_name == "Monday"
    assert [n.title for n in organizer.notes.snapshot] == ["Groups"]
    assert organizer.notes.snapshot[0].cues == ""


async def test_sign_out_clears_both_stores(organizer, alice):
    await organizer.sign_in(alice)
    await organizer.sign_out()

    assert organizer.subjects.snapshot == ()
    assert organizer.notes.snapshot == ()


async def test_access_token_follows_identity(organizer, backend):
    await organizer.sign_in(Identity(user_id="alice", access_token="alice-token"))

    assert backend.requests[-1].headers["authorization"] == "Bearer alice-token"

    await organizer.sign_out()
    assert organizer.remote.access_token is None


async def test_crud_round_trip(organizer, backend, alice):
    await organizer.sign_in(alice)

    subject = await organizer.subjects.add(SubjectCreate(
        name="Physics", color="#ff0000",
        schedule=[Schedule(day=3, start_time="12:00", end_time="13:00")],
    ))
    assert subject.id.startswith("subject-")
    stored = backend.rows["subjects"][-1]
    assert stored["user_id"] == "alice"
    assert json.loads(stored["schedule"]) == [{"day": 3, "startTime": "12:00", "endTime": "13:00"}]

    renamed = await organizer.subjects.update(subject.model_copy(update={"name": "Mechanics"}))
    assert organizer.subjects.get_by_id(subject.id).name == renamed.name == "Mechanics"
    assert backend.rows["subjects"][-1]["name"] == "Mechanics"

    note = await organizer.notes.add(NoteCreate(subject_id=subject.id, title="Forces", date="2025-03-05"))
    assert organizer.notes.get_notes_by_subject(subject.id) == [note]

    await organizer.subjects.delete(subject.id)
    assert organizer.subjects.get_by_id(subject.id) is None
    assert organizer.notes.get_notes_by_subject(subject.id) == []
    assert [n.title for n in organizer.notes.snapshot] == ["Groups"]


async def test_cannot_touch_rows_of_another_user(organizer, backend, alice):
    await organizer.sign_in(alice)

    with pytest.raises(RemoteStoreError):
        await organizer.subjects.delete("subject-b")

    assert any(r["id"] == "subject-b" for r in backend.rows["subjects"])


async def test_offline_writes_fail_and_leave_state(organizer, backend, alice):
    await organizer.sign_in(alice)
    before = organizer.subjects.snapshot
    backend.online = False

    with pytest.raises(RemoteStoreError) as exc_info:
        await organizer.subjects.add(SubjectCreate(name="Physics", color="#fff"))

    assert exc_info.value.status_code == 503
    assert organizer.subjects.snapshot == before
    assert organizer.notifier.history[-1].title == "Could not create subject"


async def test_offline_reload_is_served_from_cache(organizer, backend, alice):
    await organizer.sign_in(alice)
    backend.online = False

    await organizer.subjects.load()

    assert [s.name for s in organizer.subjects.snapshot] == ["Algebra"]


async def test_offline_sign_in_without_cache_notifies(organizer, backend, bob):
    backend.online = False

    await organizer.sign_in(bob)

    assert organizer.subjects.snapshot == ()
    titles = [n.title for n in organizer.notifier.history]
    assert "Could not load subjects" in titles
    assert "Could not load notes" in titles
