"""NoteStore against an in-memory remote."""

import pytest

from organizer_client.exceptions import RemoteStoreError
from organizer_client.models import Note, NoteCreate
from organizer_client.stores import NoteStore


@pytest.fixture
def store(fake_remote, session, notifier):
    return NoteStore(fake_remote, session, notifier, "notes")


def seed_note(remote, owner, subject_id, title, date, attendance=True, **extra):
    return remote.seed(
        "notes", owner, subject_id=subject_id, title=title, date=date,
        cues="", notes="", summary="", attendance=attendance, **extra,
    )


async def test_load_normalizes_missing_text(store, fake_remote, session, alice):
    fake_remote.seed("notes", "alice", subject_id="s-1", title="Intro", date="2025-03-01",
                     cues=None, notes=None, summary=None, attendance=None)

    await session.sign_in(alice)

    note = store.snapshot[0]
    assert (note.cues, note.notes, note.summary) == ("", "", "")
    assert note.attendance is False
    assert note.summary[:10] + note.cues == ""


async def test_get_notes_by_subject(store, fake_remote, session, alice):
    seed_note(fake_remote, "alice", "s-1", "One", "2025-03-01")
    seed_note(fake_remote, "alice", "s-2", "Two", "2025-03-02")
    seed_note(fake_remote, "alice", "s-1", "Three", "2025-03-03")
    await session.sign_in(alice)

    by_subject = store.get_notes_by_subject("s-1")

    assert [n.title for n in by_subject] == ["One", "Three"]
    assert all(n.subject_id == "s-1" for n in by_subject)
    assert set(n.id for n in by_subject) <= set(n.id for n in store.snapshot)
    assert store.get_notes_by_subject("nothing-here") == []


async def test_notes_by_date_and_attendance(store, fake_remote, session, alice):
    seed_note(fake_remote, "alice", "s-1", "March 1", "2025-03-01", attendance=True)
    seed_note(fake_remote, "alice", "s-1", "March 8", "2025-03-08", attendance=False)
    seed_note(fake_remote, "alice", "s-1", "March 4", "2025-03-04", attendance=True)
    await session.sign_in(alice)

    assert [n.title for n in store.notes_for_subject_by_date("s-1")] == [
        "March 8", "March 4", "March 1",
    ]
    assert store.attendance_count("s-1") == 2
    assert store.attendance_count("s-2") == 0


async def test_add_update_delete(store, fake_remote, session, alice):
    await session.sign_in(alice)

    note = await store.add(NoteCreate(subject_id="s-1", title="Vectors", date="2025-03-10"))
    assert note.id.startswith("notes-")
    assert store.snapshot == (note,)
    _, _, owner, row = fake_remote.calls[-1]
    assert owner == "alice"
    assert row == {
        "subject_id": "s-1", "title": "Vectors", "date": "2025-03-10",
        "cues": "", "notes": "", "summary": "", "attendance": False,
    }

    edited = note.model_copy(update={"summary": "Dot and cross products", "attendance": True})
    await store.update(edited)
    assert store.get_by_id(note.id).summary == "Dot and cross products"

    await store.delete(note.id)
    assert store.snapshot == ()


async def test_failed_add_reraises_and_keeps_state(store, fake_remote, session, notifier, alice):
    seed_note(fake_remote, "alice", "s-1", "One", "2025-03-01")
    await session.sign_in(alice)
    before = store.snapshot
    fake_remote.fail.add("insert")

    with pytest.raises(RemoteStoreError):
        await store.add(NoteCreate(subject_id="s-1", title="Two"))

    assert store.snapshot == before
    assert notifier.history[-1].title == "Could not create note"


async def test_update_of_foreign_note_fails(store, fake_remote, session, alice):
    foreign = seed_note(fake_remote, "bob", "s-9", "Secret", "2025-01-01")
    await session.sign_in(alice)

    with pytest.raises(RemoteStoreError):
        await store.update(Note.model_validate(foreign))

    assert fake_remote.tables["notes"][0]["title"] == "Secret"


async def test_purge_subject(store, fake_remote, session, alice):
    seed_note(fake_remote, "alice", "s-1", "One", "2025-03-01")
    seed_note(fake_remote, "alice", "s-2", "Two", "2025-03-02")
    await session.sign_in(alice)

    store.purge_subject("s-1")

    assert [n.subject_id for n in store.snapshot] == ["s-2"]
