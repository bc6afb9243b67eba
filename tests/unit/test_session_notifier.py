"""SessionProvider and Notifier."""

from organizer_client.models import Identity
from organizer_client.notifications import Notifier
from organizer_client.session import SessionProvider


async def test_listeners_run_in_order_with_previous_and_current(alice, bob):
    session = SessionProvider()
    seen = []

    async def first(previous, current):
        seen.append(("first", previous, current))

    async def second(previous, current):
        seen.append(("second", previous, current))

    session.subscribe(first)
    session.subscribe(second)

    await session.sign_in(alice)
    await session.sign_in(bob)

    assert seen == [
        ("first", None, alice),
        ("second", None, alice),
        ("first", alice, bob),
        ("second", alice, bob),
    ]
    assert session.owner_id == "bob"


async def test_equal_identity_is_not_a_change(alice):
    session = SessionProvider()
    calls = []

    async def listener(previous, current):
        calls.append(current)

    session.subscribe(listener)
    await session.sign_in(alice)
    await session.sign_in(Identity(user_id="alice", email="alice@example.com"))
    await session.sign_out()
    await session.sign_out()

    assert calls == [alice, None]
    assert session.identity is None
    assert session.owner_id is None


async def test_unsubscribe(alice):
    session = SessionProvider()
    calls = []

    async def listener(previous, current):
        calls.append(current)

    unsubscribe = session.subscribe(listener)
    unsubscribe()
    unsubscribe()
    await session.sign_in(alice)

    assert calls == []


def test_notifier_history_is_bounded():
    notifier = Notifier(history=2)

    notifier.info("one")
    notifier.error("two", "boom")
    notifier.info("three")

    assert [n.title for n in notifier.history] == ["two", "three"]
    assert notifier.history[0].level == "error"
    assert notifier.history[0].description == "boom"

    notifier.clear()
    assert notifier.history == []


def test_notifier_subscribers():
    notifier = Notifier()
    received = []
    unsubscribe = notifier.subscribe(received.append)

    notification = notifier.error("Could not load notes")
    unsubscribe()
    notifier.info("ignored")

    assert received == [notification]
