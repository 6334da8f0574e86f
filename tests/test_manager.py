import asyncio

from slotboard.key_lock_manager import KeyLockManager
from slotboard.manager import ConnectionManager
from slotboard.slot_gate import SlotGate

from tests.conftest import FakeConnection


def test_registered_connection_has_no_location():
    manager = ConnectionManager()
    conn = FakeConnection()

    manager.register(conn)

    assert conn in manager
    assert manager.location_of(conn) is None
    assert manager.locations() == []
    assert manager.all_connections() == [conn]


def test_register_keeps_an_existing_subscription():
    manager = ConnectionManager()
    conn = FakeConnection()
    manager.subscribe(conn, "HQ")

    manager.register(conn)

    assert manager.location_of(conn) == "HQ"


def test_subscribe_overwrites_location():
    manager = ConnectionManager()
    conn, other = FakeConnection(), FakeConnection()
    manager.subscribe(conn, "HQ")
    manager.subscribe(other, "Annex")

    manager.subscribe(conn, "Annex")

    assert manager.connections_for("HQ") == []
    assert manager.connections_for("Annex") == [conn, other]
    assert manager.locations() == ["Annex"]
    assert len(manager) == 2


def test_unsubscribe_is_idempotent():
    manager = ConnectionManager()
    conn = FakeConnection()
    manager.subscribe(conn, "HQ")

    manager.unsubscribe(conn)
    manager.unsubscribe(conn)

    assert conn not in manager
    assert len(manager) == 0


async def test_key_lock_serializes_same_key():
    locks = KeyLockManager("test")
    events = []

    async def worker(name: str):
        async with locks.hold("a@x.com"):
            events.append(f"{name}-in")
            await asyncio.sleep(0.01)
            events.append(f"{name}-out")

    await asyncio.gather(worker("first"), worker("second"))

    assert events in (
        ["first-in", "first-out", "second-in", "second-out"],
        ["second-in", "second-out", "first-in", "first-out"],
    )


async def test_key_lock_lets_other_keys_through():
    locks = KeyLockManager("test")
    inside = asyncio.Event()

    async def other():
        async with locks.hold("Annex"):
            inside.set()

    async with locks.hold("HQ"):
        await asyncio.wait_for(other(), timeout=1)

    assert inside.is_set()


async def test_key_lock_forgets_released_keys():
    locks = KeyLockManager("test")

    async with locks.hold("HQ"):
        assert len(locks) == 1

    assert len(locks) == 0


async def test_slot_gate_lets_submissions_overlap():
    gate = SlotGate()

    async with gate.submission():
        async with gate.submission():
            assert gate.submissions == 2

    assert gate.submissions == 0


async def test_slot_gate_transition_waits_for_submissions():
    gate = SlotGate()
    events = []

    async def transition():
        async with gate.transition():
            events.append("transition")

    async with gate.submission():
        task = asyncio.create_task(transition())
        await asyncio.sleep(0.01)
        assert gate.waiting_transitions == 1
        events.append("submission-done")

    await task
    assert events == ["submission-done", "transition"]


async def test_slot_gate_queues_submissions_behind_a_waiting_transition():
    gate = SlotGate()
    events = []

    async def transition():
        async with gate.transition():
            events.append("transition")

    async def late_submission():
        async with gate.submission():
            events.append("late-submission")

    async with gate.submission():
        transitioning = asyncio.create_task(transition())
        await asyncio.sleep(0.01)
        submitting = asyncio.create_task(late_submission())
        await asyncio.sleep(0.01)
        assert events == []

    await asyncio.gather(transitioning, submitting)
    assert events == ["transition", "late-submission"]
