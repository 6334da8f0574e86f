import asyncio

import pytest

from slotboard.exceptions import NoActiveSessionError, ValidationError
from slotboard.services.score_ingestion import validate_submission

from tests.conftest import FakeConnection, submission


async def test_fresh_slot_ranking(services):
    await services.authority.start_slot("Morning")

    outcome = await services.ingestion.submit(submission("a@x.com", 50, 30))

    assert outcome.updated
    ranked, slot_id = await services.broadcaster.current_rankings("HQ")
    assert slot_id == outcome.slot_id
    assert [(r.email, r.rank) for r in ranked] == [("a@x.com", 1)]


async def test_tie_break_on_time_taken(services):
    await services.authority.start_slot("Morning")
    await services.ingestion.submit(submission("slow@x.com", 100, 20))
    await services.ingestion.submit(submission("fast@x.com", 100, 10))

    ranked, _ = await services.broadcaster.current_rankings("HQ")
    assert [(r.email, r.rank) for r in ranked] == [("fast@x.com", 1), ("slow@x.com", 2)]


async def test_rejected_while_no_slot_is_active(services):
    viewer = FakeConnection()
    services.manager.subscribe(viewer, "HQ")

    with pytest.raises(NoActiveSessionError):
        await services.ingestion.submit(submission("a@x.com", 50, 30))

    assert await services.store.best_entries() == []
    assert viewer.messages == []


async def test_resubmitting_the_same_result_changes_nothing(services):
    slot = await services.authority.start_slot("Morning")
    await services.ingestion.submit(submission("a@x.com", 50, 30))
    before = await services.store.find_entry("a@x.com", slot.slot_id)
    viewer = FakeConnection()
    services.manager.subscribe(viewer, "HQ")

    outcome = await services.ingestion.submit(submission("a@x.com", 50, 30))

    assert not outcome.updated
    assert await services.store.find_entry("a@x.com", slot.slot_id) == before
    assert viewer.messages == []


@pytest.mark.parametrize("score, timetaken", [(49, 1), (50, 31)])
async def test_worse_results_never_mutate(services, score, timetaken):
    slot = await services.authority.start_slot("Morning")
    await services.ingestion.submit(submission("a@x.com", 50, 30))

    outcome = await services.ingestion.submit(submission("a@x.com", score, timetaken))

    assert outcome.message == "Existing score is better"
    stored = await services.store.find_entry("a@x.com", slot.slot_id)
    assert (stored.score, stored.timetaken) == (50, 30)


async def test_email_is_the_identity_key(services):
    slot = await services.authority.start_slot("Morning")
    await services.ingestion.submit(submission("Player@X.com", 10, 30))
    await services.ingestion.submit(submission(" player@x.com ", 20, 30))

    entries = await services.store.entries_for_slot(slot.slot_id)
    assert [(e.email, e.score) for e in entries] == [("player@x.com", 20)]


async def test_concurrent_submissions_keep_the_best(services):
    slot = await services.authority.start_slot("Morning")
    results = [(score, 100 - score) for score in range(10, 60, 5)]

    await asyncio.gather(
        *(services.ingestion.submit(submission("a@x.com", score, timetaken)) for score, timetaken in results)
    )

    entries = await services.store.entries_for_slot(slot.slot_id)
    assert len(entries) == 1
    assert (entries[0].score, entries[0].timetaken) == (55, 45)


async def test_accepted_submission_notifies_the_location(services):
    await services.authority.start_slot("Morning")
    viewer = FakeConnection()
    services.manager.subscribe(viewer, "HQ")

    await services.ingestion.submit(submission("a@x.com", 50, 30))

    assert [m["type"] for m in viewer.messages] == ["playerUpdate", "rankings"]


@pytest.mark.parametrize(
    "field, value",
    [
        ("score", None),
        ("score", -1),
        ("score", "50"),
        ("timetaken", -5),
        ("timetaken", 1.5),
        ("name", ""),
        ("email", "not-an-email"),
        ("displaytime", "   "),
        ("location", ""),
    ],
)
def test_validation_names_the_field(field, value):
    data = submission("a@x.com", 50, 30)
    if value is None:
        del data[field]
    else:
        data[field] = value

    with pytest.raises(ValidationError) as excinfo:
        validate_submission(data)
    assert excinfo.value.field == field
    assert field in excinfo.value.message


def test_validation_rejects_non_objects():
    with pytest.raises(ValidationError) as excinfo:
        validate_submission(["a@x.com", 50])
    assert excinfo.value.field == "body"


async def test_invalid_submission_is_rejected_before_storage(services):
    await services.authority.start_slot("Morning")
    with pytest.raises(ValidationError):
        await services.ingestion.submit({"email": "a@x.com"})
    assert await services.store.best_entries() == []


async def test_check_email(services):
    result = await services.ingestion.check_email("a@x.com")
    assert not result.has_played
    assert result.message == "No active slot found"

    await services.authority.start_slot("Morning")
    result = await services.ingestion.check_email("a@x.com")
    assert not result.has_played
    assert result.active_slot.name == "Morning"

    await services.ingestion.submit(submission("a@x.com", 50, 30))
    result = await services.ingestion.check_email("A@x.com")
    assert result.has_played
    assert result.player_data.score == 50
    assert result.message == 'Email a@x.com has already played in slot "Morning"'

    with pytest.raises(ValidationError):
        await services.ingestion.check_email("")
