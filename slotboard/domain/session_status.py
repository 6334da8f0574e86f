"""Session-status rules.

A deployment is always in exactly one of three states: no slot was ever
started, one slot is active, or every slot is closed and the most recent one
is reported. Ingestion guards and status broadcasts both read this variant.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from slotboard.models.schema_models import SlotSchema

WAITING_MESSAGE = "Waiting for game session to start..."
ENDED_MESSAGE = "Game session has ended"


@dataclass(frozen=True)
class NoSessionsYet:
    pass


@dataclass(frozen=True)
class Active:
    slot: SlotSchema


@dataclass(frozen=True)
class Closed:
    last_slot: SlotSchema


SessionState = Union[NoSessionsYet, Active, Closed]


def resolve_session_state(
    active_slot: SlotSchema | None, last_completed_slot: SlotSchema | None
) -> SessionState:
    if active_slot is not None:
        return Active(active_slot)
    if last_completed_slot is not None:
        return Closed(last_completed_slot)
    return NoSessionsYet()


def format_duration(start: datetime, end: datetime) -> str:
    """Render elapsed time as MM:SS, or HH:MM:SS from one hour on."""
    total_seconds = max(int((end - start).total_seconds()), 0)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours >= 1:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def slot_duration(slot: SlotSchema, now: datetime) -> str:
    # A running slot is measured up to now.
    return format_duration(slot.start_time, slot.end_time or now)


def status_message(state: SessionState, now: datetime, just_started: bool = False) -> str:
    if isinstance(state, Active):
        if just_started:
            return f'Game Session "{state.slot.name}" has started!'
        return f'Game Session "{state.slot.name}" is active!'
    if isinstance(state, Closed):
        slot = state.last_slot
        if slot.end_time is None:
            return ENDED_MESSAGE
        return (
            f'Game session "{slot.name}" is now completed.\n'
            f"Started: {slot.start_time:%Y-%m-%d %H:%M:%S}\n"
            f"Ended: {slot.end_time:%Y-%m-%d %H:%M:%S}\n"
            f"Duration: {slot_duration(slot, now)}"
        )
    return WAITING_MESSAGE
