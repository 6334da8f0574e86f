import logging
from datetime import datetime
from typing import List
from uuid import UUID

from slotboard.broadcaster import Broadcaster
from slotboard.domain.session_status import SessionState
from slotboard.exceptions import LeaderboardError, NotFoundError, ValidationError
from slotboard.models.dc_models import GameStatusModel
from slotboard.models.schema_models import SlotClosureSchema, SlotSchema
from slotboard.services.session_store import SessionStore
from slotboard.slot_gate import SlotGate


class SessionAuthority:
    """Starts and stops slots while keeping at most one of them active.

    The store decides whether a slot is active; nothing here remembers it
    between calls. Transitions in this process run alone through the gate
    shared with score ingestion, so no submission straddles a start or stop.
    """

    def __init__(
        self, store: SessionStore, broadcaster: Broadcaster, gate: SlotGate, winner_count: int = 3
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.gate = gate
        self.winner_count = winner_count

    async def start_slot(self, name: str) -> SlotSchema:
        """Open a new active slot

        Args:
            name (str): Display label, not required to be unique

        Raises:
            ValidationError: The name is empty
            ConflictError: Another slot is active

        Returns:
            SlotSchema: The new slot
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("slotName", "Slot name is required")

        async with self.gate.transition():
            slot = await self.store.start_slot(name, datetime.now())
        logging.info(f"Slot started: {slot.name} ({slot.slot_id})")

        await self._announce(lambda: self.broadcaster.current_status(just_started=True))
        return slot

    async def stop_slot(self, slot_id: UUID | None = None, name: str | None = None) -> SlotClosureSchema:
        """Close the active slot addressed by id or by name

        Args:
            slot_id (UUID | None): Slot to close
            name (str | None): Used when no id is given

        Raises:
            NotFoundError: No slot matches
            StateError: The matching slot is not active

        Returns:
            SlotClosureSchema: The closed slot and its winners
        """
        async with self.gate.transition():
            target_id = await self._resolve_slot_id(slot_id, name)
            closure = await self.store.stop_slot(target_id, datetime.now(), self.winner_count)
        logging.info(
            f"Slot stopped: {closure.slot.name} ({closure.slot.slot_id}), winners: "
            f"{[winner.email for winner in closure.winners]}"
        )

        await self._announce(lambda: self.broadcaster.current_status(winners=closure.winners))
        return closure

    async def _resolve_slot_id(self, slot_id: UUID | None, name: str | None) -> UUID:
        if slot_id is not None:
            return slot_id
        name = (name or "").strip()
        if not name:
            raise ValidationError("slotId", "Slot id or slot name is required")
        slot = await self.store.find_slot_by_name(name)
        if slot is None:
            raise NotFoundError(f'Slot not found: "{name}"')
        return slot.slot_id

    async def _announce(self, build_status):
        # The transition is committed at this point; a failed announcement must not undo it.
        try:
            status: GameStatusModel = await build_status()
            await self.broadcaster.publish_slot_transition(status)
        except LeaderboardError as e:
            logging.error(f"Failed to broadcast slot transition: {e.message}")

    async def get_active_slot(self) -> SlotSchema | None:
        return await self.store.get_active_slot()

    async def get_last_completed_slot(self) -> SlotSchema | None:
        return await self.store.get_last_completed_slot()

    async def get_session_state(self) -> SessionState:
        return await self.store.get_session_state()

    async def list_slots(self) -> List[SlotSchema]:
        return await self.store.list_slots()
