"""DB service layer for slots and score entries.

- Services and routers never touch DB sessions directly; they call this module.
- This layer owns session/transaction boundaries.
- CRUD helpers do NOT commit; every mutation runs inside one session.begin().
- SQLAlchemy failures leave as StorageError after the transaction rolled back.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotboard.crud import CreateData, ReadData, UpdateData
from slotboard.domain.ranking import is_better, rank
from slotboard.domain.session_status import SessionState, resolve_session_state
from slotboard.exceptions import (
    ConflictError,
    NoActiveSessionError,
    NotFoundError,
    StateError,
    StorageError,
)
from slotboard.models.dc_models import ScoreSubmissionModel
from slotboard.models.schema_models import (
    ScoreEntrySchema,
    ScoreOutcomeSchema,
    SlotClosureSchema,
    SlotSchema,
)
from slotboard.models.schemas import SLOT_ACTIVE


class SessionStore:
    def __init__(self, Session: async_sessionmaker):
        self.Session: async_sessionmaker = Session

    @asynccontextmanager
    async def _session(self, action: str, transactional: bool = False) -> AsyncIterator[AsyncSession]:
        try:
            async with self.Session() as session:
                if transactional:
                    async with session.begin():
                        yield session
                else:
                    yield session
        except SQLAlchemyError as e:
            logging.error(f"Failed to {action}: {e}")
            raise StorageError(f"Failed to {action}") from e

    # ==== Slot transitions ====================================================

    async def start_slot(self, name: str, start_time: datetime) -> SlotSchema:
        """Create an active slot unless one is already active.

        The check and the insert share one transaction; the partial unique
        index on active slots rejects a concurrent winner that slipped past
        the check.
        """
        async with self._session("start slot", transactional=True) as session:
            active = await ReadData.select_active_slot(session, lock=True)
            if active is not None:
                raise ConflictError(f'Another slot is already active: "{active.name}"')
            try:
                new_slot = await CreateData.add_slot(name, start_time, session)
            except IntegrityError as e:
                raise ConflictError("Another slot is already active") from e
            return SlotSchema.model_validate(new_slot)

    async def stop_slot(self, slot_id: UUID, end_time: datetime, winner_count: int) -> SlotClosureSchema:
        """Complete an active slot and rank its winners in the same transaction

        Args:
            slot_id (UUID): Slot to close
            end_time (datetime): End of the session
            winner_count (int): How many leading entries are reported as winners

        Returns:
            SlotClosureSchema: The closed slot and its winners
        """
        async with self._session("stop slot", transactional=True) as session:
            slot = await ReadData.select_slot(slot_id, session, lock=True)
            if slot is None:
                raise NotFoundError(f"Slot not found: {slot_id}")
            if slot.status != SLOT_ACTIVE:
                raise StateError(f'Slot "{slot.name}" is not active')
            await UpdateData.close_slot(slot, end_time, session)
            entries = await ReadData.read_entries_for_slot(slot_id, session)
            return SlotClosureSchema(
                slot=SlotSchema.model_validate(slot),
                winners=rank(entries)[:winner_count],
            )

    # ==== Score entries =======================================================

    async def record_score(self, submission: ScoreSubmissionModel, date: datetime) -> ScoreOutcomeSchema:
        """Insert or improve the entry of (email, active slot), best score wins.

        The active slot row is share-locked and the entry row is locked for
        update, so a concurrent stop or a concurrent submission of the same
        player waits for this transaction.
        """
        async with self._session("record score", transactional=True) as session:
            active = await ReadData.select_active_slot(session, lock=True)
            if active is None:
                raise NoActiveSessionError()
            slot_id = active.slot_id

            existing = await ReadData.select_entry(submission.email, slot_id, session, lock=True)
            if existing is None:
                new_entry = await CreateData.add_score_entry(submission, slot_id, date, session)
                return ScoreOutcomeSchema(
                    updated=True,
                    message="Player added",
                    slot_id=slot_id,
                    entry=ScoreEntrySchema.model_validate(new_entry),
                )

            if not is_better(
                submission.score, submission.timetaken, existing.score, existing.timetaken
            ):
                return ScoreOutcomeSchema(
                    updated=False,
                    message="Existing score is better",
                    slot_id=slot_id,
                    entry=ScoreEntrySchema.model_validate(existing),
                )

            await UpdateData.replace_score(existing, submission, date, session)
            return ScoreOutcomeSchema(
                updated=True,
                message="Score updated",
                slot_id=slot_id,
                entry=ScoreEntrySchema.model_validate(existing),
            )

    # ==== Reads ===============================================================

    async def get_active_slot(self) -> SlotSchema | None:
        async with self._session("read active slot") as session:
            return await ReadData.read_active_slot(session)

    async def get_last_completed_slot(self) -> SlotSchema | None:
        async with self._session("read last completed slot") as session:
            return await ReadData.read_last_completed_slot(session)

    async def get_session_state(self) -> SessionState:
        async with self._session("read session state") as session:
            active = await ReadData.read_active_slot(session)
            last_completed = None
            if active is None:
                last_completed = await ReadData.read_last_completed_slot(session)
            return resolve_session_state(active, last_completed)

    async def get_slot(self, slot_id: UUID) -> SlotSchema | None:
        async with self._session("read slot") as session:
            return await ReadData.read_slot(slot_id, session)

    async def find_slot_by_name(self, name: str) -> SlotSchema | None:
        async with self._session("read slot by name") as session:
            slots = await ReadData.read_slots_by_name(name, session)
            return slots[0] if slots else None

    async def list_slots(self) -> List[SlotSchema]:
        async with self._session("read slots") as session:
            return await ReadData.read_all_slots(session)

    async def count_slots(self) -> int:
        async with self._session("count slots") as session:
            return await ReadData.count_slots(session)

    async def find_entry(self, email: str, slot_id: UUID) -> ScoreEntrySchema | None:
        async with self._session("read entry") as session:
            return await ReadData.read_entry(email, slot_id, session)

    async def entries_for_slot(self, slot_id: UUID, location: str | None = None) -> List[ScoreEntrySchema]:
        async with self._session("read slot entries") as session:
            return await ReadData.read_entries_for_slot(slot_id, session, location)

    async def best_entries(self, location: str | None = None) -> List[ScoreEntrySchema]:
        async with self._session("read best entries") as session:
            return await ReadData.read_best_entries(session, location)
