from datetime import datetime
from typing import List
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from slotboard.models.dc_models import ScoreSubmissionModel
from slotboard.models.schema_models import ScoreEntrySchema, SlotSchema
from slotboard.models.schemas import SLOT_ACTIVE, SLOT_COMPLETED, ScoreEntry, Slot

# CRUD helpers never commit. Transaction boundaries belong to the session store.


class ReadData:
    @staticmethod
    async def select_active_slot(session: AsyncSession, lock: bool = False) -> Slot | None:
        """Select the active slot row

        Args:
            session (AsyncSession): Session inside an open transaction
            lock (bool): Take a shared row lock so the slot cannot close under a writer

        Returns:
            Slot | None: The active slot row
        """
        stmt = (
            select(Slot)
            .where(Slot.status == SLOT_ACTIVE)
            .order_by(desc(Slot.start_time))
            .limit(1)
        )
        if lock:
            stmt = stmt.with_for_update(read=True)
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def select_slot(slot_id: UUID, session: AsyncSession, lock: bool = False) -> Slot | None:
        stmt = select(Slot).where(Slot.slot_id == slot_id)
        if lock:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def select_entry(
        email: str, slot_id: UUID, session: AsyncSession, lock: bool = False
    ) -> ScoreEntry | None:
        """Select the entry of one player in one slot

        Args:
            email (str): Identity of the player
            slot_id (UUID): Owning slot
            lock (bool): Lock the row for the rest of the transaction

        Returns:
            ScoreEntry | None: The stored entry row
        """
        stmt = select(ScoreEntry).where(
            ScoreEntry.email == email, ScoreEntry.slot_id == slot_id
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def read_active_slot(session: AsyncSession) -> SlotSchema | None:
        row = await ReadData.select_active_slot(session)
        if row is None:
            return None
        return SlotSchema.model_validate(row)

    @staticmethod
    async def read_last_completed_slot(session: AsyncSession) -> SlotSchema | None:
        stmt = (
            select(Slot)
            .where(Slot.status == SLOT_COMPLETED)
            .order_by(desc(Slot.end_time))
            .limit(1)
        )
        result = await session.execute(stmt)
        row = result.scalars().first()
        if row is None:
            return None
        return SlotSchema.model_validate(row)

    @staticmethod
    async def read_slot(slot_id: UUID, session: AsyncSession) -> SlotSchema | None:
        row = await ReadData.select_slot(slot_id, session)
        if row is None:
            return None
        return SlotSchema.model_validate(row)

    @staticmethod
    async def read_all_slots(session: AsyncSession) -> List[SlotSchema]:
        """Read every slot, newest first"""
        stmt = select(Slot).order_by(desc(Slot.start_time))
        result = await session.execute(stmt)
        return [SlotSchema.model_validate(row) for row in result.scalars().all()]

    @staticmethod
    async def read_slots_by_name(name: str, session: AsyncSession) -> List[SlotSchema]:
        """Read slots carrying a display name; the active one first, then newest first"""
        stmt = (
            select(Slot)
            .where(Slot.name == name)
            .order_by(desc(Slot.status == SLOT_ACTIVE), desc(Slot.start_time))
        )
        result = await session.execute(stmt)
        return [SlotSchema.model_validate(row) for row in result.scalars().all()]

    @staticmethod
    async def count_slots(session: AsyncSession) -> int:
        result = await session.execute(select(func.count()).select_from(Slot))
        return result.scalar_one()

    @staticmethod
    async def read_entry(email: str, slot_id: UUID, session: AsyncSession) -> ScoreEntrySchema | None:
        row = await ReadData.select_entry(email, slot_id, session)
        if row is None:
            return None
        return ScoreEntrySchema.model_validate(row)

    @staticmethod
    async def read_entries_for_slot(
        slot_id: UUID, session: AsyncSession, location: str | None = None
    ) -> List[ScoreEntrySchema]:
        """Read the entries owned by one slot

        Args:
            slot_id (UUID): Owning slot
            location (str | None): Narrow to one location when given

        Returns:
            List[ScoreEntrySchema]: Entries, best first
        """
        stmt = select(ScoreEntry).where(ScoreEntry.slot_id == slot_id)
        if location is not None:
            stmt = stmt.where(ScoreEntry.location == location)
        stmt = stmt.order_by(desc(ScoreEntry.score), ScoreEntry.timetaken)
        result = await session.execute(stmt)
        return [ScoreEntrySchema.model_validate(row) for row in result.scalars().all()]

    @staticmethod
    async def read_best_entries(
        session: AsyncSession, location: str | None = None
    ) -> List[ScoreEntrySchema]:
        """Read the best entry of every email across all slots

        Args:
            location (str | None): Narrow to one location when given

        Returns:
            List[ScoreEntrySchema]: One entry per email, best first
        """
        position = (
            func.row_number()
            .over(
                partition_by=ScoreEntry.email,
                order_by=(desc(ScoreEntry.score), ScoreEntry.timetaken, ScoreEntry.date),
            )
            .label("position")
        )
        ranked = select(ScoreEntry, position)
        if location is not None:
            ranked = ranked.where(ScoreEntry.location == location)
        ranked = ranked.subquery()
        best = aliased(ScoreEntry, ranked)
        stmt = (
            select(best)
            .where(ranked.c.position == 1)
            .order_by(desc(best.score), best.timetaken)
        )
        result = await session.execute(stmt)
        return [ScoreEntrySchema.model_validate(row) for row in result.scalars().all()]


class CreateData:
    @staticmethod
    async def add_slot(name: str, start_time: datetime, session: AsyncSession) -> Slot:
        """Add an active slot and flush it so constraint violations surface here

        Args:
            name (str): Display label of the slot
            start_time (datetime): Start of the session
        """
        new_slot = Slot(name=name, status=SLOT_ACTIVE, start_time=start_time)
        session.add(new_slot)
        await session.flush()
        return new_slot

    @staticmethod
    async def add_score_entry(
        submission: ScoreSubmissionModel, slot_id: UUID, date: datetime, session: AsyncSession
    ) -> ScoreEntry:
        new_entry = ScoreEntry(
            email=submission.email,
            slot_id=slot_id,
            name=submission.name,
            score=submission.score,
            timetaken=submission.timetaken,
            displaytime=submission.displaytime,
            location=submission.location,
            date=date,
        )
        session.add(new_entry)
        await session.flush()
        return new_entry


class UpdateData:
    @staticmethod
    async def close_slot(slot: Slot, end_time: datetime, session: AsyncSession) -> Slot:
        slot.status = SLOT_COMPLETED
        slot.end_time = end_time
        await session.flush()
        return slot

    @staticmethod
    async def replace_score(
        entry: ScoreEntry, submission: ScoreSubmissionModel, date: datetime, session: AsyncSession
    ) -> ScoreEntry:
        """Overwrite a stored result with a better one

        Args:
            entry (ScoreEntry): Locked entry row
            submission (ScoreSubmissionModel): The better result
            date (datetime): Submission timestamp
        """
        entry.score = submission.score
        entry.timetaken = submission.timetaken
        entry.displaytime = submission.displaytime
        entry.date = date
        await session.flush()
        return entry
