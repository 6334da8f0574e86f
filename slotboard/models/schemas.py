from datetime import datetime

from sqlalchemy import ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.schema import Column
from sqlalchemy.types import DateTime, Integer, String, Uuid
from uuid6 import uuid7

SLOT_ACTIVE = "active"
SLOT_COMPLETED = "completed"


class Base(DeclarativeBase):
    pass


class Slot(Base):
    __tablename__ = "slots"
    slot_id = Column(Uuid, primary_key=True, default=uuid7)
    name = Column(String, nullable=False)
    status = Column(String, nullable=False, default=SLOT_ACTIVE)
    start_time = Column(DateTime, nullable=False, default=datetime.now)
    end_time = Column(DateTime, nullable=True)

    entries = relationship(
        "ScoreEntry",
        back_populates="slot",
        cascade="all, delete",
    )

    __table_args__ = (
        # The database itself refuses a second active slot.
        Index(
            "uq_slots_single_active",
            "status",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )


class ScoreEntry(Base):
    __tablename__ = "score_entries"
    entry_id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False)
    slot_id = Column(Uuid, ForeignKey("slots.slot_id"), nullable=False)
    name = Column(String, nullable=False)
    score = Column(Integer, nullable=False)
    timetaken = Column(Integer, nullable=False)
    displaytime = Column(String, nullable=False)
    location = Column(String, nullable=False, index=True)
    date = Column(DateTime, nullable=False, default=datetime.now)

    slot = relationship("Slot", back_populates="entries")

    __table_args__ = (
        UniqueConstraint("email", "slot_id", name="uq_score_entries_email_slot"),
    )
