from pydantic import BaseModel
from typing import List, Optional
from uuid import UUID
from datetime import datetime


class SlotSchema(BaseModel):
    slot_id: UUID
    name: str
    status: str
    start_time: datetime
    end_time: datetime | None = None

    class Config:
        from_attributes = True


class ScoreEntrySchema(BaseModel):
    email: str
    slot_id: UUID
    name: str
    score: int
    timetaken: int
    displaytime: str
    location: str
    date: datetime

    class Config:
        from_attributes = True


class RankedEntrySchema(ScoreEntrySchema):
    rank: int


class ScoreOutcomeSchema(BaseModel):
    updated: bool
    message: str
    slot_id: UUID
    entry: ScoreEntrySchema


class SlotClosureSchema(BaseModel):
    slot: SlotSchema
    winners: List[RankedEntrySchema]


class EmailCheckSchema(BaseModel):
    has_played: bool
    message: str
    active_slot: Optional[SlotSchema] = None
    player_data: Optional[ScoreEntrySchema] = None
