from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID


class CamelModel(BaseModel):
    """Wire model exchanged with dashboards; serialized with camelCase keys."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ==== Inbound =================================================================


class ScoreSubmissionModel(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    score: int = Field(ge=0, strict=True)
    timetaken: int = Field(ge=0, strict=True)  # milliseconds
    displaytime: str = Field(min_length=1)
    location: str = Field(min_length=1)

    class Config:
        str_strip_whitespace = True

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("email must contain '@'")
        return value.lower()


class StartSlotModel(CamelModel):
    slot_name: str = Field(min_length=1)


class StopSlotModel(CamelModel):
    slot_id: Optional[UUID] = None
    slot_name: Optional[str] = None


class CheckEmailModel(BaseModel):
    email: str = Field(min_length=1)


class LiveRequestModel(CamelModel):
    type: str
    location: Optional[str] = None
    slot_id: Optional[UUID] = None


# ==== Outbound ================================================================


class SlotModel(CamelModel):
    slot_id: UUID
    name: str
    status: str
    start_time: datetime
    end_time: datetime | None = None
    duration: str


class RankedPlayerModel(CamelModel):
    rank: int
    name: str
    email: str
    score: int
    timetaken: int
    displaytime: str
    location: str
    slot_id: UUID
    date: datetime


class GameStatusModel(CamelModel):
    active: bool
    slot_name: str | None
    message: str
    slots: List[SlotModel]
    active_slot_id: UUID | None
    has_slots: bool
    last_slot_info: Optional[SlotModel] = None
    winners: Optional[List[RankedPlayerModel]] = None


class RankingsEventModel(CamelModel):
    type: Literal["rankings"] = "rankings"
    location: str
    players: List[RankedPlayerModel]
    slot_id: UUID | None


class GameStatusEventModel(CamelModel):
    type: Literal["gameStatus"] = "gameStatus"
    status: GameStatusModel


class PlayerUpdateEventModel(CamelModel):
    type: Literal["playerUpdate"] = "playerUpdate"
    location: str
    player: Optional[RankedPlayerModel] = None
