from datetime import datetime
from typing import List, Sequence
from uuid import UUID

from slotboard.domain.session_status import (
    Active,
    Closed,
    SessionState,
    slot_duration,
    status_message,
)
from slotboard.models.dc_models import (
    GameStatusEventModel,
    GameStatusModel,
    PlayerUpdateEventModel,
    RankedPlayerModel,
    RankingsEventModel,
    SlotModel,
)
from slotboard.models.schema_models import RankedEntrySchema, SlotSchema


class DataConverter:
    """This class is used to convert stored data into the events sent to clients."""

    def convert_slot_to_slotmodel(self, slot: SlotSchema, now: datetime) -> SlotModel:
        return SlotModel(
            slot_id=slot.slot_id,
            name=slot.name,
            status=slot.status,
            start_time=slot.start_time,
            end_time=slot.end_time,
            duration=slot_duration(slot, now),
        )

    def convert_ranked_to_playermodel(self, entry: RankedEntrySchema) -> RankedPlayerModel:
        return RankedPlayerModel(
            rank=entry.rank,
            name=entry.name,
            email=entry.email,
            score=entry.score,
            timetaken=entry.timetaken,
            displaytime=entry.displaytime,
            location=entry.location,
            slot_id=entry.slot_id,
            date=entry.date,
        )

    def build_game_status(
        self,
        state: SessionState,
        slots: Sequence[SlotSchema],
        now: datetime,
        winners: Sequence[RankedEntrySchema] | None = None,
        just_started: bool = False,
    ) -> GameStatusModel:
        """Build the session-status payload for one of the three session states

        Args:
            state (SessionState): NoSessionsYet, Active or Closed
            slots (Sequence[SlotSchema]): Every slot, for session pickers
            now (datetime): Reference time for running durations
            winners (Sequence[RankedEntrySchema] | None): Winners of a slot that just closed
            just_started (bool): Word the message for a slot that was just started

        Returns:
            GameStatusModel: Status payload for the client
        """
        slot_name = None
        active_slot_id = None
        last_slot_info = None
        if isinstance(state, Active):
            slot_name = state.slot.name
            active_slot_id = state.slot.slot_id
        elif isinstance(state, Closed):
            slot_name = state.last_slot.name
            last_slot_info = self.convert_slot_to_slotmodel(state.last_slot, now)

        return GameStatusModel(
            active=isinstance(state, Active),
            slot_name=slot_name,
            message=status_message(state, now, just_started=just_started),
            slots=[self.convert_slot_to_slotmodel(slot, now) for slot in slots],
            active_slot_id=active_slot_id,
            has_slots=len(slots) > 0,
            last_slot_info=last_slot_info,
            winners=(
                [self.convert_ranked_to_playermodel(winner) for winner in winners]
                if winners is not None
                else None
            ),
        )

    def rankings_event(
        self, location: str, ranked: Sequence[RankedEntrySchema], slot_id: UUID | None
    ) -> dict:
        event = RankingsEventModel(
            location=location,
            players=[self.convert_ranked_to_playermodel(entry) for entry in ranked],
            slot_id=slot_id,
        )
        return event.model_dump(by_alias=True, mode="json")

    def game_status_event(self, status: GameStatusModel) -> dict:
        return GameStatusEventModel(status=status).model_dump(by_alias=True, mode="json")

    def player_update_event(self, location: str, player: RankedEntrySchema | None) -> dict:
        event = PlayerUpdateEventModel(
            location=location,
            player=self.convert_ranked_to_playermodel(player) if player is not None else None,
        )
        return event.model_dump(by_alias=True, mode="json")

    def convert_ranked_list(self, ranked: Sequence[RankedEntrySchema]) -> List[dict]:
        return [
            self.convert_ranked_to_playermodel(entry).model_dump(by_alias=True, mode="json")
            for entry in ranked
        ]
