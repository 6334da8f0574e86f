import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query
from pydantic import ValidationError as PydanticValidationError

from slotboard.converter import DataConverter
from slotboard.dependencies import Services, get_services
from slotboard.domain.ranking import rank
from slotboard.exceptions import NotFoundError, ValidationError
from slotboard.load_settings import top_players_limit
from slotboard.models.dc_models import StopSlotModel
from slotboard.models.schema_models import SlotClosureSchema, SlotSchema

leaderboard_router = APIRouter(prefix="/api")
data_converter = DataConverter()


def slot_payload(slot: SlotSchema | None) -> dict | None:
    if slot is None:
        return None
    return data_converter.convert_slot_to_slotmodel(slot, datetime.now()).model_dump(
        by_alias=True, mode="json"
    )


def closure_payload(closure: SlotClosureSchema) -> dict:
    return {
        "slot": slot_payload(closure.slot),
        "winners": data_converter.convert_ranked_list(closure.winners),
    }


def body_field(payload: Any, field: str) -> Any:
    if not isinstance(payload, dict):
        return None
    return payload.get(field)


class PlayerAPI:
    @staticmethod
    @leaderboard_router.post("/player")
    async def submit_player(
        payload: Any = Body(None), services: Services = Depends(get_services)
    ) -> dict:
        """Add or improve a player's result in the active slot

        Args:
            payload (Any): name, email, score, timetaken, displaytime, location
        """
        outcome = await services.ingestion.submit(payload)
        return {"status": "success", "message": outcome.message, "updated": outcome.updated}

    @staticmethod
    @leaderboard_router.post("/check-email")
    async def check_email(
        payload: Any = Body(None), services: Services = Depends(get_services)
    ) -> dict:
        result = await services.ingestion.check_email(body_field(payload, "email"))
        return {
            "status": "success",
            "hasPlayed": result.has_played,
            "message": result.message,
            "activeSlot": slot_payload(result.active_slot),
            "playerData": result.player_data.model_dump(mode="json") if result.player_data else None,
        }


class SlotAPI:
    @staticmethod
    @leaderboard_router.get("/slots")
    async def list_slots(services: Services = Depends(get_services)) -> dict:
        slots = await services.authority.list_slots()
        return {"status": "success", "slots": [slot_payload(slot) for slot in slots]}

    @staticmethod
    @leaderboard_router.get("/slots/active")
    async def get_active_slot(services: Services = Depends(get_services)) -> dict | None:
        return slot_payload(await services.authority.get_active_slot())

    @staticmethod
    @leaderboard_router.get("/status")
    async def get_status(services: Services = Depends(get_services)) -> dict:
        status = await services.broadcaster.current_status()
        return status.model_dump(by_alias=True, mode="json")

    @staticmethod
    @leaderboard_router.post("/slots/start")
    async def start_slot(
        payload: Any = Body(None), services: Services = Depends(get_services)
    ) -> dict:
        slot = await services.authority.start_slot(body_field(payload, "slotName"))
        return {"status": "success", "data": slot_payload(slot)}

    @staticmethod
    @leaderboard_router.post("/slots/stop")
    async def stop_slot(
        payload: Any = Body(None), services: Services = Depends(get_services)
    ) -> dict:
        """Stop a slot addressed by slotId or slotName in the body"""
        try:
            request = StopSlotModel.model_validate(payload if isinstance(payload, dict) else {})
        except PydanticValidationError as e:
            raise ValidationError("slotId", "slotId must be a slot identifier") from e
        closure = await services.authority.stop_slot(request.slot_id, request.slot_name)
        return {"status": "success", "data": closure_payload(closure)}

    @staticmethod
    @leaderboard_router.post("/slots/{slot_id}/stop")
    async def stop_slot_by_id(slot_id: UUID, services: Services = Depends(get_services)) -> dict:
        closure = await services.authority.stop_slot(slot_id=slot_id)
        return {"status": "success", "data": closure_payload(closure)}

    @staticmethod
    @leaderboard_router.get("/slots/{slot_id}/players")
    async def get_slot_players(
        slot_id: UUID,
        location: str | None = None,
        services: Services = Depends(get_services),
    ) -> dict:
        """Ranked entries of one slot, optionally narrowed to one location"""
        slot = await services.store.get_slot(slot_id)
        if slot is None:
            raise NotFoundError(f"Slot not found: {slot_id}")
        entries = await services.store.entries_for_slot(slot_id, location)
        return {
            "status": "success",
            "slotId": str(slot_id),
            "players": data_converter.convert_ranked_list(rank(entries)),
        }


class RankingAPI:
    @staticmethod
    @leaderboard_router.get("/rankings/{location}")
    async def get_rankings(location: str, services: Services = Depends(get_services)) -> dict:
        ranked, slot_id = await services.broadcaster.current_rankings(location)
        return {
            "status": "success",
            "location": location,
            "slotId": str(slot_id) if slot_id else None,
            "players": data_converter.convert_ranked_list(ranked),
        }

    @staticmethod
    @leaderboard_router.get("/players/top")
    async def get_top_players(
        limit: int = Query(top_players_limit, ge=1, le=100),
        services: Services = Depends(get_services),
    ) -> dict:
        """Best result of every player across all slots and locations"""
        ranked = rank(await services.store.best_entries())
        logging.debug(f"Top players requested: {limit} of {len(ranked)}")
        return {"status": "success", "players": data_converter.convert_ranked_list(ranked[:limit])}
