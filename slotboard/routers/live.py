import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from slotboard.dependencies import Services
from slotboard.exceptions import LeaderboardError, ValidationError
from slotboard.models.dc_models import LiveRequestModel

live_router = APIRouter()


async def handle_request(services: Services, websocket: WebSocket, request: LiveRequestModel):
    """Dispatch one inbound live message

    Args:
        services (Services): Core services of the app
        websocket (WebSocket): Requesting connection
        request (LiveRequestModel): setLocation or getRankings
    """
    if request.type == "setLocation":
        if not request.location:
            raise ValidationError("location", "Location is required")
        await services.broadcaster.subscribe(websocket, request.location)
    elif request.type == "getRankings":
        location = request.location or services.manager.location_of(websocket)
        if not location:
            raise ValidationError("location", "Location is required")
        await services.broadcaster.send_rankings(websocket, location, request.slot_id)
    else:
        raise ValidationError("type", f"Unknown message type: {request.type}")


class LiveServer:
    @staticmethod
    @live_router.websocket("/ws")
    async def live_endpoint(websocket: WebSocket):
        services: Services = websocket.app.state.services
        await websocket.accept()
        services.manager.register(websocket)
        logging.info("New client connected")
        try:
            while True:
                try:
                    data = await websocket.receive_json()
                    request = LiveRequestModel.model_validate(data)
                    await handle_request(services, websocket, request)
                except (ValueError, PydanticValidationError) as e:
                    logging.warning(f"Malformed live message: {e}")
                    await websocket.send_json({"type": "error", "message": "Malformed message"})
                except LeaderboardError as e:
                    await websocket.send_json({"type": "error", "message": e.message})
        except WebSocketDisconnect:
            logging.info("Client disconnected")
        finally:
            services.broadcaster.unsubscribe(websocket)
