from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from slotboard.broadcaster import Broadcaster
from slotboard.load_settings import top_k, winner_count
from slotboard.manager import ConnectionManager
from slotboard.services.score_ingestion import ScoreIngestion
from slotboard.services.session_authority import SessionAuthority
from slotboard.services.session_store import SessionStore
from slotboard.slot_gate import SlotGate


@dataclass
class Services:
    store: SessionStore
    manager: ConnectionManager
    broadcaster: Broadcaster
    authority: SessionAuthority
    ingestion: ScoreIngestion


def build_services(Session: async_sessionmaker) -> Services:
    store = SessionStore(Session)
    manager = ConnectionManager()
    broadcaster = Broadcaster(store, manager, top_k=top_k)
    gate = SlotGate()
    return Services(
        store=store,
        manager=manager,
        broadcaster=broadcaster,
        authority=SessionAuthority(store, broadcaster, gate, winner_count=winner_count),
        ingestion=ScoreIngestion(store, broadcaster, gate),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
