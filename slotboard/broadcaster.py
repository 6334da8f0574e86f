import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple
from uuid import UUID

from slotboard.converter import DataConverter
from slotboard.domain.ranking import RankSignature, find_player, rank, top_k_signature
from slotboard.exceptions import NotFoundError
from slotboard.key_lock_manager import KeyLockManager
from slotboard.manager import Connection, ConnectionManager
from slotboard.models.dc_models import GameStatusModel
from slotboard.models.schema_models import RankedEntrySchema
from slotboard.services.session_store import SessionStore

HEARTBEAT_MESSAGE = {"type": "heartbeat"}


class BroadcastCache:
    """Last top-K signature pushed per location.

    Only used to skip redundant pushes; dropping it costs one extra push.
    """

    def __init__(self):
        self.last_sent: Dict[str, RankSignature] = {}

    def is_unchanged(self, location: str, signature: RankSignature) -> bool:
        return location in self.last_sent and self.last_sent[location] == signature

    def put(self, location: str, signature: RankSignature):
        self.last_sent[location] = signature

    def invalidate(self, location: str | None = None):
        if location is None:
            self.last_sent.clear()
        else:
            self.last_sent.pop(location, None)


class Broadcaster:
    """Fans events out to the subscription registry.

    Rankings go to the subscribers of one location and are suppressed while
    their top-K is unchanged. Session status goes to every connection and is
    never suppressed.
    """

    def __init__(
        self,
        store: SessionStore,
        manager: ConnectionManager,
        top_k: int = 10,
        converter: DataConverter | None = None,
    ):
        self.store = store
        self.manager = manager
        self.top_k = top_k
        self.converter = converter or DataConverter()
        self.cache = BroadcastCache()
        self.location_locks = KeyLockManager("rankings")

    # ==== Registry ============================================================

    async def subscribe(self, connection: Connection, location: str):
        """Watch a location and receive the full current state right away

        Args:
            connection (Connection): Live connection
            location (str): Location partition key
        """
        self.manager.subscribe(connection, location)
        # Same lock as publish_rankings, so a fresher push is never followed by this snapshot.
        async with self.location_locks.hold(location):
            ranked, slot_id = await self.current_rankings(location)
            delivered = await self._deliver(
                connection, self.converter.rankings_event(location, ranked, slot_id)
            )
        if not delivered:
            return
        status = await self.current_status()
        await self._deliver(connection, self.converter.game_status_event(status))

    def unsubscribe(self, connection: Connection):
        self.manager.unsubscribe(connection)

    # ==== Rankings ============================================================

    async def current_rankings(self, location: str) -> Tuple[List[RankedEntrySchema], UUID | None]:
        """Rank the active slot of a location, or the cross-slot best view when no slot is active

        Returns:
            Tuple[List[RankedEntrySchema], UUID | None]: Ranked entries and the active slot id
        """
        active = await self.store.get_active_slot()
        if active is not None:
            entries = await self.store.entries_for_slot(active.slot_id, location)
            return rank(entries), active.slot_id
        entries = await self.store.best_entries(location)
        return rank(entries), None

    async def publish_rankings(self, location: str) -> int:
        """Push the rankings of a location unless its top-K is unchanged

        Args:
            location (str): Location partition key

        Returns:
            int: Number of connections the rankings were delivered to
        """
        async with self.location_locks.hold(location):
            ranked, slot_id = await self.current_rankings(location)
            signature = top_k_signature(ranked, self.top_k)
            if self.cache.is_unchanged(location, signature):
                logging.debug(f"Top {self.top_k} unchanged for location {location}, push suppressed")
                return 0
            self.cache.put(location, signature)
            message = self.converter.rankings_event(location, ranked, slot_id)
            targets = self.manager.connections_for(location)
            logging.info(f"Broadcasting rankings to location {location}: {len(targets)} clients")
            return await self._fan_out(targets, message)

    async def send_rankings(self, connection: Connection, location: str, slot_id: UUID | None = None) -> bool:
        """Reply with rankings to one connection, bypassing suppression

        Args:
            connection (Connection): Requesting connection
            location (str): Location partition key
            slot_id (UUID | None): Rank this slot instead of the current view
        """
        if slot_id is None:
            async with self.location_locks.hold(location):
                ranked, current_slot_id = await self.current_rankings(location)
                message = self.converter.rankings_event(location, ranked, current_slot_id)
                return await self._deliver(connection, message)

        slot = await self.store.get_slot(slot_id)
        if slot is None:
            raise NotFoundError(f"Slot not found: {slot_id}")
        entries = await self.store.entries_for_slot(slot_id, location)
        message = self.converter.rankings_event(location, rank(entries), slot_id)
        return await self._deliver(connection, message)

    async def publish_player_update(self, location: str, email: str) -> int:
        """Tell the subscribers of a location that one player changed

        The notice carries the player's current rank so a viewer can decide
        whether a refresh is worth it.
        """
        ranked, _ = await self.current_rankings(location)
        message = self.converter.player_update_event(location, find_player(ranked, email))
        return await self._fan_out(self.manager.connections_for(location), message)

    # ==== Session status ======================================================

    async def current_status(
        self,
        winners: Sequence[RankedEntrySchema] | None = None,
        just_started: bool = False,
    ) -> GameStatusModel:
        state = await self.store.get_session_state()
        slots = await self.store.list_slots()
        return self.converter.build_game_status(
            state, slots, datetime.now(), winners=winners, just_started=just_started
        )

    async def publish_session_status(self, status: GameStatusModel) -> int:
        """Push a status event to every connection, whatever its location"""
        message = self.converter.game_status_event(status)
        targets = self.manager.all_connections()
        logging.info(f"Broadcasting game status (active={status.active}) to {len(targets)} clients")
        return await self._fan_out(targets, message)

    async def publish_slot_transition(self, status: GameStatusModel):
        """Announce a start/stop, then move every watched location to its new board"""
        await self.publish_session_status(status)
        # Rankings now come from another slot; what was last sent says nothing about them.
        self.cache.invalidate()
        for location in self.manager.locations():
            await self.publish_rankings(location)

    async def heartbeat(self) -> int:
        return await self._fan_out(self.manager.all_connections(), HEARTBEAT_MESSAGE)

    # ==== Delivery ============================================================

    async def _deliver(self, connection: Connection, message: dict) -> bool:
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logging.warning(f"Error sending message to client, dropping it: {e}")
            self.manager.unsubscribe(connection)
            return False

    async def _fan_out(self, connections: Iterable[Connection], message: dict) -> int:
        results = await asyncio.gather(
            *(self._deliver(connection, message) for connection in connections)
        )
        return sum(results)
