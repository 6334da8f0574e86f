import logging
from typing import Any, Dict, List, Protocol


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ConnectionManager:
    """Subscription registry: every live connection and the location it watches.

    A connection is registered with no location until it subscribes; it then
    receives status events only. Re-subscribing overwrites the location.
    """

    def __init__(self):
        self.active_connections: Dict[Connection, str | None] = {}

    def register(self, connection: Connection):
        """Track a connection that has not chosen a location yet"""
        self.active_connections.setdefault(connection, None)

    def subscribe(self, connection: Connection, location: str):
        """Record (or overwrite) the location watched by a connection

        Args:
            connection (Connection): Live connection
            location (str): Location partition key
        """
        self.active_connections[connection] = location
        logging.info(
            f"Client subscribed to location: {location}. Total clients: {len(self.active_connections)}"
        )

    def unsubscribe(self, connection: Connection):
        """Forget a connection; safe to call more than once"""
        if connection not in self.active_connections:
            return
        location = self.active_connections.pop(connection)
        logging.info(
            f"Client removed. Was connected to location: {location}. Remaining clients: {len(self.active_connections)}"
        )

    def location_of(self, connection: Connection) -> str | None:
        return self.active_connections.get(connection)

    def connections_for(self, location: str) -> List[Connection]:
        return [
            connection
            for connection, subscribed in self.active_connections.items()
            if subscribed == location
        ]

    def all_connections(self) -> List[Connection]:
        return list(self.active_connections)

    def locations(self) -> List[str]:
        return sorted({location for location in self.active_connections.values() if location})

    def __contains__(self, connection: Connection) -> bool:
        return connection in self.active_connections

    def __len__(self) -> int:
        return len(self.active_connections)
