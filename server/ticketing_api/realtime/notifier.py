"""Room-based publish/subscribe over real-time connections."""

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """Anything that can push a JSON message to one client (e.g. a WebSocket)."""

    async def send_json(self, data: Any) -> None: ...


def event_room(event_id: object) -> str:
    """Room name for everyone watching an event's seat map."""
    return f"event-{event_id}"


class RoomNotifier:
    """
    Topic-based notifier with explicit room membership.

    Delivery is best-effort and at-most-once per connection: a failed send
    is logged and dropped, nothing is queued or replayed. Clients that
    reconnect re-query state instead.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register(self, connection_id: str, connection: Connection) -> None:
        """Track a newly opened connection."""
        self._connections[connection_id] = connection
        logger.debug("Connection registered", extra={"connection_id": connection_id})

    def unregister(self, connection_id: str) -> None:
        """Forget a connection and drop it from every room."""
        self._connections.pop(connection_id, None)
        for room in list(self._rooms):
            self._discard(room, connection_id)
        logger.debug("Connection unregistered", extra={"connection_id": connection_id})

    def join(self, connection_id: str, room: str) -> None:
        self._rooms.setdefault(room, set()).add(connection_id)
        logger.info("Connection joined room", extra={"connection_id": connection_id, "room": room})

    def leave(self, connection_id: str, room: str) -> None:
        self._discard(room, connection_id)
        logger.info("Connection left room", extra={"connection_id": connection_id, "room": room})

    def members(self, room: str) -> set[str]:
        """Snapshot of the connections subscribed to a room."""
        return set(self._rooms.get(room, ()))

    def rooms_of(self, connection_id: str) -> set[str]:
        return {room for room, members in self._rooms.items() if connection_id in members}

    async def send(self, connection_id: str, event: str, payload: dict[str, Any]) -> bool:
        """Send one message to a single connection. Returns False when it was not delivered."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        try:
            await connection.send_json({"event": event, "data": payload})
        except Exception as e:
            logger.warning(
                "Dropping real-time message",
                extra={"connection_id": connection_id, "event": event, "error": str(e)}
            )
            return False
        return True

    async def broadcast(
        self,
        room: str,
        event: str,
        payload: dict[str, Any],
        exclude: str | None = None,
    ) -> int:
        """
        Send a message to every room member except ``exclude``.

        Returns:
            Number of connections the message was delivered to
        """
        delivered = 0
        for connection_id in self.members(room):
            if connection_id == exclude:
                continue
            if await self.send(connection_id, event, payload):
                delivered += 1

        logger.debug(
            "Broadcast sent",
            extra={"room": room, "event": event, "delivered": delivered}
        )
        return delivered

    def _discard(self, room: str, connection_id: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[room]
