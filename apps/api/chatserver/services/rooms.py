"""Room membership: which connections receive which broadcasts.

Rooms are derived, never stored: ``server:<id>`` for every member connection
of a server and ``user:<id>`` for a single user's own connections.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Dict, Set

from .connections import Connection, ConnectionRegistry, deliver


def room_for_server(server_id: str) -> str:
    return f"server:{server_id}"


def room_for_user(user_id: str) -> str:
    return f"user:{user_id}"


class RoomManager:
    """Subscribe connections to rooms and fan events out to room members."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry
        self._rooms: Dict[str, Set[str]] = {}
        self._memberships: Dict[str, Set[str]] = {}

    def join(self, connection_id: str, user_id: str, server_ids: Iterable[str]) -> list[str]:
        """Replace the connection's memberships with its user room plus one room per server.

        Returns the rooms joined, user room first.
        """

        self.leave_all(connection_id)

        rooms = [room_for_user(user_id)]
        for server_id in server_ids:
            room = room_for_server(server_id)
            if room not in rooms:
                rooms.append(room)

        for room in rooms:
            self._rooms.setdefault(room, set()).add(connection_id)
        self._memberships[connection_id] = set(rooms)
        return rooms

    def leave_all(self, connection_id: str) -> set[str]:
        """Drop every membership held by the connection."""

        rooms = self._memberships.pop(connection_id, set())
        for room in rooms:
            members = self._rooms.get(room)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                self._rooms.pop(room, None)
        return rooms

    def rooms_for(self, connection_id: str) -> frozenset[str]:
        return frozenset(self._memberships.get(connection_id, ()))

    def members(self, room: str) -> list[Connection]:
        """Return the live connections subscribed to ``room``."""

        members = []
        for connection_id in self._rooms.get(room, ()):
            connection = self._registry.get(connection_id)
            if connection is not None:
                members.append(connection)
        return members

    async def emit(self, room: str, event: str, payload: dict[str, Any]) -> int:
        """Deliver an event once to every connection in the room."""

        return await deliver(self.members(room), event, payload)
