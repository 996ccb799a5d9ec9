"""Registry of live realtime connections and the identity bound to each."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Set
from uuid import uuid4

from .errors import Unauthenticated

SendCallable = Callable[[dict], Awaitable[None]]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Connection:
    """A live transport connection; ``user_id`` is unset until ``join``."""

    connection_id: str
    send: SendCallable
    user_id: str | None = None

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None


def require_identity(connection: Connection) -> str:
    """Return the bound user id or reject the event as unauthenticated."""

    if connection.user_id is None:
        raise Unauthenticated()
    return connection.user_id


class ConnectionRegistry:
    """Track live connections and index them by bound user.

    Mutations happen only from the owning connection's event handlers, all on
    one event loop, so no locking is needed.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}
        self._by_user: Dict[str, Set[str]] = {}

    def connect(self, send: SendCallable, connection_id: str | None = None) -> Connection:
        """Register a new connection with no bound identity."""

        connection = Connection(connection_id=connection_id or str(uuid4()), send=send)
        self._connections[connection.connection_id] = connection
        return connection

    def bind_identity(self, connection_id: str, user_id: str) -> Connection:
        """Bind ``user_id`` to the connection, replacing any earlier binding."""

        connection = self._connections[connection_id]
        if connection.user_id is not None and connection.user_id != user_id:
            self._unindex(connection)
        connection.user_id = user_id
        self._by_user.setdefault(user_id, set()).add(connection_id)
        return connection

    def disconnect(self, connection_id: str) -> Connection | None:
        """Forget the connection. Returns the removed record, if any."""

        connection = self._connections.pop(connection_id, None)
        if connection is not None and connection.user_id is not None:
            self._unindex(connection)
        return connection

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def find_connections_by_user(self, user_id: str) -> list[Connection]:
        """Return every live connection bound to ``user_id``."""

        connection_ids = self._by_user.get(user_id, ())
        return [self._connections[cid] for cid in connection_ids if cid in self._connections]

    def _unindex(self, connection: Connection) -> None:
        if connection.user_id is None:
            return
        connection_ids = self._by_user.get(connection.user_id)
        if not connection_ids:
            return
        connection_ids.discard(connection.connection_id)
        if not connection_ids:
            self._by_user.pop(connection.user_id, None)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections


async def deliver(connections: Iterable[Connection], event: str, payload: dict[str, Any]) -> int:
    """Send one event to each connection and return how many sends succeeded.

    A failing connection is logged and does not stop delivery to the rest.
    """

    targets = list(connections)
    if not targets:
        return 0

    envelope = {"type": event, "payload": payload}
    results = await asyncio.gather(*(target.send(envelope) for target in targets), return_exceptions=True)

    delivered = 0
    for target, result in zip(targets, results):
        if isinstance(result, BaseException):
            logger.warning("Failed to deliver %s to connection %s: %s", event, target.connection_id, result)
        else:
            delivered += 1
    return delivered
