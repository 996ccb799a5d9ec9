"""Best-effort friend notifications pushed to a user's live connections."""
from __future__ import annotations

import logging
from typing import Any

from ..schemas.events import OutboundEvent
from .connections import ConnectionRegistry, deliver

logger = logging.getLogger(__name__)


class NotificationHooks:
    """Push friend events; offline users pick them up on their next reload."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def friend_request(self, to_user_id: str, request: dict[str, Any]) -> int:
        return await self._push(to_user_id, OutboundEvent.FRIEND_REQUEST, request)

    async def friend_accepted(self, to_user_id: str, accepted_by: str) -> int:
        return await self._push(to_user_id, OutboundEvent.FRIEND_ACCEPTED, {"userId": accepted_by})

    async def _push(self, user_id: str, event: OutboundEvent, payload: dict[str, Any]) -> int:
        targets = self._registry.find_connections_by_user(user_id)
        if not targets:
            logger.debug("%s for offline user %s dropped", event.value, user_id)
            return 0
        return await deliver(targets, event.value, payload)
