"""Stateless WebRTC call signaling relay.

Forwards call-control and negotiation payloads to every live connection of
the target user. The call state machine lives in the clients; offline targets
are dropped silently since a call needs a live peer.
"""
from __future__ import annotations

import logging
from typing import Any

from ..schemas import events as schemas
from .connections import Connection, ConnectionRegistry, deliver, require_identity
from .messaging import author_out
from .store import ChatStore

logger = logging.getLogger(__name__)

FORWARDED_EVENTS: dict[schemas.InboundEvent, tuple[schemas.OutboundEvent, str | None]] = {
    schemas.InboundEvent.CALL_ACCEPT: (schemas.OutboundEvent.CALL_ACCEPTED, None),
    schemas.InboundEvent.CALL_DECLINE: (schemas.OutboundEvent.CALL_DECLINED, None),
    schemas.InboundEvent.CALL_OFFER: (schemas.OutboundEvent.CALL_OFFER, "offer"),
    schemas.InboundEvent.CALL_ANSWER: (schemas.OutboundEvent.CALL_ANSWER, "answer"),
    schemas.InboundEvent.ICE_CANDIDATE: (schemas.OutboundEvent.ICE_CANDIDATE, "candidate"),
    schemas.InboundEvent.CALL_END: (schemas.OutboundEvent.CALL_ENDED, None),
}


class SignalingRelay:
    """Relay signaling between two identified peers without interpreting payloads."""

    def __init__(self, registry: ConnectionRegistry, store: ChatStore) -> None:
        self._registry = registry
        self._store = store

    async def initiate(self, sender: Connection, payload: schemas.CallInitiatePayload) -> int:
        """Announce an incoming call to the callee with the caller's profile attached."""

        caller_id = require_identity(sender)
        targets = self._registry.find_connections_by_user(payload.to)
        if not targets:
            logger.debug("Call from %s to offline user %s dropped", caller_id, payload.to)
            return 0

        event = schemas.IncomingCallEvent(
            from_=await self._caller_profile(caller_id),
            call_type=payload.call_type,
            call_id=sender.connection_id,
        )
        return await deliver(targets, schemas.OutboundEvent.INCOMING_CALL.value, event.to_payload())

    async def forward(
        self,
        event_type: schemas.InboundEvent,
        sender: Connection,
        payload: schemas.CallTargetPayload,
    ) -> int:
        """Forward accept/decline/offer/answer/candidate/end to the target verbatim."""

        sender_id = require_identity(sender)
        outbound, field = FORWARDED_EVENTS[event_type]

        targets = self._registry.find_connections_by_user(payload.to)
        if not targets:
            logger.debug("%s from %s to offline user %s dropped", event_type.value, sender_id, payload.to)
            return 0

        body: dict[str, Any] = {"from": sender_id}
        if field is not None:
            body[field] = getattr(payload, field)
        return await deliver(targets, outbound.value, body)

    async def _caller_profile(self, caller_id: str) -> schemas.AuthorOut:
        try:
            profile = await self._store.resolve_user(caller_id)
        except Exception:
            logger.exception("Caller lookup failed for %s", caller_id)
            profile = None
        if profile is None:
            return schemas.AuthorOut(id=caller_id)
        return author_out(profile)
