"""Realtime event dispatch.

``Relay`` wires the connection registry, room manager, message fan-out,
signaling relay and notification hooks together and routes each inbound
frame to its handler. Every failure ends as an ``error`` event for the sender.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError

from ..schemas import events as schemas
from .connections import Connection, ConnectionRegistry, SendCallable, deliver
from .errors import PersistenceFailure, RelayError, Unauthenticated, ValidationFailed
from .messaging import MessageFanout
from .notifications import NotificationHooks
from .rooms import RoomManager
from .signaling import FORWARDED_EVENTS, SignalingRelay
from .store import ChatStore

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, Any], Awaitable[object]]

UNAUTHENTICATED_EVENTS = frozenset({schemas.InboundEvent.JOIN, schemas.InboundEvent.TEST})


class Relay:
    """Per-process realtime hub."""

    def __init__(
        self,
        store: ChatStore,
        *,
        registry: ConnectionRegistry | None = None,
        trust_client_servers: bool = False,
    ) -> None:
        self.store = store
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.rooms = RoomManager(self.registry)
        self.messages = MessageFanout(store, self.rooms)
        self.signaling = SignalingRelay(self.registry, store)
        self.notifications = NotificationHooks(self.registry)
        self._trust_client_servers = trust_client_servers

        self._handlers: dict[schemas.InboundEvent, Handler] = {
            schemas.InboundEvent.JOIN: self._on_join,
            schemas.InboundEvent.MESSAGE: self.messages.send_channel_message,
            schemas.InboundEvent.DM_MESSAGE: self.messages.send_direct_message,
            schemas.InboundEvent.CALL_INITIATE: self.signaling.initiate,
            schemas.InboundEvent.TEST: self._on_test,
        }
        for event_type in FORWARDED_EVENTS:
            self._handlers[event_type] = partial(self.signaling.forward, event_type)

        missing = set(schemas.InboundEvent) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for events: {sorted(e.value for e in missing)}")

    def connect(self, send: SendCallable, connection_id: str | None = None) -> Connection:
        connection = self.registry.connect(send, connection_id)
        logger.info("Connection %s opened (%d live)", connection.connection_id, len(self.registry))
        return connection

    def disconnect(self, connection_id: str) -> None:
        """Tear down the connection and every room membership it held."""

        self.rooms.leave_all(connection_id)
        connection = self.registry.disconnect(connection_id)
        if connection is not None:
            logger.info("Connection %s closed (user %s)", connection_id, connection.user_id)

    async def handle(self, connection_id: str, message: Any) -> None:
        """Handle one inbound frame to completion."""

        connection = self.registry.get(connection_id)
        if connection is None:
            logger.debug("Frame for unknown connection %s ignored", connection_id)
            return

        event_name, temp_id = _peek(message)
        try:
            event_type, payload = self._parse(connection, message)
            await self._handlers[event_type](connection, payload)
        except RelayError as exc:
            logger.info("Rejected %s from %s: %s (%s)", event_name, connection_id, exc.message, exc.code)
            await self._reject(connection, exc, event_name, temp_id)
        except Exception:
            logger.exception("Unhandled error processing %s from %s", event_name, connection_id)
            await self._reject(connection, RelayError(), event_name, temp_id)

    def _parse(self, connection: Connection, message: Any) -> tuple[schemas.InboundEvent, BaseModel]:
        if not isinstance(message, dict):
            raise ValidationFailed("Malformed event")
        try:
            envelope = schemas.Envelope.model_validate(message)
        except ValidationError as exc:
            raise ValidationFailed("Malformed event") from exc

        try:
            event_type = schemas.InboundEvent(envelope.type)
        except ValueError as exc:
            raise ValidationFailed(f"Unknown event {envelope.type!r}") from exc

        if event_type not in UNAUTHENTICATED_EVENTS and not connection.authenticated:
            raise Unauthenticated()

        try:
            payload = schemas.INBOUND_PAYLOADS[event_type].model_validate(envelope.payload)
        except ValidationError as exc:
            raise ValidationFailed(_describe(exc)) from exc
        return event_type, payload

    async def _on_join(self, connection: Connection, payload: schemas.JoinPayload) -> None:
        """Bind identity, rebuild room memberships and acknowledge to the sender only."""

        requested = list(dict.fromkeys(payload.servers))
        servers = requested
        if not self._trust_client_servers and requested:
            try:
                member_of = await self.store.member_server_ids(payload.user_id, requested)
            except Exception as exc:
                logger.exception("Membership check failed for user %s", payload.user_id)
                raise PersistenceFailure("Failed to verify server membership") from exc
            servers = [server_id for server_id in requested if server_id in member_of]
            if len(servers) != len(requested):
                logger.warning(
                    "User %s asked to join %d servers it is not a member of",
                    payload.user_id,
                    len(requested) - len(servers),
                )

        self.registry.bind_identity(connection.connection_id, payload.user_id)
        self.rooms.join(connection.connection_id, payload.user_id, servers)
        logger.info("User %s joined on %s with %d servers", payload.user_id, connection.connection_id, len(servers))

        ack = schemas.JoinSuccessEvent(user_id=payload.user_id, servers=servers)
        await deliver([connection], schemas.OutboundEvent.JOIN_SUCCESS.value, ack.to_payload())

    async def _on_test(self, connection: Connection, payload: schemas.DiagnosticPayload) -> None:
        logger.debug("Test frame from %s: %s", connection.connection_id, payload.model_extra)
        await deliver(
            [connection],
            schemas.OutboundEvent.TEST_RESPONSE.value,
            {"message": "Hello from server!", "timestamp": datetime.now(timezone.utc).isoformat()},
        )

    async def _reject(
        self,
        connection: Connection,
        error: RelayError,
        event_name: str | None,
        temp_id: str | None,
    ) -> None:
        body = schemas.ErrorEvent(code=error.code, message=error.message, event=event_name, temp_id=temp_id)
        await deliver([connection], schemas.OutboundEvent.ERROR.value, body.to_payload())


def _peek(message: Any) -> tuple[str | None, str | None]:
    """Best-effort event name and client temp id for error reports."""

    if not isinstance(message, dict):
        return None, None
    event_name = message.get("type") if isinstance(message.get("type"), str) else None
    payload = message.get("payload")
    temp_id = payload.get("tempId") if isinstance(payload, dict) else None
    return event_name, temp_id if isinstance(temp_id, str) else None


def _describe(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error['msg']}" if location else error["msg"]
