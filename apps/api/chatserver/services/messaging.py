"""Persist chat messages and broadcast them to their room.

Delivery is at-least-once and client reconciled: the sender's own connections
receive the authoritative copy too, carrying the ``tempId`` the client sent so
it can replace its optimistic echo (matched on content, author and tempId).
"""
from __future__ import annotations

import logging
from typing import Awaitable, TypeVar

from ..schemas import events as schemas
from .connections import Connection, require_identity
from .errors import NotFound, PersistenceFailure, RelayError, ValidationFailed
from .rooms import RoomManager, room_for_server, room_for_user
from .store import ChatStore, StoredMessage, UserProfile

logger = logging.getLogger(__name__)

T = TypeVar("T")


def author_out(profile: UserProfile) -> schemas.AuthorOut:
    return schemas.AuthorOut(id=profile.id, username=profile.username, avatar=profile.avatar)


def build_message_out(
    stored: StoredMessage,
    profile: UserProfile | None,
    temp_id: str | None = None,
) -> schemas.ChatMessageOut:
    """Render a stored message with an author snapshot (null when unresolved)."""

    return schemas.ChatMessageOut(
        id=stored.id,
        content=stored.content,
        timestamp=stored.timestamp,
        author=author_out(profile) if profile else None,
        temp_id=temp_id,
    )


class MessageFanout:
    """Turn one inbound send into one persisted record and one broadcast."""

    def __init__(self, store: ChatStore, rooms: RoomManager) -> None:
        self._store = store
        self._rooms = rooms

    async def send_channel_message(
        self,
        connection: Connection,
        payload: schemas.ChannelMessagePayload,
    ) -> schemas.ChannelMessageEvent:
        """Persist a server channel message and broadcast it to ``server:<id>``."""

        author_id = require_identity(connection)

        allowed = await self._read(
            self._store.can_post_to_channel(
                server_id=payload.server_id, channel_id=payload.channel_id, user_id=author_id
            )
        )
        if not allowed:
            raise NotFound("Channel not found")

        try:
            stored = await self._store.insert_channel_message(
                server_id=payload.server_id,
                channel_id=payload.channel_id,
                author_id=author_id,
                content=payload.content,
            )
        except Exception as exc:
            logger.exception("Failed to save message from %s in %s/%s", author_id, payload.server_id, payload.channel_id)
            raise PersistenceFailure("Failed to send message") from exc

        message = await self._render(stored, author_id, payload.temp_id)
        event = schemas.ChannelMessageEvent(
            server_id=payload.server_id,
            channel_id=payload.channel_id,
            message=message,
        )
        room = room_for_server(payload.server_id)
        delivered = await self._rooms.emit(room, schemas.OutboundEvent.MESSAGE.value, event.to_payload())
        logger.debug("Message %s broadcast to %d connections in %s", stored.id, delivered, room)
        return event

    async def send_direct_message(
        self,
        connection: Connection,
        payload: schemas.DirectMessagePayload,
    ) -> schemas.DirectMessageEvent:
        """Append to a DM conversation and deliver to both participants' user rooms."""

        author_id = require_identity(connection)

        conversation = await self._read(self._store.get_conversation(payload.dm_id))
        if conversation is None:
            raise NotFound("DM not found")
        if author_id not in conversation.participants:
            raise ValidationFailed("Not a participant in this conversation")

        try:
            stored = await self._store.append_dm_message(
                dm_id=payload.dm_id, author_id=author_id, content=payload.content
            )
        except Exception as exc:
            logger.exception("Failed to save DM message from %s in %s", author_id, payload.dm_id)
            raise PersistenceFailure("Failed to send DM") from exc

        message = await self._render(stored, author_id, payload.temp_id)
        event = schemas.DirectMessageEvent(dm_id=payload.dm_id, message=message)
        body = event.to_payload()
        for participant_id in dict.fromkeys(conversation.participants):
            await self._rooms.emit(room_for_user(participant_id), schemas.OutboundEvent.DM_MESSAGE.value, body)
        return event

    async def _render(self, stored: StoredMessage, author_id: str, temp_id: str | None) -> schemas.ChatMessageOut:
        """Build the outbound message with an author snapshot taken now."""

        try:
            profile = await self._store.resolve_user(author_id)
        except Exception:
            logger.exception("Author lookup failed for %s", author_id)
            profile = None

        if profile is None:
            logger.critical("Author %s not found for message %s, broadcasting without author", author_id, stored.id)

        return build_message_out(stored, profile, temp_id)

    @staticmethod
    async def _read(awaitable: Awaitable[T]) -> T:
        """Await a store read, mapping store failures to ``PersistenceFailure``."""

        try:
            return await awaitable
        except RelayError:
            raise
        except Exception as exc:
            logger.exception("Store read failed")
            raise PersistenceFailure("Failed to load message target") from exc
