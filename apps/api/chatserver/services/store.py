"""Persistence collaborator used by the realtime core and REST services.

``ChatStore`` is the narrow interface the relay depends on; ``SqlChatStore``
backs it with the SQLAlchemy repositories, one transaction per call.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.base import utcnow
from ..models.direct_message import DMConversation, DMMessage
from ..models.friend_request import FriendRequest, FriendRequestStatus
from ..models.message import Message
from ..models.user import User
from ..repositories import dms as dms_repo
from ..repositories import friends as friends_repo
from ..repositories import messages as messages_repo
from ..repositories import servers as servers_repo
from ..repositories import users as users_repo

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class UserProfile:
    """Display attributes of a user at lookup time."""

    id: str
    username: str
    avatar: str | None = None


@dataclass(slots=True, frozen=True)
class StoredMessage:
    id: str
    content: str
    author_id: str | None
    timestamp: datetime


@dataclass(slots=True, frozen=True)
class Conversation:
    id: str
    participants: tuple[str, str]
    created_at: datetime
    messages: tuple[StoredMessage, ...] = field(default=())


@dataclass(slots=True, frozen=True)
class FriendRequestRecord:
    id: str
    from_id: str
    to_id: str
    status: FriendRequestStatus
    created_at: datetime


class ChatStore(Protocol):
    """Reads and appends needed by the chat core."""

    async def resolve_user(self, user_id: str) -> UserProfile | None: ...

    async def resolve_users(self, user_ids: Iterable[str]) -> dict[str, UserProfile]: ...

    async def find_user_by_username(self, username: str) -> UserProfile | None: ...

    async def member_server_ids(self, user_id: str, server_ids: Sequence[str]) -> set[str]: ...

    async def can_post_to_channel(self, *, server_id: str, channel_id: str, user_id: str) -> bool: ...

    async def insert_channel_message(
        self, *, server_id: str, channel_id: str, author_id: str, content: str
    ) -> StoredMessage: ...

    async def list_channel_messages(self, *, server_id: str, channel_id: str, limit: int) -> list[StoredMessage]: ...

    async def get_conversation(self, dm_id: str) -> Conversation | None: ...

    async def get_or_create_conversation(self, user_a: str, user_b: str) -> tuple[Conversation, bool]: ...

    async def list_conversations(self, user_id: str, *, message_limit: int) -> list[Conversation]: ...

    async def append_dm_message(self, *, dm_id: str, author_id: str, content: str) -> StoredMessage: ...

    async def list_dm_messages(self, dm_id: str, *, limit: int) -> list[StoredMessage]: ...

    async def find_friend_request_between(self, user_a: str, user_b: str) -> FriendRequestRecord | None: ...

    async def create_friend_request(self, *, from_id: str, to_id: str) -> FriendRequestRecord: ...

    async def list_pending_friend_requests(self, user_id: str) -> list[FriendRequestRecord]: ...

    async def accept_friend_request(self, *, request_id: str, user_id: str) -> FriendRequestRecord | None: ...


class SqlChatStore:
    """``ChatStore`` over an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def resolve_user(self, user_id: str) -> UserProfile | None:
        async with self._session_factory() as session:
            user = await users_repo.get_by_id(session, user_id)
        return _profile(user) if user else None

    async def resolve_users(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        async with self._session_factory() as session:
            users = await users_repo.get_many(session, list(user_ids))
        return {user.id: _profile(user) for user in users}

    async def find_user_by_username(self, username: str) -> UserProfile | None:
        async with self._session_factory() as session:
            user = await users_repo.get_by_username(session, username)
        return _profile(user) if user else None

    async def member_server_ids(self, user_id: str, server_ids: Sequence[str]) -> set[str]:
        async with self._session_factory() as session:
            return await servers_repo.member_server_ids(session, user_id, server_ids)

    async def can_post_to_channel(self, *, server_id: str, channel_id: str, user_id: str) -> bool:
        async with self._session_factory() as session:
            channel = await servers_repo.member_channel(
                session, server_id=server_id, channel_id=channel_id, user_id=user_id
            )
        return channel is not None

    async def insert_channel_message(
        self, *, server_id: str, channel_id: str, author_id: str, content: str
    ) -> StoredMessage:
        async with self._session_factory() as session:
            async with session.begin():
                message = await messages_repo.create(
                    session,
                    server_id=server_id,
                    channel_id=channel_id,
                    author_id=author_id,
                    content=content,
                    timestamp=utcnow(),
                )
        return _message(message)

    async def list_channel_messages(self, *, server_id: str, channel_id: str, limit: int) -> list[StoredMessage]:
        async with self._session_factory() as session:
            rows = await messages_repo.list_for_channel(
                session, server_id=server_id, channel_id=channel_id, limit=limit
            )
        return [_message(row) for row in rows]

    async def get_conversation(self, dm_id: str) -> Conversation | None:
        async with self._session_factory() as session:
            conversation = await dms_repo.get_by_id(session, dm_id)
        return _conversation(conversation) if conversation else None

    async def get_or_create_conversation(self, user_a: str, user_b: str) -> tuple[Conversation, bool]:
        """Return the pair's conversation, creating it if needed.

        A concurrent creator losing the unique-pair race reloads the winner's row.
        """

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    existing = await dms_repo.get_by_pair(session, user_a, user_b)
                    if existing is not None:
                        return _conversation(existing), False
                    created = await dms_repo.create(session, user_a, user_b, created_at=utcnow())
                return _conversation(created), True
        except IntegrityError:
            logger.info("DM between %s and %s created concurrently, reloading", user_a, user_b)
            async with self._session_factory() as session:
                existing = await dms_repo.get_by_pair(session, user_a, user_b)
            if existing is None:
                raise
            return _conversation(existing), False

    async def list_conversations(self, user_id: str, *, message_limit: int) -> list[Conversation]:
        async with self._session_factory() as session:
            conversations = await dms_repo.list_for_user(session, user_id)
            result = []
            for conversation in conversations:
                messages = await dms_repo.list_messages(session, conversation.id, limit=message_limit)
                result.append(_conversation(conversation, messages))
        return result

    async def append_dm_message(self, *, dm_id: str, author_id: str, content: str) -> StoredMessage:
        async with self._session_factory() as session:
            async with session.begin():
                message = await dms_repo.append_message(
                    session, dm_id=dm_id, author_id=author_id, content=content, timestamp=utcnow()
                )
        return _message(message)

    async def list_dm_messages(self, dm_id: str, *, limit: int) -> list[StoredMessage]:
        async with self._session_factory() as session:
            rows = await dms_repo.list_messages(session, dm_id, limit=limit)
        return [_message(row) for row in rows]

    async def find_friend_request_between(self, user_a: str, user_b: str) -> FriendRequestRecord | None:
        async with self._session_factory() as session:
            request = await friends_repo.find_between(session, user_a, user_b)
        return _friend_request(request) if request else None

    async def create_friend_request(self, *, from_id: str, to_id: str) -> FriendRequestRecord:
        async with self._session_factory() as session:
            async with session.begin():
                request = await friends_repo.create(session, from_id=from_id, to_id=to_id, created_at=utcnow())
        return _friend_request(request)

    async def list_pending_friend_requests(self, user_id: str) -> list[FriendRequestRecord]:
        async with self._session_factory() as session:
            requests = await friends_repo.list_pending_for(session, user_id)
        return [_friend_request(request) for request in requests]

    async def accept_friend_request(self, *, request_id: str, user_id: str) -> FriendRequestRecord | None:
        """Accept a request addressed to ``user_id`` and befriend both sides."""

        async with self._session_factory() as session:
            async with session.begin():
                request = await friends_repo.get_by_id(session, request_id)
                if request is None or request.to_id != user_id:
                    return None
                request.status = FriendRequestStatus.ACCEPTED
                session.add(request)
                await users_repo.add_friendship(session, request.to_id, request.from_id)
        return _friend_request(request)


def _profile(user: User) -> UserProfile:
    return UserProfile(id=user.id, username=user.username, avatar=user.avatar)


def _message(row: Message | DMMessage) -> StoredMessage:
    return StoredMessage(id=row.id, content=row.content, author_id=row.author_id, timestamp=row.timestamp)


def _conversation(row: DMConversation, messages: Sequence[DMMessage] = ()) -> Conversation:
    return Conversation(
        id=row.id,
        participants=row.participants,
        created_at=row.created_at,
        messages=tuple(_message(message) for message in messages),
    )


def _friend_request(row: FriendRequest) -> FriendRequestRecord:
    return FriendRequestRecord(
        id=row.id,
        from_id=row.from_id,
        to_id=row.to_id,
        status=FriendRequestStatus(row.status),
        created_at=row.created_at,
    )
