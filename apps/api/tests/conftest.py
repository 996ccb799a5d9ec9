"""Shared fixtures: an in-memory store and recording connections."""
from __future__ import annotations

import itertools
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from chatserver.main import app
from chatserver.models.friend_request import FriendRequestStatus
from chatserver.routers.deps import get_relay, get_store
from chatserver.services.relay import Relay
from chatserver.services.store import Conversation, FriendRequestRecord, StoredMessage, UserProfile


class InMemoryStore:
    """Dict-backed ``ChatStore`` for relay and API tests."""

    def __init__(self) -> None:
        self.users: dict[str, UserProfile] = {}
        self.members: dict[str, set[str]] = {}
        self.channels: dict[str, set[str]] = {}
        self.channel_messages: list[tuple[str, str, StoredMessage]] = []
        self.conversations: dict[str, Conversation] = {}
        self.dm_messages: dict[str, list[StoredMessage]] = {}
        self.friend_requests: dict[str, FriendRequestRecord] = {}
        self.friendships: set[tuple[str, str]] = set()
        self._ids = itertools.count(1)

    # Fixture helpers

    def add_user(self, user_id: str, username: str, avatar: str | None = None) -> UserProfile:
        profile = UserProfile(id=user_id, username=username, avatar=avatar)
        self.users[user_id] = profile
        return profile

    def add_server(self, server_id: str, *, channels: Iterable[str], members: Iterable[str]) -> None:
        self.channels[server_id] = set(channels)
        self.members[server_id] = set(members)

    def add_conversation(self, dm_id: str, user_a: str, user_b: str) -> Conversation:
        conversation = Conversation(id=dm_id, participants=(user_a, user_b), created_at=_now())
        self.conversations[dm_id] = conversation
        self.dm_messages[dm_id] = []
        return conversation

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # ChatStore

    async def resolve_user(self, user_id: str) -> UserProfile | None:
        return self.users.get(user_id)

    async def resolve_users(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        return {uid: self.users[uid] for uid in user_ids if uid in self.users}

    async def find_user_by_username(self, username: str) -> UserProfile | None:
        return next((user for user in self.users.values() if user.username == username), None)

    async def member_server_ids(self, user_id: str, server_ids: Sequence[str]) -> set[str]:
        return {sid for sid in server_ids if user_id in self.members.get(sid, set())}

    async def can_post_to_channel(self, *, server_id: str, channel_id: str, user_id: str) -> bool:
        return channel_id in self.channels.get(server_id, set()) and user_id in self.members.get(server_id, set())

    async def insert_channel_message(
        self, *, server_id: str, channel_id: str, author_id: str, content: str
    ) -> StoredMessage:
        message = StoredMessage(id=self._next_id("msg"), content=content, author_id=author_id, timestamp=_now())
        self.channel_messages.append((server_id, channel_id, message))
        return message

    async def list_channel_messages(self, *, server_id: str, channel_id: str, limit: int) -> list[StoredMessage]:
        rows = [m for s, c, m in self.channel_messages if s == server_id and c == channel_id]
        return rows[-limit:]

    async def get_conversation(self, dm_id: str) -> Conversation | None:
        return self.conversations.get(dm_id)

    async def get_or_create_conversation(self, user_a: str, user_b: str) -> tuple[Conversation, bool]:
        for conversation in self.conversations.values():
            if set(conversation.participants) == {user_a, user_b}:
                return conversation, False
        return self.add_conversation(self._next_id("dm"), user_a, user_b), True

    async def list_conversations(self, user_id: str, *, message_limit: int) -> list[Conversation]:
        return [
            replace(conversation, messages=tuple(self.dm_messages[conversation.id][-message_limit:]))
            for conversation in self.conversations.values()
            if user_id in conversation.participants
        ]

    async def append_dm_message(self, *, dm_id: str, author_id: str, content: str) -> StoredMessage:
        message = StoredMessage(id=self._next_id("dm-msg"), content=content, author_id=author_id, timestamp=_now())
        self.dm_messages[dm_id].append(message)
        return message

    async def list_dm_messages(self, dm_id: str, *, limit: int) -> list[StoredMessage]:
        return self.dm_messages.get(dm_id, [])[-limit:]

    async def find_friend_request_between(self, user_a: str, user_b: str) -> FriendRequestRecord | None:
        return next(
            (r for r in self.friend_requests.values() if {r.from_id, r.to_id} == {user_a, user_b}),
            None,
        )

    async def create_friend_request(self, *, from_id: str, to_id: str) -> FriendRequestRecord:
        record = FriendRequestRecord(
            id=self._next_id("fr"),
            from_id=from_id,
            to_id=to_id,
            status=FriendRequestStatus.PENDING,
            created_at=_now(),
        )
        self.friend_requests[record.id] = record
        return record

    async def list_pending_friend_requests(self, user_id: str) -> list[FriendRequestRecord]:
        return [
            r for r in self.friend_requests.values()
            if r.to_id == user_id and r.status is FriendRequestStatus.PENDING
        ]

    async def accept_friend_request(self, *, request_id: str, user_id: str) -> FriendRequestRecord | None:
        record = self.friend_requests.get(request_id)
        if record is None or record.to_id != user_id:
            return None
        record = replace(record, status=FriendRequestStatus.ACCEPTED)
        self.friend_requests[request_id] = record
        self.friendships.update({(record.from_id, record.to_id), (record.to_id, record.from_id)})
        return record


class Recorder:
    """Stands in for a socket: records every frame sent to it."""

    def __init__(self) -> None:
        self.connection_id = ""
        self.frames: list[dict] = []

    async def send(self, message: dict) -> None:
        self.frames.append(message)

    def of_type(self, event: str) -> list[dict]:
        return [frame["payload"] for frame in self.frames if frame["type"] == event]


def frame(event: str, **payload) -> dict:
    return {"type": event, "payload": payload}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.add_user("U1", "alice", "🦊")
    store.add_user("U2", "bob", "🐼")
    store.add_user("U3", "carol")
    store.add_server("S1", channels=["C1"], members=["U1", "U2"])
    store.add_server("S2", channels=["C9"], members=["U3"])
    store.add_conversation("DM1", "U1", "U2")
    return store


@pytest.fixture
def relay(store: InMemoryStore) -> Relay:
    return Relay(store)


@pytest.fixture
def connect(relay: Relay):
    """Factory opening a recorded connection on the relay."""

    def _connect() -> Recorder:
        recorder = Recorder()
        connection = relay.connect(recorder.send)
        recorder.connection_id = connection.connection_id
        return recorder

    return _connect


@pytest.fixture
def override_dependencies(relay: Relay, store: InMemoryStore):
    app.dependency_overrides[get_relay] = lambda: relay
    app.dependency_overrides[get_store] = lambda: store
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client(override_dependencies) -> TestClient:
    with TestClient(app) as test_client:
        yield test_client
