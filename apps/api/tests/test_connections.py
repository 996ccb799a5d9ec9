"""Tests for the connection registry and room manager."""
from __future__ import annotations

import pytest

from chatserver.services.connections import ConnectionRegistry, deliver
from chatserver.services.rooms import RoomManager, room_for_server, room_for_user


class DummyConnection:
    def __init__(self) -> None:
        self.messages: list[dict] = []

    async def send(self, message: dict) -> None:
        self.messages.append(message)


class BrokenConnection:
    async def send(self, message: dict) -> None:
        raise ConnectionResetError("socket closed")


def test_connect_starts_unauthenticated():
    registry = ConnectionRegistry()
    connection = registry.connect(DummyConnection().send)

    assert connection.user_id is None
    assert not connection.authenticated
    assert connection.connection_id in registry
    assert len(registry) == 1


def test_bind_identity_indexes_every_connection_of_a_user():
    registry = ConnectionRegistry()
    first = registry.connect(DummyConnection().send, "c1")
    second = registry.connect(DummyConnection().send, "c2")

    registry.bind_identity("c1", "U1")
    registry.bind_identity("c2", "U1")

    found = {c.connection_id for c in registry.find_connections_by_user("U1")}
    assert found == {first.connection_id, second.connection_id}


def test_rebinding_moves_connection_to_new_user():
    registry = ConnectionRegistry()
    registry.connect(DummyConnection().send, "c1")

    registry.bind_identity("c1", "U1")
    registry.bind_identity("c1", "U1")
    assert [c.connection_id for c in registry.find_connections_by_user("U1")] == ["c1"]

    registry.bind_identity("c1", "U2")
    assert registry.find_connections_by_user("U1") == []
    assert [c.connection_id for c in registry.find_connections_by_user("U2")] == ["c1"]


def test_bind_identity_unknown_connection_raises():
    registry = ConnectionRegistry()

    with pytest.raises(KeyError):
        registry.bind_identity("missing", "U1")


def test_disconnect_removes_from_user_index():
    registry = ConnectionRegistry()
    registry.connect(DummyConnection().send, "c1")
    registry.connect(DummyConnection().send, "c2")
    registry.bind_identity("c1", "U1")
    registry.bind_identity("c2", "U1")

    removed = registry.disconnect("c1")

    assert removed is not None and removed.user_id == "U1"
    assert [c.connection_id for c in registry.find_connections_by_user("U1")] == ["c2"]
    assert registry.disconnect("c1") is None

    registry.disconnect("c2")
    assert registry.find_connections_by_user("U1") == []
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_deliver_survives_a_failing_connection():
    registry = ConnectionRegistry()
    healthy = DummyConnection()
    good = registry.connect(healthy.send, "good")
    bad = registry.connect(BrokenConnection().send, "bad")

    delivered = await deliver([bad, good], "message", {"x": 1})

    assert delivered == 1
    assert healthy.messages == [{"type": "message", "payload": {"x": 1}}]


def test_join_subscribes_user_room_and_server_rooms():
    registry = ConnectionRegistry()
    registry.connect(DummyConnection().send, "c1")
    rooms = RoomManager(registry)

    joined = rooms.join("c1", "U1", ["S1", "S2", "S1"])

    assert joined == ["user:U1", "server:S1", "server:S2"]
    assert rooms.rooms_for("c1") == {"user:U1", "server:S1", "server:S2"}


def test_rejoin_replaces_previous_rooms():
    registry = ConnectionRegistry()
    registry.connect(DummyConnection().send, "c1")
    rooms = RoomManager(registry)

    rooms.join("c1", "U1", ["S1"])
    rooms.join("c1", "U1", ["S2"])

    assert rooms.rooms_for("c1") == {room_for_user("U1"), room_for_server("S2")}
    assert rooms.members(room_for_server("S1")) == []


def test_leave_all_clears_memberships():
    registry = ConnectionRegistry()
    registry.connect(DummyConnection().send, "c1")
    rooms = RoomManager(registry)
    rooms.join("c1", "U1", ["S1"])

    left = rooms.leave_all("c1")

    assert left == {"user:U1", "server:S1"}
    assert rooms.rooms_for("c1") == frozenset()
    assert rooms.members("server:S1") == []
    assert rooms.leave_all("c1") == set()


@pytest.mark.asyncio
async def test_emit_reaches_each_member_once():
    registry = ConnectionRegistry()
    a, b, outsider = DummyConnection(), DummyConnection(), DummyConnection()
    registry.connect(a.send, "a")
    registry.connect(b.send, "b")
    registry.connect(outsider.send, "c")
    rooms = RoomManager(registry)
    rooms.join("a", "U1", ["S1"])
    rooms.join("b", "U2", ["S1"])
    rooms.join("c", "U3", ["S2"])

    delivered = await rooms.emit("server:S1", "message", {"n": 1})

    assert delivered == 2
    assert a.messages == [{"type": "message", "payload": {"n": 1}}]
    assert b.messages == [{"type": "message", "payload": {"n": 1}}]
    assert outsider.messages == []


@pytest.mark.asyncio
async def test_emit_skips_disconnected_members():
    registry = ConnectionRegistry()
    a = DummyConnection()
    registry.connect(a.send, "a")
    rooms = RoomManager(registry)
    rooms.join("a", "U1", ["S1"])
    registry.disconnect("a")

    assert await rooms.emit("server:S1", "message", {}) == 0
    assert a.messages == []


def test_disconnect_unbound_connection_leaves_index_untouched():
    registry = ConnectionRegistry()
    registry.connect(DummyConnection().send, "anon")
    registry.connect(DummyConnection().send, "c1")
    registry.bind_identity("c1", "U1")

    removed = registry.disconnect("anon")

    assert removed is not None and removed.user_id is None
    assert [c.connection_id for c in registry.find_connections_by_user("U1")] == ["c1"]
