"""Tests for direct-message conversation and channel history endpoints."""
from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from chatserver.main import app


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")


@pytest.mark.asyncio
async def test_list_dms_returns_participants_and_history(override_dependencies, store):
    await store.append_dm_message(dm_id="DM1", author_id="U2", content="hello")

    async with _client() as client:
        response = await client.get("/api/dms", headers={"X-User-Id": "U1"})

    assert response.status_code == 200
    (conversation,) = response.json()
    assert conversation["id"] == "DM1"
    assert {p["id"] for p in conversation["participants"]} == {"U1", "U2"}
    assert [m["content"] for m in conversation["messages"]] == ["hello"]
    assert conversation["messages"][0]["author"]["username"] == "bob"


@pytest.mark.asyncio
async def test_list_dms_excludes_other_users_conversations(override_dependencies):
    async with _client() as client:
        response = await client.get("/api/dms", headers={"X-User-Id": "U3"})

    assert response.json() == []


@pytest.mark.asyncio
async def test_open_dm_returns_existing_conversation(override_dependencies, store):
    await store.append_dm_message(dm_id="DM1", author_id="U1", content="first")

    async with _client() as client:
        response = await client.post("/api/dms", json={"userId": "U1"}, headers={"X-User-Id": "U2"})

    assert response.status_code == 200
    assert response.json()["id"] == "DM1"
    assert [m["content"] for m in response.json()["messages"]] == ["first"]


@pytest.mark.asyncio
async def test_open_dm_creates_conversation_once(override_dependencies, store):
    async with _client() as client:
        first = await client.post("/api/dms", json={"userId": "U3"}, headers={"X-User-Id": "U1"})
        second = await client.post("/api/dms", json={"userId": "U1"}, headers={"X-User-Id": "U3"})

    assert first.status_code == 200
    assert first.json()["id"] == second.json()["id"]
    assert first.json()["messages"] == []
    assert len(store.conversations) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("other", "status_code"),
    [("U1", 400), ("nobody", 404)],
)
async def test_open_dm_rejections(override_dependencies, other, status_code):
    async with _client() as client:
        response = await client.post("/api/dms", json={"userId": other}, headers={"X-User-Id": "U1"})

    assert response.status_code == status_code


@pytest.mark.asyncio
async def test_channel_history_oldest_first(override_dependencies, store):
    for content in ("one", "two", "three"):
        await store.insert_channel_message(server_id="S1", channel_id="C1", author_id="U1", content=content)

    async with _client() as client:
        response = await client.get("/api/servers/S1/channels/C1/messages", headers={"X-User-Id": "U2"})

    assert response.status_code == 200
    assert [m["content"] for m in response.json()] == ["one", "two", "three"]
    assert response.json()[0]["author"]["username"] == "alice"


@pytest.mark.asyncio
async def test_channel_history_hidden_from_non_members(override_dependencies):
    async with _client() as client:
        response = await client.get("/api/servers/S1/channels/C1/messages", headers={"X-User-Id": "U3"})

    assert response.status_code == 404
    assert response.json() == {"detail": "Channel not found"}
