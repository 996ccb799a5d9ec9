"""Message history and direct-message conversation lookups."""
from __future__ import annotations

from dataclasses import replace

from fastapi import HTTPException, status

from ..schemas import events as event_schemas
from ..schemas import social as schemas
from .messaging import author_out, build_message_out
from .store import ChatStore, Conversation, UserProfile


async def channel_history(
    store: ChatStore,
    *,
    user: UserProfile,
    server_id: str,
    channel_id: str,
    limit: int,
) -> list[event_schemas.ChatMessageOut]:
    """Return the latest channel messages, oldest first."""

    allowed = await store.can_post_to_channel(server_id=server_id, channel_id=channel_id, user_id=user.id)
    if not allowed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found")

    messages = await store.list_channel_messages(server_id=server_id, channel_id=channel_id, limit=limit)
    authors = await store.resolve_users({m.author_id for m in messages if m.author_id})
    return [build_message_out(message, authors.get(message.author_id or "")) for message in messages]


async def list_conversations(store: ChatStore, *, user: UserProfile, limit: int) -> list[schemas.ConversationOut]:
    """Return the user's DM conversations, newest first."""

    conversations = await store.list_conversations(user.id, message_limit=limit)
    user_ids = {pid for conversation in conversations for pid in conversation.participants}
    user_ids.update(m.author_id for c in conversations for m in c.messages if m.author_id)
    profiles = await store.resolve_users(user_ids)
    return [_conversation_out(conversation, profiles) for conversation in conversations]


async def open_conversation(
    store: ChatStore,
    *,
    user: UserProfile,
    other_user_id: str,
    limit: int,
) -> schemas.ConversationOut:
    """Return the conversation with ``other_user_id``, creating it on first use."""

    if other_user_id == user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot open a DM with yourself")
    if await store.resolve_user(other_user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    conversation, created = await store.get_or_create_conversation(user.id, other_user_id)
    if not created:
        messages = await store.list_dm_messages(conversation.id, limit=limit)
        conversation = replace(conversation, messages=tuple(messages))

    user_ids = set(conversation.participants)
    user_ids.update(m.author_id for m in conversation.messages if m.author_id)
    profiles = await store.resolve_users(user_ids)
    return _conversation_out(conversation, profiles)


def _conversation_out(conversation: Conversation, profiles: dict[str, UserProfile]) -> schemas.ConversationOut:
    # Messages without a resolvable author are omitted.
    messages = [
        build_message_out(message, profiles[message.author_id])
        for message in conversation.messages
        if message.author_id and message.author_id in profiles
    ]
    return schemas.ConversationOut(
        id=conversation.id,
        participants=[author_out(profiles[pid]) for pid in conversation.participants if pid in profiles],
        created_at=conversation.created_at,
        messages=messages,
    )
