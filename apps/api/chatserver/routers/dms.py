"""Direct message conversation endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..core.config import settings
from ..schemas import social as social_schema
from ..services import conversations as conversations_service
from ..services.store import ChatStore, UserProfile
from .deps import get_current_user, get_store

router = APIRouter()


@router.get("", response_model=list[social_schema.ConversationOut])
async def list_dms(
    user: UserProfile = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
) -> list[social_schema.ConversationOut]:
    """Return the caller's conversations with recent history."""

    return await conversations_service.list_conversations(store, user=user, limit=settings.history_limit)


@router.post("", response_model=social_schema.ConversationOut)
async def open_dm(
    payload: social_schema.ConversationCreate,
    user: UserProfile = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
) -> social_schema.ConversationOut:
    """Return the conversation with another user, creating it if needed."""

    return await conversations_service.open_conversation(
        store, user=user, other_user_id=payload.user_id, limit=settings.history_limit
    )
