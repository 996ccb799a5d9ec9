"""Server channel history endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..core.config import settings
from ..schemas.events import ChatMessageOut
from ..services import conversations as conversations_service
from ..services.store import ChatStore, UserProfile
from .deps import get_current_user, get_store

router = APIRouter()


@router.get("/{server_id}/channels/{channel_id}/messages", response_model=list[ChatMessageOut])
async def channel_messages(
    server_id: str,
    channel_id: str,
    user: UserProfile = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
) -> list[ChatMessageOut]:
    """Return recent messages of a channel the caller belongs to."""

    return await conversations_service.channel_history(
        store,
        user=user,
        server_id=server_id,
        channel_id=channel_id,
        limit=settings.history_limit,
    )
