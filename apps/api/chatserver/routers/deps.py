"""Shared FastAPI dependencies."""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status

from ..core.config import settings
from ..services.relay import Relay
from ..services.store import ChatStore, SqlChatStore, UserProfile


@lru_cache
def get_store() -> ChatStore:
    """Return the process-wide SQL-backed store."""

    from ..db.session import SessionLocal

    return SqlChatStore(SessionLocal)


@lru_cache
def get_relay() -> Relay:
    """Return the process-wide realtime relay."""

    return Relay(get_store(), trust_client_servers=settings.trust_client_servers)


async def get_current_user(
    x_user_id: str | None = Header(default=None),
    store: ChatStore = Depends(get_store),
) -> UserProfile:
    """Resolve the caller from the identity header set by the auth layer."""

    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please authenticate")
    user = await store.resolve_user(x_user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please authenticate")
    return user
