"""Friend request endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..schemas import social as social_schema
from ..services import friends as friends_service
from ..services.relay import Relay
from ..services.store import ChatStore, UserProfile
from .deps import get_current_user, get_relay, get_store

router = APIRouter()


@router.post("/request", response_model=social_schema.FriendRequestOut)
async def send_friend_request(
    payload: social_schema.FriendRequestCreate,
    user: UserProfile = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
    relay: Relay = Depends(get_relay),
) -> social_schema.FriendRequestOut:
    """Send a friend request by username."""

    return await friends_service.send_request(store, relay.notifications, user=user, username=payload.username)


@router.get("/requests", response_model=list[social_schema.FriendRequestOut])
async def list_friend_requests(
    user: UserProfile = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
) -> list[social_schema.FriendRequestOut]:
    """Return pending requests addressed to the caller."""

    return await friends_service.list_requests(store, user=user)


@router.post("/accept", response_model=social_schema.AcceptResponse)
async def accept_friend_request(
    payload: social_schema.FriendRequestAccept,
    user: UserProfile = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
    relay: Relay = Depends(get_relay),
) -> social_schema.AcceptResponse:
    return await friends_service.accept_request(
        store, relay.notifications, user=user, request_id=payload.request_id
    )
