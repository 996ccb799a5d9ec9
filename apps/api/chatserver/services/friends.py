"""Friend request workflow with realtime notification hooks."""
from __future__ import annotations

from fastapi import HTTPException, status

from ..schemas import social as schemas
from .messaging import author_out
from .notifications import NotificationHooks
from .store import ChatStore, FriendRequestRecord, UserProfile


async def send_request(
    store: ChatStore,
    hooks: NotificationHooks,
    *,
    user: UserProfile,
    username: str,
) -> schemas.FriendRequestOut:
    """Create a pending request and push ``friend-request`` to the target if online."""

    target = await store.find_user_by_username(username)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if target.id == user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot add yourself")

    existing = await store.find_friend_request_between(user.id, target.id)
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request already exists")

    record = await store.create_friend_request(from_id=user.id, to_id=target.id)
    request = _request_out(record, user)
    await hooks.friend_request(target.id, request.to_payload())
    return request


async def list_requests(store: ChatStore, *, user: UserProfile) -> list[schemas.FriendRequestOut]:
    """Return pending requests addressed to the user."""

    records = await store.list_pending_friend_requests(user.id)
    senders = await store.resolve_users({record.from_id for record in records})
    return [
        _request_out(record, senders[record.from_id])
        for record in records
        if record.from_id in senders
    ]


async def accept_request(
    store: ChatStore,
    hooks: NotificationHooks,
    *,
    user: UserProfile,
    request_id: str,
) -> schemas.AcceptResponse:
    """Accept a request and tell the original sender."""

    record = await store.accept_friend_request(request_id=request_id, user_id=user.id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")

    await hooks.friend_accepted(record.from_id, user.id)
    return schemas.AcceptResponse()


def _request_out(record: FriendRequestRecord, sender: UserProfile) -> schemas.FriendRequestOut:
    return schemas.FriendRequestOut(
        id=record.id,
        from_=author_out(sender),
        to=record.to_id,
        status=record.status,
        created_at=record.created_at,
    )
