"""Friend request repository helpers."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import new_id
from ..models.friend_request import FriendRequest, FriendRequestStatus


async def get_by_id(session: AsyncSession, request_id: str) -> FriendRequest | None:
    return await session.get(FriendRequest, request_id)


async def find_between(session: AsyncSession, user_a: str, user_b: str) -> FriendRequest | None:
    """Return any request between the two users, in either direction."""

    stmt = (
        select(FriendRequest)
        .where(
            or_(
                and_(FriendRequest.from_id == user_a, FriendRequest.to_id == user_b),
                and_(FriendRequest.from_id == user_b, FriendRequest.to_id == user_a),
            )
        )
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create(session: AsyncSession, *, from_id: str, to_id: str, created_at: datetime) -> FriendRequest:
    request = FriendRequest(
        id=new_id(),
        from_id=from_id,
        to_id=to_id,
        status=FriendRequestStatus.PENDING,
        created_at=created_at,
    )
    session.add(request)
    await session.flush()
    return request


async def list_pending_for(session: AsyncSession, user_id: str) -> list[FriendRequest]:
    stmt = (
        select(FriendRequest)
        .where(FriendRequest.to_id == user_id, FriendRequest.status == FriendRequestStatus.PENDING)
        .order_by(FriendRequest.created_at.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars())
