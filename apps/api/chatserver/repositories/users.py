"""User repository helpers."""
from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import Select, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User, friendships


async def get_by_id(session: AsyncSession, user_id: str) -> User | None:
    """Return a user by identifier."""

    return await session.get(User, user_id)


async def get_by_username(session: AsyncSession, username: str) -> User | None:
    """Return a user by exact username."""

    stmt: Select[tuple[User]] = select(User).where(User.username == username)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_many(session: AsyncSession, user_ids: Sequence[str]) -> list[User]:
    """Return every known user among ``user_ids``."""

    if not user_ids:
        return []
    result = await session.execute(select(User).where(User.id.in_(set(user_ids))))
    return list(result.scalars())


async def add_friendship(session: AsyncSession, user_id: str, friend_id: str) -> None:
    """Record a symmetric friendship, skipping rows that already exist."""

    stmt = select(friendships.c.user_id, friendships.c.friend_id).where(
        friendships.c.user_id.in_((user_id, friend_id)),
        friendships.c.friend_id.in_((user_id, friend_id)),
    )
    existing = {tuple(row) for row in (await session.execute(stmt)).all()}

    rows = [
        {"user_id": a, "friend_id": b}
        for a, b in ((user_id, friend_id), (friend_id, user_id))
        if (a, b) not in existing
    ]
    if rows:
        await session.execute(insert(friendships), rows)
