"""Direct message conversation repository helpers."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import new_id
from ..models.direct_message import DMConversation, DMMessage


def ordered_pair(user_a: str, user_b: str) -> tuple[str, str]:
    """Return the participant pair in storage order."""

    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


async def get_by_id(session: AsyncSession, dm_id: str) -> DMConversation | None:
    return await session.get(DMConversation, dm_id)


async def get_by_pair(session: AsyncSession, user_a: str, user_b: str) -> DMConversation | None:
    """Return the conversation for an unordered participant pair."""

    low, high = ordered_pair(user_a, user_b)
    stmt = select(DMConversation).where(
        DMConversation.user_low_id == low,
        DMConversation.user_high_id == high,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create(session: AsyncSession, user_a: str, user_b: str, *, created_at: datetime) -> DMConversation:
    low, high = ordered_pair(user_a, user_b)
    conversation = DMConversation(id=new_id(), user_low_id=low, user_high_id=high, created_at=created_at)
    session.add(conversation)
    await session.flush()
    return conversation


async def list_for_user(session: AsyncSession, user_id: str) -> list[DMConversation]:
    """Return the user's conversations, newest first."""

    stmt = (
        select(DMConversation)
        .where(or_(DMConversation.user_low_id == user_id, DMConversation.user_high_id == user_id))
        .order_by(DMConversation.created_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars())


async def append_message(
    session: AsyncSession,
    *,
    dm_id: str,
    author_id: str,
    content: str,
    timestamp: datetime,
) -> DMMessage:
    message = DMMessage(id=new_id(), dm_id=dm_id, author_id=author_id, content=content, timestamp=timestamp)
    session.add(message)
    await session.flush()
    return message


async def list_messages(session: AsyncSession, dm_id: str, *, limit: int) -> list[DMMessage]:
    """Return the latest ``limit`` messages of a conversation, oldest first."""

    stmt = (
        select(DMMessage)
        .where(DMMessage.dm_id == dm_id)
        .order_by(DMMessage.timestamp.desc(), DMMessage.id.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(reversed(result.scalars().all()))
