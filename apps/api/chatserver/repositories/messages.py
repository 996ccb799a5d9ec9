"""Channel message persistence."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import new_id
from ..models.message import Message


async def create(
    session: AsyncSession,
    *,
    server_id: str,
    channel_id: str,
    author_id: str,
    content: str,
    timestamp: datetime,
) -> Message:
    """Insert a channel message."""

    message = Message(
        id=new_id(),
        server_id=server_id,
        channel_id=channel_id,
        author_id=author_id,
        content=content,
        timestamp=timestamp,
    )
    session.add(message)
    await session.flush()
    return message


async def list_for_channel(
    session: AsyncSession,
    *,
    server_id: str,
    channel_id: str,
    limit: int,
) -> list[Message]:
    """Return the latest ``limit`` messages of a channel, oldest first."""

    stmt = (
        select(Message)
        .where(Message.server_id == server_id, Message.channel_id == channel_id)
        .order_by(Message.timestamp.desc(), Message.id.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(reversed(result.scalars().all()))
