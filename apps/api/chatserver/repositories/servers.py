"""Server membership and channel lookups."""
from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.server import Channel, server_members


async def member_server_ids(session: AsyncSession, user_id: str, server_ids: Sequence[str]) -> set[str]:
    """Return the subset of ``server_ids`` the user is a member of."""

    if not server_ids:
        return set()
    stmt = select(server_members.c.server_id).where(
        server_members.c.user_id == user_id,
        server_members.c.server_id.in_(set(server_ids)),
    )
    result = await session.execute(stmt)
    return set(result.scalars())


async def member_channel(
    session: AsyncSession,
    *,
    server_id: str,
    channel_id: str,
    user_id: str,
) -> Channel | None:
    """Return the channel if it belongs to the server and the user is a member of that server."""

    stmt = (
        select(Channel)
        .join(server_members, server_members.c.server_id == Channel.server_id)
        .where(
            Channel.id == channel_id,
            Channel.server_id == server_id,
            server_members.c.user_id == user_id,
        )
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
