"""Async engine and session factory for the chat store."""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..core.config import Settings, settings


def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine described by ``config``."""

    connect_args: dict[str, object] = {"ssl": True} if config.database_ssl_required else {}
    return create_async_engine(
        config.database_url,
        echo=config.database_echo,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


engine = build_engine(settings)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
