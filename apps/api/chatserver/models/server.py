"""Server (guild) and channel models."""
from __future__ import annotations

from datetime import datetime
import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id, utcnow

server_members = Table(
    "server_members",
    Base.metadata,
    Column("server_id", ForeignKey("servers.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True),
)


class ChannelKind(str, enum.Enum):
    TEXT = "text"
    VOICE = "voice"


class Server(Base):
    """A group of members sharing a set of channels."""

    __tablename__ = "servers"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    icon: Mapped[str | None] = mapped_column(String)
    owner_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    channels: Mapped[list["Channel"]] = relationship(
        "Channel", back_populates="server", cascade="all, delete-orphan"
    )


class Channel(Base):
    """Named channel inside a server."""

    __tablename__ = "channels"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    server_id: Mapped[str] = mapped_column(ForeignKey("servers.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    kind: Mapped[ChannelKind] = mapped_column(
        Enum(ChannelKind, name="channel_kind"), default=ChannelKind.TEXT, nullable=False
    )

    server: Mapped["Server"] = relationship("Server", back_populates="channels")
