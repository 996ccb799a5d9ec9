"""Direct message conversation models."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id, utcnow


class DMConversation(Base):
    """Conversation between exactly two users.

    The pair is stored ordered (``user_low_id < user_high_id``) so the unique
    constraint keys the unordered participant pair.
    """

    __tablename__ = "dm_conversations"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id"),
        CheckConstraint("user_low_id < user_high_id", name="ordered_pair"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    user_low_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_high_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    messages: Mapped[list["DMMessage"]] = relationship(
        "DMMessage",
        back_populates="conversation",
        order_by="DMMessage.timestamp",
        cascade="all, delete-orphan",
    )

    @property
    def participants(self) -> tuple[str, str]:
        return (self.user_low_id, self.user_high_id)


class DMMessage(Base):
    """Message appended to a DM conversation."""

    __tablename__ = "dm_messages"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    dm_id: Mapped[str] = mapped_column(
        ForeignKey("dm_conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Nullable: rows written before authors were tracked have no author.
    author_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    conversation: Mapped["DMConversation"] = relationship("DMConversation", back_populates="messages")
