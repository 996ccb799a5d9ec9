"""Data contracts for friend and direct-message endpoints."""
from __future__ import annotations

from datetime import datetime

from pydantic import Field

from ..models.friend_request import FriendRequestStatus
from .events import AuthorOut, ChatMessageOut, EventModel


class FriendRequestCreate(EventModel):
    username: str = Field(..., min_length=1, description="Username of the user to befriend")


class FriendRequestAccept(EventModel):
    request_id: str = Field(..., min_length=1)


class FriendRequestOut(EventModel):
    id: str
    from_: AuthorOut = Field(..., alias="from")
    to: str
    status: FriendRequestStatus
    created_at: datetime


class AcceptResponse(EventModel):
    success: bool = True


class ConversationCreate(EventModel):
    user_id: str = Field(..., min_length=1, description="The other participant")


class ConversationOut(EventModel):
    id: str
    participants: list[AuthorOut]
    created_at: datetime
    messages: list[ChatMessageOut] = Field(default_factory=list)
