"""Realtime event contracts.

Frames travel as ``{"type": <event>, "payload": {...}}`` with camelCase payload
keys. Each inbound event kind has exactly one payload model.
"""
from __future__ import annotations

from datetime import datetime
import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..core.config import settings


class EventModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class InboundEvent(str, enum.Enum):
    JOIN = "join"
    MESSAGE = "message"
    DM_MESSAGE = "dm-message"
    CALL_INITIATE = "call-initiate"
    CALL_ACCEPT = "call-accept"
    CALL_DECLINE = "call-decline"
    CALL_OFFER = "call-offer"
    CALL_ANSWER = "call-answer"
    ICE_CANDIDATE = "ice-candidate"
    CALL_END = "call-end"
    TEST = "test"


class OutboundEvent(str, enum.Enum):
    JOIN_SUCCESS = "join-success"
    MESSAGE = "message"
    DM_MESSAGE = "dm-message"
    INCOMING_CALL = "incoming-call"
    CALL_ACCEPTED = "call-accepted"
    CALL_DECLINED = "call-declined"
    CALL_OFFER = "call-offer"
    CALL_ANSWER = "call-answer"
    ICE_CANDIDATE = "ice-candidate"
    CALL_ENDED = "call-ended"
    FRIEND_REQUEST = "friend-request"
    FRIEND_ACCEPTED = "friend-accepted"
    TEST_RESPONSE = "test-response"
    ERROR = "error"


class Envelope(BaseModel):
    type: str = Field(..., min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)


class CallType(str, enum.Enum):
    VOICE = "voice"
    VIDEO = "video"


# Inbound payloads


class JoinPayload(EventModel):
    user_id: str = Field(..., min_length=1)
    servers: list[str] = Field(default_factory=list)


class _ContentPayload(EventModel):
    content: str
    temp_id: str | None = None

    @field_validator("content")
    @classmethod
    def _check_content(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be empty")
        if len(value) > settings.max_message_length:
            raise ValueError(f"content exceeds {settings.max_message_length} characters")
        return value


class ChannelMessagePayload(_ContentPayload):
    server_id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)


class DirectMessagePayload(_ContentPayload):
    dm_id: str = Field(..., min_length=1)


class CallTargetPayload(EventModel):
    to: str = Field(..., min_length=1)


class CallInitiatePayload(CallTargetPayload):
    call_type: CallType = Field(..., alias="type")


class CallOfferPayload(CallTargetPayload):
    offer: Any


class CallAnswerPayload(CallTargetPayload):
    answer: Any


class IceCandidatePayload(CallTargetPayload):
    candidate: Any


class DiagnosticPayload(EventModel):
    model_config = ConfigDict(extra="allow")


INBOUND_PAYLOADS: dict[InboundEvent, type[EventModel]] = {
    InboundEvent.JOIN: JoinPayload,
    InboundEvent.MESSAGE: ChannelMessagePayload,
    InboundEvent.DM_MESSAGE: DirectMessagePayload,
    InboundEvent.CALL_INITIATE: CallInitiatePayload,
    InboundEvent.CALL_ACCEPT: CallTargetPayload,
    InboundEvent.CALL_DECLINE: CallTargetPayload,
    InboundEvent.CALL_OFFER: CallOfferPayload,
    InboundEvent.CALL_ANSWER: CallAnswerPayload,
    InboundEvent.ICE_CANDIDATE: IceCandidatePayload,
    InboundEvent.CALL_END: CallTargetPayload,
    InboundEvent.TEST: DiagnosticPayload,
}


# Outbound payloads


class AuthorOut(EventModel):
    id: str
    username: str | None = None
    avatar: str | None = None


class ChatMessageOut(EventModel):
    id: str
    content: str
    timestamp: datetime
    author: AuthorOut | None
    temp_id: str | None = None


class ChannelMessageEvent(EventModel):
    server_id: str
    channel_id: str
    message: ChatMessageOut


class DirectMessageEvent(EventModel):
    dm_id: str
    message: ChatMessageOut


class JoinSuccessEvent(EventModel):
    user_id: str
    servers: list[str]


class IncomingCallEvent(EventModel):
    from_: AuthorOut = Field(..., alias="from")
    call_type: CallType = Field(..., alias="type")
    call_id: str


class ErrorEvent(EventModel):
    code: str
    message: str
    event: str | None = None
    temp_id: str | None = None
