from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

SYSTEM_SENDER = "system"


class MessageRecord(BaseModel):
    id: UUID
    match_id: UUID
    seq: int
    sender_id: Optional[UUID] = None
    receiver_id: UUID
    is_system: bool = False
    text: str
    is_read: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}


class MessagePayload(BaseModel):
    """Wire shape of a delivered message, shared by fetch and broadcast."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    match_id: UUID
    seq: int
    text: str
    sender_id: str
    timestamp: datetime
    is_read: bool

    @classmethod
    def from_record(cls, message: MessageRecord) -> "MessagePayload":
        return cls(
            id=message.id,
            match_id=message.match_id,
            seq=message.seq,
            text=message.text,
            sender_id=SYSTEM_SENDER if message.is_system else str(message.sender_id),
            timestamp=message.created_at,
            is_read=message.is_read,
        )


class ConversationMessage(MessagePayload):
    """Fetch view: the wire payload plus the sender relative to the viewer."""

    sender: Literal["user", "match", "system"]

    @classmethod
    def for_viewer(cls, message: MessageRecord, viewer_id: UUID) -> "ConversationMessage":
        if message.is_system:
            sender = "system"
        elif message.sender_id == viewer_id:
            sender = "user"
        else:
            sender = "match"
        base = MessagePayload.from_record(message)
        return cls(**base.model_dump(), sender=sender)


class SendMessageRequest(BaseModel):
    match_id: UUID
    text: str
