"""
LoveConnect — Messages API

HTTP counterpart of the ``/chat`` socket: messages sent here are persisted
through the same service and broadcast to the match room.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status

from app.api.deps import get_conversation_service
from app.auth import get_current_user_id
from app.schemas.message import ConversationMessage, MessagePayload, SendMessageRequest
from app.services.conversation_service import ConversationService

router = APIRouter()


@router.post(
    "",
    response_model=MessagePayload,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message to a match",
)
async def send_message(
    body: SendMessageRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> MessagePayload:
    message = await service.append_message(body.match_id, user_id, body.text)
    return MessagePayload.from_record(message)


@router.get(
    "/{match_id}",
    response_model=list[ConversationMessage],
    response_model_by_alias=True,
    summary="Fetch a conversation and mark it read",
)
async def get_messages(
    match_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> list[ConversationMessage]:
    """Return every message of the match in order.

    Messages addressed to the caller are marked read before the list is
    built, so the response already shows them as read.
    """
    messages = await service.list_messages(match_id, user_id)
    return [ConversationMessage.for_viewer(m, user_id) for m in messages]
