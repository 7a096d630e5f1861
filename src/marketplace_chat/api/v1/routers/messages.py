from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from marketplace_chat.api.deps import CurrentPrincipal, NotifierDep, UoWDep
from marketplace_chat.api.v1.schemas.message import MessageResponse, SendMessageRequest
from marketplace_chat.application.dto.message import SendMessageDTO
from marketplace_chat.domain.value_objects.enums import OutboundEventType
from marketplace_chat.infrastructure.ws.protocol import message_event
from marketplace_chat.services import message_service

router = APIRouter(prefix="/api/v1/chat", tags=["messages"])


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[MessageResponse]:
    messages = await message_service.list_messages(conversation_id, principal, uow)
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.post("/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    notifier: NotifierDep,
) -> MessageResponse:
    msg = await message_service.send_message(
        principal,
        SendMessageDTO(
            conversation_id=body.conversation_id,
            receiver_id=body.receiver_id,
            content=body.content,
        ),
        uow,
    )
    await notifier.push(msg.receiver_id, message_event(OutboundEventType.NEW_MESSAGE, msg))
    return MessageResponse.model_validate(msg, from_attributes=True)
