from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from marketplace_chat.api.deps import CurrentPrincipal, UoWDep
from marketplace_chat.api.v1.schemas.conversation import (
    ConversationResponse,
    CreateConversationRequest,
)
from marketplace_chat.services import conversation_service

router = APIRouter(prefix="/api/v1/chat/conversations", tags=["conversations"])


@router.post("", response_model=ConversationResponse)
async def get_or_create_conversation(
    body: CreateConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.get_or_create_conversation(
        principal, body.other_user_id, uow,
    )
    return ConversationResponse.model_validate(conv, from_attributes=True)


@router.get("", response_model=list[ConversationResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[ConversationResponse]:
    convs = await conversation_service.list_user_conversations(principal, uow)
    return [ConversationResponse.model_validate(c, from_attributes=True) for c in convs]


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.get_conversation(conversation_id, principal, uow)
    return ConversationResponse.model_validate(conv, from_attributes=True)
