from __future__ import annotations

from fastapi import APIRouter

from market_chat.api.deps import CurrentPrincipal, DirectoryDep, UoWDep
from market_chat.api.v1.schemas.conversation import ConversationResponse
from market_chat.application.policies.permissions import assert_acting_as
from market_chat.services import conversation_service

router = APIRouter(prefix="/api/v1/messages", tags=["conversations"])


@router.get("/conversations/{user_id}", response_model=list[ConversationResponse])
async def list_conversations(
    user_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    directory: DirectoryDep,
) -> list[ConversationResponse]:
    assert_acting_as(principal, user_id)
    convs = await conversation_service.list_conversations(user_id, uow, directory)
    return [ConversationResponse.from_conversation(c) for c in convs]
