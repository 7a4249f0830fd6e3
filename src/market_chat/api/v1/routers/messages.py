from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from market_chat.api.deps import CurrentPrincipal, DirectoryDep, UoWDep
from market_chat.api.v1.schemas.common import MessageOut
from market_chat.api.v1.schemas.message import (
    MessageCreateRequest,
    ReplyRequest,
    UnreadCountResponse,
)
from market_chat.application.dto.message import CreateMessageDTO
from market_chat.application.policies.permissions import assert_acting_as, assert_party_to
from market_chat.config import settings
from market_chat.services import message_service
from market_chat.services.summaries import SummaryResolver

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.post("", response_model=MessageOut, status_code=201)
async def create_message(
    body: MessageCreateRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageOut:
    if body.sender_id is not None:
        assert_acting_as(principal, body.sender_id)
    dto = CreateMessageDTO(
        sender_id=body.sender_id,
        receiver_id=body.receiver_id,
        content=body.content,
        product_id=body.product_id,
        replied_to_id=body.replied_to,
    )
    msg = await message_service.create_message(
        dto, uow, allow_self_messages=settings.ALLOW_SELF_MESSAGES,
    )
    return MessageOut.from_message(msg)


@router.post("/reply", response_model=MessageOut, status_code=201)
async def reply(
    body: ReplyRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageOut:
    msg = await message_service.reply_to_message(
        principal,
        body.message_id,
        body.receiver_id,
        body.content,
        body.product_id,
        uow,
        allow_self_messages=settings.ALLOW_SELF_MESSAGES,
    )
    return MessageOut.from_message(msg)


@router.get("/conversation/{user_a}/{user_b}", response_model=list[MessageOut])
async def conversation_history(
    user_a: int,
    user_b: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    directory: DirectoryDep,
    product_id: int | None = Query(None, alias="productId"),
) -> list[MessageOut]:
    assert_party_to(principal, user_a, user_b)
    messages = await message_service.list_conversation(user_a, user_b, product_id, uow)
    summaries = SummaryResolver(directory)
    return [
        MessageOut.from_message(m, product=await summaries.product(m.product_id))
        for m in messages
    ]


@router.get("/inbox/{user_id}", response_model=list[MessageOut])
async def inbox(
    user_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    directory: DirectoryDep,
) -> list[MessageOut]:
    assert_acting_as(principal, user_id)
    messages = await message_service.list_inbox(user_id, uow)
    summaries = SummaryResolver(directory)
    return [
        MessageOut.from_message(
            m,
            sender=await summaries.user(m.sender_id),
            product=await summaries.product(m.product_id),
        )
        for m in messages
    ]


@router.get("/sent/{user_id}", response_model=list[MessageOut])
async def sent(
    user_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    directory: DirectoryDep,
) -> list[MessageOut]:
    assert_acting_as(principal, user_id)
    messages = await message_service.list_sent(user_id, uow)
    summaries = SummaryResolver(directory)
    return [
        MessageOut.from_message(
            m,
            receiver=await summaries.user(m.receiver_id),
            product=await summaries.product(m.product_id),
        )
        for m in messages
    ]


@router.get("/unread/{receiver_id}", response_model=UnreadCountResponse)
async def unread_count(
    receiver_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    sender_id: int = Query(..., alias="senderId"),
    product_id: int | None = Query(None, alias="productId"),
) -> UnreadCountResponse:
    assert_acting_as(principal, receiver_id)
    count = await message_service.count_unread(sender_id, receiver_id, product_id, uow)
    return UnreadCountResponse(
        sender_id=sender_id,
        receiver_id=receiver_id,
        product_id=product_id,
        count=count,
    )


@router.patch("/{message_id}/read", response_model=MessageOut)
async def mark_read(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageOut:
    msg = await message_service.mark_read(message_id, uow, principal=principal)
    return MessageOut.from_message(msg)
