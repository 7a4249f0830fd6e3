from __future__ import annotations

from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from market_chat.domain.entities.message import Message
from market_chat.infrastructure.db.errors import translate_db_errors
from market_chat.infrastructure.db.mappers import message as mapper
from market_chat.infrastructure.db.models.message import MessageModel


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, message_id: UUID) -> Message | None:
        with translate_db_errors("get"):
            result = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(result) if result else None

    async def list_conversation(
        self,
        user_a: int,
        user_b: int,
        *,
        product_id: int | None = None,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(
                or_(
                    and_(MessageModel.sender_id == user_a, MessageModel.receiver_id == user_b),
                    and_(MessageModel.sender_id == user_b, MessageModel.receiver_id == user_a),
                )
            )
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        if product_id is not None:
            stmt = stmt.where(MessageModel.product_id == product_id)
        return await self._fetch(stmt, "list_conversation")

    async def list_inbox(self, user_id: int) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.receiver_id == user_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
        )
        return await self._fetch(stmt, "list_inbox")

    async def list_sent(self, user_id: int) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.sender_id == user_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
        )
        return await self._fetch(stmt, "list_sent")

    async def list_for_user(self, user_id: int) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(or_(MessageModel.sender_id == user_id, MessageModel.receiver_id == user_id))
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
        )
        return await self._fetch(stmt, "list_for_user")

    async def count_unread(
        self,
        sender_id: int,
        receiver_id: int,
        *,
        product_id: int | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(MessageModel).where(
            MessageModel.sender_id == sender_id,
            MessageModel.receiver_id == receiver_id,
            MessageModel.read.is_(False),
        )
        if product_id is not None:
            stmt = stmt.where(MessageModel.product_id == product_id)
        with translate_db_errors("count_unread"):
            result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def _fetch(self, stmt, operation: str) -> list[Message]:
        with translate_db_errors(operation):
            result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, message: Message) -> Message:
        model = mapper.entity_to_model(message)
        with translate_db_errors("create"):
            self._session.add(model)
            await self._session.flush()
        return mapper.model_to_entity(model)

    async def mark_read(self, message_id: UUID) -> Message | None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        with translate_db_errors("mark_read"):
            await self._session.execute(stmt)
            model = await self._session.get(MessageModel, message_id, populate_existing=True)
        return mapper.model_to_entity(model) if model else None
