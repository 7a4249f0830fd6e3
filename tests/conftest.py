"""Shared test fixtures."""
from __future__ import annotations

import json
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator
from uuid import UUID

import pytest

from market_chat.application.dto.principal import Principal
from market_chat.application.exceptions import PersistenceError
from market_chat.domain.entities.message import Message
from market_chat.domain.value_objects.conversation_key import ConversationKey

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def user_principal() -> Principal:
    return Principal(subject_id=42, roles=[])


@pytest.fixture
def admin_principal() -> Principal:
    return Principal(subject_id=1, roles=["admin"])


class FakeClock:
    """Advances one second per call so ordering never ties."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self._now = start

    def now(self) -> datetime:
        current = self._now
        self._now += timedelta(seconds=1)
        return current


def make_message(
    *,
    sender_id: int = 42,
    receiver_id: int = 7,
    content: str = "hello",
    product_id: int | None = None,
    replied_to_id: UUID | None = None,
    read: bool = False,
    minutes: int = 0,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        product_id=product_id,
        replied_to_id=replied_to_id,
        read=read,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def _newest_first(messages: list[Message]) -> list[Message]:
    return sorted(messages, key=lambda m: (m.created_at, m.id), reverse=True)


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)
    fail_unread_for: set[ConversationKey] = field(default_factory=set)

    async def get_by_id(self, message_id: UUID) -> Message | None:
        return next((m for m in self._messages if m.id == message_id), None)

    async def list_conversation(
        self, user_a: int, user_b: int, *, product_id: int | None = None,
    ) -> list[Message]:
        found = [
            m for m in self._messages
            if {m.sender_id, m.receiver_id} == {user_a, user_b}
            and (product_id is None or m.product_id == product_id)
        ]
        return sorted(found, key=lambda m: (m.created_at, m.id))

    async def list_inbox(self, user_id: int) -> list[Message]:
        return _newest_first([m for m in self._messages if m.receiver_id == user_id])

    async def list_sent(self, user_id: int) -> list[Message]:
        return _newest_first([m for m in self._messages if m.sender_id == user_id])

    async def list_for_user(self, user_id: int) -> list[Message]:
        return _newest_first(
            [m for m in self._messages if user_id in (m.sender_id, m.receiver_id)]
        )

    async def count_unread(
        self, sender_id: int, receiver_id: int, *, product_id: int | None = None,
    ) -> int:
        if ConversationKey(sender_id, product_id) in self.fail_unread_for:
            raise PersistenceError("unread count unavailable")
        return sum(
            1 for m in self._messages
            if m.sender_id == sender_id and m.receiver_id == receiver_id and not m.read
            and (product_id is None or m.product_id == product_id)
        )


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader
    fail_with: Exception | None = None

    async def create(self, message: Message) -> Message:
        if self.fail_with is not None:
            raise self.fail_with
        self._reader._messages.append(message)
        return message

    async def mark_read(self, message_id: UUID) -> Message | None:
        for i, m in enumerate(self._reader._messages):
            if m.id == message_id:
                updated = Message(
                    id=m.id,
                    sender_id=m.sender_id,
                    receiver_id=m.receiver_id,
                    content=m.content,
                    product_id=m.product_id,
                    replied_to_id=m.replied_to_id,
                    read=True,
                    created_at=m.created_at,
                )
                self._reader._messages[i] = updated
                return updated
        return None


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    _committed: bool = False
    _commits: int = 0
    _savepoints: int = 0

    def __post_init__(self) -> None:
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True
        self._commits += 1

    async def rollback(self) -> None:
        pass

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        self._savepoints += 1
        yield


def fake_uow_factory(uow: FakeUoW):
    @asynccontextmanager
    async def _open() -> AsyncIterator[FakeUoW]:
        yield uow

    return _open


class FakeSocket:
    """Records frames written by the gateway."""

    def __init__(self, *, broken: bool = False) -> None:
        self.accepted = False
        self.broken = broken
        self.sent: list[dict[str, Any]] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(data))

    def of_type(self, event: str) -> list[dict[str, Any]]:
        return [f["data"] for f in self.sent if f["type"] == event]

    @property
    def types(self) -> list[str]:
        return [f["type"] for f in self.sent]


@dataclass
class RecordingPublisher:
    published: list[tuple[int, str, dict[str, Any]]] = field(default_factory=list)

    async def publish_relay(self, target_user_id: int, event_type: str, data: dict[str, Any]) -> None:
        self.published.append((target_user_id, event_type, data))
