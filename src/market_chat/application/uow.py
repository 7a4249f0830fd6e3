from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from market_chat.application.repositories.message import MessageReader, MessageWriter


class UnitOfWork(Protocol):
    messages: MessageReader
    messages_w: MessageWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...

    def savepoint(self) -> AbstractAsyncContextManager[None]:
        """Scope for work whose failure must not spoil the rest of the unit."""
        ...


UnitOfWorkFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
