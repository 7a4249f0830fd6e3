"""Typing indicator throttling for one client."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

ThreadKey = tuple[int, int | None]
Emit = Callable[[int, int | None], Awaitable[None]]


class TypingDebouncer:
    """Collapses keystrokes into ``typing`` / ``stopTyping`` signals.

    Per thread ``(receiver_id, product_id)``: at most one ``typing`` per
    ``throttle`` seconds, and a ``stopTyping`` once ``idle`` seconds pass
    without a keystroke.
    """

    def __init__(
        self,
        emit_typing: Emit,
        emit_stop: Emit,
        *,
        throttle: float = 2.0,
        idle: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._emit_typing = emit_typing
        self._emit_stop = emit_stop
        self._throttle = throttle
        self._idle = idle
        self._clock = clock
        self._last_sent: dict[ThreadKey, float] = {}
        self._timers: dict[ThreadKey, asyncio.TimerHandle] = {}
        self._pending: set[asyncio.Task[None]] = set()

    def is_typing(self, receiver_id: int, product_id: int | None = None) -> bool:
        return (receiver_id, product_id) in self._last_sent

    async def keystroke(self, receiver_id: int, product_id: int | None = None) -> None:
        key = (receiver_id, product_id)
        now = self._clock()
        last = self._last_sent.get(key)
        if last is None or now - last >= self._throttle:
            self._last_sent[key] = now
            await self._emit_typing(receiver_id, product_id)

        self._cancel_timer(key)
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self._idle, self._expire, key)

    async def stop(self, receiver_id: int, product_id: int | None = None) -> None:
        key = (receiver_id, product_id)
        self._cancel_timer(key)
        if self._last_sent.pop(key, None) is not None:
            await self._emit_stop(receiver_id, product_id)

    def cancel_all(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._last_sent.clear()

    def _cancel_timer(self, key: ThreadKey) -> None:
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()

    def _expire(self, key: ThreadKey) -> None:
        self._timers.pop(key, None)
        if self._last_sent.pop(key, None) is None:
            return
        task = asyncio.ensure_future(self._emit_stop(*key))
        self._pending.add(task)
        task.add_done_callback(self._on_expired)

    def _on_expired(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Automatic stopTyping failed", exc_info=task.exception())
