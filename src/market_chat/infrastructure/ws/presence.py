"""Process-wide map of online users to their live connection."""
from __future__ import annotations

import logging
import threading
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

H = TypeVar("H")


class PresenceRegistry(Generic[H]):
    """One connection handle per user; the latest join wins.

    A handle that was replaced keeps working until it disconnects, but its
    ``leave`` no longer touches the registry.
    """

    def __init__(self) -> None:
        self._by_user: dict[int, H] = {}
        self._lock = threading.Lock()

    def join(self, user_id: int, handle: H) -> H | None:
        """Register ``handle`` for ``user_id``; return the handle it replaced."""
        with self._lock:
            previous = self._by_user.get(user_id)
            self._by_user[user_id] = handle
        if previous is not None and previous is not handle:
            logger.info("User %s rejoined; previous connection lost presence", user_id)
            return previous
        return None

    def leave(self, handle: H) -> int | None:
        """Drop the entry owned by ``handle``; return its user id if any."""
        with self._lock:
            for user_id, current in self._by_user.items():
                if current is handle:
                    del self._by_user[user_id]
                    return user_id
        return None

    def resolve(self, user_id: int) -> H | None:
        with self._lock:
            return self._by_user.get(user_id)

    def online_users(self) -> list[int]:
        with self._lock:
            return list(self._by_user)

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._by_user

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_user)
