from __future__ import annotations

from typing import Any, Protocol


class RelayPublisher(Protocol):
    """Hands relays for users connected elsewhere to the other gateway processes."""

    async def publish_relay(self, target_user_id: int, event_type: str, data: dict[str, Any]) -> None: ...
