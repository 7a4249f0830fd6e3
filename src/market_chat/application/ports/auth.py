from __future__ import annotations

from typing import Protocol

from market_chat.application.dto.principal import Principal


class TokenVerifier(Protocol):
    """Turns a marketplace bearer token into a Principal; raises if it is invalid."""

    async def verify(self, token: str) -> Principal: ...
