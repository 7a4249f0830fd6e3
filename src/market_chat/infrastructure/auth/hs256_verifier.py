from __future__ import annotations

from typing import Any

import jwt

from market_chat.application.dto.principal import Principal


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    roles = payload.get("roles") or []
    if payload.get("role") and payload["role"] not in roles:
        roles = [*roles, payload["role"]]
    return Principal(subject_id=int(payload["sub"]), roles=list(roles))


class HS256Verifier:
    """Verify marketplace JWTs signed with a shared HS256 secret."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        return principal_from_claims(payload)
