"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from market_chat.application.dto.principal import Principal
from market_chat.application.ports.auth import TokenVerifier
from market_chat.application.ports.directory import Directory
from market_chat.application.uow import UnitOfWork
from market_chat.config import settings
from market_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from market_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from market_chat.infrastructure.db.session import AsyncSessionLocal, open_uow
from market_chat.infrastructure.db.uow import SqlAlchemyUoW
from market_chat.infrastructure.directory.http_directory import HttpMarketplaceDirectory
from market_chat.infrastructure.directory.static_directory import StaticDirectory
from market_chat.infrastructure.ws.gateway import RealtimeGateway
from market_chat.infrastructure.ws.presence import PresenceRegistry

_bearer_scheme = HTTPBearer()


async def get_uow() -> AsyncIterator[UnitOfWork]:
    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session)
        try:
            yield uow
        finally:
            await session.close()


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def _build_directory() -> Directory:
    if settings.MARKETPLACE_API_URL:
        return HttpMarketplaceDirectory.from_url(
            settings.MARKETPLACE_API_URL,
            timeout=settings.MARKETPLACE_API_TIMEOUT,
        )
    return StaticDirectory()


_directory: Directory | None = None


def get_directory() -> Directory:
    global _directory  # noqa: PLW0603
    if _directory is None:
        _directory = _build_directory()
    return _directory


async def close_directory() -> None:
    global _directory  # noqa: PLW0603
    if isinstance(_directory, HttpMarketplaceDirectory):
        await _directory.aclose()
    _directory = None


DirectoryDep = Annotated[Directory, Depends(get_directory)]


_gateway: RealtimeGateway | None = None


def get_gateway() -> RealtimeGateway:
    """Process-wide realtime gateway, created on first use."""
    global _gateway  # noqa: PLW0603
    if _gateway is None:
        _gateway = RealtimeGateway(
            open_uow,
            presence=PresenceRegistry(),
            directory=get_directory(),
            dedup_capacity=settings.DEDUP_CAPACITY,
            allow_self_messages=settings.ALLOW_SELF_MESSAGES,
        )
    return _gateway


GatewayDep = Annotated[RealtimeGateway, Depends(get_gateway)]
