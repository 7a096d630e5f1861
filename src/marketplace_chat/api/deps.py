"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import AuthenticationError
from marketplace_chat.application.ports.auth import TokenVerifier
from marketplace_chat.config import settings
from marketplace_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from marketplace_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from marketplace_chat.infrastructure.db.session import AsyncSessionLocal
from marketplace_chat.infrastructure.db.uow import SqlAlchemyUoW, open_uow
from marketplace_chat.infrastructure.ws.notifier import Notifier
from marketplace_chat.infrastructure.ws.registry import ConnectionRegistry
from marketplace_chat.services.relay_service import UoWFactory

_bearer_scheme = HTTPBearer()


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session)
        try:
            yield uow
        finally:
            await session.close()


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


def get_uow_factory() -> UoWFactory:
    """Live connections open a fresh unit of work per event."""
    return open_uow


UoWFactoryDep = Annotated[UoWFactory, Depends(get_uow_factory)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL, settings.JWT_USER_CLAIM)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM, settings.JWT_USER_CLAIM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


VerifierDep = Annotated[TokenVerifier, Depends(get_verifier)]

_registry = ConnectionRegistry()


def get_registry() -> ConnectionRegistry:
    return _registry


RegistryDep = Annotated[ConnectionRegistry, Depends(get_registry)]


def get_notifier(conn: HTTPConnection, registry: RegistryDep) -> Notifier:
    return Notifier(
        registry,
        getattr(conn.app.state, "publisher", None),
        settings.REDIS_PUBSUB_CHANNEL,
    )


NotifierDep = Annotated[Notifier, Depends(get_notifier)]


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
    verifier: VerifierDep,
) -> Principal:
    try:
        return await verifier.verify(credentials.credentials)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.detail,
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
