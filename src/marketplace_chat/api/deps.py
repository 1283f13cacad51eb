"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.ports.auth import TokenVerifier
from marketplace_chat.config import settings
from marketplace_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from marketplace_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from marketplace_chat.infrastructure.db.session import AsyncSessionLocal, uow_factory
from marketplace_chat.infrastructure.db.uow import SqlAlchemyUoW
from marketplace_chat.infrastructure.render.fragment import HtmlFragmentRenderer
from marketplace_chat.infrastructure.ws.manager import TopicRegistry
from marketplace_chat.services.channel_service import MessagesChannel

_bearer_scheme = HTTPBearer()


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with AsyncSessionLocal() as session:
        async with SqlAlchemyUoW(session) as uow:
            yield uow


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


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


# One topic registry per process; the channel and the Pub/Sub relay share it.
registry = TopicRegistry()
_channel: MessagesChannel | None = None


def get_registry() -> TopicRegistry:
    return registry


def get_channel() -> MessagesChannel:
    global _channel  # noqa: PLW0603
    if _channel is None:
        _channel = MessagesChannel(
            registry,
            uow_factory,
            HtmlFragmentRenderer(),
            max_length=settings.MESSAGE_MAX_LENGTH,
        )
    return _channel


RegistryDep = Annotated[TopicRegistry, Depends(get_registry)]
ChannelDep = Annotated[MessagesChannel, Depends(get_channel)]
