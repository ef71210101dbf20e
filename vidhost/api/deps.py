from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vidhost.core.auth import AuthContext, get_auth_context
from vidhost.core.config import Settings, get_settings
from vidhost.core.storage import ObjectStore
from vidhost.media import MediaProber, require_video_id
from vidhost.services.video_service import VideoService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):  # pragma: no cover
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_storage(request: Request) -> ObjectStore:
    storage: ObjectStore = request.app.state.storage
    return storage


def get_prober(request: Request) -> MediaProber:
    prober: MediaProber = request.app.state.prober
    return prober


def get_app_settings() -> Settings:
    return get_settings()


def get_video_id(video_id: str) -> str:
    return require_video_id(video_id)


async def get_video_service(
    session: AsyncSession = Depends(get_session),
    storage: ObjectStore = Depends(get_storage),
    prober: MediaProber = Depends(get_prober),
    settings: Settings = Depends(get_app_settings),
) -> AsyncIterator[VideoService]:
    yield VideoService(settings, storage, session, prober)


# Declared first on a route so a malformed id is rejected before authentication runs.
VideoId = Annotated[str, Depends(get_video_id)]
VideoServiceDependency = Annotated[VideoService, Depends(get_video_service)]
AuthDependency = Annotated[AuthContext, Depends(get_auth_context)]


def request_base_url(request: Request) -> str:
    return str(request.base_url)


__all__ = [
    "get_session",
    "get_storage",
    "get_prober",
    "get_app_settings",
    "get_video_id",
    "get_video_service",
    "request_base_url",
    "VideoId",
    "VideoServiceDependency",
    "AuthDependency",
]
