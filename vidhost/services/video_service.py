from __future__ import annotations

import asyncio
from typing import Sequence
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from vidhost.core.config import Settings
from vidhost.core.errors import ExternalStorageFailure, Forbidden, MetadataStoreFailure, NotFound
from vidhost.core.logging import get_logger
from vidhost.core.storage import ObjectStore, StoredObject
from vidhost.db.models import Video
from vidhost.media import (
    THUMBNAIL_CONTENT_TYPES,
    VIDEO_CONTENT_TYPES,
    MediaProber,
    materialize_upload,
    require_content_type,
    scratch_file,
    thumbnail_key,
    video_key,
)


def ensure_owner(video: Video, user_id: str) -> None:
    if video.user_id != user_id:
        raise Forbidden("not_video_owner")


class VideoService:
    def __init__(self, settings: Settings, storage: ObjectStore, session: AsyncSession, prober: MediaProber):
        self.settings = settings
        self.storage = storage
        self.session = session
        self.prober = prober
        self.logger = get_logger(component="video_service")

    # Metadata store

    async def fetch(self, video_id: str) -> Video | None:
        try:
            return await self.session.get(Video, video_id)
        except SQLAlchemyError as exc:
            self.logger.exception("video_fetch_failed", video_id=video_id)
            raise MetadataStoreFailure(str(exc)) from exc

    async def upsert(self, video: Video) -> Video:
        try:
            merged = await self.session.merge(video)
            await self.session.commit()
            await self.session.refresh(merged)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            self.logger.exception("video_upsert_failed", video_id=video.id)
            raise MetadataStoreFailure(str(exc)) from exc
        return merged

    async def require_video(self, video_id: str) -> Video:
        video = await self.fetch(video_id)
        if video is None:
            raise NotFound("video_not_found")
        return video

    async def require_owned_video(self, video_id: str, user_id: str) -> Video:
        video = await self.require_video(video_id)
        ensure_owner(video, user_id)
        return video

    async def create_video(self, *, user_id: str, title: str, description: str | None) -> Video:
        video = Video(id=str(uuid4()), user_id=user_id, title=title, description=description)
        self.logger.info("video_created", video_id=video.id, user_id=user_id)
        return await self.upsert(video)

    async def list_videos(self, user_id: str) -> Sequence[Video]:
        stmt = select(Video).where(Video.user_id == user_id).order_by(Video.created_at.desc(), Video.id)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise MetadataStoreFailure(str(exc)) from exc
        return result.scalars().all()

    async def delete_video(self, video_id: str, user_id: str) -> None:
        video = await self.require_owned_video(video_id, user_id)
        for url in (video.thumbnail_url, video.video_url):
            key = self.storage.key_for_url(url) if url else None
            if key:
                await asyncio.to_thread(self.storage.delete, key)
        try:
            await self.session.delete(video)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise MetadataStoreFailure(str(exc)) from exc
        self.logger.info("video_deleted", video_id=video_id, user_id=user_id)

    # Thumbnails

    async def upload_thumbnail(self, video: Video, upload: UploadFile, *, base_url: str) -> Video:
        """Publish a thumbnail for ``video``, which the caller has already checked with ``require_owned_video``."""
        video_id = video.id
        content_type = require_content_type(upload.content_type, THUMBNAIL_CONTENT_TYPES)
        key = thumbnail_key(video_id, content_type)

        with scratch_file(suffix=f".{key.rsplit('.', 1)[-1]}", directory=self.settings.resolved_scratch_dir) as path:
            await materialize_upload(
                upload,
                path,
                max_bytes=self.settings.max_thumbnail_bytes,
                content_type=content_type,
            )
            await asyncio.to_thread(self.storage.put_file, key, path, content_type=content_type)

        previous_key = self.storage.key_for_url(video.thumbnail_url) if video.thumbnail_url else None
        video.thumbnail_url = self.storage.public_url(key, base_url=base_url)
        updated = await self._commit_published(video, key)
        await self._discard_superseded(previous_key, key)
        return updated

    async def get_thumbnail(self, video_id: str) -> StoredObject:
        video = await self.require_video(video_id)
        key = self.storage.key_for_url(video.thumbnail_url) if video.thumbnail_url else None
        if not key:
            raise NotFound("thumbnail_not_found")
        try:
            return await asyncio.to_thread(self.storage.get, key)
        except FileNotFoundError as exc:
            raise NotFound("thumbnail_not_found") from exc

    # Videos

    async def upload_video(self, video: Video, upload: UploadFile, *, base_url: str) -> Video:
        """Probe, classify and publish a video for an already owner-checked ``video``."""
        video_id = video.id
        content_type = require_content_type(upload.content_type, VIDEO_CONTENT_TYPES)

        with scratch_file(suffix=".mp4", directory=self.settings.resolved_scratch_dir) as path:
            await materialize_upload(
                upload,
                path,
                max_bytes=self.settings.max_video_bytes,
                content_type=content_type,
            )
            dimensions = await asyncio.to_thread(self.prober.probe, path)
            classification = dimensions.classification
            key = video_key(video_id, classification)
            self.logger.info(
                "video_classified",
                video_id=video_id,
                width=dimensions.width,
                height=dimensions.height,
                classification=classification.value,
            )
            await asyncio.to_thread(self.storage.put_file, key, path, content_type=content_type)

        previous_key = self.storage.key_for_url(video.video_url) if video.video_url else None
        video.video_url = self.storage.public_url(key, base_url=base_url)
        updated = await self._commit_published(video, key)
        await self._discard_superseded(previous_key, key)
        return updated

    async def _commit_published(self, video: Video, key: str) -> Video:
        try:
            updated = await self.upsert(video)
        except MetadataStoreFailure:
            self.logger.error("orphaned_asset", video_id=video.id, key=key)
            raise
        self.logger.info("asset_published", video_id=video.id, key=key)
        return updated

    async def _discard_superseded(self, previous_key: str | None, current_key: str) -> None:
        if not previous_key or previous_key == current_key:
            return
        try:
            await asyncio.to_thread(self.storage.delete, previous_key)
        except (ExternalStorageFailure, OSError):
            self.logger.warning("superseded_asset_cleanup_failed", key=previous_key, exc_info=True)
            return
        self.logger.info("superseded_asset_removed", key=previous_key)


__all__ = ["VideoService", "ensure_owner"]
