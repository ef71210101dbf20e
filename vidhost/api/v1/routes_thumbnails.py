from __future__ import annotations

from fastapi import APIRouter, Request, Response

from vidhost.api import deps
from vidhost.core.logging import get_logger
from vidhost.media import require_declared_length, require_file_field

from . import schemas


router = APIRouter(tags=["thumbnails"])
logger = get_logger(component="thumbnails_api")

THUMBNAIL_FIELD = "thumbnail"


@router.get(
    "/thumbnails/{video_id}",
    response_class=Response,
    responses={200: {"content": {"image/jpeg": {}, "image/png": {}}}, 404: {"model": schemas.ErrorResponse}},
)
async def get_thumbnail(video_id: deps.VideoId, service: deps.VideoServiceDependency) -> Response:
    stored = await service.get_thumbnail(video_id)
    return Response(
        content=stored.data,
        media_type=stored.content_type,
        headers={"Cache-Control": "no-store"},
    )


@router.post(
    "/thumbnail_upload/{video_id}",
    response_model=schemas.VideoResponse,
    responses={400: {"model": schemas.ErrorResponse}, 403: {"model": schemas.ErrorResponse}},
)
async def upload_thumbnail(
    video_id: deps.VideoId,
    context: deps.AuthDependency,
    service: deps.VideoServiceDependency,
    request: Request,
) -> schemas.VideoResponse:
    logger.info("thumbnail_upload_started", video_id=video_id, user_id=context.user_id)
    video = await service.require_owned_video(video_id, context.user_id)
    require_declared_length(request.headers.get("content-length"), service.settings.max_thumbnail_bytes)
    async with request.form() as form:
        upload = require_file_field(form.get(THUMBNAIL_FIELD))
        video = await service.upload_thumbnail(
            video,
            upload,
            base_url=deps.request_base_url(request),
        )
    return schemas.VideoResponse.model_validate(video)


__all__ = ["router"]
