from __future__ import annotations

from fastapi import APIRouter, Request, Response, status

from vidhost.api import deps
from vidhost.core.logging import get_logger
from vidhost.media import require_declared_length, require_file_field

from . import schemas


router = APIRouter(tags=["videos"])
logger = get_logger(component="videos_api")

VIDEO_FIELD = "video"


@router.post("/videos", response_model=schemas.VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    context: deps.AuthDependency,
    service: deps.VideoServiceDependency,
) -> schemas.VideoResponse:
    video = await service.create_video(user_id=context.user_id, title=payload.title, description=payload.description)
    return schemas.VideoResponse.model_validate(video)


@router.get("/videos", response_model=schemas.VideoListResponse)
async def list_videos(context: deps.AuthDependency, service: deps.VideoServiceDependency) -> schemas.VideoListResponse:
    videos = await service.list_videos(context.user_id)
    return schemas.VideoListResponse(videos=[schemas.VideoResponse.model_validate(video) for video in videos])


@router.get("/videos/{video_id}", response_model=schemas.VideoResponse, responses={404: {"model": schemas.ErrorResponse}})
async def get_video(video_id: deps.VideoId, service: deps.VideoServiceDependency) -> schemas.VideoResponse:
    video = await service.require_video(video_id)
    return schemas.VideoResponse.model_validate(video)


@router.delete("/videos/{video_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_video(
    video_id: deps.VideoId,
    context: deps.AuthDependency,
    service: deps.VideoServiceDependency,
) -> Response:
    await service.delete_video(video_id, context.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/video_upload/{video_id}",
    response_model=schemas.VideoResponse,
    responses={
        400: {"model": schemas.ErrorResponse},
        403: {"model": schemas.ErrorResponse},
        404: {"model": schemas.ErrorResponse},
        502: {"model": schemas.ErrorResponse},
    },
)
async def upload_video(
    video_id: deps.VideoId,
    context: deps.AuthDependency,
    service: deps.VideoServiceDependency,
    request: Request,
) -> schemas.VideoResponse:
    logger.info("video_upload_started", video_id=video_id, user_id=context.user_id)
    video = await service.require_owned_video(video_id, context.user_id)
    require_declared_length(request.headers.get("content-length"), service.settings.max_video_bytes)
    async with request.form() as form:
        upload = require_file_field(form.get(VIDEO_FIELD))
        video = await service.upload_video(
            video,
            upload,
            base_url=deps.request_base_url(request),
        )
    return schemas.VideoResponse.model_validate(video)


__all__ = ["router"]
