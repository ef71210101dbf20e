from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from vidhost.api.v1 import get_api_router
from vidhost.api.v1.schemas import ErrorResponse
from vidhost.core.config import get_settings
from vidhost.core.db import create_engine, create_session_factory
from vidhost.core.errors import VidhostError
from vidhost.core.logging import configure_logging, get_logger, level_from_name
from vidhost.core.storage import LocalObjectStore, get_storage
from vidhost.media import FFprobeProber

logger = get_logger(component="api")


async def handle_vidhost_error(request: Request, exc: VidhostError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            path=request.url.path,
            method=request.method,
            error=exc.code,
            detail=exc.detail,
            exc_info=exc,
        )
    else:
        logger.info("request_rejected", path=request.url.path, method=request.method, error=exc.code, detail=exc.detail)
    payload = ErrorResponse(error=exc.code, detail=exc.public_detail)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=payload.model_dump(), headers=headers)


_HTTP_ERROR_CODES = {
    400: "invalid_input",
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
}


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code in {204, 304}:
        return Response(status_code=exc.status_code, headers=getattr(exc, "headers", None))
    logger.info("request_rejected", path=request.url.path, method=request.method, status_code=exc.status_code, detail=exc.detail)
    payload = ErrorResponse(error=_HTTP_ERROR_CODES.get(exc.status_code, "http_error"), detail=exc.detail)
    return JSONResponse(status_code=exc.status_code, content=payload.model_dump(), headers=getattr(exc, "headers", None))


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, method=request.method, error="validation_error")
    payload = ErrorResponse(error="validation_error", detail=jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=payload.model_dump())


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    storage = get_storage(settings)
    prober = FFprobeProber(binary=settings.ffprobe_binary, timeout_s=settings.probe_timeout_s)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.storage = storage
        app.state.prober = prober
        app.state.engine = engine
        app.state.session_factory = session_factory
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.add_exception_handler(VidhostError, handle_vidhost_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.include_router(get_api_router())
    if isinstance(storage, LocalObjectStore):
        app.mount("/assets", StaticFiles(directory=str(storage.base_path)), name="assets")
    return app


app = create_app()


__all__ = ["app", "create_app"]
