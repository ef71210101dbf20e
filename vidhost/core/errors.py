from __future__ import annotations

from fastapi import status


class VidhostError(Exception):
    """Base class for failures that terminate a request with a defined response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    expose_detail: bool = True

    def __init__(self, detail: str | None = None, *, code: str | None = None):
        super().__init__(detail or self.code)
        self.detail = detail or self.code
        if code:
            self.code = code

    @property
    def public_detail(self) -> str:
        if self.expose_detail:
            return self.detail
        return "The request could not be completed. Try again later."


class InvalidInput(VidhostError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_input"


class Unauthenticated(VidhostError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"


class Forbidden(VidhostError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFound(VidhostError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ExternalToolFailure(VidhostError):
    """The media probe could not produce usable stream metadata."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "media_probe_failed"
    expose_detail = False


class ExternalStorageFailure(VidhostError):
    """The object store rejected or failed a request."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "storage_unavailable"
    expose_detail = False


class MetadataStoreFailure(VidhostError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "metadata_store_failed"
    expose_detail = False


__all__ = [
    "VidhostError",
    "InvalidInput",
    "Unauthenticated",
    "Forbidden",
    "NotFound",
    "ExternalToolFailure",
    "ExternalStorageFailure",
    "MetadataStoreFailure",
]
