from __future__ import annotations

import re
from typing import FrozenSet

from vidhost.core.errors import InvalidInput

from .probe import AspectClassification

__all__ = [
    "THUMBNAIL_CONTENT_TYPES",
    "VIDEO_CONTENT_TYPES",
    "FALLBACK_EXTENSION",
    "extension_for_mime",
    "require_video_id",
    "require_content_type",
    "thumbnail_key",
    "video_key",
]

THUMBNAIL_CONTENT_TYPES: FrozenSet[str] = frozenset({"image/jpeg", "image/png"})
VIDEO_CONTENT_TYPES: FrozenSet[str] = frozenset({"video/mp4"})

FALLBACK_EXTENSION = "bin"

_MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
}

_UUID_PATTERN = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")


def extension_for_mime(mime_type: str | None) -> str:
    """Return the file extension for a MIME type, falling back to ``bin`` for anything unknown."""
    if not mime_type:
        return FALLBACK_EXTENSION
    base = mime_type.split(";", 1)[0].strip().lower()
    return _MIME_EXTENSIONS.get(base, FALLBACK_EXTENSION)


def require_video_id(raw: str | None) -> str:
    """Validate a path identifier and return it unchanged.

    Args:
        raw: The identifier taken from the request path.

    Returns:
        The identifier, guaranteed to be an 8-4-4-4-12 hexadecimal UUID.

    Raises:
        InvalidInput: If the identifier is missing or malformed.
    """
    if not raw:
        raise InvalidInput("missing_video_id")
    if not _UUID_PATTERN.fullmatch(raw):
        raise InvalidInput("invalid_video_id")
    return raw


def require_content_type(declared: str | None, accepted: FrozenSet[str]) -> str:
    """Return the normalised MIME type when it is one of ``accepted``."""
    base = (declared or "").split(";", 1)[0].strip().lower()
    if base not in accepted:
        raise InvalidInput("unsupported_content_type")
    return base


def thumbnail_key(video_id: str, mime_type: str) -> str:
    return f"{video_id}.{extension_for_mime(mime_type)}"


def video_key(video_id: str, classification: AspectClassification) -> str:
    return f"{classification.value}/{video_id}.mp4"
