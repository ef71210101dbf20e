from __future__ import annotations

import uuid

import pytest

from vidhost.core.errors import InvalidInput
from vidhost.media.keys import (
    FALLBACK_EXTENSION,
    THUMBNAIL_CONTENT_TYPES,
    VIDEO_CONTENT_TYPES,
    extension_for_mime,
    require_content_type,
    require_video_id,
    thumbnail_key,
    video_key,
)
from vidhost.media.probe import AspectClassification


def test_require_video_id_accepts_uuids():
    value = str(uuid.uuid4())
    assert require_video_id(value) == value
    assert require_video_id(value.upper()) == value.upper()


@pytest.mark.parametrize(
    "raw",
    [
        "not-a-uuid",
        "",
        None,
        "0000000-0000-0000-0000-000000000000",
        "00000000-0000-0000-0000-0000000000000",
        "00000000000000000000000000000000",
        "g0000000-0000-0000-0000-000000000000",
        "00000000-0000-0000-0000-000000000000\n",
        "{00000000-0000-0000-0000-000000000000}",
    ],
)
def test_require_video_id_rejects_everything_else(raw):
    with pytest.raises(InvalidInput):
        require_video_id(raw)


@pytest.mark.parametrize(
    "mime, expected",
    [
        ("image/jpeg", "jpg"),
        ("image/png", "png"),
        ("image/gif", "gif"),
        ("IMAGE/PNG", "png"),
        ("image/png; charset=binary", "png"),
        ("image/webp", FALLBACK_EXTENSION),
        ("application/x-made-up", FALLBACK_EXTENSION),
        ("", FALLBACK_EXTENSION),
        (None, FALLBACK_EXTENSION),
    ],
)
def test_extension_for_mime_is_total(mime, expected):
    assert extension_for_mime(mime) == expected


def test_require_content_type_normalises():
    assert require_content_type("image/PNG", THUMBNAIL_CONTENT_TYPES) == "image/png"
    assert require_content_type("video/mp4", VIDEO_CONTENT_TYPES) == "video/mp4"


@pytest.mark.parametrize("declared", [None, "", "image/gif", "video/quicktime", "multipart/form-data"])
def test_require_content_type_rejects(declared):
    with pytest.raises(InvalidInput):
        require_content_type(declared, THUMBNAIL_CONTENT_TYPES | VIDEO_CONTENT_TYPES)


def test_storage_keys():
    video_id = "3f2b8c1e-7d4a-4e8b-9c0d-1a2b3c4d5e6f"
    assert video_key(video_id, AspectClassification.portrait) == f"portrait/{video_id}.mp4"
    assert thumbnail_key(video_id, "image/jpeg") == f"{video_id}.jpg"
    assert thumbnail_key(video_id, "image/tiff") == f"{video_id}.bin"
