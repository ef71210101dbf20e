from __future__ import annotations

import asyncio
import io
from pathlib import Path

import pytest
from starlette.datastructures import Headers, UploadFile

from vidhost.core.errors import InvalidInput
from vidhost.media.uploads import (
    CHUNK_SIZE,
    MULTIPART_OVERHEAD,
    materialize_upload,
    require_declared_length,
    require_file_field,
    scratch_file,
)


def _upload(payload: bytes, *, size: int | None = None, content_type: str = "video/mp4") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(payload),
        size=size,
        filename="clip.mp4",
        headers=Headers({"content-type": content_type}),
    )


def test_require_file_field():
    upload = _upload(b"data")
    assert require_file_field(upload) is upload
    for value in (None, "clip.mp4", b"bytes"):
        with pytest.raises(InvalidInput):
            require_file_field(value)


def test_materialize_writes_full_payload(tmp_path: Path):
    payload = b"x" * (CHUNK_SIZE * 2 + 17)
    destination = tmp_path / "clip.mp4"

    result = asyncio.run(
        materialize_upload(_upload(payload, size=len(payload)), destination, max_bytes=len(payload), content_type="video/mp4")
    )

    assert result.path == destination
    assert result.size_bytes == len(payload)
    assert result.content_type == "video/mp4"
    assert destination.read_bytes() == payload


def test_materialize_rejects_declared_oversize_without_writing(tmp_path: Path):
    destination = tmp_path / "clip.mp4"
    with pytest.raises(InvalidInput) as excinfo:
        asyncio.run(materialize_upload(_upload(b"abc", size=1024), destination, max_bytes=10, content_type="video/mp4"))
    assert excinfo.value.detail == "file_too_large"
    assert not destination.exists()


def test_materialize_rejects_streamed_oversize_and_removes_partial(tmp_path: Path):
    destination = tmp_path / "clip.mp4"
    payload = b"y" * (CHUNK_SIZE + 1)
    with pytest.raises(InvalidInput):
        asyncio.run(materialize_upload(_upload(payload), destination, max_bytes=CHUNK_SIZE, content_type="video/mp4"))
    assert not destination.exists()


def test_scratch_file_removed_on_success(tmp_path: Path):
    with scratch_file(suffix=".mp4", directory=tmp_path) as path:
        path.write_bytes(b"data")
        assert path.suffix == ".mp4"
        assert path.parent == tmp_path
    assert not path.exists()


def test_scratch_file_removed_on_failure(tmp_path: Path):
    scratch = tmp_path / "scratch-failure"
    scratch.mkdir()
    with pytest.raises(RuntimeError):
        with scratch_file(directory=scratch) as path:
            path.write_bytes(b"data")
            raise RuntimeError("boom")
    assert not path.exists()
    assert list(scratch.iterdir()) == []


def test_declared_length_within_ceiling_is_accepted():
    require_declared_length(None, max_bytes=10)
    require_declared_length("", max_bytes=10)
    require_declared_length(str(10 + MULTIPART_OVERHEAD), max_bytes=10)


@pytest.mark.parametrize(
    "content_length, detail",
    [
        (str(10 + MULTIPART_OVERHEAD + 1), "file_too_large"),
        (str(20 * 1024**3), "file_too_large"),
        ("lots", "invalid_content_length"),
        ("-1", "invalid_content_length"),
    ],
)
def test_declared_length_rejected(content_length, detail):
    with pytest.raises(InvalidInput) as excinfo:
        require_declared_length(content_length, max_bytes=10)
    assert excinfo.value.detail == detail
