from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

from starlette.datastructures import UploadFile

from vidhost.core.errors import InvalidInput
from vidhost.core.logging import get_logger

__all__ = [
    "CHUNK_SIZE",
    "MULTIPART_OVERHEAD",
    "MaterializedUpload",
    "materialize_upload",
    "require_declared_length",
    "require_file_field",
    "scratch_file",
]

CHUNK_SIZE = 1024 * 1024
# Allowance for multipart boundaries, part headers and small form fields.
MULTIPART_OVERHEAD = 64 * 1024

logger = get_logger(component="uploads")


@dataclass(slots=True)
class MaterializedUpload:
    path: Path
    size_bytes: int
    content_type: str


def require_file_field(value: Any) -> UploadFile:
    """Return the form value if it is an uploaded file, otherwise fail with ``InvalidInput``."""
    if not isinstance(value, UploadFile):
        raise InvalidInput("missing_file_field")
    return value


def require_declared_length(content_length: Optional[str], max_bytes: int) -> None:
    """Reject a request body that cannot fit under ``max_bytes`` before the form is parsed.

    The multipart parser spools file parts to disk as it reads them, so the ceiling has to be
    applied to the declared request size first. Requests without a ``Content-Length`` are
    only checked while ``materialize_upload`` streams them.
    """
    if not content_length:
        return
    try:
        declared = int(content_length)
    except ValueError as exc:
        raise InvalidInput("invalid_content_length") from exc
    if declared < 0:
        raise InvalidInput("invalid_content_length")
    if declared > max_bytes + MULTIPART_OVERHEAD:
        raise InvalidInput("file_too_large")


@contextmanager
def scratch_file(suffix: str = "", *, directory: Optional[Path] = None) -> Iterator[Path]:
    """Reserve a transient path that is removed on exit, whatever happened inside the block."""
    fd, name = tempfile.mkstemp(suffix=suffix, dir=str(directory) if directory else None)
    os.close(fd)
    path = Path(name)
    logger.debug("scratch_file_created", path=str(path))
    try:
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
            logger.debug("scratch_file_removed", path=str(path))
        except OSError as cleanup_error:
            logger.warning("scratch_file_cleanup_failed", path=str(path), error=str(cleanup_error))


async def materialize_upload(
    upload: UploadFile,
    destination: Path,
    *,
    max_bytes: int,
    content_type: str,
) -> MaterializedUpload:
    """Stream an uploaded file to ``destination`` while enforcing a size ceiling.

    Args:
        upload: The multipart file part.
        destination: Where the payload is written; overwritten if present.
        max_bytes: The largest accepted payload.
        content_type: The validated MIME type to carry forward.

    Returns:
        The materialized upload descriptor.

    Raises:
        InvalidInput: If the declared or actual payload size exceeds ``max_bytes``.
    """
    if upload.size is not None and upload.size > max_bytes:
        raise InvalidInput("file_too_large")

    written = 0
    try:
        with destination.open("wb") as handle:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise InvalidInput("file_too_large")
                handle.write(chunk)
    except InvalidInput:
        destination.unlink(missing_ok=True)
        raise
    finally:
        await upload.close()

    logger.info("upload_materialized", path=str(destination), size_bytes=written, content_type=content_type)
    return MaterializedUpload(path=destination, size_bytes=written, content_type=content_type)
