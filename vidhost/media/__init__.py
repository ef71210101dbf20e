"""Media handling used by the upload pipeline: identifiers, storage keys, probing, materialization."""

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
from vidhost.media.probe import (
    AspectClassification,
    FFprobeProber,
    MediaProber,
    StreamDimensions,
    classify_aspect_ratio,
)
from vidhost.media.uploads import (
    MaterializedUpload,
    materialize_upload,
    require_declared_length,
    require_file_field,
    scratch_file,
)

__all__ = [
    "AspectClassification",
    "FALLBACK_EXTENSION",
    "FFprobeProber",
    "MaterializedUpload",
    "MediaProber",
    "StreamDimensions",
    "THUMBNAIL_CONTENT_TYPES",
    "VIDEO_CONTENT_TYPES",
    "classify_aspect_ratio",
    "extension_for_mime",
    "materialize_upload",
    "require_content_type",
    "require_declared_length",
    "require_file_field",
    "require_video_id",
    "scratch_file",
    "thumbnail_key",
    "video_key",
]
