from __future__ import annotations

import enum
import json
import math
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Protocol, Tuple

from vidhost.core.errors import ExternalToolFailure
from vidhost.core.logging import get_logger

__all__ = [
    "AspectClassification",
    "ASPECT_TOLERANCE",
    "StreamDimensions",
    "MediaProber",
    "FFprobeProber",
    "classify_aspect_ratio",
    "parse_dimensions",
]

ASPECT_TOLERANCE = 0.01

logger = get_logger(component="media_probe")


class AspectClassification(str, enum.Enum):
    landscape = "landscape"
    portrait = "portrait"
    other = "other"


_TARGET_RATIOS: Tuple[Tuple[AspectClassification, float], ...] = (
    (AspectClassification.landscape, 16 / 9),
    (AspectClassification.portrait, 9 / 16),
)


@dataclass(frozen=True, slots=True)
class StreamDimensions:
    width: int
    height: int

    @property
    def classification(self) -> AspectClassification:
        return classify_aspect_ratio(self.width, self.height)


class MediaProber(Protocol):
    def probe(self, path: Path) -> StreamDimensions: ...


def classify_aspect_ratio(width: float, height: float) -> AspectClassification:
    """Bucket a frame size into landscape (16:9), portrait (9:16) or other.

    Args:
        width: Frame width in pixels.
        height: Frame height in pixels.

    Returns:
        The classification whose target ratio lies strictly within ``ASPECT_TOLERANCE``
        of ``width / height``, or ``other``.
    """
    if height <= 0 or width <= 0:
        return AspectClassification.other
    ratio = width / height
    for name, target in _TARGET_RATIOS:
        if abs(ratio - target) < ASPECT_TOLERANCE:
            return name
    return AspectClassification.other


def parse_dimensions(output: str) -> StreamDimensions:
    """Extract the first video stream's dimensions from ffprobe JSON output.

    Args:
        output: Raw stdout of ffprobe run with ``-of json``.

    Returns:
        The stream dimensions.

    Raises:
        ExternalToolFailure: If the output is empty, not JSON, or lacks usable dimensions.
    """
    if not output or not output.strip():
        raise ExternalToolFailure("empty_probe_output")
    try:
        info: Dict[str, Any] = json.loads(output)
    except json.JSONDecodeError as exc:
        raise ExternalToolFailure(f"unparsable_probe_output: {exc.msg}") from exc

    streams = info.get("streams") if isinstance(info, dict) else None
    if not isinstance(streams, list) or not streams or not isinstance(streams[0], dict):
        raise ExternalToolFailure("no_video_stream")

    stream = streams[0]
    width = _as_dimension(stream.get("width"))
    height = _as_dimension(stream.get("height"))
    if width is None or height is None:
        raise ExternalToolFailure("invalid_stream_dimensions")
    return StreamDimensions(width=width, height=height)


def _as_dimension(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return int(number)


class FFprobeProber:
    """Reads the first video stream's frame size with ``ffprobe``."""

    def __init__(self, *, binary: str = "ffprobe", timeout_s: float = 30.0):
        self.binary = binary
        self.timeout_s = timeout_s

    def command(self, path: Path) -> list[str]:
        return [
            self.binary,
            "-v",
            "error",
            "-select_streams",
            "v:0",
            "-show_entries",
            "stream=width,height",
            "-of",
            "json",
            str(path),
        ]

    def probe(self, path: Path) -> StreamDimensions:
        command = self.command(path)
        logger.info("ffprobe_run", command=command)
        try:
            proc = subprocess.run(
                command,
                check=False,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout_s,
            )
        except FileNotFoundError as exc:
            raise ExternalToolFailure(f"ffprobe_not_found: {self.binary}") from exc
        except subprocess.TimeoutExpired as exc:
            logger.error("ffprobe_timeout", path=str(path), timeout_s=self.timeout_s)
            raise ExternalToolFailure("ffprobe_timeout") from exc

        if proc.returncode != 0:
            logger.error("ffprobe_failed", path=str(path), returncode=proc.returncode, stderr=proc.stderr.strip())
            raise ExternalToolFailure(f"ffprobe_failed: {proc.stderr.strip()}")

        dimensions = parse_dimensions(proc.stdout)
        logger.info("ffprobe_dimensions", path=str(path), width=dimensions.width, height=dimensions.height)
        return dimensions
