"""HTTP backend for hosting videos: thumbnail and video uploads published to object storage."""

__version__ = "0.1.0"
