from __future__ import annotations

import mimetypes
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .errors import ExternalStorageFailure
from .logging import get_logger

DEFAULT_CONTENT_TYPE = "application/octet-stream"

logger = get_logger(component="storage")


@dataclass(slots=True)
class StoredObject:
    key: str
    data: bytes
    content_type: str


class ObjectStore(ABC):
    """Put/get-by-key storage shared by every asset kind."""

    @abstractmethod
    def put_file(self, key: str, source: Path, *, content_type: str) -> None: ...

    @abstractmethod
    def get(self, key: str) -> StoredObject: ...

    @abstractmethod
    def exists(self, key: str) -> bool: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def list(self, prefix: str = "") -> Iterable[str]: ...

    @abstractmethod
    def public_url(self, key: str, *, base_url: str) -> str: ...

    def key_for_url(self, url: str) -> str | None:
        """Inverse of ``public_url`` for URLs this store issued, ``None`` otherwise."""
        marker = self._url_marker()
        if marker not in url:
            return None
        key = url.split(marker, 1)[1]
        return key or None

    @abstractmethod
    def _url_marker(self) -> str: ...


class LocalObjectStore(ObjectStore):
    """Filesystem-backed object store suitable for development; served under ``/assets``."""

    url_prefix = "/assets/"

    def __init__(self, base_path: Path):
        self.base_path = base_path.resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        target = (self.base_path / key).resolve()
        if target != self.base_path and self.base_path not in target.parents:
            raise ValueError(f"Key escapes the storage root: {key}")
        return target

    def put_file(self, key: str, source: Path, *, content_type: str) -> None:
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as exc:
            raise ExternalStorageFailure(f"local write failed for {key}: {exc}") from exc

    def get(self, key: str) -> StoredObject:
        path = self._resolve(key)
        if not path.is_file():
            raise FileNotFoundError(key)
        content_type, _ = mimetypes.guess_type(path.name)
        return StoredObject(key=key, data=path.read_bytes(), content_type=content_type or DEFAULT_CONTENT_TYPE)

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def delete(self, key: str) -> None:
        self._resolve(key).unlink(missing_ok=True)

    def list(self, prefix: str = "") -> Iterable[str]:
        keys = []
        for path in self.base_path.rglob("*"):
            if not path.is_file():
                continue
            key = path.relative_to(self.base_path).as_posix()
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)

    def public_url(self, key: str, *, base_url: str) -> str:
        return f"{base_url.rstrip('/')}{self.url_prefix}{key}"

    def _url_marker(self) -> str:
        return self.url_prefix


class S3ObjectStore(ObjectStore):
    """S3 implementation backed by boto3; every client error surfaces as ``ExternalStorageFailure``."""

    def __init__(
        self,
        *,
        bucket: str,
        region: str,
        client: Any | None = None,
        public_base_url: str | None = None,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ) -> None:
        self.bucket = bucket
        self.region = region
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    def put_file(self, key: str, source: Path, *, content_type: str) -> None:
        logger.info("s3_put_object", bucket=self.bucket, key=key, content_type=content_type)
        try:
            with source.open("rb") as handle:
                self.client.put_object(Bucket=self.bucket, Key=key, Body=handle, ContentType=content_type)
        except (BotoCoreError, ClientError) as exc:
            raise ExternalStorageFailure(f"s3 put failed for {key}: {exc}") from exc

    def get(self, key: str) -> StoredObject:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            data = response["Body"].read()
        except ClientError as exc:
            if _error_code(exc) in {"NoSuchKey", "404", "NotFound"}:
                raise FileNotFoundError(key) from exc
            raise ExternalStorageFailure(f"s3 get failed for {key}: {exc}") from exc
        except BotoCoreError as exc:
            raise ExternalStorageFailure(f"s3 get failed for {key}: {exc}") from exc
        return StoredObject(key=key, data=data, content_type=response.get("ContentType") or DEFAULT_CONTENT_TYPE)

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in {"NoSuchKey", "404", "NotFound"}:
                return False
            raise ExternalStorageFailure(f"s3 head failed for {key}: {exc}") from exc
        except BotoCoreError as exc:
            raise ExternalStorageFailure(f"s3 head failed for {key}: {exc}") from exc
        return True

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise ExternalStorageFailure(f"s3 delete failed for {key}: {exc}") from exc

    def list(self, prefix: str = "") -> Iterable[str]:
        keys: list[str] = []
        kwargs: dict[str, Any] = {"Bucket": self.bucket, "Prefix": prefix}
        try:
            while True:
                response = self.client.list_objects_v2(**kwargs)
                keys.extend(item["Key"] for item in response.get("Contents", []))
                if not response.get("IsTruncated"):
                    break
                kwargs["ContinuationToken"] = response["NextContinuationToken"]
        except (BotoCoreError, ClientError) as exc:
            raise ExternalStorageFailure(f"s3 list failed for prefix {prefix!r}: {exc}") from exc
        return keys

    def public_url(self, key: str, *, base_url: str) -> str:
        return f"{self._url_marker()}{key}"

    def _url_marker(self) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/"


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def get_storage(settings: Settings) -> ObjectStore:
    if settings.storage_backend == "local":
        return LocalObjectStore(base_path=Path(settings.assets_root))
    if settings.storage_backend == "s3":
        return S3ObjectStore(
            bucket=settings.s3_bucket or "",
            region=settings.s3_region,
            public_base_url=settings.s3_public_base_url,
            endpoint_url=settings.s3_endpoint_url,
            access_key_id=settings.secrets.aws_access_key_id,
            secret_access_key=settings.secrets.aws_secret_access_key,
        )
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


__all__ = [
    "ObjectStore",
    "LocalObjectStore",
    "S3ObjectStore",
    "StoredObject",
    "get_storage",
]
