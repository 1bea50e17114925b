from __future__ import annotations

from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, Iterator, List, Optional

import urllib3
from minio import Minio
from minio.error import MinioException, S3Error

from providers.storage import (
    DEFAULT_CONTENT_TYPE,
    MIN_PART_SIZE,
    UNKNOWN_SIZE,
    ListEntry,
    ObjectInfo,
    StorageError,
    StorageProvider,
)

# Response headers that describe the representation and may be replayed to clients.
_PASSTHROUGH_HEADERS = {
    "cache-control",
    "content-disposition",
    "content-encoding",
    "content-language",
    "expires",
}

_BACKEND_ERRORS = (MinioException, urllib3.exceptions.HTTPError, OSError, ValueError)


def _translate(exc: Exception, bucket: Optional[str] = None, key: Optional[str] = None) -> StorageError:
    if isinstance(exc, StorageError):
        return exc
    if isinstance(exc, S3Error):
        response = getattr(exc, "response", None)
        return StorageError(
            getattr(exc, "message", "") or str(exc),
            code=getattr(exc, "code", None),
            bucket=getattr(exc, "bucket_name", None) or bucket,
            key=getattr(exc, "object_name", None) or key,
            status_code=getattr(response, "status", None),
        )
    return StorageError(str(exc) or exc.__class__.__name__)


def _header_values(headers: Any, name: str) -> List[str]:
    getlist = getattr(headers, "getlist", None)
    if callable(getlist):
        return [str(v) for v in getlist(name)]
    value = headers.get(name)
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def _custom_metadata(headers: Any) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {}
    if not headers:
        return out
    for name in dict.fromkeys(headers.keys()):
        lowered = str(name).lower()
        if lowered.startswith("x-amz-meta-") or lowered in _PASSTHROUGH_HEADERS:
            values = _header_values(headers, name)
            if values:
                out[str(name)] = values
    return out


class _CountingReader:
    """File-like wrapper reporting how many bytes the SDK pulled from the source."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self.count = 0

    def read(self, size: int = -1) -> bytes:
        data = self._stream.read(size)
        self.count += len(data)
        return data


class _MinioObjectReader:
    def __init__(self, response: Any, bucket: str, key: str) -> None:
        self._response = response
        self._bucket = bucket
        self._key = key
        self._closed = False

    def read(self, n: int = -1) -> bytes:
        try:
            return self._response.read(None if n < 0 else n)
        except _BACKEND_ERRORS as exc:
            raise _translate(exc, self._bucket, self._key) from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._response.close()
        finally:
            self._response.release_conn()

    def __enter__(self) -> "_MinioObjectReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@dataclass
class MinioStorageProvider(StorageProvider):
    """
    MinIO/S3-compatible implementation of StorageProvider.

    Notes:
      - One Minio client per process; it is safe to share across threads.
      - Buckets are never auto-created; a missing bucket surfaces as NoSuchBucket.
      - Unknown-size uploads go multipart with `part_size` sized parts, so memory
        use stays at roughly one part regardless of object size.
    """

    endpoint: str
    access_key: str = ""
    secret_key: str = ""
    secure: bool = True
    region: Optional[str] = None
    part_size: int = 16 * 1024 * 1024

    def __post_init__(self) -> None:
        host = (self.endpoint or "").strip()
        if not host:
            raise ValueError("S3 endpoint is empty or invalid")

        self.part_size = max(MIN_PART_SIZE, int(self.part_size))
        self._client = Minio(
            host,
            access_key=self.access_key or None,
            secret_key=self.secret_key or None,
            secure=bool(self.secure),
            region=self.region,
        )

    @classmethod
    def from_settings(cls, storage) -> "MinioStorageProvider":
        return cls(
            endpoint=storage.s3_endpoint,
            access_key=storage.s3_access_key_id,
            secret_key=storage.s3_secret_access_key,
            secure=storage.s3_use_ssl,
            region=storage.s3_region,
            part_size=storage.upload_part_size,
        )

    def put_object(
        self,
        bucket: str,
        key: str,
        stream: BinaryIO,
        size: int = UNKNOWN_SIZE,
        content_type: Optional[str] = None,
    ) -> int:
        counter = _CountingReader(stream)
        try:
            self._client.put_object(
                bucket_name=bucket,
                object_name=key,
                data=counter,
                length=size,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
                part_size=self.part_size if size == UNKNOWN_SIZE else 0,
                num_parallel_uploads=1,
            )
        except _BACKEND_ERRORS as exc:
            raise _translate(exc, bucket, key) from exc
        return counter.count

    def get_object(self, bucket: str, key: str) -> _MinioObjectReader:
        try:
            response = self._client.get_object(bucket_name=bucket, object_name=key)
        except _BACKEND_ERRORS as exc:
            raise _translate(exc, bucket, key) from exc
        return _MinioObjectReader(response, bucket, key)

    def stat_object(self, bucket: str, key: str) -> ObjectInfo:
        try:
            obj = self._client.stat_object(bucket_name=bucket, object_name=key)
        except _BACKEND_ERRORS as exc:
            raise _translate(exc, bucket, key) from exc
        return ObjectInfo(
            content_type=obj.content_type or DEFAULT_CONTENT_TYPE,
            size=obj.size if obj.size is not None else -1,
            metadata=_custom_metadata(obj.metadata),
        )

    def list_objects(self, bucket: str, prefix: str, recursive: bool = True) -> Iterator[ListEntry]:
        objects = None
        try:
            objects = self._client.list_objects(bucket_name=bucket, prefix=prefix or None, recursive=recursive)
            for obj in objects:
                yield ListEntry(key=obj.object_name)
        except _BACKEND_ERRORS as exc:
            yield ListEntry(error=_translate(exc, bucket, prefix))
        finally:
            # stop the SDK paginator; no further list requests are issued
            close = getattr(objects, "close", None)
            if callable(close):
                close()

    def remove_object(self, bucket: str, key: str) -> None:
        try:
            self._client.remove_object(bucket_name=bucket, object_name=key)
        except _BACKEND_ERRORS as exc:
            err = _translate(exc, bucket, key)
            if err.is_not_found:
                return
            raise err from exc

    def ping(self) -> None:
        try:
            self._client.list_buckets()
        except _BACKEND_ERRORS as exc:
            raise _translate(exc) from exc
