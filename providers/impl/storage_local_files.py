from __future__ import annotations

import json
import mimetypes
import os
import tempfile
from typing import Any, BinaryIO, Dict, Iterator, Optional

from providers.storage import (
    DEFAULT_CONTENT_TYPE,
    UNKNOWN_SIZE,
    ListEntry,
    ObjectInfo,
    StorageError,
    StorageProvider,
)

META_DIR = ".meta"
_TMP_PREFIX = ".upload-"
_COPY_CHUNK = 1024 * 1024


def _raise(exc: OSError) -> None:
    raise exc


def _no_such_key(bucket: str, key: str) -> StorageError:
    return StorageError(
        "The specified key does not exist.",
        code="NoSuchKey",
        bucket=bucket,
        key=key,
        status_code=404,
    )


class LocalFilesStorageProvider(StorageProvider):
    """
    Local filesystem storage provider rooted at STORAGE_LOCAL_DIR.

    Layout:
      <root>/<bucket>/<key>                 object bytes
      <root>/.meta/<bucket>/<key>.json      content type + custom headers

    Uploads land in a temp file next to the target and are renamed into place
    only when the byte count matches the declared size.
    """

    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)

    @classmethod
    def from_settings(cls, storage) -> "LocalFilesStorageProvider":
        return cls(storage.local_dir)

    def _bucket_dir(self, bucket: str) -> str:
        if not bucket or "/" in bucket or bucket in (".", "..", META_DIR):
            raise StorageError(
                "The specified bucket is not valid.",
                code="InvalidBucketName",
                bucket=bucket,
                status_code=400,
            )
        return os.path.join(self.root, bucket)

    def _resolve(self, base: str, bucket: str, key: str, suffix: str = "") -> str:
        path = os.path.normpath(os.path.join(base, (key or "").lstrip("/") + suffix))
        if not path.startswith(base + os.sep):
            raise StorageError(
                "Object name contains unsupported characters.",
                code="InvalidObjectName",
                bucket=bucket,
                key=key,
                status_code=400,
            )
        return path

    def _path(self, bucket: str, key: str) -> str:
        return self._resolve(self._bucket_dir(bucket), bucket, key)

    def _meta_path(self, bucket: str, key: str) -> str:
        self._bucket_dir(bucket)
        return self._resolve(os.path.join(self.root, META_DIR, bucket), bucket, key, ".json")

    def _write_meta(self, bucket: str, key: str, content_type: Optional[str]) -> None:
        path = self._meta_path(bucket, key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"content_type": content_type or DEFAULT_CONTENT_TYPE, "metadata": {}}, f)

    def _read_meta(self, bucket: str, key: str) -> Dict[str, Any]:
        try:
            with open(self._meta_path(bucket, key), "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError):
            guessed, _ = mimetypes.guess_type(key)
            return {"content_type": guessed or DEFAULT_CONTENT_TYPE, "metadata": {}}

    def put_object(
        self,
        bucket: str,
        key: str,
        stream: BinaryIO,
        size: int = UNKNOWN_SIZE,
        content_type: Optional[str] = None,
    ) -> int:
        path = self._path(bucket, key)
        count = 0
        tmp = None
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=os.path.dirname(path), prefix=_TMP_PREFIX)
            with os.fdopen(fd, "wb") as f:
                while True:
                    want = _COPY_CHUNK if size == UNKNOWN_SIZE else min(_COPY_CHUNK, size - count)
                    if want <= 0:
                        break
                    chunk = stream.read(want)
                    if not chunk:
                        break
                    f.write(chunk)
                    count += len(chunk)

            if size == UNKNOWN_SIZE or count == size:
                os.replace(tmp, path)
                tmp = None
                self._write_meta(bucket, key, content_type)
        except OSError as exc:
            raise StorageError(str(exc), bucket=bucket, key=key) from exc
        finally:
            if tmp is not None and os.path.exists(tmp):
                os.remove(tmp)
        return count

    def get_object(self, bucket: str, key: str) -> BinaryIO:
        path = self._path(bucket, key)
        try:
            return open(path, "rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise _no_such_key(bucket, key) from exc
        except OSError as exc:
            raise StorageError(str(exc), bucket=bucket, key=key) from exc

    def stat_object(self, bucket: str, key: str) -> ObjectInfo:
        path = self._path(bucket, key)
        try:
            st = os.stat(path)
        except OSError as exc:
            raise _no_such_key(bucket, key) from exc
        if not os.path.isfile(path):
            raise _no_such_key(bucket, key)

        meta = self._read_meta(bucket, key)
        return ObjectInfo(
            content_type=meta.get("content_type") or DEFAULT_CONTENT_TYPE,
            size=st.st_size,
            metadata={str(k): [str(x) for x in v] for k, v in (meta.get("metadata") or {}).items()},
        )

    def list_objects(self, bucket: str, prefix: str, recursive: bool = True) -> Iterator[ListEntry]:
        prefix = (prefix or "").lstrip("/")
        try:
            base = self._bucket_dir(bucket)
            if not os.path.isdir(base):
                raise StorageError(
                    "The specified bucket does not exist.",
                    code="NoSuchBucket",
                    bucket=bucket,
                    status_code=404,
                )
            for dirpath, dirnames, filenames in os.walk(base, onerror=_raise):
                dirnames.sort()
                for name in sorted(filenames):
                    if name.startswith(_TMP_PREFIX):
                        continue
                    key = os.path.relpath(os.path.join(dirpath, name), base).replace(os.sep, "/")
                    if not key.startswith(prefix):
                        continue
                    if not recursive and "/" in key[len(prefix):]:
                        continue
                    yield ListEntry(key=key)
        except StorageError as exc:
            yield ListEntry(error=exc)
        except OSError as exc:
            yield ListEntry(error=StorageError(str(exc), bucket=bucket, key=prefix))

    def remove_object(self, bucket: str, key: str) -> None:
        for path in (self._path(bucket, key), self._meta_path(bucket, key)):
            try:
                os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise StorageError(str(exc), bucket=bucket, key=key) from exc

    def ping(self) -> None:
        try:
            os.makedirs(self.root, exist_ok=True)
        except OSError as exc:
            raise StorageError(str(exc)) from exc
        if not os.access(self.root, os.W_OK):
            raise StorageError(f"Storage directory is not writable: {self.root}")
