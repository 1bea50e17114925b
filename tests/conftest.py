import io
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

# Tests import top-level packages (core, gateway, providers, ...) straight from
# the repo root, the same way the container runs `python main.py`.
REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from core.settings import ServerSettings, Settings, StorageSettings, StreamSettings  # noqa: E402
from main import create_app  # noqa: E402
from providers.storage import ListEntry, ObjectInfo, StorageError  # noqa: E402


def not_found(bucket: str, key: str) -> StorageError:
    return StorageError(
        "The specified key does not exist.",
        code="NoSuchKey",
        bucket=bucket,
        key=key,
        status_code=404,
    )


class FakeReader:
    def __init__(self, data: bytes, fail_after: Optional[int] = None):
        self._buf = io.BytesIO(data)
        self._fail_after = fail_after
        self._reads = 0
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def read(self, n: int = -1) -> bytes:
        if self._fail_after is not None and self._reads >= self._fail_after:
            raise StorageError("connection reset by peer")
        self._reads += 1
        return self._buf.read(n)

    def close(self) -> None:
        self.close_calls += 1

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeStorage:
    """In-memory StorageProvider with knobs for every failure the gateway handles."""

    def __init__(self):
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.infos: Dict[Tuple[str, str], ObjectInfo] = {}
        self.put_calls: List[dict] = []
        self.removed: List[Tuple[str, str]] = []
        self.readers: List[FakeReader] = []

        self.put_error: Optional[Exception] = None
        self.put_result: Optional[int] = None
        self.stat_error: Optional[Exception] = None
        self.remove_error: Optional[Exception] = None
        self.read_fail_after: Optional[int] = None

        self.list_keys: List[str] = []
        self.list_error_at: Optional[int] = None
        self.list_error: Exception = StorageError("Access Denied.", code="AccessDenied", status_code=403)
        self.list_pulled = 0
        self.list_closed = False
        self.list_calls: List[dict] = []

    def put_object(self, bucket, key, stream, size=-1, content_type=None):
        data = stream.read()
        self.put_calls.append(
            {"bucket": bucket, "key": key, "size": size, "content_type": content_type, "data": data}
        )
        if self.put_error is not None:
            raise self.put_error
        self.objects[(bucket, key)] = data
        return len(data) if self.put_result is None else self.put_result

    def get_object(self, bucket, key):
        if (bucket, key) not in self.objects:
            raise not_found(bucket, key)
        reader = FakeReader(self.objects[(bucket, key)], fail_after=self.read_fail_after)
        self.readers.append(reader)
        return reader

    def stat_object(self, bucket, key):
        if self.stat_error is not None:
            raise self.stat_error
        if (bucket, key) not in self.objects:
            raise not_found(bucket, key)
        return self.infos.get(
            (bucket, key),
            ObjectInfo(content_type="application/octet-stream", size=len(self.objects[(bucket, key)])),
        )

    def list_objects(self, bucket, prefix, recursive=True):
        self.list_calls.append({"bucket": bucket, "prefix": prefix, "recursive": recursive})
        try:
            for i, key in enumerate(self.list_keys):
                if self.list_error_at is not None and i == self.list_error_at:
                    yield ListEntry(error=self.list_error)
                    continue
                self.list_pulled += 1
                yield ListEntry(key=key)
        finally:
            self.list_closed = True

    def remove_object(self, bucket, key):
        self.removed.append((bucket, key))
        if self.remove_error is not None:
            raise self.remove_error
        self.objects.pop((bucket, key), None)

    def ping(self):
        return None


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        server=ServerSettings(listen_addr="127.0.0.1:9001"),
        storage=StorageSettings(provider="local", local_dir=str(tmp_path)),
        stream=StreamSettings(download_chunk_size=4),
    )


@pytest.fixture
def client(settings, storage):
    app = create_app(settings=settings, storage=storage)
    with TestClient(app) as c:
        yield c
