from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Iterator, List, Optional, Protocol, runtime_checkable

UNKNOWN_SIZE = -1
DEFAULT_CONTENT_TYPE = "application/octet-stream"
MIN_PART_SIZE = 5 * 1024 * 1024

_NOT_FOUND_CODES = ("NoSuchKey", "NoSuchObject", "NoSuchBucket")


class StorageError(Exception):
    """
    Error raised by every StorageProvider implementation.

    Backends that report structured failures fill in code/bucket/key/status_code;
    transport level failures only carry a message.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.bucket = bucket
        self.key = key
        self.status_code = status_code

    @property
    def is_structured(self) -> bool:
        return bool(self.code)

    @property
    def is_not_found(self) -> bool:
        return self.code in _NOT_FOUND_CODES


@dataclass(frozen=True)
class ObjectInfo:
    content_type: str
    size: int = -1
    metadata: Dict[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class ListEntry:
    key: Optional[str] = None
    error: Optional[Exception] = None


@runtime_checkable
class ObjectReader(Protocol):
    def read(self, n: int = -1) -> bytes: ...

    def close(self) -> None: ...

    def __enter__(self) -> "ObjectReader": ...

    def __exit__(self, *exc) -> None: ...


@runtime_checkable
class StorageProvider(Protocol):
    """
    Object storage abstraction used by the gateway.

    Implementations must be safe for concurrent use from the threadpool.
    """

    def put_object(
        self,
        bucket: str,
        key: str,
        stream: BinaryIO,
        size: int = UNKNOWN_SIZE,
        content_type: Optional[str] = None,
    ) -> int:
        """Stream `stream` into bucket/key and return the number of bytes consumed."""
        ...

    def get_object(self, bucket: str, key: str) -> ObjectReader: ...

    def stat_object(self, bucket: str, key: str) -> ObjectInfo: ...

    def list_objects(self, bucket: str, prefix: str, recursive: bool = True) -> Iterator[ListEntry]:
        """
        Lazy listing. Closing the returned generator stops enumeration.
        A failure is yielded once as ListEntry(error=...) and ends the sequence.
        """
        ...

    def remove_object(self, bucket: str, key: str) -> None: ...

    def ping(self) -> None: ...
