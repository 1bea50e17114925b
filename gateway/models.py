from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Optional

from providers.storage import UNKNOWN_SIZE


@dataclass(frozen=True)
class ObjectRef:
    bucket: str
    key: str

    def __post_init__(self) -> None:
        if not self.bucket or "/" in self.bucket:
            raise ValueError("bucket must be a non-empty name without '/'")
        if not self.key:
            raise ValueError("object path must not be empty")

    def __str__(self) -> str:
        return f"{self.bucket}/{self.key}"


@dataclass(frozen=True)
class UploadDescriptor:
    """
    One request body headed for the backend. Consumed exactly once.

    declared_size == UNKNOWN_SIZE means the client did not give a usable
    Content-Length and the byte count is not verified.
    """
    body: BinaryIO
    content_type: Optional[str] = None
    declared_size: int = UNKNOWN_SIZE

    @property
    def size_known(self) -> bool:
        return self.declared_size != UNKNOWN_SIZE
