from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from providers.storage import MIN_PART_SIZE as MIN_UPLOAD_PART_SIZE

DEFAULT_UPLOAD_PART_SIZE = 16 * 1024 * 1024
MIN_DOWNLOAD_CHUNK_SIZE = 1024
DEFAULT_DOWNLOAD_CHUNK_SIZE = 64 * 1024


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else str(v)


def _env_int(name: str, default: int) -> int:
    raw = _env(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


# ---------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class ServerSettings:
    listen_addr: str = ":9001"
    log_level: str = "INFO"


@dataclass(frozen=True)
class StorageSettings:
    """
    Storage provider configuration.

    provider:
      - "minio"  -> MinIO/S3-compatible object store provider
      - "local"  -> LocalFilesStorageProvider (buckets are directories)
    """
    provider: str = "minio"

    # Local
    local_dir: str = "./data"

    # S3-compatible (used when provider == "minio")
    s3_endpoint: str = "blockbook-dev.corp:9101"
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_use_ssl: bool = True
    s3_region: Optional[str] = None

    upload_part_size: int = DEFAULT_UPLOAD_PART_SIZE


@dataclass(frozen=True)
class StreamSettings:
    download_chunk_size: int = DEFAULT_DOWNLOAD_CHUNK_SIZE


@dataclass(frozen=True)
class Settings:
    server: ServerSettings
    storage: StorageSettings
    stream: StreamSettings


# ---------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------

def _load_server_settings() -> ServerSettings:
    listen_addr = (_env("LISTEN_ADDR", "") or ":9001").strip()
    log_level = (_env("LOG_LEVEL", "") or "INFO").strip().upper()
    if log_level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
        log_level = "INFO"
    return ServerSettings(listen_addr=listen_addr, log_level=log_level)


def _normalize_storage_provider(raw: str) -> str:
    v = (raw or "").strip().lower()
    if v in ("minio", "s3", "object_store", "objectstore"):
        return "minio"
    if v in ("local", "file", "files", "filesystem"):
        return "local"
    return "minio"


def _strip_scheme(endpoint: str) -> str:
    # Minio client expects "host:port" (no scheme)
    endpoint = (endpoint or "").strip()
    endpoint = endpoint.replace("http://", "").replace("https://", "")
    return endpoint.rstrip("/")


def _load_storage_settings() -> StorageSettings:
    """
    Storage precedence (DO NOT break this):
      1) STORAGE_MODE (deployment/runtime truth)  <-- must win
      2) STORAGE_PROVIDER (legacy override)
      3) default minio
    """
    raw_mode = (_env("STORAGE_MODE", "") or "").strip()
    raw_provider = (_env("STORAGE_PROVIDER", "") or "").strip()
    provider = _normalize_storage_provider(raw_mode or raw_provider or "minio")

    local_dir = (_env("STORAGE_LOCAL_DIR", "") or "./data").strip()

    s3_endpoint = _strip_scheme(_env("S3_ENDPOINT", "blockbook-dev.corp:9101"))
    s3_access_key_id = (_env("S3_ACCESS_KEY_ID", "") or "").strip()
    s3_secret_access_key = (_env("S3_SECRET_ACCESS_KEY", "") or "").strip()
    s3_use_ssl = _env_bool("S3_USE_SSL", True)
    s3_region = (_env("S3_REGION", "") or "").strip() or None

    upload_part_size = max(MIN_UPLOAD_PART_SIZE, _env_int("UPLOAD_PART_SIZE", DEFAULT_UPLOAD_PART_SIZE))

    return StorageSettings(
        provider=provider,
        local_dir=local_dir,
        s3_endpoint=s3_endpoint,
        s3_access_key_id=s3_access_key_id,
        s3_secret_access_key=s3_secret_access_key,
        s3_use_ssl=s3_use_ssl,
        s3_region=s3_region,
        upload_part_size=upload_part_size,
    )


def _load_stream_settings() -> StreamSettings:
    chunk = _env_int("DOWNLOAD_CHUNK_SIZE", DEFAULT_DOWNLOAD_CHUNK_SIZE)
    return StreamSettings(download_chunk_size=max(MIN_DOWNLOAD_CHUNK_SIZE, chunk))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        server=_load_server_settings(),
        storage=_load_storage_settings(),
        stream=_load_stream_settings(),
    )
