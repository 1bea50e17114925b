from __future__ import annotations

import logging
from typing import Optional, Tuple

from core.settings import Settings, get_settings

log = logging.getLogger(__name__)


class SettingsError(RuntimeError):
    pass


def parse_listen_addr(listen_addr: str) -> Tuple[str, int]:
    """
    Split a Go-style listen address into (host, port).

    Accept:
      - ":9001"           -> ("0.0.0.0", 9001)
      - "127.0.0.1:9001"
      - "[::1]:9001"
    """
    raw = (listen_addr or "").strip()
    host, sep, port_raw = raw.rpartition(":")
    if not sep:
        raise SettingsError(f"LISTEN_ADDR must look like host:port, got {listen_addr!r}")

    host = host.strip("[]") or "0.0.0.0"
    try:
        port = int(port_raw)
    except ValueError:
        raise SettingsError(f"LISTEN_ADDR has an invalid port: {listen_addr!r}") from None
    if not 0 < port < 65536:
        raise SettingsError(f"LISTEN_ADDR port out of range: {listen_addr!r}")
    return host, port


def validate_settings(settings: Optional[Settings] = None) -> Settings:
    """
    Validate configuration at startup.

    - LISTEN_ADDR must parse
    - minio: hard fail on empty endpoint, warn on missing credentials
    - local: nothing to check, directories are created on demand
    """
    s = settings or get_settings()
    parse_listen_addr(s.server.listen_addr)

    storage = s.storage
    if storage.provider == "minio":
        if not storage.s3_endpoint:
            raise SettingsError("S3_ENDPOINT is required when STORAGE_MODE=minio")

        if not storage.s3_access_key_id or not storage.s3_secret_access_key:
            log.warning(
                "S3_ACCESS_KEY_ID / S3_SECRET_ACCESS_KEY not set. Requests to %s will be anonymous.",
                storage.s3_endpoint,
            )

        log.info("Storage provider: minio (endpoint=%s, ssl=%s)", storage.s3_endpoint, storage.s3_use_ssl)
        return s

    log.info("Storage provider: %s (dir=%s)", storage.provider, storage.local_dir)
    return s
