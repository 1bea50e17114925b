from __future__ import annotations

from dataclasses import dataclass

from core.settings import Settings
from core.settings_validation import SettingsError
from providers.storage import StorageProvider
from providers.impl.storage_local_files import LocalFilesStorageProvider
from providers.impl.storage_minio import MinioStorageProvider


@dataclass(frozen=True)
class Providers:
    """
    Central container for providers.

    Built once per process (FastAPI lifespan) and attached to app.state.
    """
    settings: Settings
    storage: StorageProvider


def build_storage(settings: Settings) -> StorageProvider:
    storage = settings.storage
    if storage.provider == "local":
        return LocalFilesStorageProvider.from_settings(storage)
    try:
        return MinioStorageProvider.from_settings(storage)
    except ValueError as exc:
        raise SettingsError(f"Connecting to S3 failed: {exc}") from exc


def build_providers(settings: Settings, storage: StorageProvider = None) -> Providers:
    """
    Composition root. `storage` lets tests and embedders supply their own backend.
    """
    return Providers(settings=settings, storage=storage or build_storage(settings))
