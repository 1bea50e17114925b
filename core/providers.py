from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request

from core.settings import Settings, get_settings
from core.settings_validation import validate_settings
from providers.factory import Providers, build_providers
from providers.storage import StorageProvider


def providers_from_request(request: Request) -> Providers:
    """
    Canonical provider accessor for ALL routers.

    Providers are attached once during app startup as request.app.state.providers.
    """
    try:
        return request.app.state.providers
    except Exception as exc:
        raise RuntimeError("Providers not initialized on app.state (startup/lifespan not executed).") from exc


def init_providers(
    app: FastAPI,
    settings: Optional[Settings] = None,
    storage: Optional[StorageProvider] = None,
) -> Providers:
    """
    Canonical provider initialization.
    Called once during app startup/lifespan. Validates settings (fail fast) and
    attaches Providers onto app.state.
    """
    settings = validate_settings(settings or get_settings())
    app.state.providers = build_providers(settings, storage=storage)
    return app.state.providers
