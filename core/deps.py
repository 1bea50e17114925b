from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from core.identity import RequestIdentity, identity_from_request
from core.providers import providers_from_request
from core.settings import StreamSettings
from providers.factory import Providers
from providers.storage import StorageProvider


# -----------------------------
# Canonical provider access
# -----------------------------

def get_providers(request: Request) -> Providers:
    """
    Canonical runtime provider resolver.

    Source of truth: request.app.state.providers
    """
    return providers_from_request(request)


ProvidersDep = Annotated[Providers, Depends(get_providers)]


# -----------------------------
# Canonical service deps
# -----------------------------

def get_storage(request: Request) -> StorageProvider:
    """
    Canonical StorageProvider dependency.
    """
    return get_providers(request).storage


StorageDep = Annotated[StorageProvider, Depends(get_storage)]


def get_stream_settings(request: Request) -> StreamSettings:
    return get_providers(request).settings.stream


StreamSettingsDep = Annotated[StreamSettings, Depends(get_stream_settings)]


IdentityDep = Annotated[RequestIdentity, Depends(identity_from_request)]
