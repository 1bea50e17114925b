# health/router.py
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from core.deps import ProvidersDep
from providers.storage import StorageError

router = APIRouter(tags=["health"])


class StorageHealth(BaseModel):
    ok: bool
    provider: str
    error: Optional[str] = None


@router.get("/health")
def health():
    # Keep this super simple and always unauthenticated
    return {"ok": True}


@router.get("/health/storage", response_model=StorageHealth)
async def health_storage(providers: ProvidersDep):
    """
    Verifies the storage backend answers a cheap request
    (bucket listing for minio, a writable root for local).
    """
    provider = providers.settings.storage.provider
    try:
        await run_in_threadpool(providers.storage.ping)
    except StorageError as e:
        return StorageHealth(ok=False, provider=provider, error=str(e))
    return StorageHealth(ok=True, provider=provider)
