# main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from core.providers import init_providers
from core.settings import Settings, get_settings
from core.settings_validation import parse_listen_addr
from gateway.router import router as objects_router
from health.router import router as health_router
from providers.storage import StorageProvider

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level or "INFO", format=LOG_FORMAT)


# ---------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------

def create_app(settings: Optional[Settings] = None, storage: Optional[StorageProvider] = None) -> FastAPI:
    """
    Build the gateway app.

    Providers are created in the lifespan so a bad configuration or an
    unreachable endpoint stops startup instead of failing the first request.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        providers = init_providers(app, settings=settings, storage=storage)
        log.info("Object gateway ready (storage=%s)", providers.settings.storage.provider)
        yield

    app = FastAPI(title="Object Gateway", lifespan=lifespan)

    # -----------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------
    app.include_router(health_router)
    app.include_router(objects_router)
    return app


app = create_app()


# ---------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------

def run() -> None:
    settings = get_settings()
    configure_logging(settings.server.log_level)
    host, port = parse_listen_addr(settings.server.listen_addr)
    uvicorn.run(app, host=host, port=port, log_level=settings.server.log_level.lower())


if __name__ == "__main__":
    run()
