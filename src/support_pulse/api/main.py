from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from support_pulse import __version__
from support_pulse.config import SyncSettings
from support_pulse.db import get_database_uri
from support_pulse.storage import create_store
from support_pulse.sync.orchestrator import DeltaSyncOrchestrator

from .proxy.router import router as proxy_router
from .sync.router import router as sync_router

logger = logging.getLogger(__name__)


def create_app(orchestrator: Optional[DeltaSyncOrchestrator] = None) -> FastAPI:
    """Build the API; without an orchestrator one is created on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "orchestrator", None) is not None:
            yield
            return
        store = create_store(get_database_uri())
        async with store:
            app.state.orchestrator = DeltaSyncOrchestrator(
                store, settings=SyncSettings.from_env()
            )
            logger.info("Ticket mirror ready at %s", store.engine.url.render_as_string())
            yield
        app.state.orchestrator = None

    app = FastAPI(title="support-pulse", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    if orchestrator is not None:
        app.state.orchestrator = orchestrator

    app.include_router(sync_router)
    app.include_router(proxy_router)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
