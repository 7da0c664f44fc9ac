from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routes import config, connectors, health, runs
from manager.context import ManagerContext, get_context


def create_app(context: ManagerContext | None = None) -> FastAPI:
    """Application factory for the connector manager API."""
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.context is None:
            app.state.context = get_context()
        try:
            app.state.context.scheduler.enqueue_due_jobs()
        except Exception:  # pragma: no cover - safety
            logger.exception("Failed to enqueue due traversals on startup")
        yield

    app = FastAPI(title="Connector Manager", version="0.1.0", lifespan=lifespan)
    app.state.context = context

    app.include_router(health.router)
    app.include_router(connectors.router)
    app.include_router(config.router)
    app.include_router(runs.router)

    return app


app = create_app()
