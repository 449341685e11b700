"""
HTTP surface (FastAPI).

    app = create_app(commerce)   # tests: bring your own services
    app = create_app()           # serve: services built from the environment

    uvicorn atelier.api:app
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from atelier.api._routes import router
from atelier.config import config
from atelier.log import setup_logging
from atelier.services import Commerce, from_config


def create_app(commerce: Commerce | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if commerce is not None:
            app.state.commerce = commerce
            yield
            return

        setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)
        built, engine = await from_config(config)
        app.state.commerce = built
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(title="Atelier Commerce", lifespan=lifespan)
    if commerce is not None:
        app.state.commerce = commerce
    app.include_router(router)
    return app


app = create_app()

__all__ = ("create_app", "app", "router")
