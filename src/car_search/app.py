"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from car_search.api import router
from car_search.api.dependencies import close_search_manager
from car_search.logging_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await close_search_manager(app)


def create_app() -> FastAPI:
    """Create and configure FastAPI application instance."""
    configure_logging()
    app = FastAPI(title="Car Search API", version="0.1.0", lifespan=lifespan)
    app.include_router(router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        """Simple endpoint to verify that the service is alive."""
        return {"status": "ok"}

    return app


app = create_app()
