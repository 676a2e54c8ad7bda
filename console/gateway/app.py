"""
FastAPI application factory for the ChainDB registry service.

This module creates the FastAPI app with:
- CORS configuration for browser clients
- The SQLite pointer registry the routes read and write
- Pointer routes under /api/v1

Usage:
    uvicorn console.gateway.app:app --port 8090
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dbsync.chaindb import __version__
from dbsync.chaindb.registry import SqlitePointerRegistry

from .config import Settings
from .routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage registry lifecycle."""
    logger.info(f"Registry service using {app.state.settings.db_path}")

    yield

    await app.state.registry.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()

    app = FastAPI(
        title="ChainDB Registry",
        description=(
            "Pointer registry for ChainDB version chains. "
            "Reads are public; writes need the owner key and use compare-and-set."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Routes derive per-pointer registries from this one with for_name()
    app.state.settings = settings
    app.state.registry = SqlitePointerRegistry(
        db_path=settings.db_path,
        name="",
        owner_key=settings.owner_key,
        busy_timeout_ms=settings.busy_timeout_ms,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "PUT", "OPTIONS"],
        allow_headers=["*"],
    )

    # API routes
    app.include_router(router, prefix="/api/v1")

    # Health endpoint at root
    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "chaindb-registry", "version": __version__}

    return app


def main() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    settings = Settings()
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


# Default app instance
app = create_app()
