"""FastAPI application for the social graph service.

Provides REST API endpoints for graphs, people, connections and network
analysis, plus a health check.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from socialgraph import __version__
from socialgraph.core.config import Settings
from socialgraph.graph.consistency import ConnectionManager
from socialgraph.graph.store import GraphStore
from socialgraph.web.analysis_router import router as analysis_router
from socialgraph.web.connection_router import router as connection_router
from socialgraph.web.graph_router import router as graph_router

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    store: str
    version: str = __version__


def create_app(
    settings: Settings | None = None,
    graph_store: Any | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can create isolated app instances
    with their own stores.

    Args:
        settings: Application settings. Defaults to Settings().
        graph_store: Optional pre-built graph repository. When omitted, a
            Postgres repository is used if ``settings.db.database_url`` is
            set, otherwise an in-memory GraphStore.

    Returns:
        A configured FastAPI instance.
    """
    if settings is None:
        settings = Settings()

    logging.getLogger("socialgraph").setLevel(settings.log_level.upper())

    db_manager = None
    if graph_store is None:
        if settings.db.database_url:
            from socialgraph.db.engine import DatabaseManager
            from socialgraph.repositories.postgres.graph import PostgresGraphRepository

            db_manager = DatabaseManager.from_config(settings.db)
            graph_store = PostgresGraphRepository(db_manager)
        else:
            graph_store = GraphStore()

    connection_manager = ConnectionManager(
        graph_store, auto_repair=settings.consistency.auto_repair
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await connection_manager.close()
        if db_manager is not None:
            await db_manager.close()

    app = FastAPI(
        title="Social Graph",
        description="People, organizations and the connections between them",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.graph_store = graph_store
    app.state.connection_manager = connection_manager
    if db_manager is not None:
        app.state.db_manager = db_manager

    app.include_router(graph_router)
    app.include_router(connection_router)
    app.include_router(analysis_router)

    store_kind = "postgres" if db_manager is not None else type(graph_store).__name__
    logger.info("Social graph app created (store=%s)", store_kind)

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            service="socialgraph",
            store=store_kind,
        )

    return app
