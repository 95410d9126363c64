"""Helpers shared by the API routers."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request

from socialgraph.core.errors import (
    GraphError,
    InvalidArgument,
    NotFound,
    TransactionFailure,
)
from socialgraph.graph.consistency import ConnectionManager
from socialgraph.graph.models import SocialGraph
from socialgraph.repositories import resolve


def get_graph_store(request: Request) -> Any:
    store = getattr(request.app.state, "graph_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Graph store not available")
    return store


def get_connection_manager(request: Request) -> ConnectionManager:
    manager = getattr(request.app.state, "connection_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Connection manager not available")
    return manager


async def require_graph(store: Any, graph_id: int) -> SocialGraph:
    graph = await resolve(store.get_graph(graph_id))
    if graph is None:
        raise HTTPException(status_code=404, detail=f"Graph {graph_id} not found")
    return graph


def http_error(exc: GraphError) -> HTTPException:
    """Map an engine failure onto an HTTP error."""
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidArgument):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, TransactionFailure):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail=f"Internal error: {exc}")
