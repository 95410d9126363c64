"""FastAPI router for connection reads and writes.

All writes go through the ConnectionManager; nothing here touches
connection rows directly.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel

from socialgraph.core.errors import GraphError
from socialgraph.graph.catalog import ConnectionType
from socialgraph.graph.models import canonical_pair
from socialgraph.web.common import (
    get_connection_manager,
    get_graph_store,
    http_error,
    require_graph,
)

router = APIRouter()


class ConnectionSetRequest(BaseModel):
    """Request body for setting a connection. ``connection_type`` is 0-5."""

    person_a: int
    person_b: int
    connection_type: int


@router.get("/api/graphs/{graph_id}/connections")
async def list_connections(graph_id: int, request: Request) -> list[dict[str, Any]]:
    """List logical connections, one per unordered pair."""
    store = get_graph_store(request)
    manager = get_connection_manager(request)
    await require_graph(store, graph_id)
    connections = await manager.list_connections(graph_id)
    return [c.model_dump(mode="json") for c in connections]


@router.put("/api/graphs/{graph_id}/connections")
async def set_connection(
    graph_id: int, body: ConnectionSetRequest, request: Request
) -> dict[str, Any]:
    """Create, replace or (with type 0) remove a connection."""
    manager = get_connection_manager(request)
    try:
        connection = await manager.set_connection(
            graph_id, body.person_a, body.person_b, body.connection_type
        )
    except GraphError as exc:
        raise http_error(exc)

    low, high = canonical_pair(body.person_a, body.person_b)
    if connection is None:
        return {
            "graph_id": graph_id,
            "person_a": low,
            "person_b": high,
            "connection_type": int(ConnectionType.NONE),
        }
    return connection.model_dump(mode="json")


@router.get("/api/graphs/{graph_id}/connections/{person_a}/{person_b}")
async def get_connection(
    graph_id: int, person_a: int, person_b: int, request: Request
) -> dict[str, Any]:
    """Current connection between two people; type 0 when there is none."""
    store = get_graph_store(request)
    manager = get_connection_manager(request)
    await require_graph(store, graph_id)
    connection = await manager.get_connection(graph_id, person_a, person_b)
    low, high = canonical_pair(person_a, person_b)
    return {
        "graph_id": graph_id,
        "person_a": low,
        "person_b": high,
        "connection_type": int(connection.connection_type) if connection else 0,
    }


@router.delete("/api/graphs/{graph_id}/connections/{person_a}/{person_b}")
async def remove_connection(
    graph_id: int, person_a: int, person_b: int, request: Request
) -> dict[str, Any]:
    manager = get_connection_manager(request)
    try:
        await manager.remove_connection(graph_id, person_a, person_b)
    except GraphError as exc:
        raise http_error(exc)
    return {"success": True}


@router.get("/api/graphs/{graph_id}/connections-health")
async def connection_health(graph_id: int, request: Request) -> dict[str, Any]:
    """Report asymmetric connection pairs awaiting repair."""
    store = get_graph_store(request)
    manager = get_connection_manager(request)
    await require_graph(store, graph_id)
    findings = await manager.find_inconsistencies(graph_id)
    return {
        "graph_id": graph_id,
        "consistent": not findings,
        "inconsistent_pairs": [
            {
                "person_a": f.pair[0],
                "person_b": f.pair[1],
                "forward_type": f.forward_type,
                "reverse_type": f.reverse_type,
                "duplicate_rows": f.duplicate_rows,
            }
            for f in findings
        ],
    }


@router.post("/api/graphs/{graph_id}/connections/repair")
async def repair_connections(graph_id: int, request: Request) -> dict[str, Any]:
    store = get_graph_store(request)
    manager = get_connection_manager(request)
    await require_graph(store, graph_id)
    try:
        repaired = await manager.repair(graph_id)
    except GraphError as exc:
        raise http_error(exc)
    return {"graph_id": graph_id, "repaired": repaired}
