"""FastAPI router for network analysis and the visualization contract."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from socialgraph.core.config import Settings
from socialgraph.core.errors import GraphError
from socialgraph.graph import analytics
from socialgraph.graph.encoding import Palette, VisualFilter, encode_visual_attributes
from socialgraph.graph.models import Connection, Person
from socialgraph.repositories import resolve
from socialgraph.web.common import (
    get_connection_manager,
    get_graph_store,
    http_error,
    require_graph,
)

router = APIRouter()


def _settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or Settings()


async def _snapshot(
    request: Request, graph_id: int
) -> tuple[list[Person], list[Connection]]:
    store = get_graph_store(request)
    manager = get_connection_manager(request)
    await require_graph(store, graph_id)
    people = await resolve(store.get_people(graph_id))
    connections = await manager.list_connections(graph_id)
    return people, connections


def _group_of(request: Request, group_by: str | None) -> analytics.GroupOf:
    attribute = group_by or _settings(request).analytics.group_attribute
    try:
        return analytics.group_accessor(attribute)
    except GraphError as exc:
        raise http_error(exc)


@router.get("/api/graphs/{graph_id}/analysis/centrality")
async def centrality(graph_id: int, request: Request) -> list[dict[str, Any]]:
    people, connections = await _snapshot(request, graph_id)
    return [s.model_dump() for s in analytics.compute_centrality(people, connections)]


@router.get("/api/graphs/{graph_id}/analysis/closeness")
async def closeness(graph_id: int, request: Request) -> list[dict[str, Any]]:
    people, connections = await _snapshot(request, graph_id)
    return [
        s.model_dump()
        for s in analytics.compute_closeness_centrality(people, connections)
    ]


@router.get("/api/graphs/{graph_id}/analysis/clustering")
async def clustering(graph_id: int, request: Request) -> list[dict[str, Any]]:
    people, connections = await _snapshot(request, graph_id)
    return [s.model_dump() for s in analytics.compute_clustering(people, connections)]


@router.get("/api/graphs/{graph_id}/analysis/bridges")
async def bridges(
    graph_id: int, request: Request, group_by: str | None = None
) -> list[dict[str, Any]]:
    group_of = _group_of(request, group_by)
    people, connections = await _snapshot(request, graph_id)
    return [
        b.model_dump()
        for b in analytics.find_bridge_nodes(people, connections, group_of)
    ]


@router.get("/api/graphs/{graph_id}/analysis/isolates")
async def isolates(
    graph_id: int, request: Request, threshold: int | None = None
) -> list[dict[str, Any]]:
    if threshold is None:
        threshold = _settings(request).analytics.isolation_threshold
    people, connections = await _snapshot(request, graph_id)
    return [
        i.model_dump()
        for i in analytics.find_isolated_nodes(people, connections, threshold)
    ]


@router.get("/api/graphs/{graph_id}/analysis/group-matrix")
async def group_matrix(
    graph_id: int, request: Request, group_by: str | None = None
) -> dict[str, dict[str, int]]:
    group_of = _group_of(request, group_by)
    people, connections = await _snapshot(request, graph_id)
    return analytics.build_group_matrix(people, connections, group_of)


@router.get("/api/graphs/{graph_id}/analysis/summary")
async def summary(
    graph_id: int, request: Request, group_by: str | None = None
) -> dict[str, Any]:
    settings = _settings(request)
    group_of = _group_of(request, group_by)
    people, connections = await _snapshot(request, graph_id)
    result = analytics.summarize(
        people,
        connections,
        group_of,
        threshold=settings.analytics.isolation_threshold,
        top_n=settings.analytics.top_n,
    )
    return result.model_dump()


@router.post("/api/graphs/{graph_id}/visualization")
async def visualization(
    graph_id: int, request: Request, body: VisualFilter | None = None
) -> dict[str, Any]:
    """Styled nodes and edges for the force-directed layout."""
    store = get_graph_store(request)
    people, connections = await _snapshot(request, graph_id)
    organizations = await resolve(store.get_organizations(graph_id))
    affiliations = await resolve(store.get_affiliations(graph_id))
    filters = body or VisualFilter()
    if filters.group_by == "affiliation":
        palette = Palette.from_entities(organizations, affiliations)
    else:
        palette = Palette.from_entities(affiliations, organizations)
    render = encode_visual_attributes(
        people,
        connections,
        filters=filters,
        palette=palette,
        config=_settings(request).visual,
    )
    return render.model_dump()
