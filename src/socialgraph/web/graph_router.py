"""FastAPI router for graphs, people, organizations and affiliations."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from socialgraph.core.errors import GraphError
from socialgraph.graph.catalog import CATALOG_VERSION, list_catalog
from socialgraph.graph.models import Affiliation, Organization, Person
from socialgraph.repositories import resolve
from socialgraph.web.common import (
    get_connection_manager,
    get_graph_store,
    http_error,
    require_graph,
)

router = APIRouter()

_HONORIFICS = {"Sir", "Dame"}


def sortable_surname(name: str) -> str:
    """Sort key for people lists: surname, skipping a leading Sir/Dame."""
    parts = name.split()
    if not parts:
        return ""
    if len(parts) == 3 and parts[0] in _HONORIFICS:
        return parts[2].lower()
    return (parts[1] if len(parts) > 1 else parts[0]).lower()


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class GraphCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    owner: str | None = None


class GraphRenameRequest(BaseModel):
    name: str = Field(min_length=1)


class DeleteTimerRequest(BaseModel):
    delete_at: datetime


class PersonCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    organization: str | None = None
    affiliation: str | None = None
    job_title: str | None = None
    email: str | None = None
    phone: str | None = None
    relationship_to_viewer: int | None = Field(default=None, ge=0, le=5)
    notes: str | None = None


class GroupCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    color: str = Field(min_length=1)


class GroupUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    color: str | None = Field(default=None, min_length=1)


class GraphDuplicateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)


# ---------------------------------------------------------------------------
# Graphs
# ---------------------------------------------------------------------------


@router.post("/api/graphs")
async def create_graph(body: GraphCreateRequest, request: Request) -> dict[str, Any]:
    store = get_graph_store(request)
    graph = await resolve(store.create_graph(body.name, owner=body.owner))
    return graph.model_dump(mode="json")


@router.get("/api/graphs")
async def list_graphs(request: Request, owner: str | None = None) -> list[dict[str, Any]]:
    store = get_graph_store(request)
    graphs = await resolve(store.list_graphs(owner=owner))
    return [g.model_dump(mode="json") for g in graphs]


@router.get("/api/graphs/{graph_id}")
async def get_graph(graph_id: int, request: Request) -> dict[str, Any]:
    store = get_graph_store(request)
    graph = await require_graph(store, graph_id)
    return graph.model_dump(mode="json")


@router.patch("/api/graphs/{graph_id}")
async def rename_graph(
    graph_id: int, body: GraphRenameRequest, request: Request
) -> dict[str, Any]:
    store = get_graph_store(request)
    await require_graph(store, graph_id)
    graph = await resolve(store.rename_graph(graph_id, body.name))
    return graph.model_dump(mode="json")


@router.post("/api/graphs/{graph_id}/duplicate")
async def duplicate_graph(
    graph_id: int, request: Request, body: GraphDuplicateRequest | None = None
) -> dict[str, Any]:
    """Copy a graph into a new one with its own ids."""
    store = get_graph_store(request)
    await require_graph(store, graph_id)
    try:
        graph = await resolve(
            store.duplicate_graph(graph_id, name=body.name if body else None)
        )
    except GraphError as exc:
        raise http_error(exc)
    return graph.model_dump(mode="json")


@router.post("/api/graphs/{graph_id}/access")
async def touch_graph(graph_id: int, request: Request) -> dict[str, Any]:
    """Record that the graph was opened."""
    store = get_graph_store(request)
    await require_graph(store, graph_id)
    graph = await resolve(store.touch_graph(graph_id))
    return graph.model_dump(mode="json")


@router.put("/api/graphs/{graph_id}/delete-timer")
async def set_delete_timer(
    graph_id: int, body: DeleteTimerRequest, request: Request
) -> dict[str, Any]:
    store = get_graph_store(request)
    await require_graph(store, graph_id)
    graph = await resolve(store.schedule_deletion(graph_id, body.delete_at))
    return graph.model_dump(mode="json")


@router.delete("/api/graphs/{graph_id}/delete-timer")
async def cancel_delete_timer(graph_id: int, request: Request) -> dict[str, Any]:
    store = get_graph_store(request)
    await require_graph(store, graph_id)
    graph = await resolve(store.schedule_deletion(graph_id, None))
    return graph.model_dump(mode="json")


@router.get("/api/connection-types")
async def list_connection_types() -> dict[str, Any]:
    return {
        "version": CATALOG_VERSION,
        "types": [info.model_dump() for info in list_catalog()],
    }


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------


@router.get("/api/graphs/{graph_id}/people")
async def list_people(graph_id: int, request: Request) -> list[dict[str, Any]]:
    store = get_graph_store(request)
    await require_graph(store, graph_id)
    people = await resolve(store.get_people(graph_id))
    people = sorted(people, key=lambda p: (sortable_surname(p.name), p.id))
    return [p.model_dump() for p in people]


@router.post("/api/graphs/{graph_id}/people")
async def create_person(
    graph_id: int, body: PersonCreateRequest, request: Request
) -> dict[str, Any]:
    store = get_graph_store(request)
    await require_graph(store, graph_id)
    try:
        person = Person(graph_id=graph_id, **body.model_dump())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    person = await resolve(store.add_person(person))
    return person.model_dump()


@router.get("/api/graphs/{graph_id}/people/{person_id}")
async def get_person(graph_id: int, person_id: int, request: Request) -> dict[str, Any]:
    store = get_graph_store(request)
    person = await resolve(store.get_person(graph_id, person_id))
    if person is None:
        raise HTTPException(
            status_code=404, detail=f"Person {person_id} not found in graph {graph_id}"
        )
    return person.model_dump()


@router.put("/api/graphs/{graph_id}/people/{person_id}")
async def update_person(
    graph_id: int, person_id: int, body: dict[str, Any], request: Request
) -> dict[str, Any]:
    store = get_graph_store(request)
    try:
        person = await resolve(store.update_person(graph_id, person_id, body))
    except GraphError as exc:
        raise http_error(exc)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return person.model_dump()


@router.delete("/api/graphs/{graph_id}/people/{person_id}")
async def delete_person(graph_id: int, person_id: int, request: Request) -> dict[str, Any]:
    """Delete a person and every connection that references them."""
    manager = get_connection_manager(request)
    try:
        removed = await manager.delete_person(graph_id, person_id)
    except GraphError as exc:
        raise http_error(exc)
    return {"success": True, "connection_rows_removed": removed}


# ---------------------------------------------------------------------------
# Organizations & affiliations
# ---------------------------------------------------------------------------


@router.get("/api/graphs/{graph_id}/organizations")
async def list_organizations(graph_id: int, request: Request) -> list[dict[str, Any]]:
    store = get_graph_store(request)
    await require_graph(store, graph_id)
    organizations = await resolve(store.get_organizations(graph_id))
    return [o.model_dump() for o in sorted(organizations, key=lambda o: o.name.lower())]


@router.post("/api/graphs/{graph_id}/organizations")
async def create_organization(
    graph_id: int, body: GroupCreateRequest, request: Request
) -> dict[str, Any]:
    store = get_graph_store(request)
    await require_graph(store, graph_id)
    try:
        organization = await resolve(
            store.add_organization(
                Organization(graph_id=graph_id, name=body.name, color=body.color)
            )
        )
    except GraphError as exc:
        raise http_error(exc)
    return organization.model_dump()


@router.put("/api/graphs/{graph_id}/organizations/{organization_id}")
async def update_organization(
    graph_id: int, organization_id: int, body: GroupUpdateRequest, request: Request
) -> dict[str, Any]:
    """Rename or recolor an organization. People keep their organization text."""
    store = get_graph_store(request)
    try:
        organization = await resolve(
            store.update_organization(
                graph_id, organization_id, body.model_dump(exclude_none=True)
            )
        )
    except GraphError as exc:
        raise http_error(exc)
    return organization.model_dump()


@router.delete("/api/graphs/{graph_id}/organizations/{organization_id}")
async def delete_organization(
    graph_id: int, organization_id: int, request: Request
) -> dict[str, Any]:
    store = get_graph_store(request)
    try:
        await resolve(store.delete_organization(graph_id, organization_id))
    except GraphError as exc:
        raise http_error(exc)
    return {"success": True}


@router.get("/api/graphs/{graph_id}/affiliations")
async def list_affiliations(graph_id: int, request: Request) -> list[dict[str, Any]]:
    """List affiliations with member counts, largest first."""
    store = get_graph_store(request)
    await require_graph(store, graph_id)
    affiliations = await resolve(store.get_affiliations(graph_id))
    people = await resolve(store.get_people(graph_id))
    counts: dict[str, int] = {}
    for person in people:
        if person.affiliation:
            counts[person.affiliation] = counts.get(person.affiliation, 0) + 1
    rows = [
        {**a.model_dump(), "member_count": counts.get(a.name, 0)}
        for a in affiliations
    ]
    return sorted(rows, key=lambda r: (-r["member_count"], r["name"]))


@router.post("/api/graphs/{graph_id}/affiliations")
async def create_affiliation(
    graph_id: int, body: GroupCreateRequest, request: Request
) -> dict[str, Any]:
    store = get_graph_store(request)
    await require_graph(store, graph_id)
    try:
        affiliation = await resolve(
            store.add_affiliation(
                Affiliation(graph_id=graph_id, name=body.name, color=body.color)
            )
        )
    except GraphError as exc:
        raise http_error(exc)
    return affiliation.model_dump()


@router.put("/api/graphs/{graph_id}/affiliations/{affiliation_id}")
async def update_affiliation(
    graph_id: int, affiliation_id: int, body: GroupUpdateRequest, request: Request
) -> dict[str, Any]:
    store = get_graph_store(request)
    try:
        affiliation = await resolve(
            store.update_affiliation(
                graph_id, affiliation_id, body.model_dump(exclude_none=True)
            )
        )
    except GraphError as exc:
        raise http_error(exc)
    return affiliation.model_dump()


@router.delete("/api/graphs/{graph_id}/affiliations/{affiliation_id}")
async def delete_affiliation(
    graph_id: int, affiliation_id: int, request: Request
) -> dict[str, Any]:
    store = get_graph_store(request)
    try:
        await resolve(store.delete_affiliation(graph_id, affiliation_id))
    except GraphError as exc:
        raise http_error(exc)
    return {"success": True}
