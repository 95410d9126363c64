"""Shared test fixtures and helpers."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from socialgraph.graph.consistency import ConnectionManager
from socialgraph.graph.models import Organization, Person
from socialgraph.graph.store import GraphStore


@dataclass
class Scenario:
    """A, B in org X; C in org Y. A-B type 4, B-C type 2."""

    store: GraphStore
    manager: ConnectionManager
    graph_id: int
    a: Person
    b: Person
    c: Person


def add_people(store: GraphStore, graph_id: int, *specs: tuple[str, str | None]) -> list[Person]:
    """Add people given (name, organization) tuples."""
    return [
        store.add_person(Person(graph_id=graph_id, name=name, organization=org))
        for name, org in specs
    ]


@pytest.fixture
def store() -> GraphStore:
    return GraphStore()


@pytest.fixture
def manager(store) -> ConnectionManager:
    return ConnectionManager(store, auto_repair=False)


@pytest.fixture
async def scenario(store, manager) -> Scenario:
    graph = store.create_graph("Scenario")
    store.add_organization(Organization(graph_id=graph.id, name="X", color="#0087DC"))
    store.add_organization(Organization(graph_id=graph.id, name="Y", color="#DC241F"))
    a, b, c = add_people(store, graph.id, ("Ann Able", "X"), ("Bob Baker", "X"), ("Cat Cole", "Y"))
    await manager.set_connection(graph.id, a.id, b.id, 4)
    await manager.set_connection(graph.id, b.id, c.id, 2)
    return Scenario(store=store, manager=manager, graph_id=graph.id, a=a, b=b, c=c)
