"""Protocol definition for the graph-scoped store accessor.

The protocol mirrors the public methods of the in-memory ``GraphStore``
exactly, so both the sync (in-memory) and async (Postgres)
implementations satisfy the same interface.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, Protocol, TypeVar, runtime_checkable

from socialgraph.graph.models import (
    Affiliation,
    ConnectionRecord,
    Organization,
    Person,
    SocialGraph,
)

T = TypeVar("T")


@runtime_checkable
class ConnectionTransaction(Protocol):
    """Handle passed to functions run inside ``run_in_transaction``."""

    def delete_pair(self, graph_id: int, a: int, b: int) -> int: ...

    def insert_record(self, record: ConnectionRecord) -> None: ...


@runtime_checkable
class GraphRepository(Protocol):
    """Protocol for graph-scoped storage of people and connections."""

    def create_graph(self, name: str, owner: str | None = None) -> SocialGraph: ...

    def get_graph(self, graph_id: int) -> SocialGraph | None: ...

    def list_graphs(self, owner: str | None = None) -> list[SocialGraph]: ...

    def rename_graph(self, graph_id: int, name: str) -> SocialGraph: ...

    def touch_graph(self, graph_id: int) -> SocialGraph: ...

    def schedule_deletion(
        self, graph_id: int, delete_at: datetime | None
    ) -> SocialGraph: ...

    def duplicate_graph(self, graph_id: int, name: str | None = None) -> SocialGraph: ...

    def purge_expired(self, now: datetime | None = None) -> list[int]: ...

    def add_person(self, person: Person) -> Person: ...

    def get_person(self, graph_id: int, person_id: int) -> Person | None: ...

    def get_people(self, graph_id: int) -> list[Person]: ...

    def update_person(
        self, graph_id: int, person_id: int, changes: dict[str, Any]
    ) -> Person: ...

    def delete_person(self, graph_id: int, person_id: int) -> int: ...

    def add_organization(self, organization: Organization) -> Organization: ...

    def get_organizations(self, graph_id: int) -> list[Organization]: ...

    def update_organization(
        self, graph_id: int, organization_id: int, changes: dict[str, Any]
    ) -> Organization: ...

    def delete_organization(self, graph_id: int, organization_id: int) -> None: ...

    def add_affiliation(self, affiliation: Affiliation) -> Affiliation: ...

    def get_affiliations(self, graph_id: int) -> list[Affiliation]: ...

    def update_affiliation(
        self, graph_id: int, affiliation_id: int, changes: dict[str, Any]
    ) -> Affiliation: ...

    def delete_affiliation(self, graph_id: int, affiliation_id: int) -> None: ...

    def get_connections(self, graph_id: int) -> list[ConnectionRecord]: ...

    def run_in_transaction(
        self, fn: Callable[[ConnectionTransaction], Awaitable[T]]
    ) -> Awaitable[T]: ...
