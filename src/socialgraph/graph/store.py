"""In-memory graph-scoped store.

Connections are kept as directed dual rows (``A->B`` and ``B->A``) keyed
per graph. Writes to connection rows go through ``run_in_transaction`` so
that a failure or cancellation part-way through leaves nothing behind.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from socialgraph.core.errors import InvalidArgument, NotFound, TransactionFailure
from socialgraph.graph.models import (
    Affiliation,
    ConnectionRecord,
    Organization,
    Person,
    SocialGraph,
)

T = TypeVar("T")

_PERSON_FIELDS = {
    "name",
    "organization",
    "affiliation",
    "job_title",
    "email",
    "phone",
    "relationship_to_viewer",
    "notes",
}

_GROUP_FIELDS = {"name", "color"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_unique_name(
    existing: Iterable[Organization | Affiliation],
    name: str,
    kind: str,
    exclude_id: int | None = None,
) -> None:
    for entity in existing:
        if entity.name == name and entity.id != exclude_id:
            raise InvalidArgument(f"{kind} {name!r} already exists in this graph")


class MemoryTransaction:
    """Transaction handle over the in-memory connection rows.

    Every mutation is recorded in an undo log; ``rollback`` replays it
    in reverse.
    """

    def __init__(self, store: GraphStore) -> None:
        self._store = store
        self._undo: list[tuple[str, ConnectionRecord]] = []

    def delete_pair(self, graph_id: int, a: int, b: int) -> int:
        rows = self._store._connections.setdefault(graph_id, {})
        removed = 0
        for key in ((a, b), (b, a)):
            record = rows.pop(key, None)
            if record is not None:
                self._undo.append(("deleted", record))
                removed += 1
        return removed

    def insert_record(self, record: ConnectionRecord) -> None:
        rows = self._store._connections.setdefault(record.graph_id, {})
        key = (record.source_person_id, record.target_person_id)
        if key in rows:
            raise TransactionFailure(
                f"Duplicate connection row {key[0]}->{key[1]} in graph {record.graph_id}"
            )
        rows[key] = record
        self._undo.append(("inserted", record))

    def rollback(self) -> None:
        for action, record in reversed(self._undo):
            rows = self._store._connections.setdefault(record.graph_id, {})
            key = (record.source_person_id, record.target_person_id)
            if action == "inserted":
                rows.pop(key, None)
            else:
                rows[key] = record
        self._undo.clear()


class GraphStore:
    """In-memory store for social graphs and everything scoped to them."""

    def __init__(self) -> None:
        self._graphs: dict[int, SocialGraph] = {}
        self._people: dict[int, dict[int, Person]] = {}
        self._organizations: dict[int, dict[int, Organization]] = {}
        self._affiliations: dict[int, dict[int, Affiliation]] = {}
        self._connections: dict[int, dict[tuple[int, int], ConnectionRecord]] = {}
        self._ids = itertools.count(1)

    # -- Graphs --

    def create_graph(self, name: str, owner: str | None = None) -> SocialGraph:
        graph = SocialGraph(id=next(self._ids), name=name, owner=owner)
        self._graphs[graph.id] = graph
        self._people[graph.id] = {}
        self._organizations[graph.id] = {}
        self._affiliations[graph.id] = {}
        self._connections[graph.id] = {}
        return graph

    def get_graph(self, graph_id: int) -> SocialGraph | None:
        return self._graphs.get(graph_id)

    def list_graphs(self, owner: str | None = None) -> list[SocialGraph]:
        graphs = list(self._graphs.values())
        if owner is not None:
            graphs = [g for g in graphs if g.owner == owner]
        return sorted(graphs, key=lambda g: g.modified_at, reverse=True)

    def rename_graph(self, graph_id: int, name: str) -> SocialGraph:
        graph = self._require_graph(graph_id)
        graph.name = name
        graph.modified_at = _utcnow()
        return graph

    def touch_graph(self, graph_id: int) -> SocialGraph:
        graph = self._require_graph(graph_id)
        graph.modified_at = _utcnow()
        return graph

    def schedule_deletion(
        self, graph_id: int, delete_at: datetime | None
    ) -> SocialGraph:
        graph = self._require_graph(graph_id)
        graph.delete_at = delete_at
        return graph

    def duplicate_graph(self, graph_id: int, name: str | None = None) -> SocialGraph:
        """Copy a graph with its people, groups and connection rows.

        The copy gets fresh ids throughout; nothing is shared with the source.
        """
        source = self._require_graph(graph_id)
        copy = self.create_graph(name or f"{source.name} (copy)", owner=source.owner)
        person_ids: dict[int, int] = {}
        for person in self.get_people(graph_id):
            stored = person.model_copy(update={"id": next(self._ids), "graph_id": copy.id})
            self._people[copy.id][stored.id] = stored
            person_ids[person.id] = stored.id
        for organization in self.get_organizations(graph_id):
            self.add_organization(organization.model_copy(update={"graph_id": copy.id}))
        for affiliation in self.get_affiliations(graph_id):
            self.add_affiliation(affiliation.model_copy(update={"graph_id": copy.id}))
        rows = self._connections[copy.id]
        for record in self.get_connections(graph_id):
            source_id = person_ids.get(record.source_person_id)
            target_id = person_ids.get(record.target_person_id)
            if source_id is None or target_id is None:
                continue
            rows[(source_id, target_id)] = record.model_copy(update={
                "graph_id": copy.id,
                "source_person_id": source_id,
                "target_person_id": target_id,
            })
        return copy

    def purge_expired(self, now: datetime | None = None) -> list[int]:
        """Hard-delete every graph whose deletion time has passed."""
        now = now or _utcnow()
        expired = [
            g.id for g in self._graphs.values()
            if g.delete_at is not None and g.delete_at <= now
        ]
        for graph_id in expired:
            del self._graphs[graph_id]
            self._people.pop(graph_id, None)
            self._organizations.pop(graph_id, None)
            self._affiliations.pop(graph_id, None)
            self._connections.pop(graph_id, None)
        return expired

    # -- People --

    def add_person(self, person: Person) -> Person:
        self._require_graph(person.graph_id)
        stored = person.model_copy(update={"id": next(self._ids)})
        self._people[person.graph_id][stored.id] = stored
        return stored

    def get_person(self, graph_id: int, person_id: int) -> Person | None:
        return self._people.get(graph_id, {}).get(person_id)

    def get_people(self, graph_id: int) -> list[Person]:
        return list(self._people.get(graph_id, {}).values())

    def update_person(
        self, graph_id: int, person_id: int, changes: dict[str, Any]
    ) -> Person:
        current = self.get_person(graph_id, person_id)
        if current is None:
            raise NotFound(f"Person {person_id} not found in graph {graph_id}")
        update = {k: v for k, v in changes.items() if k in _PERSON_FIELDS}
        updated = Person.model_validate({**current.model_dump(), **update})
        self._people[graph_id][person_id] = updated
        return updated

    def delete_person(self, graph_id: int, person_id: int) -> int:
        """Delete a person and every connection row referencing them.

        Returns the number of connection rows removed.
        """
        people = self._people.get(graph_id, {})
        if person_id not in people:
            raise NotFound(f"Person {person_id} not found in graph {graph_id}")
        rows = self._connections.get(graph_id, {})
        doomed = [key for key in rows if person_id in key]
        for key in doomed:
            del rows[key]
        del people[person_id]
        return len(doomed)

    # -- Organizations & affiliations --

    def add_organization(self, organization: Organization) -> Organization:
        self._require_graph(organization.graph_id)
        orgs = self._organizations[organization.graph_id]
        _require_unique_name(orgs.values(), organization.name, "Organization")
        stored = organization.model_copy(update={"id": next(self._ids)})
        orgs[stored.id] = stored
        return stored

    def get_organizations(self, graph_id: int) -> list[Organization]:
        return list(self._organizations.get(graph_id, {}).values())

    def update_organization(
        self, graph_id: int, organization_id: int, changes: dict[str, Any]
    ) -> Organization:
        return self._update_group(
            self._organizations, graph_id, organization_id, changes, "Organization"
        )

    def delete_organization(self, graph_id: int, organization_id: int) -> None:
        """Delete an organization. People keep their free-text organization."""
        self._delete_group(self._organizations, graph_id, organization_id, "Organization")

    def add_affiliation(self, affiliation: Affiliation) -> Affiliation:
        self._require_graph(affiliation.graph_id)
        affiliations = self._affiliations[affiliation.graph_id]
        _require_unique_name(affiliations.values(), affiliation.name, "Affiliation")
        stored = affiliation.model_copy(update={"id": next(self._ids)})
        affiliations[stored.id] = stored
        return stored

    def get_affiliations(self, graph_id: int) -> list[Affiliation]:
        return list(self._affiliations.get(graph_id, {}).values())

    def update_affiliation(
        self, graph_id: int, affiliation_id: int, changes: dict[str, Any]
    ) -> Affiliation:
        return self._update_group(
            self._affiliations, graph_id, affiliation_id, changes, "Affiliation"
        )

    def delete_affiliation(self, graph_id: int, affiliation_id: int) -> None:
        self._delete_group(self._affiliations, graph_id, affiliation_id, "Affiliation")

    # -- Connections --

    def get_connections(self, graph_id: int) -> list[ConnectionRecord]:
        return list(self._connections.get(graph_id, {}).values())

    async def run_in_transaction(
        self, fn: Callable[[MemoryTransaction], Awaitable[T]]
    ) -> T:
        """Run ``fn`` against a transaction handle, undoing it on any failure."""
        tx = self._begin()
        try:
            return await fn(tx)
        except BaseException:
            tx.rollback()
            raise

    def _update_group(
        self,
        groups: dict[int, dict[int, Any]],
        graph_id: int,
        group_id: int,
        changes: dict[str, Any],
        kind: str,
    ) -> Any:
        current = groups.get(graph_id, {}).get(group_id)
        if current is None:
            raise NotFound(f"{kind} {group_id} not found in graph {graph_id}")
        update = {k: v for k, v in changes.items() if k in _GROUP_FIELDS}
        updated = type(current).model_validate({**current.model_dump(), **update})
        _require_unique_name(groups[graph_id].values(), updated.name, kind, exclude_id=group_id)
        groups[graph_id][group_id] = updated
        return updated

    def _delete_group(
        self, groups: dict[int, dict[int, Any]], graph_id: int, group_id: int, kind: str
    ) -> None:
        if groups.get(graph_id, {}).pop(group_id, None) is None:
            raise NotFound(f"{kind} {group_id} not found in graph {graph_id}")

    def _begin(self) -> MemoryTransaction:
        return MemoryTransaction(self)

    def _require_graph(self, graph_id: int) -> SocialGraph:
        graph = self._graphs.get(graph_id)
        if graph is None:
            raise NotFound(f"Graph {graph_id} not found")
        return graph

    @property
    def graph_count(self) -> int:
        return len(self._graphs)

    def connection_row_count(self, graph_id: int) -> int:
        return len(self._connections.get(graph_id, {}))
