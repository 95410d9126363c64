"""Connection consistency manager.

The only component that writes connection rows. Guarantees that for any
unordered pair of people in a graph there is at most one logical
connection, stored as two directed rows that always carry the same type
and are created and destroyed together.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections import defaultdict
from typing import Any

from socialgraph.core.errors import (
    GraphError,
    InconsistentStateDetected,
    InvalidArgument,
    NotFound,
    TransactionFailure,
)
from socialgraph.graph.catalog import ConnectionType, parse_connection_type
from socialgraph.graph.models import Connection, ConnectionRecord, canonical_pair
from socialgraph.repositories import resolve

logger = logging.getLogger(__name__)


def _validate_person_id(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgument(f"Invalid person id: {value!r}")
    return value


def collapse_records(
    graph_id: int, records: list[ConnectionRecord]
) -> tuple[list[Connection], list[InconsistentStateDetected]]:
    """Fold directed rows into one logical connection per canonical pair.

    Rows of type None are treated as absent. A pair whose rows disagree
    (missing reverse, differing types, duplicates) yields a finding and
    is presented with the higher of its types.
    """
    by_pair: dict[tuple[int, int], list[ConnectionRecord]] = defaultdict(list)
    for record in records:
        if record.graph_id != graph_id:
            continue
        if record.source_person_id == record.target_person_id:
            continue
        by_pair[record.pair].append(record)

    connections: list[Connection] = []
    findings: list[InconsistentStateDetected] = []
    for pair in sorted(by_pair):
        rows = by_pair[pair]
        forward = [r.connection_type for r in rows if r.source_person_id == pair[0]]
        reverse = [r.connection_type for r in rows if r.source_person_id == pair[1]]
        forward_type = max(forward) if forward else None
        reverse_type = max(reverse) if reverse else None
        duplicates = max(len(forward) - 1, 0) + max(len(reverse) - 1, 0)

        resolved = max(forward_type or 0, reverse_type or 0)
        symmetric = (
            forward_type is not None
            and forward_type == reverse_type
            and duplicates == 0
        )
        # A lone None row is equivalent to no row at all.
        if not symmetric and resolved == ConnectionType.NONE and duplicates == 0:
            continue
        if not symmetric:
            findings.append(
                InconsistentStateDetected(
                    graph_id, pair, forward_type, reverse_type, duplicates
                )
            )
        if resolved == ConnectionType.NONE:
            continue
        connections.append(Connection.of(graph_id, pair[0], pair[1], resolved))
    return connections, findings


class ConnectionManager:
    """Mediates every write to connection rows.

    Args:
        store: A graph repository (in-memory or Postgres).
        auto_repair: Schedule a background repair pass whenever a read
            finds an asymmetric pair.
    """

    def __init__(self, store: Any, auto_repair: bool = True) -> None:
        self._store = store
        self._auto_repair = auto_repair
        # Entries disappear once no writer holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[tuple[int, int, int], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._pending_repairs: dict[int, set[tuple[int, int]]] = defaultdict(set)
        self._background_tasks: set[asyncio.Task] = set()
        self._repairing: set[int] = set()

    @property
    def pending_repairs(self) -> dict[int, set[tuple[int, int]]]:
        return {g: set(p) for g, p in self._pending_repairs.items() if p}

    async def set_connection(
        self,
        graph_id: int,
        person_a: int,
        person_b: int,
        connection_type: int | str | ConnectionType,
    ) -> Connection | None:
        """Create, replace or remove the connection between two people.

        Deletes any existing rows for the pair in either direction, then
        inserts the two symmetric rows unless the type is None. Both steps
        run in one transaction.

        Returns:
            The canonical connection, or None when the type is None.

        Raises:
            InvalidArgument: malformed ids, self pair or unknown type.
            NotFound: the graph or either person does not exist.
            TransactionFailure: storage failed; nothing was changed.
        """
        a = _validate_person_id(person_a)
        b = _validate_person_id(person_b)
        if a == b:
            raise InvalidArgument(f"A person cannot be connected to themselves ({a})")
        ctype = parse_connection_type(connection_type)
        await self._require_people(graph_id, a, b)

        low, high = canonical_pair(a, b)
        connection = (
            Connection.of(graph_id, low, high, ctype)
            if ctype != ConnectionType.NONE
            else None
        )

        async def _replace(tx: Any) -> None:
            await resolve(tx.delete_pair(graph_id, low, high))
            if connection is not None:
                for record in connection.records():
                    await resolve(tx.insert_record(record))

        async with self._lock_for(graph_id, low, high):
            try:
                await resolve(self._store.run_in_transaction(_replace))
            except TransactionFailure:
                logger.warning(
                    "Connection write rolled back for %d<->%d in graph %d",
                    low, high, graph_id,
                )
                raise
            except GraphError:
                raise
            except Exception as exc:
                logger.warning(
                    "Connection write rolled back for %d<->%d in graph %d: %s",
                    low, high, graph_id, exc,
                )
                raise TransactionFailure(
                    f"Failed to write connection {low}<->{high} in graph {graph_id}"
                ) from exc

        self._pending_repairs[graph_id].discard((low, high))
        logger.info(
            "Connection %d<->%d in graph %d set to %s",
            low, high, graph_id, ctype.name,
        )
        return connection

    async def remove_connection(
        self, graph_id: int, person_a: int, person_b: int
    ) -> None:
        await self.set_connection(graph_id, person_a, person_b, ConnectionType.NONE)

    async def list_connections(self, graph_id: int) -> list[Connection]:
        """Return one logical connection per unordered pair in the graph."""
        records = await resolve(self._store.get_connections(graph_id))
        connections, findings = collapse_records(graph_id, records)
        if findings:
            self._record_findings(graph_id, findings)
        return connections

    async def get_connection(
        self, graph_id: int, person_a: int, person_b: int
    ) -> Connection | None:
        pair = canonical_pair(person_a, person_b)
        for connection in await self.list_connections(graph_id):
            if connection.pair == pair:
                return connection
        return None

    async def find_inconsistencies(
        self, graph_id: int
    ) -> list[InconsistentStateDetected]:
        records = await resolve(self._store.get_connections(graph_id))
        _, findings = collapse_records(graph_id, records)
        return findings

    async def repair(self, graph_id: int) -> int:
        """Rewrite every asymmetric pair in the graph with its higher type.

        Returns the number of pairs repaired.
        """
        findings = await self.find_inconsistencies(graph_id)
        repaired = 0
        for finding in findings:
            a, b = finding.pair
            try:
                await self.set_connection(graph_id, a, b, finding.resolved_type)
            except NotFound:
                # Endpoint gone: the rows are orphans, drop them outright.
                await self._drop_pair(graph_id, a, b)
            self._pending_repairs[graph_id].discard(finding.pair)
            repaired += 1
            logger.info(
                "Repaired connection %d<->%d in graph %d (type %d)",
                a, b, graph_id, finding.resolved_type,
            )
        return repaired

    async def delete_person(self, graph_id: int, person_id: int) -> int:
        """Delete a person together with all of their connection rows."""
        _validate_person_id(person_id)
        removed = await resolve(self._store.delete_person(graph_id, person_id))
        logger.info(
            "Deleted person %d from graph %d (%d connection rows)",
            person_id, graph_id, removed,
        )
        return removed

    async def close(self) -> None:
        """Wait for any scheduled repair passes to finish."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    # -- internals --

    async def _require_people(self, graph_id: int, a: int, b: int) -> None:
        graph = await resolve(self._store.get_graph(graph_id))
        if graph is None:
            raise NotFound(f"Graph {graph_id} not found")
        for person_id in (a, b):
            person = await resolve(self._store.get_person(graph_id, person_id))
            if person is None:
                raise NotFound(f"Person {person_id} not found in graph {graph_id}")

    def _lock_for(self, graph_id: int, low: int, high: int) -> asyncio.Lock:
        key = (graph_id, low, high)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def _drop_pair(self, graph_id: int, a: int, b: int) -> None:
        async def _delete(tx: Any) -> None:
            await resolve(tx.delete_pair(graph_id, a, b))

        async with self._lock_for(graph_id, *canonical_pair(a, b)):
            await resolve(self._store.run_in_transaction(_delete))

    def _record_findings(
        self, graph_id: int, findings: list[InconsistentStateDetected]
    ) -> None:
        for finding in findings:
            logger.error("Inconsistent connection state: %s", finding)
            self._pending_repairs[graph_id].add(finding.pair)

        # One background pass per graph at a time.
        if not self._auto_repair or graph_id in self._repairing:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._repairing.add(graph_id)
        task = loop.create_task(self._background_repair(graph_id))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _background_repair(self, graph_id: int) -> None:
        try:
            await self.repair(graph_id)
        except GraphError:
            logger.exception("Repair pass failed for graph %d", graph_id)
        finally:
            self._repairing.discard(graph_id)
