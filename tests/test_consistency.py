"""Tests for the connection consistency manager."""

from __future__ import annotations

import asyncio
import gc

import pytest
from conftest import add_people

from socialgraph.core.errors import InvalidArgument, NotFound, TransactionFailure
from socialgraph.graph.catalog import ConnectionType
from socialgraph.graph.consistency import ConnectionManager, collapse_records
from socialgraph.graph.models import ConnectionRecord, Person
from socialgraph.graph.store import GraphStore, MemoryTransaction


def _rows(store, graph_id):
    return {
        (r.source_person_id, r.target_person_id): r.connection_type
        for r in store.get_connections(graph_id)
    }


def _record(graph_id, source, target, connection_type):
    return ConnectionRecord(
        graph_id=graph_id,
        source_person_id=source,
        target_person_id=target,
        connection_type=connection_type,
    )


@pytest.fixture
def graph_id(store):
    return store.create_graph("G").id


@pytest.fixture
def people(store, graph_id):
    return add_people(store, graph_id, ("Ann Able", "Acme"), ("Bob Baker", "Acme"), ("Cat Cole", None))


class TestSetConnection:
    async def test_writes_two_symmetric_rows(self, store, manager, graph_id, people):
        a, b, _ = people
        conn = await manager.set_connection(graph_id, b.id, a.id, 3)
        assert conn.pair == (a.id, b.id)
        assert conn.connection_type is ConnectionType.CLOSE
        assert _rows(store, graph_id) == {(a.id, b.id): 3, (b.id, a.id): 3}

    async def test_idempotent(self, store, manager, graph_id, people):
        a, b, _ = people
        await manager.set_connection(graph_id, a.id, b.id, 3)
        once = await manager.list_connections(graph_id)
        await manager.set_connection(graph_id, a.id, b.id, 3)
        assert await manager.list_connections(graph_id) == once
        assert store.connection_row_count(graph_id) == 2

    async def test_replace_from_either_direction(self, manager, graph_id, people):
        a, b, _ = people
        await manager.set_connection(graph_id, a.id, b.id, 3)
        await manager.set_connection(graph_id, b.id, a.id, 5)
        connections = await manager.list_connections(graph_id)
        assert len(connections) == 1
        assert connections[0].connection_type is ConnectionType.ALLIED

    async def test_type_none_removes(self, store, manager, graph_id, people):
        a, b, _ = people
        await manager.set_connection(graph_id, a.id, b.id, "Trusted")
        assert await manager.set_connection(graph_id, a.id, b.id, 0) is None
        assert store.connection_row_count(graph_id) == 0

    async def test_remove_connection(self, manager, graph_id, people):
        a, b, _ = people
        await manager.set_connection(graph_id, a.id, b.id, 2)
        await manager.remove_connection(graph_id, b.id, a.id)
        assert await manager.get_connection(graph_id, a.id, b.id) is None

    async def test_remove_absent_connection_is_noop(self, manager, graph_id, people):
        a, b, _ = people
        await manager.remove_connection(graph_id, a.id, b.id)
        assert await manager.list_connections(graph_id) == []

    async def test_symmetry_after_many_writes(self, manager, graph_id, people):
        a, b, c = people
        for x, y, t in [(a, b, 1), (b, a, 4), (c, a, 2), (a, c, 0), (b, c, 5), (c, b, 3)]:
            await manager.set_connection(graph_id, x.id, y.id, t)
        connections = await manager.list_connections(graph_id)
        pairs = [conn.pair for conn in connections]
        assert len(pairs) == len(set(pairs))
        assert {conn.pair: int(conn.connection_type) for conn in connections} == {
            (a.id, b.id): 4,
            (b.id, c.id): 3,
        }
        assert await manager.find_inconsistencies(graph_id) == []


class TestValidation:
    async def test_self_pair(self, store, manager, graph_id, people):
        a = people[0]
        with pytest.raises(InvalidArgument):
            await manager.set_connection(graph_id, a.id, a.id, 3)
        assert store.connection_row_count(graph_id) == 0

    @pytest.mark.parametrize("bad_type", [6, -1, "soulmates"])
    async def test_out_of_range_type(self, manager, graph_id, people, bad_type):
        a, b, _ = people
        with pytest.raises(InvalidArgument):
            await manager.set_connection(graph_id, a.id, b.id, bad_type)

    @pytest.mark.parametrize("bad_id", [0, -3, "7", None, True])
    async def test_malformed_person_id(self, manager, graph_id, people, bad_id):
        with pytest.raises(InvalidArgument):
            await manager.set_connection(graph_id, bad_id, people[0].id, 3)

    async def test_missing_person(self, manager, graph_id, people):
        with pytest.raises(NotFound):
            await manager.set_connection(graph_id, people[0].id, 9999, 3)

    async def test_missing_graph(self, manager, people):
        a, b, _ = people
        with pytest.raises(NotFound):
            await manager.set_connection(9999, a.id, b.id, 3)

    async def test_person_from_another_graph(self, store, manager, graph_id, people):
        other = store.create_graph("Other")
        stranger = store.add_person(Person(graph_id=other.id, name="Dee Dunn"))
        with pytest.raises(NotFound):
            await manager.set_connection(graph_id, people[0].id, stranger.id, 3)


class _FailAfterDelete(MemoryTransaction):
    def insert_record(self, record):
        raise OSError("disk full")


class _FailingStore(GraphStore):
    def _begin(self):
        return _FailAfterDelete(self)


class _FlakyStore(GraphStore):
    """Fails every write until `failing` is cleared."""

    def __init__(self):
        super().__init__()
        self.failing = True

    def _begin(self):
        if self.failing:
            return _FailAfterDelete(self)
        return super()._begin()


class _SlowTransaction(MemoryTransaction):
    def __init__(self, store, gate):
        super().__init__(store)
        self._gate = gate

    async def insert_record(self, record):
        super().insert_record(record)
        await self._gate.wait()


class _SlowStore(GraphStore):
    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    def _begin(self):
        return _SlowTransaction(self, self.gate)


class TestAtomicity:
    async def test_failure_after_delete_keeps_original_rows(self):
        store = _FailingStore()
        manager = ConnectionManager(store, auto_repair=False)
        graph_id = store.create_graph("G").id
        a, b = add_people(store, graph_id, ("Ann Able", None), ("Bob Baker", None))
        store._connections[graph_id].update({
            (a.id, b.id): _record(graph_id, a.id, b.id, 2),
            (b.id, a.id): _record(graph_id, b.id, a.id, 2),
        })

        with pytest.raises(TransactionFailure):
            await manager.set_connection(graph_id, a.id, b.id, 5)

        assert _rows(store, graph_id) == {(a.id, b.id): 2, (b.id, a.id): 2}

    async def test_cancellation_mid_transaction_rolls_back(self):
        store = _SlowStore()
        manager = ConnectionManager(store, auto_repair=False)
        graph_id = store.create_graph("G").id
        a, b = add_people(store, graph_id, ("Ann Able", None), ("Bob Baker", None))
        store._connections[graph_id].update({
            (a.id, b.id): _record(graph_id, a.id, b.id, 1),
            (b.id, a.id): _record(graph_id, b.id, a.id, 1),
        })

        task = asyncio.create_task(manager.set_connection(graph_id, a.id, b.id, 4))
        await asyncio.sleep(0)
        # First row is written and the write is parked on the gate.
        assert _rows(store, graph_id) == {(a.id, b.id): 4}
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert _rows(store, graph_id) == {(a.id, b.id): 1, (b.id, a.id): 1}

    async def test_concurrent_writes_to_same_pair_stay_symmetric(self, store, manager, graph_id, people):
        a, b, _ = people
        await asyncio.gather(*[
            manager.set_connection(graph_id, *((a.id, b.id) if i % 2 else (b.id, a.id)), t)
            for i, t in enumerate([1, 2, 3, 4, 5, 3])
        ])
        connections = await manager.list_connections(graph_id)
        assert len(connections) == 1
        assert store.connection_row_count(graph_id) == 2
        assert await manager.find_inconsistencies(graph_id) == []

    async def test_concurrent_writes_to_disjoint_pairs(self, store, manager, graph_id, people):
        a, b, c = people
        await asyncio.gather(
            manager.set_connection(graph_id, a.id, b.id, 2),
            manager.set_connection(graph_id, b.id, c.id, 4),
            manager.set_connection(graph_id, c.id, a.id, 1),
        )
        assert len(await manager.list_connections(graph_id)) == 3
        assert store.connection_row_count(graph_id) == 6

    async def test_pair_locks_released_after_writes(self, store, manager, graph_id):
        hub, *others = add_people(
            store, graph_id, ("Hub Hart", None), *[(f"Spoke {i}", None) for i in range(5)]
        )
        await asyncio.gather(*[
            manager.set_connection(graph_id, hub.id, other.id, 3) for other in others
        ])
        for other in others:
            await manager.remove_connection(graph_id, hub.id, other.id)
        gc.collect()
        assert len(manager._locks) == 0


class TestInconsistentState:
    async def test_missing_reverse_row_is_reported_not_raised(self, store, manager, graph_id, people):
        a, b, _ = people
        store._connections[graph_id][(a.id, b.id)] = _record(graph_id, a.id, b.id, 3)

        connections = await manager.list_connections(graph_id)

        assert [(c.pair, int(c.connection_type)) for c in connections] == [((a.id, b.id), 3)]
        assert manager.pending_repairs == {graph_id: {(a.id, b.id)}}

    async def test_disagreeing_rows_resolve_to_higher_type(self, store, manager, graph_id, people):
        a, b, _ = people
        store._connections[graph_id].update({
            (a.id, b.id): _record(graph_id, a.id, b.id, 2),
            (b.id, a.id): _record(graph_id, b.id, a.id, 5),
        })

        connection = await manager.get_connection(graph_id, a.id, b.id)
        assert connection.connection_type is ConnectionType.ALLIED

        findings = await manager.find_inconsistencies(graph_id)
        assert len(findings) == 1
        assert findings[0].forward_type == 2
        assert findings[0].reverse_type == 5
        assert findings[0].resolved_type == 5

    async def test_repair_restores_symmetric_rows(self, store, manager, graph_id, people):
        a, b, _ = people
        store._connections[graph_id].update({
            (a.id, b.id): _record(graph_id, a.id, b.id, 2),
            (b.id, a.id): _record(graph_id, b.id, a.id, 4),
        })
        await manager.list_connections(graph_id)

        assert await manager.repair(graph_id) == 1
        assert _rows(store, graph_id) == {(a.id, b.id): 4, (b.id, a.id): 4}
        assert manager.pending_repairs == {}

    async def test_repair_drops_orphan_rows(self, store, manager, graph_id, people):
        a = people[0]
        store._connections[graph_id][(a.id, 4242)] = _record(graph_id, a.id, 4242, 3)
        assert await manager.repair(graph_id) == 1
        assert store.connection_row_count(graph_id) == 0

    async def test_auto_repair_runs_in_background(self, store, graph_id, people):
        a, b, _ = people
        manager = ConnectionManager(store, auto_repair=True)
        store._connections[graph_id][(b.id, a.id)] = _record(graph_id, b.id, a.id, 3)

        await manager.list_connections(graph_id)
        await manager.close()

        assert _rows(store, graph_id) == {(a.id, b.id): 3, (b.id, a.id): 3}

    async def test_repair_keeps_pairs_found_during_the_pass(self):
        store = _SlowStore()
        manager = ConnectionManager(store, auto_repair=False)
        graph_id = store.create_graph("G").id
        a, b, c = add_people(
            store, graph_id, ("Ann Able", None), ("Bob Baker", None), ("Cat Cole", None)
        )
        store._connections[graph_id][(a.id, b.id)] = _record(graph_id, a.id, b.id, 2)
        await manager.list_connections(graph_id)

        task = asyncio.create_task(manager.repair(graph_id))
        await asyncio.sleep(0)
        # The pass is parked mid-write when a second pair goes bad.
        store._connections[graph_id][(c.id, b.id)] = _record(graph_id, c.id, b.id, 4)
        await manager.list_connections(graph_id)
        store.gate.set()

        assert await task == 1
        assert manager.pending_repairs == {graph_id: {(b.id, c.id)}}

    async def test_failed_background_pass_is_retried_on_next_read(self):
        store = _FlakyStore()
        manager = ConnectionManager(store, auto_repair=True)
        graph_id = store.create_graph("G").id
        a, b = add_people(store, graph_id, ("Ann Able", None), ("Bob Baker", None))
        store._connections[graph_id][(a.id, b.id)] = _record(graph_id, a.id, b.id, 3)

        await manager.list_connections(graph_id)
        await manager.close()
        assert manager.pending_repairs == {graph_id: {(a.id, b.id)}}

        store.failing = False
        await manager.list_connections(graph_id)
        await manager.close()

        assert _rows(store, graph_id) == {(a.id, b.id): 3, (b.id, a.id): 3}
        assert manager.pending_repairs == {}

    def test_collapse_ignores_lone_none_row(self):
        records = [_record(1, 1, 2, 0)]
        assert collapse_records(1, records) == ([], [])

    def test_collapse_reports_duplicates(self):
        records = [_record(1, 1, 2, 3), _record(1, 1, 2, 3), _record(1, 2, 1, 3)]
        connections, findings = collapse_records(1, records)
        assert len(connections) == 1
        assert findings[0].duplicate_rows == 1


class TestDeletePersonAndScoping:
    async def test_delete_person_removes_every_row(self, store, manager, graph_id, people):
        a, b, c = people
        await manager.set_connection(graph_id, a.id, b.id, 3)
        await manager.set_connection(graph_id, a.id, c.id, 1)
        await manager.set_connection(graph_id, b.id, c.id, 2)

        assert await manager.delete_person(graph_id, a.id) == 4
        assert [conn.pair for conn in await manager.list_connections(graph_id)] == [(b.id, c.id)]

    async def test_delete_missing_person(self, manager, graph_id):
        with pytest.raises(NotFound):
            await manager.delete_person(graph_id, 12345)

    async def test_connections_are_graph_scoped(self, store, manager, graph_id, people):
        a, b, _ = people
        other = store.create_graph("Other")
        x, y = add_people(store, other.id, ("Xena Xu", None), ("Yuri Young", None))
        await manager.set_connection(graph_id, a.id, b.id, 3)
        await manager.set_connection(other.id, x.id, y.id, 5)

        assert [c.pair for c in await manager.list_connections(graph_id)] == [(a.id, b.id)]
        assert [c.pair for c in await manager.list_connections(other.id)] == [(x.id, y.id)]
