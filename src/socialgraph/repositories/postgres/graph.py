"""PostgreSQL graph repository."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.core.errors import InvalidArgument, NotFound, TransactionFailure
from socialgraph.db.engine import DatabaseManager
from socialgraph.db.models import (
    AffiliationRow,
    ConnectionRow,
    OrganizationRow,
    PersonRow,
    SocialGraphRow,
)
from socialgraph.graph.models import (
    Affiliation,
    ConnectionRecord,
    Organization,
    Person,
    SocialGraph,
)

T = TypeVar("T")

_PERSON_FIELDS = (
    "name",
    "organization",
    "affiliation",
    "job_title",
    "email",
    "phone",
    "relationship_to_viewer",
    "notes",
)

_GROUP_FIELDS = ("name", "color")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything stored is UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PostgresConnectionTransaction:
    """Transaction handle bound to one open session and transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def delete_pair(self, graph_id: int, a: int, b: int) -> int:
        result = await self._session.execute(
            delete(ConnectionRow).where(
                ConnectionRow.graph_id == graph_id,
                or_(
                    and_(
                        ConnectionRow.source_person_id == a,
                        ConnectionRow.target_person_id == b,
                    ),
                    and_(
                        ConnectionRow.source_person_id == b,
                        ConnectionRow.target_person_id == a,
                    ),
                ),
            )
        )
        return result.rowcount or 0

    async def insert_record(self, record: ConnectionRecord) -> None:
        self._session.add(
            ConnectionRow(
                graph_id=record.graph_id,
                source_person_id=record.source_person_id,
                target_person_id=record.target_person_id,
                connection_type=record.connection_type,
            )
        )
        # Flush so constraint violations surface inside the transaction.
        await self._session.flush()


class PostgresGraphRepository:
    """Postgres-backed graph-scoped storage.

    Connections are stored as two directed rows per unordered pair. Every
    multi-row write runs inside a single ``session.begin()`` block, so a
    failure rolls back the whole unit.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    # -- Graphs --

    async def create_graph(self, name: str, owner: str | None = None) -> SocialGraph:
        async with self._db.session() as db:
            row = SocialGraphRow(name=name, owner=owner)
            db.add(row)
            await db.commit()
            return self._row_to_graph(row)

    async def get_graph(self, graph_id: int) -> SocialGraph | None:
        async with self._db.session() as db:
            row = await db.get(SocialGraphRow, graph_id)
            if row is None:
                return None
            return self._row_to_graph(row)

    async def list_graphs(self, owner: str | None = None) -> list[SocialGraph]:
        async with self._db.session() as db:
            stmt = select(SocialGraphRow).order_by(SocialGraphRow.modified_at.desc())
            if owner is not None:
                stmt = stmt.where(SocialGraphRow.owner == owner)
            result = await db.execute(stmt)
            return [self._row_to_graph(r) for r in result.scalars().all()]

    async def rename_graph(self, graph_id: int, name: str) -> SocialGraph:
        return await self._update_graph(graph_id, name=name, modified_at=_utcnow())

    async def touch_graph(self, graph_id: int) -> SocialGraph:
        return await self._update_graph(graph_id, modified_at=_utcnow())

    async def schedule_deletion(
        self, graph_id: int, delete_at: datetime | None
    ) -> SocialGraph:
        return await self._update_graph(graph_id, delete_at=delete_at)

    async def duplicate_graph(self, graph_id: int, name: str | None = None) -> SocialGraph:
        """Copy a graph with its people, groups and connection rows in one transaction."""
        try:
            async with self._db.session() as db:
                async with db.begin():
                    source = await db.get(SocialGraphRow, graph_id)
                    if source is None:
                        raise NotFound(f"Graph {graph_id} not found")
                    copy = SocialGraphRow(
                        name=name or f"{source.name} (copy)", owner=source.owner
                    )
                    db.add(copy)
                    await db.flush()

                    people = (
                        await db.execute(
                            select(PersonRow)
                            .where(PersonRow.graph_id == graph_id)
                            .order_by(PersonRow.id)
                        )
                    ).scalars().all()
                    clones = [
                        PersonRow(
                            graph_id=copy.id,
                            **{f: getattr(p, f) for f in _PERSON_FIELDS},
                        )
                        for p in people
                    ]
                    db.add_all(clones)
                    await db.flush()
                    person_ids = {p.id: c.id for p, c in zip(people, clones)}

                    for row_cls in (OrganizationRow, AffiliationRow):
                        groups = (
                            await db.execute(
                                select(row_cls).where(row_cls.graph_id == graph_id)
                            )
                        ).scalars().all()
                        db.add_all(
                            row_cls(graph_id=copy.id, name=g.name, color=g.color)
                            for g in groups
                        )

                    rows = (
                        await db.execute(
                            select(ConnectionRow).where(ConnectionRow.graph_id == graph_id)
                        )
                    ).scalars().all()
                    db.add_all(
                        ConnectionRow(
                            graph_id=copy.id,
                            source_person_id=person_ids[r.source_person_id],
                            target_person_id=person_ids[r.target_person_id],
                            connection_type=r.connection_type,
                        )
                        for r in rows
                        if r.source_person_id in person_ids
                        and r.target_person_id in person_ids
                    )
                    await db.flush()
                    return self._row_to_graph(copy)
        except SQLAlchemyError as exc:
            raise TransactionFailure(f"Failed to duplicate graph {graph_id}") from exc

    async def purge_expired(self, now: datetime | None = None) -> list[int]:
        now = now or _utcnow()
        try:
            async with self._db.session() as db:
                async with db.begin():
                    result = await db.execute(
                        select(SocialGraphRow.id).where(
                            SocialGraphRow.delete_at.is_not(None),
                            SocialGraphRow.delete_at <= now,
                        )
                    )
                    expired = list(result.scalars().all())
                    if expired:
                        for model in (
                            ConnectionRow,
                            PersonRow,
                            OrganizationRow,
                            AffiliationRow,
                        ):
                            await db.execute(
                                delete(model).where(model.graph_id.in_(expired))
                            )
                        await db.execute(
                            delete(SocialGraphRow).where(SocialGraphRow.id.in_(expired))
                        )
                    return expired
        except SQLAlchemyError as exc:
            raise TransactionFailure("Failed to purge expired graphs") from exc

    # -- People --

    async def add_person(self, person: Person) -> Person:
        async with self._db.session() as db:
            if await db.get(SocialGraphRow, person.graph_id) is None:
                raise NotFound(f"Graph {person.graph_id} not found")
            row = PersonRow(
                graph_id=person.graph_id,
                **{f: getattr(person, f) for f in _PERSON_FIELDS},
            )
            db.add(row)
            await db.commit()
            return self._row_to_person(row)

    async def get_person(self, graph_id: int, person_id: int) -> Person | None:
        async with self._db.session() as db:
            row = await db.get(PersonRow, person_id)
            if row is None or row.graph_id != graph_id:
                return None
            return self._row_to_person(row)

    async def get_people(self, graph_id: int) -> list[Person]:
        async with self._db.session() as db:
            result = await db.execute(
                select(PersonRow)
                .where(PersonRow.graph_id == graph_id)
                .order_by(PersonRow.id)
            )
            return [self._row_to_person(r) for r in result.scalars().all()]

    async def update_person(
        self, graph_id: int, person_id: int, changes: dict[str, Any]
    ) -> Person:
        async with self._db.session() as db:
            row = await db.get(PersonRow, person_id)
            if row is None or row.graph_id != graph_id:
                raise NotFound(f"Person {person_id} not found in graph {graph_id}")
            current = self._row_to_person(row)
            update = {k: v for k, v in changes.items() if k in _PERSON_FIELDS}
            updated = Person.model_validate({**current.model_dump(), **update})
            for field in _PERSON_FIELDS:
                setattr(row, field, getattr(updated, field))
            await db.commit()
            return updated

    async def delete_person(self, graph_id: int, person_id: int) -> int:
        try:
            async with self._db.session() as db:
                async with db.begin():
                    row = await db.get(PersonRow, person_id)
                    if row is None or row.graph_id != graph_id:
                        raise NotFound(
                            f"Person {person_id} not found in graph {graph_id}"
                        )
                    result = await db.execute(
                        delete(ConnectionRow).where(
                            ConnectionRow.graph_id == graph_id,
                            or_(
                                ConnectionRow.source_person_id == person_id,
                                ConnectionRow.target_person_id == person_id,
                            ),
                        )
                    )
                    await db.delete(row)
                    return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise TransactionFailure(
                f"Failed to delete person {person_id} from graph {graph_id}"
            ) from exc

    # -- Organizations & affiliations --

    async def add_organization(self, organization: Organization) -> Organization:
        row = await self._add_group(OrganizationRow, organization, "Organization")
        return Organization(id=row.id, graph_id=row.graph_id, name=row.name, color=row.color)

    async def get_organizations(self, graph_id: int) -> list[Organization]:
        async with self._db.session() as db:
            result = await db.execute(
                select(OrganizationRow).where(OrganizationRow.graph_id == graph_id)
            )
            return [
                Organization(id=r.id, graph_id=r.graph_id, name=r.name, color=r.color)
                for r in result.scalars().all()
            ]

    async def update_organization(
        self, graph_id: int, organization_id: int, changes: dict[str, Any]
    ) -> Organization:
        return await self._update_group(
            OrganizationRow, Organization, graph_id, organization_id, changes
        )

    async def delete_organization(self, graph_id: int, organization_id: int) -> None:
        await self._delete_group(OrganizationRow, graph_id, organization_id, "Organization")

    async def add_affiliation(self, affiliation: Affiliation) -> Affiliation:
        row = await self._add_group(AffiliationRow, affiliation, "Affiliation")
        return Affiliation(id=row.id, graph_id=row.graph_id, name=row.name, color=row.color)

    async def get_affiliations(self, graph_id: int) -> list[Affiliation]:
        async with self._db.session() as db:
            result = await db.execute(
                select(AffiliationRow).where(AffiliationRow.graph_id == graph_id)
            )
            return [
                Affiliation(id=r.id, graph_id=r.graph_id, name=r.name, color=r.color)
                for r in result.scalars().all()
            ]

    async def update_affiliation(
        self, graph_id: int, affiliation_id: int, changes: dict[str, Any]
    ) -> Affiliation:
        return await self._update_group(
            AffiliationRow, Affiliation, graph_id, affiliation_id, changes
        )

    async def delete_affiliation(self, graph_id: int, affiliation_id: int) -> None:
        await self._delete_group(AffiliationRow, graph_id, affiliation_id, "Affiliation")

    # -- Connections --

    async def get_connections(self, graph_id: int) -> list[ConnectionRecord]:
        async with self._db.session() as db:
            result = await db.execute(
                select(ConnectionRow).where(ConnectionRow.graph_id == graph_id)
            )
            return [
                ConnectionRecord(
                    graph_id=r.graph_id,
                    source_person_id=r.source_person_id,
                    target_person_id=r.target_person_id,
                    connection_type=r.connection_type,
                )
                for r in result.scalars().all()
            ]

    async def run_in_transaction(
        self, fn: Callable[[PostgresConnectionTransaction], Awaitable[T]]
    ) -> T:
        """Run ``fn`` inside one database transaction.

        Any exception, cancellation included, rolls the transaction back.
        Storage errors surface as TransactionFailure.
        """
        try:
            async with self._db.session() as db:
                async with db.begin():
                    return await fn(PostgresConnectionTransaction(db))
        except SQLAlchemyError as exc:
            raise TransactionFailure("Connection transaction rolled back") from exc

    # -- helpers --

    async def _update_graph(self, graph_id: int, **values: Any) -> SocialGraph:
        async with self._db.session() as db:
            row = await db.get(SocialGraphRow, graph_id)
            if row is None:
                raise NotFound(f"Graph {graph_id} not found")
            for key, value in values.items():
                setattr(row, key, value)
            await db.commit()
            return self._row_to_graph(row)

    async def _add_group(
        self, row_cls: type[OrganizationRow] | type[AffiliationRow], group: Any, kind: str
    ) -> Any:
        try:
            async with self._db.session() as db:
                if await db.get(SocialGraphRow, group.graph_id) is None:
                    raise NotFound(f"Graph {group.graph_id} not found")
                row = row_cls(graph_id=group.graph_id, name=group.name, color=group.color)
                db.add(row)
                await db.commit()
                return row
        except IntegrityError as exc:
            raise InvalidArgument(
                f"{kind} {group.name!r} already exists in this graph"
            ) from exc

    async def _update_group(
        self,
        row_cls: type[OrganizationRow] | type[AffiliationRow],
        model_cls: type[Organization] | type[Affiliation],
        graph_id: int,
        group_id: int,
        changes: dict[str, Any],
    ) -> Any:
        kind = model_cls.__name__
        try:
            async with self._db.session() as db:
                row = await db.get(row_cls, group_id)
                if row is None or row.graph_id != graph_id:
                    raise NotFound(f"{kind} {group_id} not found in graph {graph_id}")
                current = model_cls(
                    id=row.id, graph_id=row.graph_id, name=row.name, color=row.color
                )
                update = {k: v for k, v in changes.items() if k in _GROUP_FIELDS}
                updated = model_cls.model_validate({**current.model_dump(), **update})
                row.name = updated.name
                row.color = updated.color
                await db.commit()
                return updated
        except IntegrityError as exc:
            raise InvalidArgument(
                f"{kind} {changes.get('name')!r} already exists in this graph"
            ) from exc

    async def _delete_group(
        self,
        row_cls: type[OrganizationRow] | type[AffiliationRow],
        graph_id: int,
        group_id: int,
        kind: str,
    ) -> None:
        async with self._db.session() as db:
            row = await db.get(row_cls, group_id)
            if row is None or row.graph_id != graph_id:
                raise NotFound(f"{kind} {group_id} not found in graph {graph_id}")
            await db.delete(row)
            await db.commit()

    @staticmethod
    def _row_to_graph(row: SocialGraphRow) -> SocialGraph:
        return SocialGraph(
            id=row.id,
            name=row.name,
            owner=row.owner,
            created_at=_aware(row.created_at),
            modified_at=_aware(row.modified_at),
            delete_at=_aware(row.delete_at),
        )

    @staticmethod
    def _row_to_person(row: PersonRow) -> Person:
        return Person(
            id=row.id,
            graph_id=row.graph_id,
            **{f: getattr(row, f) for f in _PERSON_FIELDS},
        )
