"""SQLAlchemy ORM models for all persistent tables."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from socialgraph.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Graphs
# ---------------------------------------------------------------------------


class SocialGraphRow(Base):
    __tablename__ = "graphs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256))
    owner: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    delete_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_graphs_owner", "owner"),
        Index("ix_graphs_delete_at", "delete_at"),
    )


# ---------------------------------------------------------------------------
# People, organizations, affiliations
# ---------------------------------------------------------------------------


class PersonRow(Base):
    __tablename__ = "people"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    graph_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("graphs.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(256))
    organization: Mapped[str | None] = mapped_column(String(256), nullable=True)
    affiliation: Mapped[str | None] = mapped_column(String(256), nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(256), nullable=True)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    relationship_to_viewer: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_people_graph_id", "graph_id"),
    )


class OrganizationRow(Base):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    graph_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("graphs.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(256))
    color: Mapped[str] = mapped_column(String(32))

    __table_args__ = (
        UniqueConstraint("graph_id", "name", name="uq_organizations_graph_name"),
    )


class AffiliationRow(Base):
    __tablename__ = "affiliations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    graph_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("graphs.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(256))
    color: Mapped[str] = mapped_column(String(32))

    __table_args__ = (
        UniqueConstraint("graph_id", "name", name="uq_affiliations_graph_name"),
    )


# ---------------------------------------------------------------------------
# Connections (directed dual rows)
# ---------------------------------------------------------------------------


class ConnectionRow(Base):
    __tablename__ = "connections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    graph_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("graphs.id", ondelete="CASCADE")
    )
    source_person_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("people.id", ondelete="CASCADE")
    )
    target_person_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("people.id", ondelete="CASCADE")
    )
    connection_type: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint(
            "graph_id", "source_person_id", "target_person_id",
            name="uq_connections_directed_pair",
        ),
        CheckConstraint(
            "connection_type BETWEEN 0 AND 5", name="ck_connections_type_range"
        ),
        CheckConstraint(
            "source_person_id <> target_person_id", name="ck_connections_no_self"
        ),
        Index("ix_connections_graph_id", "graph_id"),
        Index("ix_connections_target", "target_person_id"),
    )
