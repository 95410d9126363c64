"""Graph data models."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from socialgraph.graph.catalog import BASELINE_TIER, ConnectionType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def canonical_pair(a: int, b: int) -> tuple[int, int]:
    """Order-independent identity of an unordered connection."""
    return (a, b) if a <= b else (b, a)


class SocialGraph(BaseModel):
    id: int
    name: str
    owner: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    modified_at: datetime = Field(default_factory=_utcnow)
    delete_at: datetime | None = None


class Person(BaseModel):
    id: int = 0
    graph_id: int
    name: str
    organization: str | None = None
    affiliation: str | None = None
    job_title: str | None = None
    email: str | None = None
    phone: str | None = None
    relationship_to_viewer: int | None = Field(default=None, ge=0, le=5)
    notes: str | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be blank")
        return value

    @property
    def viewer_tier(self) -> ConnectionType:
        """Relationship-to-viewer tier, falling back to the baseline."""
        if not self.relationship_to_viewer:
            return BASELINE_TIER
        return ConnectionType(self.relationship_to_viewer)


class Organization(BaseModel):
    id: int = 0
    graph_id: int
    name: str
    color: str


class Affiliation(BaseModel):
    id: int = 0
    graph_id: int
    name: str
    color: str


class ConnectionRecord(BaseModel):
    """One directed storage row. Never leaves the store or the consistency layer."""

    model_config = ConfigDict(frozen=True)

    graph_id: int
    source_person_id: int
    target_person_id: int
    connection_type: int = Field(ge=0, le=5)

    @property
    def pair(self) -> tuple[int, int]:
        return canonical_pair(self.source_person_id, self.target_person_id)

    @property
    def key(self) -> tuple[int, int, int]:
        return (self.graph_id, self.source_person_id, self.target_person_id)


class Connection(BaseModel):
    """A logical, unordered connection between two people."""

    model_config = ConfigDict(frozen=True)

    graph_id: int
    person_a: int
    person_b: int
    connection_type: ConnectionType

    @model_validator(mode="after")
    def _canonical_order(self) -> Connection:
        if self.person_a > self.person_b:
            raise ValueError("person_a must not exceed person_b; use Connection.of()")
        return self

    @classmethod
    def of(
        cls, graph_id: int, a: int, b: int, connection_type: int
    ) -> Connection:
        low, high = canonical_pair(a, b)
        return cls(
            graph_id=graph_id,
            person_a=low,
            person_b=high,
            connection_type=ConnectionType(connection_type),
        )

    @property
    def pair(self) -> tuple[int, int]:
        return (self.person_a, self.person_b)

    def records(self) -> list[ConnectionRecord]:
        """The two symmetric storage rows representing this connection."""
        return [
            ConnectionRecord(
                graph_id=self.graph_id,
                source_person_id=self.person_a,
                target_person_id=self.person_b,
                connection_type=int(self.connection_type),
            ),
            ConnectionRecord(
                graph_id=self.graph_id,
                source_person_id=self.person_b,
                target_person_id=self.person_a,
                connection_type=int(self.connection_type),
            ),
        ]
