"""Initial schema: graphs, people, organizations, affiliations, connections.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -- Graphs --
    op.create_table(
        "graphs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("owner", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("delete_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_graphs_owner", "graphs", ["owner"])
    op.create_index("ix_graphs_delete_at", "graphs", ["delete_at"])

    # -- People --
    op.create_table(
        "people",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "graph_id",
            sa.Integer,
            sa.ForeignKey("graphs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("organization", sa.String(256), nullable=True),
        sa.Column("affiliation", sa.String(256), nullable=True),
        sa.Column("job_title", sa.String(256), nullable=True),
        sa.Column("email", sa.String(256), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("relationship_to_viewer", sa.Integer, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_people_graph_id", "people", ["graph_id"])

    # -- Organizations & Affiliations --
    for table in ("organizations", "affiliations"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
            sa.Column(
                "graph_id",
                sa.Integer,
                sa.ForeignKey("graphs.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("name", sa.String(256), nullable=False),
            sa.Column("color", sa.String(32), nullable=False),
            sa.UniqueConstraint("graph_id", "name", name=f"uq_{table}_graph_name"),
        )

    # -- Connections (two directed rows per unordered pair) --
    op.create_table(
        "connections",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "graph_id",
            sa.Integer,
            sa.ForeignKey("graphs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "source_person_id",
            sa.Integer,
            sa.ForeignKey("people.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_person_id",
            sa.Integer,
            sa.ForeignKey("people.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("connection_type", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "graph_id", "source_person_id", "target_person_id",
            name="uq_connections_directed_pair",
        ),
        sa.CheckConstraint(
            "connection_type BETWEEN 0 AND 5", name="ck_connections_type_range"
        ),
        sa.CheckConstraint(
            "source_person_id <> target_person_id", name="ck_connections_no_self"
        ),
    )
    op.create_index("ix_connections_graph_id", "connections", ["graph_id"])
    op.create_index("ix_connections_target", "connections", ["target_person_id"])


def downgrade() -> None:
    op.drop_table("connections")
    op.drop_table("affiliations")
    op.drop_table("organizations")
    op.drop_table("people")
    op.drop_table("graphs")
