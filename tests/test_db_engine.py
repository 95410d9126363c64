"""Tests for DatabaseManager with SQLite async."""

from __future__ import annotations

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError

from socialgraph.core.config import DatabaseConfig
from socialgraph.db.engine import DatabaseManager
from socialgraph.db.models import ConnectionRow, PersonRow, SocialGraphRow


@pytest.fixture
async def db_manager():
    """Create a DatabaseManager with an in-memory SQLite database."""
    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.create_schema()
    yield manager
    await manager.close()


async def test_session_creation(db_manager):
    async with db_manager.session() as session:
        assert session is not None


async def test_foreign_keys_enabled(db_manager):
    async with db_manager.engine.connect() as conn:
        result = await conn.execute(text("PRAGMA foreign_keys"))
        assert result.scalar() == 1


async def test_graph_round_trip(db_manager):
    async with db_manager.session() as session:
        session.add(SocialGraphRow(name="Work", owner="jo"))
        await session.commit()

    async with db_manager.session() as session:
        result = await session.execute(
            select(SocialGraphRow).where(SocialGraphRow.owner == "jo")
        )
        found = result.scalar_one_or_none()
        assert found is not None
        assert found.name == "Work"
        assert found.delete_at is None


async def test_connection_rows_reject_self_pair(db_manager):
    async with db_manager.session() as session:
        graph = SocialGraphRow(name="Work")
        session.add(graph)
        await session.flush()
        person = PersonRow(graph_id=graph.id, name="Ann Able")
        session.add(person)
        await session.flush()
        session.add(ConnectionRow(
            graph_id=graph.id,
            source_person_id=person.id,
            target_person_id=person.id,
            connection_type=3,
        ))
        with pytest.raises(IntegrityError):
            await session.flush()


def test_from_config_requires_url():
    with pytest.raises(ValueError):
        DatabaseManager.from_config(DatabaseConfig())
