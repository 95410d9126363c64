"""Database layer for the social graph service: SQLAlchemy 2.0 async."""

from __future__ import annotations

from socialgraph.db.base import Base
from socialgraph.db.engine import DatabaseManager

__all__ = ["Base", "DatabaseManager"]
