"""Relationship consistency and graph analytics engine."""

from socialgraph.graph.catalog import CATALOG, ConnectionType
from socialgraph.graph.consistency import ConnectionManager
from socialgraph.graph.models import Connection, Person, canonical_pair
from socialgraph.graph.store import GraphStore

__all__ = [
    "CATALOG",
    "Connection",
    "ConnectionManager",
    "ConnectionType",
    "GraphStore",
    "Person",
    "canonical_pair",
]
