"""Graph analytics over an immutable snapshot of people and connections.

All functions are pure: they take ``nodes`` (anything with an ``id``) and
``edges`` (anything with a canonical ``pair`` and a ``connection_type``)
and never mutate either. Directed dual rows and logical connections are
both accepted; edges are normalized to unordered pairs first.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Sequence

import networkx as nx
from pydantic import BaseModel, Field

from socialgraph.core.errors import InvalidArgument
from socialgraph.graph.catalog import ConnectionType

GroupOf = Callable[[Any], "str | None"]


class CentralityScore(BaseModel):
    id: int
    name: str = ""
    centrality: int


class ClosenessScore(BaseModel):
    id: int
    name: str = ""
    closeness: float


class ClusteringScore(BaseModel):
    id: int
    name: str = ""
    clustering: float


class BridgeInfo(BaseModel):
    id: int
    name: str = ""
    is_bridge: bool
    groups: list[str] = Field(default_factory=list)


class IsolationInfo(BaseModel):
    id: int
    name: str = ""
    is_isolated: bool
    degree: int


class NetworkSummary(BaseModel):
    """Headline figures for the analysis panel."""

    node_count: int
    edge_count: int
    density: float
    isolated_count: int
    bridge_count: int
    average_clustering: float
    most_connected: list[CentralityScore] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Group accessors
# ---------------------------------------------------------------------------


def group_of_organization(node: Any) -> str | None:
    value = getattr(node, "organization", None)
    return value.strip() or None if isinstance(value, str) else None


def group_of_affiliation(node: Any) -> str | None:
    value = getattr(node, "affiliation", None)
    return value.strip() or None if isinstance(value, str) else None


_GROUP_ACCESSORS: dict[str, GroupOf] = {
    "organization": group_of_organization,
    "affiliation": group_of_affiliation,
}


def group_accessor(attribute: str) -> GroupOf:
    """Return the group function for ``organization`` or ``affiliation``."""
    try:
        return _GROUP_ACCESSORS[attribute]
    except KeyError:
        raise InvalidArgument(f"Unknown group attribute: {attribute!r}") from None


# ---------------------------------------------------------------------------
# Snapshot normalization
# ---------------------------------------------------------------------------


def normalize_edges(
    nodes: Sequence[Any], edges: Iterable[Any]
) -> list[tuple[int, int]]:
    """Unique canonical pairs of connected nodes, in sorted order.

    Drops None-typed rows, self loops and edges touching nodes outside
    the snapshot; collapses the two rows of a dual-row edge into one.
    """
    ids = {n.id for n in nodes}
    pairs: set[tuple[int, int]] = set()
    for edge in edges:
        if int(getattr(edge, "connection_type", 1)) == ConnectionType.NONE:
            continue
        a, b = edge.pair
        if a == b or a not in ids or b not in ids:
            continue
        pairs.add((a, b))
    return sorted(pairs)


def build_graph(nodes: Sequence[Any], edges: Iterable[Any]) -> nx.Graph:
    """Undirected networkx graph keyed by person id.

    Every node in the snapshot is present, connected or not.
    """
    graph = nx.Graph()
    graph.add_nodes_from(n.id for n in nodes)
    graph.add_edges_from(normalize_edges(nodes, edges))
    return graph


def _name(node: Any) -> str:
    return getattr(node, "name", "") or ""


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def compute_centrality(
    nodes: Sequence[Any], edges: Iterable[Any]
) -> list[CentralityScore]:
    """Degree centrality: the number of distinct connections per node."""
    graph = build_graph(nodes, edges)
    return [
        CentralityScore(id=n.id, name=_name(n), centrality=graph.degree(n.id))
        for n in nodes
    ]


def compute_closeness_centrality(
    nodes: Sequence[Any], edges: Iterable[Any]
) -> list[ClosenessScore]:
    """Closeness centrality with the Wasserman-Faust correction.

    With R nodes reachable (including the node itself), D the sum of
    shortest-path distances to them and T nodes in the graph:

    - R == 1: 0
    - R <  T: (R-1)^2 / ((T-1) * D)
    - R == T: (R-1) / D
    """
    graph = build_graph(nodes, edges)
    closeness = nx.closeness_centrality(graph, wf_improved=True)
    return [
        ClosenessScore(id=n.id, name=_name(n), closeness=float(closeness.get(n.id, 0.0)))
        for n in nodes
    ]


def compute_clustering(
    nodes: Sequence[Any], edges: Iterable[Any]
) -> list[ClusteringScore]:
    """Local clustering coefficient; 0.0 for nodes with fewer than two neighbors."""
    graph = build_graph(nodes, edges)
    clustering = nx.clustering(graph)
    return [
        ClusteringScore(id=n.id, name=_name(n), clustering=float(clustering.get(n.id, 0.0)))
        for n in nodes
    ]


def find_bridge_nodes(
    nodes: Sequence[Any],
    edges: Iterable[Any],
    group_of: GroupOf = group_of_organization,
) -> list[BridgeInfo]:
    """Flag nodes whose neighbors belong to more than one group.

    Neighbors without a group do not count as a group of their own.
    """
    graph = build_graph(nodes, edges)
    groups_by_id = {n.id: group_of(n) for n in nodes}
    results: list[BridgeInfo] = []
    for node in nodes:
        groups = sorted(
            {
                groups_by_id[m]
                for m in graph.neighbors(node.id)
                if groups_by_id[m] is not None
            }
        )
        results.append(
            BridgeInfo(
                id=node.id, name=_name(node), is_bridge=len(groups) > 1, groups=groups
            )
        )
    return results


def find_isolated_nodes(
    nodes: Sequence[Any], edges: Iterable[Any], threshold: int = 1
) -> list[IsolationInfo]:
    """Flag nodes whose degree is at or below ``threshold``."""
    return [
        IsolationInfo(
            id=score.id,
            name=score.name,
            is_isolated=score.centrality <= threshold,
            degree=score.centrality,
        )
        for score in compute_centrality(nodes, edges)
    ]


def build_group_matrix(
    nodes: Sequence[Any],
    edges: Iterable[Any],
    group_of: GroupOf = group_of_organization,
) -> dict[str, dict[str, int]]:
    """Count connections between every pair of groups.

    An edge inside one group counts once on the diagonal; an edge between
    two groups counts in both (g1, g2) and (g2, g1). Nodes without a group
    are left out.
    """
    groups_by_id = {n.id: group_of(n) for n in nodes}
    groups = sorted({g for g in groups_by_id.values() if g is not None})
    matrix = {g1: {g2: 0 for g2 in groups} for g1 in groups}
    for a, b in normalize_edges(nodes, edges):
        ga, gb = groups_by_id[a], groups_by_id[b]
        if ga is None or gb is None:
            continue
        matrix[ga][gb] += 1
        if ga != gb:
            matrix[gb][ga] += 1
    return matrix


def summarize(
    nodes: Sequence[Any],
    edges: Iterable[Any],
    group_of: GroupOf = group_of_organization,
    threshold: int = 1,
    top_n: int = 10,
) -> NetworkSummary:
    edge_list = list(edges)
    graph = build_graph(nodes, edge_list)
    n = graph.number_of_nodes()
    centrality = compute_centrality(nodes, edge_list)
    ranked = sorted(centrality, key=lambda s: (-s.centrality, s.name, s.id))
    return NetworkSummary(
        node_count=n,
        edge_count=graph.number_of_edges(),
        density=nx.density(graph),
        isolated_count=sum(
            1 for i in find_isolated_nodes(nodes, edge_list, threshold) if i.is_isolated
        ),
        bridge_count=sum(
            1 for b in find_bridge_nodes(nodes, edge_list, group_of) if b.is_bridge
        ),
        average_clustering=nx.average_clustering(graph) if n else 0.0,
        most_connected=ranked[:top_n],
    )
