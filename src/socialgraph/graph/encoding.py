"""Visual encoding for the force-directed graph view.

Turns people, connections and their metrics into the render contract the
layout consumes: per-node color and icon, per-edge color and line style.
"""

from __future__ import annotations

from typing import Any, Iterable, Literal, Sequence

from pydantic import BaseModel, Field

from socialgraph.core.config import VisualConfig
from socialgraph.graph.analytics import compute_centrality, group_accessor
from socialgraph.graph.catalog import CATALOG, ConnectionType


class VisualFilter(BaseModel):
    """Which nodes and edges to render. ``None`` means no restriction."""

    groups: set[str] | None = None
    connection_types: set[int] | None = None
    tiers: set[int] | None = None
    group_by: Literal["organization", "affiliation"] = "organization"


class StyledNode(BaseModel):
    id: int
    label: str
    group: str | None = None
    color: str
    tier: int
    icon: str | None = None
    icon_size: int
    degree: int = 0


class StyledEdge(BaseModel):
    source: int
    target: int
    connection_type: int
    label: str
    color: str
    line_style: str


class RenderGraph(BaseModel):
    nodes: list[StyledNode] = Field(default_factory=list)
    edges: list[StyledEdge] = Field(default_factory=list)


class Palette:
    """Group name to brand color lookup.

    A miss means "no group" for coloring purposes, never an error.
    """

    def __init__(self, colors: dict[str, str] | None = None) -> None:
        self._colors = dict(colors or {})

    @classmethod
    def from_entities(cls, *collections: Iterable[Any]) -> Palette:
        """Build a palette from organizations and/or affiliations.

        Later collections take precedence on name clashes.
        """
        colors: dict[str, str] = {}
        for collection in collections:
            for entity in collection:
                if entity.name and entity.color:
                    colors[entity.name] = entity.color
        return cls(colors)

    def color_for(self, group: str | None) -> str | None:
        if group is None:
            return None
        return self._colors.get(group)

    def __len__(self) -> int:
        return len(self._colors)


def _include_node(node: Any, group: str | None, filters: VisualFilter) -> bool:
    if filters.groups is not None and group not in filters.groups:
        return False
    if filters.tiers is not None and int(node.viewer_tier) not in filters.tiers:
        return False
    return True


def encode_visual_attributes(
    nodes: Sequence[Any],
    edges: Iterable[Any],
    filters: VisualFilter | None = None,
    palette: Palette | None = None,
    config: VisualConfig | None = None,
) -> RenderGraph:
    """Produce styled nodes and edges for rendering.

    Nodes are filtered by group and relationship tier, edges by connection
    type. An edge is only emitted when both of its endpoints survived the
    node filter.
    """
    filters = filters or VisualFilter()
    palette = palette or Palette()
    config = config or VisualConfig()
    group_of = group_accessor(filters.group_by)
    edge_list = list(edges)

    degree = {s.id: s.centrality for s in compute_centrality(nodes, edge_list)}
    groups = {n.id: group_of(n) for n in nodes}

    styled_nodes: list[StyledNode] = []
    for node in sorted(nodes, key=lambda n: n.id):
        group = groups[node.id]
        if not _include_node(node, group, filters):
            continue
        tier = node.viewer_tier
        info = CATALOG[tier]
        styled_nodes.append(
            StyledNode(
                id=node.id,
                label=node.name,
                group=group,
                color=palette.color_for(group) or config.default_node_color,
                tier=int(tier),
                icon=info.icon,
                icon_size=info.icon_size,
                degree=degree.get(node.id, 0),
            )
        )

    included = {n.id for n in styled_nodes}
    seen: set[tuple[int, int]] = set()
    styled_edges: list[StyledEdge] = []
    for edge in sorted(edge_list, key=lambda e: e.pair):
        ctype = int(edge.connection_type)
        pair = edge.pair
        if ctype == ConnectionType.NONE or pair in seen:
            continue
        if pair[0] == pair[1]:
            continue
        if filters.connection_types is not None and ctype not in filters.connection_types:
            continue
        if pair[0] not in included or pair[1] not in included:
            continue
        seen.add(pair)
        ga, gb = groups.get(pair[0]), groups.get(pair[1])
        color = config.inter_group_edge_color
        if ga is not None and ga == gb:
            color = palette.color_for(ga) or color
        info = CATALOG[ConnectionType(ctype)]
        styled_edges.append(
            StyledEdge(
                source=pair[0],
                target=pair[1],
                connection_type=ctype,
                label=info.name,
                color=color,
                line_style=info.line_style,
            )
        )
    return RenderGraph(nodes=styled_nodes, edges=styled_edges)
