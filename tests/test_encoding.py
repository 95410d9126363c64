"""Tests for visual encoding of people and connections."""

from __future__ import annotations

from socialgraph.core.config import VisualConfig
from socialgraph.graph.encoding import Palette, VisualFilter, encode_visual_attributes
from socialgraph.graph.models import Connection, ConnectionRecord, Organization, Person


def _person(pid, org=None, tier=None, affiliation=None):
    return Person(
        id=pid,
        graph_id=1,
        name=f"Person {pid}",
        organization=org,
        affiliation=affiliation,
        relationship_to_viewer=tier,
    )


PALETTE = Palette.from_entities([
    Organization(graph_id=1, name="Acme", color="#0087DC"),
    Organization(graph_id=1, name="Globex", color="#DC241F"),
])


class TestNodes:
    def test_color_from_palette_or_default(self):
        nodes = [_person(1, "Acme"), _person(2, "Unlisted Ltd"), _person(3)]
        render = encode_visual_attributes(nodes, [], palette=PALETTE)
        assert [n.color for n in render.nodes] == ["#0087DC", "#808080", "#808080"]
        assert render.nodes[1].group == "Unlisted Ltd"

    def test_icon_follows_viewer_tier(self):
        nodes = [_person(1, tier=5), _person(2, tier=None)]
        render = encode_visual_attributes(nodes, [])
        allied, baseline = render.nodes
        assert (allied.tier, allied.icon, allied.icon_size) == (5, "star", 16)
        assert (baseline.tier, baseline.icon, baseline.icon_size) == (1, "circle-small", 8)

    def test_nodes_sorted_by_id_with_degree(self):
        nodes = [_person(3), _person(1), _person(2)]
        edges = [Connection.of(1, 1, 3, 2)]
        render = encode_visual_attributes(nodes, edges)
        assert [(n.id, n.degree) for n in render.nodes] == [(1, 1), (2, 0), (3, 1)]

    def test_custom_default_color(self):
        render = encode_visual_attributes(
            [_person(1)], [], config=VisualConfig(default_node_color="#000000")
        )
        assert render.nodes[0].color == "#000000"


class TestEdges:
    def test_same_group_uses_group_color(self):
        nodes = [_person(1, "Acme"), _person(2, "Acme"), _person(3, "Globex")]
        edges = [Connection.of(1, 1, 2, 4), Connection.of(1, 2, 3, 2)]
        render = encode_visual_attributes(nodes, edges, palette=PALETTE)
        by_pair = {(e.source, e.target): e for e in render.edges}
        assert by_pair[(1, 2)].color == "#0087DC"
        assert by_pair[(2, 3)].color == "#999999"

    def test_same_uncolored_group_uses_neutral_gray(self):
        nodes = [_person(1, "NoBrand"), _person(2, "NoBrand")]
        render = encode_visual_attributes(nodes, [Connection.of(1, 1, 2, 3)], palette=Palette({}))
        assert render.edges[0].color == "#999999"
        assert render.nodes[0].color == "#808080"

    def test_line_style_and_label(self):
        nodes = [_person(1), _person(2)]
        render = encode_visual_attributes(nodes, [Connection.of(1, 2, 1, 4)])
        edge = render.edges[0]
        assert (edge.source, edge.target) == (1, 2)
        assert (edge.label, edge.line_style) == ("Trusted", "double-line")

    def test_directed_rows_render_once(self):
        nodes = [_person(1), _person(2)]
        rows = [
            ConnectionRecord(graph_id=1, source_person_id=2, target_person_id=1, connection_type=3),
            ConnectionRecord(graph_id=1, source_person_id=1, target_person_id=2, connection_type=3),
        ]
        assert len(encode_visual_attributes(nodes, rows).edges) == 1

    def test_none_type_is_not_rendered(self):
        nodes = [_person(1), _person(2)]
        assert encode_visual_attributes(nodes, [Connection.of(1, 1, 2, 0)]).edges == []


class TestFilters:
    def test_no_edge_references_excluded_node(self):
        nodes = [_person(1, "Acme"), _person(2, "Globex"), _person(3, "Acme")]
        edges = [Connection.of(1, 1, 2, 3), Connection.of(1, 2, 3, 3), Connection.of(1, 1, 3, 3)]
        render = encode_visual_attributes(nodes, edges, filters=VisualFilter(groups={"Acme"}))
        kept = {n.id for n in render.nodes}
        assert kept == {1, 3}
        assert all(e.source in kept and e.target in kept for e in render.edges)
        assert [(e.source, e.target) for e in render.edges] == [(1, 3)]

    def test_filter_by_tier(self):
        nodes = [_person(1, tier=5), _person(2, tier=2), _person(3)]
        render = encode_visual_attributes(
            nodes, [Connection.of(1, 1, 2, 3)], filters=VisualFilter(tiers={1, 5})
        )
        assert [n.id for n in render.nodes] == [1, 3]
        assert render.edges == []

    def test_filter_by_connection_type(self):
        nodes = [_person(1), _person(2), _person(3)]
        edges = [Connection.of(1, 1, 2, 1), Connection.of(1, 2, 3, 5)]
        render = encode_visual_attributes(
            nodes, edges, filters=VisualFilter(connection_types={5})
        )
        assert [(e.source, e.target) for e in render.edges] == [(2, 3)]
        assert len(render.nodes) == 3

    def test_group_by_affiliation(self):
        palette = Palette({"Board": "#123456"})
        nodes = [_person(1, "Acme", affiliation="Board"), _person(2, "Acme")]
        render = encode_visual_attributes(
            nodes, [], filters=VisualFilter(group_by="affiliation"), palette=palette
        )
        assert [(n.group, n.color) for n in render.nodes] == [
            ("Board", "#123456"),
            (None, "#808080"),
        ]


class TestPalette:
    def test_later_collections_win(self):
        palette = Palette.from_entities(
            [Organization(graph_id=1, name="Acme", color="#111111")],
            [Organization(graph_id=1, name="Acme", color="#222222")],
        )
        assert palette.color_for("Acme") == "#222222"
        assert len(palette) == 1

    def test_miss_is_not_an_error(self):
        assert PALETTE.color_for("Nobody") is None
        assert PALETTE.color_for(None) is None
