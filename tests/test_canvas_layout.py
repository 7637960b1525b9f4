"""
Canvas geometry, placement and layout tests.

Tests cover:
  - Rect overlap (touching edges do not overlap)
  - find_non_overlapping_position: free spot, right scan, row wrap, budget fallback
  - de_overlap on load
  - Default seed layout and the strategy (import) layout
  - has_meaningful_content / looks_like_template
"""

from itertools import combinations

from cadence.canvas.layout import (
    DEFAULT_RALLY_CANDIDATES,
    build_strategy_layout,
    default_layout,
    has_meaningful_content,
    is_usable_snapshot,
    looks_like_template,
)
from cadence.canvas.nodes import NodeKind, ROOT_ID, Rect, rect_for_node
from cadence.canvas.placement import (
    MAX_ATTEMPTS,
    PLACEMENT_MARGIN,
    de_overlap,
    find_non_overlapping_position,
)


def _do(node_id, x, y, **data):
    return {"id": node_id, "type": "do", "position": {"x": x, "y": y}, "data": {"title": node_id, **data}}


def _no_overlaps(nodes):
    rects = [rect_for_node(n) for n in nodes]
    return not any(a.overlaps(b) for a, b in combinations(rects, 2))


# ═══════════════════════════════════════════════════════════════
# Geometry
# ═══════════════════════════════════════════════════════════════

class TestRect:
    def test_intersecting_rects_overlap(self):
        assert Rect(0, 0, 100, 100).overlaps(Rect(50, 50, 100, 100))

    def test_touching_rects_do_not_overlap(self):
        assert not Rect(0, 0, 100, 100).overlaps(Rect(100, 0, 100, 100))
        assert not Rect(0, 0, 100, 100).overlaps(Rect(0, 100, 100, 100))

    def test_rect_for_node_uses_recorded_size_then_kind_default(self):
        sized = _do("do-1", 10, 20, size={"w": 300, "h": 90})
        assert rect_for_node(sized) == Rect(10, 20, 300, 90)
        assert rect_for_node(_do("do-2", 0, 0)) == Rect(0, 0, 260, 110)

    def test_unknown_type_measured_as_objective(self):
        node = {"id": "x", "type": "sticky", "position": {"x": 0, "y": 0}, "data": {}}
        assert rect_for_node(node) == Rect(0, 0, 260, 110)


# ═══════════════════════════════════════════════════════════════
# Placement
# ═══════════════════════════════════════════════════════════════

class TestPlacement:
    def test_free_preferred_position_is_kept(self):
        assert find_non_overlapping_position([], NodeKind.DEFINING_OBJECTIVE, 120, 40) == {"x": 120, "y": 40}

    def test_occupied_position_scans_right(self):
        existing = [_do("do-1", 0, 0)]
        pos = find_non_overlapping_position(existing, NodeKind.DEFINING_OBJECTIVE, 0, 0)
        assert pos == {"x": 260 + PLACEMENT_MARGIN, "y": 0}

    def test_wraps_to_next_row_after_six_steps(self):
        step = 260 + PLACEMENT_MARGIN
        existing = [_do(f"do-{i}", i * step, 0) for i in range(7)]
        pos = find_non_overlapping_position(existing, NodeKind.DEFINING_OBJECTIVE, 0, 0)
        assert pos == {"x": 0, "y": 110 + PLACEMENT_MARGIN}

    def test_exhausted_budget_returns_preferred_position(self):
        wall = {
            "id": "wall", "type": "do", "position": {"x": -10_000, "y": -10_000},
            "data": {"size": {"w": 100_000, "h": 100_000}},
        }
        pos = find_non_overlapping_position([wall], NodeKind.STRATEGIC_INITIATIVE, 5, 7)
        assert pos == {"x": 5, "y": 7}
        assert MAX_ATTEMPTS == 500

    def test_result_never_overlaps_existing(self):
        existing = [_do("do-1", 0, 0), _do("do-2", 330, 0), _do("do-3", 20, 170)]
        pos = find_non_overlapping_position(existing, NodeKind.DEFINING_OBJECTIVE, 10, 10)
        candidate = Rect(pos["x"], pos["y"], 260, 110)
        assert not any(candidate.overlaps(rect_for_node(n)) for n in existing)


class TestDeOverlap:
    def test_stacked_objectives_are_spread(self):
        nodes = [_do("do-1", 0, 0), _do("do-2", 0, 0), _do("do-3", 0, 0)]
        laid_out, changed = de_overlap(nodes)
        assert changed is True
        assert _no_overlaps(laid_out)
        assert laid_out[0]["position"] == {"x": 0, "y": 0}

    def test_objectives_get_default_size(self):
        laid_out, _ = de_overlap([_do("do-1", 0, 0)])
        assert laid_out[0]["data"]["size"] == {"w": 260, "h": 110}

    def test_clean_layout_reports_no_change(self):
        nodes, _ = default_layout()
        laid_out, changed = de_overlap(nodes)
        assert changed is False
        assert [n["position"] for n in laid_out] == [n["position"] for n in nodes]

    def test_non_objective_nodes_untouched(self):
        rally = {"id": ROOT_ID, "type": "rally", "position": {"x": 0, "y": 0}, "data": {}}
        laid_out, _ = de_overlap([rally, _do("do-1", 0, 0)])
        assert laid_out[0] is rally


# ═══════════════════════════════════════════════════════════════
# Layouts
# ═══════════════════════════════════════════════════════════════

class TestDefaultLayout:
    def test_root_plus_four_objectives(self):
        nodes, edges = default_layout()
        assert [n["id"] for n in nodes] == [ROOT_ID, "do-1", "do-2", "do-3", "do-4"]
        assert nodes[0]["data"]["rallyCandidates"] == DEFAULT_RALLY_CANDIDATES
        assert [n["data"]["title"] for n in nodes[1:]] == ["DO 1", "DO 2", "DO 3", "DO 4"]
        assert all(n["data"]["status"] == "draft" for n in nodes[1:])

    def test_edges_link_root_to_each_objective(self):
        _, edges = default_layout()
        assert [e["id"] for e in edges] == ["e-s-d1", "e-s-d2", "e-s-d3", "e-s-d4"]
        assert all(e["source"] == ROOT_ID for e in edges)
        assert all(e["type"] == "smoothstep" and e["markerEnd"] == {"type": "arrowclosed"} for e in edges)

    def test_seed_has_no_overlaps(self):
        nodes, _ = default_layout()
        assert _no_overlaps(nodes)

    def test_seed_is_template_without_content(self):
        nodes, _ = default_layout()
        assert looks_like_template(nodes) is True
        assert has_meaningful_content(nodes) is False


class TestStrategyLayout:
    OBJECTIVES = [
        {
            "title": "Grow revenue",
            "hypothesis": "More mid-market deals",
            "owner_id": "u-1",
            "db_id": "obj-1",
            "initiatives": [
                {"title": "Partner program", "description": "• Sign ten partners", "owner_id": "u-2", "db_id": "si-1"},
                {"title": "Refresh pricing", "db_id": "si-2"},
            ],
        },
        {"title": "Retain customers", "initiatives": []},
    ]

    def test_node_and_edge_counts(self):
        nodes, edges = build_strategy_layout("Win the mid-market", self.OBJECTIVES)
        kinds = [n["type"] for n in nodes]
        assert kinds.count("rally") == 1
        assert kinds.count("do") == 2
        assert kinds.count("sai") == 2
        assert len([e for e in edges if e["source"] == ROOT_ID]) == 2
        assert len([e for e in edges if e["source"] == "do-1"]) == 2

    def test_rally_is_finalized_with_single_candidate(self):
        nodes, _ = build_strategy_layout("Win the mid-market", self.OBJECTIVES)
        rally = nodes[0]
        assert rally["data"]["rallyCandidates"] == ["Win the mid-market"]
        assert rally["data"]["rallyFinalized"] is True

    def test_initiatives_embedded_and_mirrored_as_nodes(self):
        nodes, edges = build_strategy_layout("Win the mid-market", self.OBJECTIVES)
        do_1 = next(n for n in nodes if n["id"] == "do-1")
        items = do_1["data"]["saiItems"]
        assert [i["title"] for i in items] == ["Partner program", "Refresh pricing"]
        assert items[0]["ownerId"] == "u-2"
        assert items[0]["dbId"] == "si-1"
        assert "ownerId" not in items[1]

        sai_nodes = [n for n in nodes if n["type"] == "sai"]
        assert {n["id"] for n in sai_nodes} == {i["id"] for i in items}
        assert all(n["data"]["parentDoId"] == "do-1" for n in sai_nodes)
        assert {e["target"] for e in edges if e["source"] == "do-1"} == {i["id"] for i in items}

    def test_objective_row_is_centred_and_clear(self):
        nodes, _ = build_strategy_layout("Win the mid-market", self.OBJECTIVES)
        xs = [n["position"]["x"] for n in nodes if n["type"] == "do"]
        assert xs == [240, 560]
        assert _no_overlaps(nodes)

    def test_imported_titles_count_as_content(self):
        nodes, _ = build_strategy_layout("Win the mid-market", self.OBJECTIVES)
        assert has_meaningful_content(nodes) is True
        assert looks_like_template(nodes) is False

    def test_embedded_initiatives_alone_count_as_content(self):
        nodes, _ = default_layout()
        nodes[1]["data"]["saiItems"] = [{"id": "sai-1", "title": "New Initiative"}]
        assert has_meaningful_content(nodes) is True

    def test_usable_snapshots(self):
        seed_nodes, seed_edges = default_layout()
        imported, edges = build_strategy_layout("Win the mid-market", self.OBJECTIVES)
        assert is_usable_snapshot({"nodes": imported, "edges": edges}) is True
        assert is_usable_snapshot({"nodes": seed_nodes, "edges": seed_edges}) is False
        assert is_usable_snapshot({"nodes": [], "edges": []}) is False
        assert is_usable_snapshot(None) is False
