"""
Canvas operation reducer, toolbar commands and node-update bus.
"""

import pytest

from cadence.canvas.events import NodeUpdateBus, NodeUpdated
from cadence.canvas.layout import default_layout
from cadence.canvas.nodes import ROOT_ID
from cadence.canvas.operations import (
    AddNode,
    CanvasOperationError,
    CanvasState,
    ConnectEdge,
    MoveNode,
    RemoveEdge,
    RemoveNode,
    ReplaceAll,
    UpdateNodeData,
    add_initiative_to_objective,
    add_objective,
    apply_operation,
    apply_operations,
    delete_objective,
    duplicate_objective,
    lock_everything,
    remove_last_objective,
)


@pytest.fixture()
def seeded():
    nodes, edges = default_layout()
    return CanvasState.from_lists(nodes, edges)


def _sai(node_id, parent=None):
    data = {"title": node_id}
    if parent:
        data["parentDoId"] = parent
    return {"id": node_id, "type": "sai", "position": {"x": 0, "y": 600}, "data": data}


def _edges_touching(state, node_id):
    return [e for e in state.edges if node_id in (e["source"], e["target"])]


# ═══════════════════════════════════════════════════════════════
# Reducer
# ═══════════════════════════════════════════════════════════════

class TestReducer:
    def test_state_is_not_mutated(self, seeded):
        before = seeded.nodes_list()
        apply_operation(seeded, MoveNode("do-1", 5, 5))
        assert seeded.nodes_list() == before

    def test_add_duplicate_node_rejected(self, seeded):
        with pytest.raises(CanvasOperationError):
            apply_operation(seeded, AddNode({"id": "do-1", "type": "do"}))

    def test_move_and_update(self, seeded):
        state = apply_operations(seeded, [
            MoveNode("do-2", 10, 20),
            UpdateNodeData("do-2", {"title": "Grow revenue", "bgColor": "#fde68a"}),
        ])
        node = state.node("do-2")
        assert node["position"] == {"x": 10, "y": 20}
        assert node["data"]["title"] == "Grow revenue"
        assert node["data"]["status"] == "draft"

    def test_missing_node_raises(self, seeded):
        with pytest.raises(CanvasOperationError):
            apply_operation(seeded, MoveNode("do-99", 0, 0))

    def test_remove_objective_drops_its_initiatives_and_edges(self, seeded):
        state = apply_operations(seeded, [
            AddNode(_sai("sai-1", parent="do-1")),
            ConnectEdge("do-1", "sai-1"),
            RemoveNode("do-1"),
        ])
        assert state.node("do-1") is None
        assert state.node("sai-1") is None
        assert _edges_touching(state, "do-1") == []

    def test_connect_is_idempotent_for_plain_edges(self, seeded):
        state = apply_operation(seeded, ConnectEdge(ROOT_ID, "do-1"))
        assert len(state.edges) == len(seeded.edges)

    def test_remove_edge(self, seeded):
        state = apply_operation(seeded, RemoveEdge("e-s-d1"))
        assert all(e["id"] != "e-s-d1" for e in state.edges)

    def test_replace_all(self, seeded):
        state = apply_operation(seeded, ReplaceAll(({"id": "only", "type": "do"},), ()))
        assert [n["id"] for n in state.nodes] == ["only"]
        assert state.edges == ()

    def test_unknown_operation(self, seeded):
        with pytest.raises(CanvasOperationError):
            apply_operation(seeded, object())


class TestSingleParentInitiatives:
    def test_reconnect_replaces_previous_objective_link(self, seeded):
        state = apply_operations(seeded, [
            AddNode(_sai("sai-1")),
            ConnectEdge("do-1", "sai-1"),
            ConnectEdge("do-2", "sai-1"),
        ])
        links = _edges_touching(state, "sai-1")
        assert len(links) == 1
        assert links[0]["source"] == "do-2"
        assert state.node("sai-1")["data"]["parentDoId"] == "do-2"

    def test_direction_does_not_matter(self, seeded):
        state = apply_operations(seeded, [
            AddNode(_sai("sai-1")),
            ConnectEdge("do-1", "sai-1"),
            ConnectEdge("sai-1", "do-3"),
        ])
        links = _edges_touching(state, "sai-1")
        assert [(e["source"], e["target"]) for e in links] == [("sai-1", "do-3")]
        assert state.node("sai-1")["data"]["parentDoId"] == "do-3"

    def test_other_edges_survive_reconnect(self, seeded):
        state = apply_operations(seeded, [
            AddNode(_sai("sai-1")),
            ConnectEdge("do-1", "sai-1"),
            ConnectEdge("do-2", "sai-1"),
        ])
        assert {e["id"] for e in seeded.edges} <= {e["id"] for e in state.edges}


# ═══════════════════════════════════════════════════════════════
# Toolbar commands
# ═══════════════════════════════════════════════════════════════

class TestToolbarCommands:
    def test_add_objective_links_from_root(self, seeded):
        state = apply_operations(seeded, add_objective(seeded))
        new = state.node("do-5")
        assert new["data"]["title"] == "DO 5"
        assert any(e["source"] == ROOT_ID and e["target"] == "do-5" for e in state.edges)

    def test_remove_last_objective(self, seeded):
        state = apply_operations(seeded, remove_last_objective(seeded))
        assert state.node("do-4") is None
        assert remove_last_objective(CanvasState()) == []

    def test_duplicate_objective_copies_title(self, seeded):
        state = apply_operations(seeded, duplicate_objective(seeded, "do-2"))
        assert state.node("do-5")["data"]["title"] == "DO 2 (copy)"
        assert duplicate_objective(seeded, ROOT_ID) == []

    def test_delete_objective_ignores_other_kinds(self, seeded):
        assert delete_objective(seeded, ROOT_ID) == []
        state = apply_operations(seeded, delete_objective(seeded, "do-3"))
        assert state.node("do-3") is None

    def test_add_initiative_defaults_to_first_objective(self, seeded):
        state = apply_operations(seeded, add_initiative_to_objective(seeded, item_id="sai-abc"))
        items = state.node("do-1")["data"]["saiItems"]
        assert items == [{"id": "sai-abc", "title": "New Initiative", "metric": "", "description": ""}]

    def test_lock_everything(self, seeded):
        state = apply_operations(seeded, lock_everything(seeded))
        rally = state.node(ROOT_ID)["data"]
        assert rally["rallyFinalized"] is True
        assert rally["rallyCandidates"] == ["Draft your rallying cry"]
        assert all(state.node(f"do-{i}")["data"]["status"] == "final" for i in range(1, 5))


# ═══════════════════════════════════════════════════════════════
# Node update bus
# ═══════════════════════════════════════════════════════════════

class TestNodeUpdateBus:
    def test_publish_reaches_subscribers_in_order(self):
        bus = NodeUpdateBus()
        seen = []
        bus.subscribe(lambda e: seen.append(("a", e.node_id)))
        bus.subscribe(lambda e: seen.append(("b", e.node_id)))
        assert bus.publish(NodeUpdated("do-1", {"title": "x"})) == 2
        assert seen == [("a", "do-1"), ("b", "do-1")]

    def test_unsubscribe(self):
        bus = NodeUpdateBus()
        unsubscribe = bus.subscribe(lambda e: None)
        unsubscribe()
        assert len(bus) == 0
        assert bus.publish(NodeUpdated("do-1")) == 0

    def test_rejects_untyped_payloads(self):
        with pytest.raises(TypeError):
            NodeUpdateBus().publish({"node_id": "do-1"})
