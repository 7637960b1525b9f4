"""
Typed canvas operations and the reducer that applies them.

Local edits are expressed as small immutable operation objects and folded into
a ``CanvasState`` by ``apply_operation``; the session then publishes the whole
resulting arrays. Toolbar commands (add objective, lock everything, ...) are
plain functions returning the list of operations they stand for.

Invariant: a strategic-initiative node is linked to at most one objective.
Connecting it to another objective replaces the previous relationship edge.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field

from cadence.canvas.nodes import (
    EDGE_TYPE,
    NodeKind,
    ROOT_ID,
    default_size,
    make_edge,
    node_kind,
    objective_nodes,
)
from cadence.canvas.placement import find_non_overlapping_position


@dataclass(frozen=True)
class CanvasState:
    nodes: tuple = ()
    edges: tuple = ()

    @classmethod
    def from_lists(cls, nodes, edges) -> "CanvasState":
        return cls(tuple(copy.deepcopy(list(nodes))), tuple(copy.deepcopy(list(edges))))

    def node(self, node_id: str) -> dict | None:
        return next((n for n in self.nodes if n.get("id") == node_id), None)

    def nodes_list(self) -> list[dict]:
        return copy.deepcopy(list(self.nodes))

    def edges_list(self) -> list[dict]:
        return copy.deepcopy(list(self.edges))


# ═══════════════════════════════════════════════════════════════════════════
#  Operations
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AddNode:
    node: dict


@dataclass(frozen=True)
class MoveNode:
    node_id: str
    x: float
    y: float


@dataclass(frozen=True)
class UpdateNodeData:
    node_id: str
    updates: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RemoveNode:
    node_id: str


@dataclass(frozen=True)
class ConnectEdge:
    source: str
    target: str
    edge_id: str | None = None
    edge_type: str | None = EDGE_TYPE


@dataclass(frozen=True)
class RemoveEdge:
    edge_id: str


@dataclass(frozen=True)
class ReplaceAll:
    nodes: tuple
    edges: tuple


class CanvasOperationError(ValueError):
    """Raised when an operation cannot apply to the current state."""


# ── Reducer ─────────────────────────────────────────────────────────────────

def _add_node(state: CanvasState, op: AddNode) -> CanvasState:
    if state.node(op.node["id"]) is not None:
        raise CanvasOperationError(f"Node {op.node['id']!r} already exists")
    return CanvasState(state.nodes + (copy.deepcopy(op.node),), state.edges)


def _move_node(state: CanvasState, op: MoveNode) -> CanvasState:
    _require_node(state, op.node_id)
    nodes = tuple(
        {**n, "position": {"x": op.x, "y": op.y}} if n["id"] == op.node_id else n
        for n in state.nodes
    )
    return CanvasState(nodes, state.edges)


def _update_node_data(state: CanvasState, op: UpdateNodeData) -> CanvasState:
    _require_node(state, op.node_id)
    nodes = tuple(
        {**n, "data": {**(n.get("data") or {}), **copy.deepcopy(op.updates)}}
        if n["id"] == op.node_id else n
        for n in state.nodes
    )
    return CanvasState(nodes, state.edges)


def _remove_node(state: CanvasState, op: RemoveNode) -> CanvasState:
    target = _require_node(state, op.node_id)
    removed = {op.node_id}
    if node_kind(target) is NodeKind.DEFINING_OBJECTIVE:
        # initiative nodes hang off their objective
        removed |= {
            n["id"] for n in state.nodes
            if node_kind(n) is NodeKind.STRATEGIC_INITIATIVE
            and (n.get("data") or {}).get("parentDoId") == op.node_id
        }
    nodes = tuple(n for n in state.nodes if n["id"] not in removed)
    edges = tuple(
        e for e in state.edges if e["source"] not in removed and e["target"] not in removed
    )
    return CanvasState(nodes, edges)


def _connect_edge(state: CanvasState, op: ConnectEdge) -> CanvasState:
    source = _require_node(state, op.source)
    target = _require_node(state, op.target)
    kinds = {node_kind(source), node_kind(target)}

    if kinds == {NodeKind.STRATEGIC_INITIATIVE, NodeKind.DEFINING_OBJECTIVE}:
        initiative = source if node_kind(source) is NodeKind.STRATEGIC_INITIATIVE else target
        objective = target if initiative is source else source
        objective_ids = {n["id"] for n in objective_nodes(state.nodes)}
        edges = tuple(
            e for e in state.edges
            if not _links_initiative_to_objective(e, initiative["id"], objective_ids)
        )
        nodes = tuple(
            {**n, "data": {**(n.get("data") or {}), "parentDoId": objective["id"]}}
            if n["id"] == initiative["id"] else n
            for n in state.nodes
        )
        edge_id = op.edge_id or f"e-{source['id']}-{target['id']}"
        edge = make_edge(edge_id, op.source, op.target, op.edge_type)
        return CanvasState(nodes, edges + (edge,))

    if any(e["source"] == op.source and e["target"] == op.target for e in state.edges):
        return state
    edge_id = op.edge_id or f"e-{op.source}-{op.target}"
    if any(e["id"] == edge_id for e in state.edges):
        return state
    return CanvasState(state.nodes, state.edges + (make_edge(edge_id, op.source, op.target, op.edge_type),))


def _remove_edge(state: CanvasState, op: RemoveEdge) -> CanvasState:
    return CanvasState(state.nodes, tuple(e for e in state.edges if e["id"] != op.edge_id))


def _replace_all(state: CanvasState, op: ReplaceAll) -> CanvasState:
    return CanvasState.from_lists(op.nodes, op.edges)


_HANDLERS = {
    AddNode: _add_node,
    MoveNode: _move_node,
    UpdateNodeData: _update_node_data,
    RemoveNode: _remove_node,
    ConnectEdge: _connect_edge,
    RemoveEdge: _remove_edge,
    ReplaceAll: _replace_all,
}


def apply_operation(state: CanvasState, op) -> CanvasState:
    """Return the state that results from applying ``op`` to ``state``."""
    handler = _HANDLERS.get(type(op))
    if handler is None:
        raise CanvasOperationError(f"Unsupported operation {type(op).__name__}")
    return handler(state, op)


def apply_operations(state: CanvasState, operations) -> CanvasState:
    for op in operations:
        state = apply_operation(state, op)
    return state


def _require_node(state: CanvasState, node_id: str) -> dict:
    node = state.node(node_id)
    if node is None:
        raise CanvasOperationError(f"Node {node_id!r} not found")
    return node


def _links_initiative_to_objective(edge: dict, initiative_id: str, objective_ids: set) -> bool:
    return (
        (edge["source"] == initiative_id and edge["target"] in objective_ids)
        or (edge["target"] == initiative_id and edge["source"] in objective_ids)
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Toolbar commands
# ═══════════════════════════════════════════════════════════════════════════

def _next_objective_id(state: CanvasState) -> tuple[str, int]:
    count = len(objective_nodes(state.nodes))
    number = count + 1
    existing = {n["id"] for n in state.nodes}
    while f"do-{number}" in existing:
        number += 1
    return f"do-{number}", count + 1


def add_objective(state: CanvasState) -> list:
    """New draft objective near (200, 240), linked from the root."""
    node_id, ordinal = _next_objective_id(state)
    pos = find_non_overlapping_position(state.nodes, NodeKind.DEFINING_OBJECTIVE, 200, 240)
    node = {
        "id": node_id,
        "type": NodeKind.DEFINING_OBJECTIVE.value,
        "position": pos,
        "data": {"title": f"DO {ordinal}", "status": "draft", "size": default_size(NodeKind.DEFINING_OBJECTIVE)},
    }
    ops = [AddNode(node)]
    if state.node(ROOT_ID) is not None:
        ops.append(ConnectEdge(ROOT_ID, node_id, edge_id=f"e-s-{node_id}", edge_type="smoothstep"))
    return ops


def remove_last_objective(state: CanvasState) -> list:
    objectives = sorted(objective_nodes(state.nodes), key=lambda n: n["id"])
    if not objectives:
        return []
    return [RemoveNode(objectives[-1]["id"])]


def duplicate_objective(state: CanvasState, node_id: str) -> list:
    source = state.node(node_id)
    if source is None or node_kind(source) is not NodeKind.DEFINING_OBJECTIVE:
        return []
    new_id, _ = _next_objective_id(state)
    data = source.get("data") or {}
    position = source.get("position") or {}
    pos = find_non_overlapping_position(
        state.nodes, NodeKind.DEFINING_OBJECTIVE, position.get("x", 0) + 40, position.get("y", 0) + 40,
    )
    node = {
        "id": new_id,
        "type": NodeKind.DEFINING_OBJECTIVE.value,
        "position": pos,
        "data": {
            "title": f"{data.get('title') or 'DO'} (copy)",
            "status": data.get("status") or "draft",
            "bgColor": data.get("bgColor"),
            "size": data.get("size") or default_size(NodeKind.DEFINING_OBJECTIVE),
        },
    }
    ops = [AddNode(node)]
    if state.node(ROOT_ID) is not None:
        ops.append(ConnectEdge(ROOT_ID, new_id, edge_id=f"e-s-{new_id}", edge_type="smoothstep"))
    return ops


def delete_objective(state: CanvasState, node_id: str) -> list:
    node = state.node(node_id)
    if node is None or node_kind(node) is not NodeKind.DEFINING_OBJECTIVE:
        return []
    return [RemoveNode(node_id)]


def add_initiative_to_objective(state: CanvasState, node_id: str | None = None, item_id: str | None = None) -> list:
    """Embed a new initiative in the given objective (or the first one)."""
    objectives = objective_nodes(state.nodes)
    target = state.node(node_id) if node_id else (objectives[0] if objectives else None)
    if target is None or node_kind(target) is not NodeKind.DEFINING_OBJECTIVE:
        return []
    items = list((target.get("data") or {}).get("saiItems") or [])
    items.append({
        "id": item_id or f"sai-{uuid.uuid4().hex[:5]}",
        "title": "New Initiative",
        "metric": "",
        "description": "",
    })
    return [UpdateNodeData(target["id"], {"saiItems": items})]


def lock_everything(state: CanvasState) -> list:
    """Finalize every objective and the rallying cry (to its top candidate)."""
    ops = []
    for node in state.nodes:
        kind = node_kind(node)
        if kind is NodeKind.DEFINING_OBJECTIVE:
            ops.append(UpdateNodeData(node["id"], {"status": "final"}))
        elif kind is NodeKind.RALLYING_CRY:
            data = node.get("data") or {}
            candidates = data.get("rallyCandidates") or []
            top = candidates[0] if candidates else (data.get("title") or "")
            ops.append(UpdateNodeData(node["id"], {
                "rallyCandidates": [top] if top else candidates,
                "rallyFinalized": True,
            }))
    return ops
