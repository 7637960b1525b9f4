"""
Canvas node vocabulary — kinds, default dimensions, geometry.

Nodes and edges are plain JSON-compatible dicts, exactly as they are stored in
the replicated document and in snapshots:

    node = {"id": "do-1", "type": "do", "position": {"x": 250, "y": 240},
            "data": {"title": "DO 1", "status": "draft", "size": {"w": 260, "h": 110}}}
    edge = {"id": "e-s-d1", "source": "rally-1", "target": "do-1",
            "type": "smoothstep", "markerEnd": {"type": "arrowclosed"}}
"""

from dataclasses import dataclass
from enum import Enum


class NodeKind(str, Enum):
    """Node kinds; values are the ``type`` strings the canvas renderer uses."""

    STRATEGY = "strategy"
    DEFINING_OBJECTIVE = "do"
    STRATEGIC_INITIATIVE = "sai"
    RALLYING_CRY = "rally"


ROOT_ID = "rally-1"

DEFAULT_NODE_DIMENSIONS: dict[NodeKind, tuple[int, int]] = {
    NodeKind.STRATEGY: (180, 64),
    NodeKind.DEFINING_OBJECTIVE: (260, 110),
    NodeKind.STRATEGIC_INITIATIVE: (160, 48),
    NodeKind.RALLYING_CRY: (280, 100),
}

EDGE_TYPE = "smoothstep"
ARROW_CLOSED = {"type": "arrowclosed"}


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float

    def overlaps(self, other: "Rect") -> bool:
        """Strict AABB intersection; rectangles that only touch do not overlap."""
        return (
            self.x < other.x + other.w
            and self.x + self.w > other.x
            and self.y < other.y + other.h
            and self.y + self.h > other.y
        )


def node_kind(node: dict) -> NodeKind:
    """Resolve a node's kind, treating unknown types as objectives."""
    try:
        return NodeKind(node.get("type"))
    except ValueError:
        return NodeKind.DEFINING_OBJECTIVE


def default_size(kind: NodeKind) -> dict:
    w, h = DEFAULT_NODE_DIMENSIONS[kind]
    return {"w": w, "h": h}


def rect_for_node(node: dict) -> Rect:
    """Bounding box of a node: its recorded size, else the kind default."""
    data = node.get("data") or {}
    size = data.get("size") or {}
    default_w, default_h = DEFAULT_NODE_DIMENSIONS[node_kind(node)]
    position = node.get("position") or {}
    return Rect(
        x=position.get("x", 0),
        y=position.get("y", 0),
        w=size.get("w") or default_w,
        h=size.get("h") or default_h,
    )


def make_edge(edge_id: str, source: str, target: str, edge_type: str | None = EDGE_TYPE) -> dict:
    edge = {
        "id": edge_id,
        "source": source,
        "target": target,
        "markerEnd": dict(ARROW_CLOSED),
    }
    if edge_type:
        edge["type"] = edge_type
    return edge


def objective_nodes(nodes) -> list[dict]:
    return [n for n in nodes if node_kind(n) is NodeKind.DEFINING_OBJECTIVE]
