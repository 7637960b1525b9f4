"""
Non-overlapping placement heuristic for new canvas nodes.

Scans right from the preferred position in steps of the node width plus a
margin, wrapping to a new row after six steps. Gives up after a fixed number
of attempts and returns the preferred position unchanged.
"""

from cadence.canvas.nodes import (
    NodeKind,
    Rect,
    default_size,
    node_kind,
    rect_for_node,
    DEFAULT_NODE_DIMENSIONS,
)

PLACEMENT_MARGIN = 60
WRAP_AFTER_STEPS = 6
MAX_ATTEMPTS = 500


def find_non_overlapping_position(existing, kind: NodeKind, start_x: float, start_y: float) -> dict:
    """Return ``{"x", "y"}`` for a new node of ``kind`` that overlaps none of ``existing``.

    Args:
        existing: Current nodes (dicts); each is measured with its recorded
            ``data.size`` or the default size of its kind.
        kind: Kind of the node being placed (sets the candidate rectangle).
        start_x, start_y: Preferred position.

    Returns:
        The first free candidate position, or the preferred position when the
        attempt budget is exhausted.
    """
    w, h = DEFAULT_NODE_DIMENSIONS[kind]
    step_x = w + PLACEMENT_MARGIN
    step_y = h + PLACEMENT_MARGIN
    occupied = [rect_for_node(n) for n in existing]

    x, y = start_x, start_y
    for _ in range(MAX_ATTEMPTS):
        candidate = Rect(x, y, w, h)
        if not any(candidate.overlaps(r) for r in occupied):
            return {"x": x, "y": y}
        x += step_x
        if x > start_x + step_x * WRAP_AFTER_STEPS:
            x = start_x
            y += step_y
    return {"x": start_x, "y": start_y}


def de_overlap(nodes) -> tuple[list[dict], bool]:
    """One-shot layout pass over a freshly loaded node list.

    Objective nodes are re-placed (in order) against the nodes already laid
    out and receive the default objective size when they have none; other
    nodes are kept as they are.

    Returns:
        (laid_out_nodes, changed) where ``changed`` is True when any node
        position moved.
    """
    laid_out: list[dict] = []
    changed = False
    for node in nodes:
        if node_kind(node) is not NodeKind.DEFINING_OBJECTIVE:
            laid_out.append(node)
            continue
        position = node.get("position") or {}
        pos = find_non_overlapping_position(
            laid_out, NodeKind.DEFINING_OBJECTIVE, position.get("x", 0), position.get("y", 0),
        )
        data = dict(node.get("data") or {})
        data.setdefault("size", default_size(NodeKind.DEFINING_OBJECTIVE))
        if not data["size"]:
            data["size"] = default_size(NodeKind.DEFINING_OBJECTIVE)
        if pos["x"] != position.get("x") or pos["y"] != position.get("y"):
            changed = True
        laid_out.append({**node, "position": pos, "data": data})
    return laid_out, changed
