"""
Canvas layouts — the default seed layout, the strategy layout built from a
rallying cry with its objectives, and content heuristics over node lists.
"""

import re

from cadence.canvas.nodes import (
    NodeKind,
    ROOT_ID,
    default_size,
    make_edge,
    node_kind,
    objective_nodes,
)
from cadence.canvas.placement import find_non_overlapping_position

BASE_X = 400
BASE_Y = 80

DEFAULT_RALLY_CANDIDATES = [
    "Draft your rallying cry",
    "Keep it short and inspiring",
    "Make it testable",
]
DEFAULT_OBJECTIVE_COUNT = 4

# Seed layout: objectives one row under the root, centred, 300 apart
_SEED_ROW_Y = BASE_Y + 160
_SEED_GAP_X = 300

# Strategy layout: objectives 180 under the root, 320 apart
_STRATEGY_ROW_Y = BASE_Y + 180
_STRATEGY_GAP_X = 320
_INITIATIVE_OFFSET_Y = 110 + 60

_DEFAULT_TITLE_RE = re.compile(r"^DO \d+$")


def rally_node(candidates, *, finalized=False) -> dict:
    return {
        "id": ROOT_ID,
        "type": NodeKind.RALLYING_CRY.value,
        "position": {"x": BASE_X, "y": BASE_Y},
        "data": {
            "title": "",
            "rallyCandidates": list(candidates),
            "rallySelectedIndex": 0,
            "rallyFinalized": finalized,
            "size": default_size(NodeKind.RALLYING_CRY),
        },
    }


def objective_node(node_id: str, position: dict, title: str, **data) -> dict:
    payload = {"title": title, "status": "draft", "size": default_size(NodeKind.DEFINING_OBJECTIVE)}
    payload.update({k: v for k, v in data.items() if v is not None})
    return {
        "id": node_id,
        "type": NodeKind.DEFINING_OBJECTIVE.value,
        "position": position,
        "data": payload,
    }


# ── Default seed layout ─────────────────────────────────────────────────────

def make_initial_nodes(objective_count: int = DEFAULT_OBJECTIVE_COUNT) -> list[dict]:
    """Root rallying cry plus ``objective_count`` draft objectives, placed without overlap."""
    nodes = [rally_node(DEFAULT_RALLY_CANDIDATES)]
    first_offset = -(objective_count - 1) / 2
    for idx in range(objective_count):
        preferred_x = BASE_X + (first_offset + idx) * _SEED_GAP_X
        pos = find_non_overlapping_position(
            nodes, NodeKind.DEFINING_OBJECTIVE, preferred_x, _SEED_ROW_Y,
        )
        nodes.append(objective_node(f"do-{idx + 1}", pos, f"DO {idx + 1}"))
    return nodes


def make_initial_edges(objective_count: int = DEFAULT_OBJECTIVE_COUNT) -> list[dict]:
    return [
        make_edge(f"e-s-d{idx + 1}", ROOT_ID, f"do-{idx + 1}")
        for idx in range(objective_count)
    ]


def default_layout(objective_count: int = DEFAULT_OBJECTIVE_COUNT) -> tuple[list[dict], list[dict]]:
    return make_initial_nodes(objective_count), make_initial_edges(objective_count)


# ── Content heuristics ──────────────────────────────────────────────────────

def has_meaningful_content(nodes) -> bool:
    """True when any objective has a non-default title or embedded initiatives."""
    for node in objective_nodes(nodes):
        data = node.get("data") or {}
        title = data.get("title") or ""
        if title and not _DEFAULT_TITLE_RE.match(title):
            return True
        if data.get("saiItems"):
            return True
    return False


def looks_like_template(nodes) -> bool:
    """True for an untouched seed layout (draft rallying cry and DO 1..DO 4)."""
    rally = next((n for n in nodes if node_kind(n) is NodeKind.RALLYING_CRY), None)
    if not rally:
        return False
    candidates = (rally.get("data") or {}).get("rallyCandidates") or []
    if not candidates or candidates[0] != DEFAULT_RALLY_CANDIDATES[0]:
        return False
    titles = [(n.get("data") or {}).get("title") for n in objective_nodes(nodes)]
    return titles == [f"DO {i + 1}" for i in range(DEFAULT_OBJECTIVE_COUNT)]


def is_usable_snapshot(snapshot) -> bool:
    """A snapshot worth restoring: it has nodes and is not an untouched seed."""
    if not snapshot:
        return False
    nodes = snapshot.get("nodes") or []
    return bool(nodes) and not looks_like_template(nodes)


# ── Strategy layout ─────────────────────────────────────────────────────────

def build_strategy_layout(rallying_cry: str, objectives, *, finalized: bool = True):
    """Lay out a rallying cry with its objectives and initiatives.

    Args:
        rallying_cry: Rallying cry text for the root node.
        objectives: Sequence of dicts::

            {"title", "hypothesis"?, "owner_id"?, "status"?, "db_id"?,
             "initiatives": [{"title", "description"?, "owner_id"?,
                              "participant_ids"?, "db_id"?}, ...]}

    Objectives form one centred row under the root. Each initiative appears
    twice: embedded in its objective's ``saiItems`` and as an initiative node
    (same id) placed under the objective, linked objective → initiative.

    Returns:
        (nodes, edges)
    """
    nodes = [rally_node([rallying_cry], finalized=finalized)]
    edges: list[dict] = []
    initiative_nodes: list[dict] = []
    initiative_edges: list[dict] = []

    count = len(objectives)
    start_x = BASE_X - ((count - 1) * _STRATEGY_GAP_X) / 2 if count else BASE_X

    for index, objective in enumerate(objectives):
        do_id = f"do-{index + 1}"
        position = {"x": start_x + index * _STRATEGY_GAP_X, "y": _STRATEGY_ROW_Y}

        sai_items = []
        for si_index, initiative in enumerate(objective.get("initiatives") or []):
            item = {
                "id": f"si-{do_id}-{si_index + 1}",
                "title": initiative["title"],
                "description": initiative.get("description") or "",
                "metric": "",
            }
            if initiative.get("owner_id"):
                item["ownerId"] = initiative["owner_id"]
            if initiative.get("participant_ids"):
                item["participantIds"] = list(initiative["participant_ids"])
            if initiative.get("db_id"):
                item["dbId"] = initiative["db_id"]
            sai_items.append(item)

        nodes.append(objective_node(
            do_id,
            position,
            objective["title"],
            status="final" if objective.get("status") == "final" else "draft",
            ownerId=objective.get("owner_id"),
            hypothesis=objective.get("hypothesis") or "",
            primarySuccessMetric=objective.get("primary_success_metric") or "",
            saiItems=sai_items,
            dbId=objective.get("db_id"),
        ))
        edges.append(make_edge(f"e-rc-{do_id}", ROOT_ID, do_id))

        for item in sai_items:
            pos = find_non_overlapping_position(
                nodes + initiative_nodes,
                NodeKind.STRATEGIC_INITIATIVE,
                position["x"],
                position["y"] + _INITIATIVE_OFFSET_Y,
            )
            initiative_nodes.append({
                "id": item["id"],
                "type": NodeKind.STRATEGIC_INITIATIVE.value,
                "position": pos,
                "data": {
                    "title": item["title"],
                    "parentDoId": do_id,
                    "size": default_size(NodeKind.STRATEGIC_INITIATIVE),
                },
            })
            initiative_edges.append(make_edge(f"e-{do_id}-{item['id']}", do_id, item["id"]))

    return nodes + initiative_nodes, edges + initiative_edges
