"""Canvas service — strategy canvas snapshots, collaboration session info,
live-room publishing and markdown import orchestration.

Load order for a cycle's canvas:
    1. the room's persisted snapshot, unless empty or an untouched seed
    2. a layout built from the cycle's RCDO tables
    3. the default seed layout

Import flow:
    validate (422, no writes) → destructive-import guard (409 unless
    confirmed) → one-transaction RCDO import → snapshot upsert → best-effort
    publish into the live collaboration room.
"""

from __future__ import annotations

import logging

from flask import current_app

from cadence.canvas.layout import (
    build_strategy_layout,
    default_layout,
    has_meaningful_content,
    is_usable_snapshot,
)
from cadence.canvas.operations import ReplaceAll
from cadence.canvas.persistence import SnapshotStore
from cadence.canvas.session import ROOM_PREFIX, CanvasSession, room_name
from cadence.collab.provider import provider_factory
from cadence.core.exceptions import ConfirmationRequiredError, ValidationError
from cadence.models import db
from cadence.models.rcdo import StrategyCycle
from cadence.services import rcdo_service, strategy_import_service
from cadence.services.strategy_import_service import ERROR, LOADING, SUCCESS, ImportStep

logger = logging.getLogger(__name__)

RENDERING_STEP = "Rendering canvas"


def _store() -> SnapshotStore:
    return SnapshotStore()


# ── Read / write ─────────────────────────────────────────────────────────────


def layout_from_rcdo(cycle) -> tuple[list[dict], list[dict]] | None:
    rc = cycle.rallying_cry
    if rc is None:
        return None
    objectives = []
    for obj in rc.objectives:
        objectives.append({
            "title": obj.title,
            "hypothesis": obj.hypothesis,
            "owner_id": obj.owner_user_id,
            "status": "final" if obj.locked_at or obj.status == "final" else "draft",
            "db_id": obj.id,
            "initiatives": [
                {
                    "title": si.title,
                    "description": si.description,
                    "owner_id": si.owner_user_id,
                    "participant_ids": si.participant_user_ids or [],
                    "db_id": si.id,
                }
                for si in obj.initiatives
            ],
        })
    return build_strategy_layout(rc.title, objectives)


def load_canvas(cycle_id: str, user_id: str) -> dict:
    cycle = rcdo_service.get_cycle(cycle_id, user_id)
    room = room_name(cycle.id)

    snapshot = _store().load(room)
    if is_usable_snapshot(snapshot):
        return {"room": room, "source": "snapshot", "nodes": snapshot["nodes"], "edges": snapshot["edges"],
                "updated_at": snapshot["updated_at"], "updated_by": snapshot["updated_by"]}

    built = layout_from_rcdo(cycle)
    if built is not None:
        nodes, edges = built
        return {"room": room, "source": "rcdo", "nodes": nodes, "edges": edges}

    nodes, edges = default_layout()
    return {"room": room, "source": "default", "nodes": nodes, "edges": edges}


def room_layout(room: str) -> tuple[list[dict], list[dict]] | None:
    """RCDO layout for a collaboration room, used when it has no usable snapshot."""
    if not room.startswith(ROOM_PREFIX):
        return None
    cycle = db.session.get(StrategyCycle, room[len(ROOM_PREFIX):])
    if cycle is None:
        return None
    return layout_from_rcdo(cycle)


def save_canvas(cycle_id: str, data: dict, user_id: str) -> dict:
    cycle = rcdo_service.get_cycle(cycle_id, user_id)
    nodes, edges = data.get("nodes"), data.get("edges")
    if not isinstance(nodes, list) or not isinstance(edges, list):
        raise ValidationError("nodes and edges must be lists")
    if any(not isinstance(n, dict) or not n.get("id") for n in nodes):
        raise ValidationError("every node needs an id")
    return _store().save(room_name(cycle.id), nodes, edges, updated_by=user_id)


def session_info(cycle_id: str, user_id: str) -> dict:
    cycle = rcdo_service.get_cycle(cycle_id, user_id)
    url = current_app.config.get("COLLAB_WS_URL") or ""
    return {
        "room": room_name(cycle.id),
        "url": url,
        "enabled": bool(url),
        "save_debounce_seconds": current_app.config.get("CANVAS_SAVE_DEBOUNCE_SECONDS", 0.8),
    }


def publish_live(room: str, nodes, edges) -> bool:
    """Push a full canvas into the live room. Failures are logged, never raised."""
    url = current_app.config.get("COLLAB_WS_URL")
    if not url:
        return False
    timeout = current_app.config.get("COLLAB_CONNECT_TIMEOUT", 5.0)
    session = CanvasSession(room, provider_factory=provider_factory(url, timeout), deoverlap_on_join=False)
    try:
        session.join()
        if session.offline:
            return False
        session.apply(ReplaceAll(tuple(nodes), tuple(edges)))
        return True
    except Exception:
        logger.warning("Live publish to room %s failed", room, exc_info=True)
        return False
    finally:
        session.close()


# ── Markdown import ──────────────────────────────────────────────────────────


def preview_import(cycle_id: str, markdown: str, user_id: str) -> dict:
    cycle = rcdo_service.get_cycle(cycle_id, user_id)
    parsed, check = strategy_import_service.parse_and_validate(markdown)
    current = load_canvas(cycle.id, user_id)
    return {
        **check.to_dict(),
        "strategy": parsed.summary(),
        "steps": [s.to_dict() for s in strategy_import_service.initial_steps(parsed)],
        "requires_confirmation": has_meaningful_content(current["nodes"]),
    }


def import_markdown(cycle_id: str, markdown: str, user_id: str, *, confirm: bool = False,
                    lock_all: bool = False) -> dict:
    cycle = rcdo_service.get_cycle(cycle_id, user_id)
    room = room_name(cycle.id)

    _, check = strategy_import_service.parse_and_validate(markdown)
    if not check.valid:
        raise ValidationError(
            "Markdown validation failed", details={"errors": check.errors, "warnings": check.warnings},
        )

    if not confirm and has_meaningful_content(load_canvas(cycle.id, user_id)["nodes"]):
        raise ConfirmationRequiredError(
            "The canvas already has content; importing replaces it. Resend with confirm=true.",
            details={"room": room},
        )

    result = strategy_import_service.import_strategy(cycle, markdown, user_id, lock_all=lock_all)

    render = ImportStep(RENDERING_STEP, LOADING)
    result.steps.append(render)
    objectives = strategy_import_service.canvas_objectives(result)
    if lock_all:
        for obj in objectives:
            obj["status"] = "final"
    nodes, edges = build_strategy_layout(result.parsed.rallying_cry, objectives)
    try:
        _store().save(room, nodes, edges, updated_by=user_id)
        render.status = SUCCESS
    except Exception:
        logger.exception("Canvas snapshot after import failed for room %s", room)
        render.status = ERROR

    live = publish_live(room, nodes, edges)
    return {**result.to_dict(), "room": room, "nodes": nodes, "edges": edges, "live_published": live}
