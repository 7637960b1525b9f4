"""RCDO service — cycles, rallying cries, objectives, metrics, initiatives, tasks,
links and check-ins.

Rules:
  - Access follows the owning team: members read and edit, team admins lock.
  - Locked objectives / initiatives are read-only for non-admins.
  - A task entering ``completed`` gets ``actual_delivery_date`` = today unless
    one was given; leaving ``completed`` clears it.
  - Every mutation invalidates the navigation tree of its cycle.
  - db.session.commit() happens in this file.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from cadence.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from cadence.models import db
from cadence.models.rcdo import (
    CYCLE_STATUSES,
    DO_HEALTH,
    DO_STATUSES,
    INITIATIVE_STATUSES,
    LINK_KINDS,
    METRIC_DIRECTIONS,
    METRIC_TYPES,
    PARENT_TYPES,
    RC_STATUSES,
    TASK_STATUSES,
    CheckIn,
    DefiningObjective,
    Link,
    ObjectiveMetric,
    RallyingCry,
    StrategicInitiative,
    StrategyCycle,
    Task,
)
from cadence.services import rcdo_scoring, rcdo_validation, team_service
from cadence.services.navigation_service import invalidate_cycle
from cadence.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _required_text(data: dict, key: str) -> str:
    value = (data.get(key) or "").strip()
    if not value:
        raise ValidationError(f"{key} is required")
    return value


def _choice(value, allowed: set, field: str):
    if value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(allowed))}")
    return value


def _date_field(data: dict, key: str):
    try:
        return parse_date_input(data.get(key))
    except ValueError as exc:
        raise ValidationError(str(exc), details={key: "invalid"})


def _number(value, field: str):
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")


def _int_in_range(value, field: str, low: int, high: int):
    if value is None or value == "":
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if not low <= number <= high:
        raise ValidationError(f"{field} must be between {low} and {high}")
    return number


def _is_team_admin(team_id: str, user_id: str) -> bool:
    try:
        team_service.require_admin(team_id, user_id)
    except PermissionDeniedError:
        return False
    return True


# ═════════════════════════════════════════════════════════════════════════════
# Lookups (with access checks)
# ═════════════════════════════════════════════════════════════════════════════


def get_cycle(cycle_id: str, user_id: str) -> StrategyCycle:
    cycle = db.session.get(StrategyCycle, cycle_id)
    if cycle is None:
        raise NotFoundError(resource="StrategyCycle", resource_id=cycle_id)
    team_service.require_member(cycle.team_id, user_id)
    return cycle


def get_rallying_cry(rc_id: str, user_id: str) -> RallyingCry:
    rc = db.session.get(RallyingCry, rc_id)
    if rc is None:
        raise NotFoundError(resource="RallyingCry", resource_id=rc_id)
    team_service.require_member(rc.cycle.team_id, user_id)
    return rc


def get_objective(do_id: str, user_id: str) -> DefiningObjective:
    obj = db.session.get(DefiningObjective, do_id)
    if obj is None:
        raise NotFoundError(resource="DefiningObjective", resource_id=do_id)
    team_service.require_member(obj.rallying_cry.cycle.team_id, user_id)
    return obj


def get_initiative(si_id: str, user_id: str) -> StrategicInitiative:
    si = db.session.get(StrategicInitiative, si_id)
    if si is None:
        raise NotFoundError(resource="StrategicInitiative", resource_id=si_id)
    team_service.require_member(si.objective.rallying_cry.cycle.team_id, user_id)
    return si


def _cycle_id_of_objective(obj: DefiningObjective) -> str:
    return obj.rallying_cry.cycle_id


def _team_id_of_objective(obj: DefiningObjective) -> str:
    return obj.rallying_cry.cycle.team_id


def _resolve_parent(parent_type: str, parent_id: str, user_id: str):
    """Return (parent, cycle_id) for a polymorphic check-in / link parent."""
    _choice(parent_type, PARENT_TYPES, "parent_type")
    if parent_type == "do":
        obj = get_objective(parent_id, user_id)
        return obj, _cycle_id_of_objective(obj)
    si = get_initiative(parent_id, user_id)
    return si, _cycle_id_of_objective(si.objective)


def _guard_locked(locked_at, team_id: str, user_id: str, label: str) -> None:
    if locked_at is not None and not _is_team_admin(team_id, user_id):
        raise PermissionDeniedError(f"{label} is locked")


# ═════════════════════════════════════════════════════════════════════════════
# Cycles
# ═════════════════════════════════════════════════════════════════════════════


def create_cycle(team_id: str, data: dict, user_id: str) -> dict:
    team_service.require_member(team_id, user_id)
    start = _date_field(data, "start_date")
    end = _date_field(data, "end_date")
    if start is None or end is None:
        raise ValidationError("start_date and end_date are required")
    if end <= start:
        raise ValidationError("End date must be after start date")
    cycle = StrategyCycle(
        team_id=team_id,
        type=data.get("type") or "half",
        start_date=start,
        end_date=end,
        status="draft",
        created_by=user_id,
    )
    db.session.add(cycle)
    db.session.commit()
    logger.info("Strategy cycle %s created for team %s", cycle.id, team_id)
    return cycle.to_dict()


def list_cycles(team_id: str, user_id: str) -> list[dict]:
    team_service.require_member(team_id, user_id)
    rows = StrategyCycle.query.filter_by(team_id=team_id).order_by(StrategyCycle.start_date.desc()).all()
    return [c.to_dict() for c in rows]


def get_active_cycle(team_id: str, user_id: str) -> dict | None:
    team_service.require_member(team_id, user_id)
    cycle = StrategyCycle.query.filter_by(team_id=team_id, status="active").first()
    return cycle.to_dict() if cycle else None


def check_cycle_activation(cycle: StrategyCycle, start: date | None = None, end: date | None = None):
    others = StrategyCycle.query.filter(
        StrategyCycle.team_id == cycle.team_id,
        StrategyCycle.status == "active",
        StrategyCycle.id != cycle.id,
    ).count()
    return rcdo_validation.validate_cycle_activation(start or cycle.start_date, end or cycle.end_date, others)


def update_cycle(cycle_id: str, data: dict, user_id: str) -> dict:
    """Update dates / status. Moving to ``active`` runs the activation checks.

    Returns ``{"cycle": ..., "warnings": [...]}``.
    """
    cycle = get_cycle(cycle_id, user_id)
    start = _date_field(data, "start_date") if "start_date" in data else cycle.start_date
    end = _date_field(data, "end_date") if "end_date" in data else cycle.end_date
    if start is None or end is None or end <= start:
        raise ValidationError("End date must be after start date")

    warnings: list[str] = []
    status = data.get("status", cycle.status)
    _choice(status, CYCLE_STATUSES, "status")
    if status == "active" and cycle.status != "active":
        team_service.require_admin(cycle.team_id, user_id)
        result = check_cycle_activation(cycle, start, end)
        if not result.valid:
            raise ValidationError("Cycle cannot be activated", details=result.to_dict())
        warnings = result.warnings

    cycle.start_date, cycle.end_date, cycle.status = start, end, status
    if "type" in data:
        cycle.type = data["type"] or cycle.type
    db.session.commit()
    invalidate_cycle(cycle.id)
    return {"cycle": cycle.to_dict(), "warnings": warnings}


def cycle_score(cycle_id: str, user_id: str) -> dict:
    cycle = get_cycle(cycle_id, user_id)
    rc = cycle.rallying_cry
    objectives = []
    if rc is not None:
        objectives = [o.to_dict(include_children=True) for o in rc.objectives]
    return rcdo_scoring.cycle_score(objectives).to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Rallying cry
# ═════════════════════════════════════════════════════════════════════════════


def get_cycle_rallying_cry(cycle_id: str, user_id: str, include_children: bool = False) -> dict | None:
    cycle = get_cycle(cycle_id, user_id)
    rc = cycle.rallying_cry
    return rc.to_dict(include_children=include_children) if rc else None


def upsert_rallying_cry(cycle_id: str, data: dict, user_id: str) -> dict:
    cycle = get_cycle(cycle_id, user_id)
    rc = cycle.rallying_cry
    if rc is None:
        rc = RallyingCry(cycle_id=cycle.id, title=_required_text(data, "title"))
        db.session.add(rc)
    else:
        _guard_locked(rc.locked_at, cycle.team_id, user_id, "Rallying cry")
        if "title" in data:
            rc.title = _required_text(data, "title")
    if "narrative" in data:
        rc.narrative = data["narrative"]
    if "owner_user_id" in data:
        rc.owner_user_id = data["owner_user_id"] or None
    if "status" in data:
        rc.status = _choice(data["status"], RC_STATUSES, "status")
    db.session.commit()
    invalidate_cycle(cycle.id)
    return rc.to_dict()


def rallying_cry_commit_check(rc_id: str, user_id: str) -> dict:
    rc = get_rallying_cry(rc_id, user_id)
    objectives = [o.to_dict(include_children=True) for o in rc.objectives]
    return rcdo_validation.validate_rallying_cry_commit(objectives).to_dict()


def lock_rallying_cry(rc_id: str, user_id: str) -> dict:
    """Commit the rallying cry; blocked until the commit check passes."""
    rc = get_rallying_cry(rc_id, user_id)
    team_service.require_admin(rc.cycle.team_id, user_id)
    result = rcdo_validation.validate_rallying_cry_commit(
        [o.to_dict(include_children=True) for o in rc.objectives]
    )
    if not result.valid:
        raise ValidationError("Rallying cry is not ready to be committed", details=result.to_dict())
    rc.status = "committed"
    rc.locked_at = _utcnow()
    rc.locked_by = user_id
    db.session.commit()
    invalidate_cycle(rc.cycle_id)
    return {"rallying_cry": rc.to_dict(), "warnings": result.warnings}


def unlock_rallying_cry(rc_id: str, user_id: str) -> dict:
    rc = get_rallying_cry(rc_id, user_id)
    team_service.require_admin(rc.cycle.team_id, user_id)
    rc.locked_at = None
    rc.locked_by = None
    rc.status = "draft"
    db.session.commit()
    invalidate_cycle(rc.cycle_id)
    return rc.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Defining objectives
# ═════════════════════════════════════════════════════════════════════════════


def create_objective(rc_id: str, data: dict, user_id: str) -> dict:
    rc = get_rallying_cry(rc_id, user_id)
    obj = DefiningObjective(
        rallying_cry_id=rc.id,
        title=_required_text(data, "title"),
        hypothesis=data.get("hypothesis"),
        owner_user_id=data.get("owner_user_id") or None,
        start_date=_date_field(data, "start_date"),
        end_date=_date_field(data, "end_date"),
        status=_choice(data.get("status") or "draft", DO_STATUSES, "status"),
        confidence_pct=_int_in_range(data.get("confidence_pct", 50), "confidence_pct", 0, 100),
        weight_pct=_int_in_range(data.get("weight_pct", 100), "weight_pct", 0, 100),
        display_order=data.get("display_order", len(rc.objectives)),
        created_by=user_id,
    )
    db.session.add(obj)
    db.session.commit()
    invalidate_cycle(rc.cycle_id)
    return obj.to_dict()


def update_objective(do_id: str, data: dict, user_id: str) -> dict:
    obj = get_objective(do_id, user_id)
    _guard_locked(obj.locked_at, _team_id_of_objective(obj), user_id, "Defining objective")
    if "title" in data:
        obj.title = _required_text(data, "title")
    for key in ("hypothesis", "display_order"):
        if key in data:
            setattr(obj, key, data[key])
    if "owner_user_id" in data:
        obj.owner_user_id = data["owner_user_id"] or None
    for key in ("start_date", "end_date"):
        if key in data:
            setattr(obj, key, _date_field(data, key))
    if "status" in data:
        obj.status = _choice(data["status"], DO_STATUSES, "status")
    if "health" in data:
        obj.health = _choice(data["health"], DO_HEALTH, "health")
    for key in ("confidence_pct", "weight_pct"):
        if key in data:
            setattr(obj, key, _int_in_range(data[key], key, 0, 100))
    db.session.commit()
    invalidate_cycle(_cycle_id_of_objective(obj))
    return obj.to_dict()


def delete_objective(do_id: str, user_id: str) -> None:
    obj = get_objective(do_id, user_id)
    _guard_locked(obj.locked_at, _team_id_of_objective(obj), user_id, "Defining objective")
    cycle_id = _cycle_id_of_objective(obj)
    db.session.delete(obj)
    db.session.commit()
    invalidate_cycle(cycle_id)


def objective_commit_check(do_id: str, user_id: str) -> dict:
    obj = get_objective(do_id, user_id)
    return rcdo_validation.validate_objective_commit(obj, obj.metrics).to_dict()


def set_objective_lock(do_id: str, user_id: str, locked: bool) -> dict:
    obj = get_objective(do_id, user_id)
    team_service.require_admin(_team_id_of_objective(obj), user_id)
    if locked:
        result = rcdo_validation.validate_objective_commit(obj, obj.metrics)
        if not result.valid:
            raise ValidationError("Defining objective is not ready to be locked", details=result.to_dict())
        obj.status = "locked"
        obj.locked_at = _utcnow()
        obj.locked_by = user_id
    else:
        obj.status = "active"
        obj.locked_at = None
        obj.locked_by = None
    db.session.commit()
    invalidate_cycle(_cycle_id_of_objective(obj))
    return obj.to_dict()


def recalculate_health(do_id: str, user_id: str) -> dict:
    """Store the leading-metric health on the objective and return the breakdown."""
    obj = get_objective(do_id, user_id)
    health = rcdo_scoring.objective_health(obj.metrics)
    if obj.health != "done":
        obj.health = health.health
    obj.last_health_calc_at = _utcnow()
    db.session.commit()
    invalidate_cycle(_cycle_id_of_objective(obj))
    return health.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Metrics
# ═════════════════════════════════════════════════════════════════════════════


def _apply_metric_fields(metric: ObjectiveMetric, data: dict) -> None:
    if "name" in data:
        metric.name = _required_text(data, "name")
    if "type" in data:
        metric.type = _choice(data["type"], METRIC_TYPES, "type")
    if "direction" in data:
        metric.direction = _choice(data["direction"], METRIC_DIRECTIONS, "direction")
    if "unit" in data:
        metric.unit = data["unit"]
    if "target_numeric" in data:
        metric.target_numeric = _number(data["target_numeric"], "target_numeric")
    if "current_numeric" in data:
        metric.current_numeric = _number(data["current_numeric"], "current_numeric")
        metric.last_updated_at = _utcnow()
    if "display_order" in data:
        metric.display_order = data["display_order"]


def create_metric(do_id: str, data: dict, user_id: str) -> dict:
    obj = get_objective(do_id, user_id)
    metric = ObjectiveMetric(
        defining_objective_id=obj.id,
        name=_required_text(data, "name"),
        display_order=len(obj.metrics),
    )
    _apply_metric_fields(metric, data)
    db.session.add(metric)
    db.session.commit()
    invalidate_cycle(_cycle_id_of_objective(obj))
    return metric.to_dict()


def _get_metric(metric_id: str, user_id: str) -> ObjectiveMetric:
    metric = db.session.get(ObjectiveMetric, metric_id)
    if metric is None:
        raise NotFoundError(resource="ObjectiveMetric", resource_id=metric_id)
    get_objective(metric.defining_objective_id, user_id)
    return metric


def update_metric(metric_id: str, data: dict, user_id: str) -> dict:
    metric = _get_metric(metric_id, user_id)
    _apply_metric_fields(metric, data)
    db.session.commit()
    invalidate_cycle(_cycle_id_of_objective(metric.objective))
    return metric.to_dict()


def delete_metric(metric_id: str, user_id: str) -> None:
    metric = _get_metric(metric_id, user_id)
    cycle_id = _cycle_id_of_objective(metric.objective)
    db.session.delete(metric)
    db.session.commit()
    invalidate_cycle(cycle_id)


def metric_status(metric_id: str, user_id: str) -> dict:
    metric = _get_metric(metric_id, user_id)
    status = rcdo_scoring.metric_status(metric)
    return {"status": status.status, "percent_complete": status.percent_complete, "is_achieved": status.is_achieved}


# ═════════════════════════════════════════════════════════════════════════════
# Strategic initiatives
# ═════════════════════════════════════════════════════════════════════════════


def create_initiative(do_id: str, data: dict, user_id: str) -> dict:
    obj = get_objective(do_id, user_id)
    si = StrategicInitiative(
        defining_objective_id=obj.id,
        title=_required_text(data, "title"),
        description=data.get("description"),
        owner_user_id=data.get("owner_user_id") or None,
        participant_user_ids=list(data.get("participant_user_ids") or []),
        start_date=_date_field(data, "start_date"),
        end_date=_date_field(data, "end_date"),
        status=_choice(data.get("status") or "draft", INITIATIVE_STATUSES, "status"),
        display_order=data.get("display_order", len(obj.initiatives)),
        created_by=user_id,
    )
    db.session.add(si)
    db.session.commit()
    invalidate_cycle(_cycle_id_of_objective(obj))
    return si.to_dict()


def update_initiative(si_id: str, data: dict, user_id: str) -> dict:
    si = get_initiative(si_id, user_id)
    _guard_locked(si.locked_at, _team_id_of_objective(si.objective), user_id, "Strategic initiative")
    if "title" in data:
        si.title = _required_text(data, "title")
    for key in ("description", "display_order"):
        if key in data:
            setattr(si, key, data[key])
    if "owner_user_id" in data:
        si.owner_user_id = data["owner_user_id"] or None
    if "participant_user_ids" in data:
        si.participant_user_ids = list(data["participant_user_ids"] or [])
    for key in ("start_date", "end_date"):
        if key in data:
            setattr(si, key, _date_field(data, key))
    if "status" in data:
        si.status = _choice(data["status"], INITIATIVE_STATUSES, "status")
    db.session.commit()
    invalidate_cycle(_cycle_id_of_objective(si.objective))
    return si.to_dict()


def delete_initiative(si_id: str, user_id: str) -> None:
    si = get_initiative(si_id, user_id)
    _guard_locked(si.locked_at, _team_id_of_objective(si.objective), user_id, "Strategic initiative")
    cycle_id = _cycle_id_of_objective(si.objective)
    db.session.delete(si)
    db.session.commit()
    invalidate_cycle(cycle_id)


def set_initiative_lock(si_id: str, user_id: str, locked: bool) -> dict:
    si = get_initiative(si_id, user_id)
    team_service.require_admin(_team_id_of_objective(si.objective), user_id)
    si.locked_at = _utcnow() if locked else None
    si.locked_by = user_id if locked else None
    db.session.commit()
    invalidate_cycle(_cycle_id_of_objective(si.objective))
    return si.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Tasks
# ═════════════════════════════════════════════════════════════════════════════


def _apply_task_status(task: Task, status: str, data: dict) -> None:
    _choice(status, TASK_STATUSES, "status")
    if status == "completed" and task.status != "completed":
        task.actual_delivery_date = _date_field(data, "actual_delivery_date") or date.today()
    elif status != "completed":
        task.actual_delivery_date = None
    task.status = status


def create_task(si_id: str, data: dict, user_id: str) -> dict:
    si = get_initiative(si_id, user_id)
    task = Task(
        strategic_initiative_id=si.id,
        title=_required_text(data, "title"),
        notes=data.get("notes"),
        owner_user_id=data.get("owner_user_id") or None,
        start_date=_date_field(data, "start_date"),
        target_delivery_date=_date_field(data, "target_delivery_date"),
        status="not_assigned",
        created_by=user_id,
    )
    default_status = "assigned" if task.owner_user_id else "not_assigned"
    _apply_task_status(task, data.get("status") or default_status, data)
    db.session.add(task)
    db.session.commit()
    invalidate_cycle(_cycle_id_of_objective(si.objective))
    return task.to_dict()


def _get_task(task_id: str, user_id: str) -> Task:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError(resource="Task", resource_id=task_id)
    get_initiative(task.strategic_initiative_id, user_id)
    return task


def update_task(task_id: str, data: dict, user_id: str) -> dict:
    task = _get_task(task_id, user_id)
    if "title" in data:
        task.title = _required_text(data, "title")
    if "notes" in data:
        task.notes = data["notes"]
    if "owner_user_id" in data:
        task.owner_user_id = data["owner_user_id"] or None
    for key in ("start_date", "target_delivery_date"):
        if key in data:
            setattr(task, key, _date_field(data, key))
    if "status" in data:
        _apply_task_status(task, data["status"], data)
    elif "actual_delivery_date" in data and task.status == "completed":
        task.actual_delivery_date = _date_field(data, "actual_delivery_date")
    db.session.commit()
    invalidate_cycle(_cycle_id_of_objective(task.initiative.objective))
    return task.to_dict()


def delete_task(task_id: str, user_id: str) -> None:
    task = _get_task(task_id, user_id)
    cycle_id = _cycle_id_of_objective(task.initiative.objective)
    db.session.delete(task)
    db.session.commit()
    invalidate_cycle(cycle_id)


def list_my_tasks(user_id: str, include_completed: bool = False) -> list[dict]:
    q = Task.query.filter_by(owner_user_id=user_id)
    if not include_completed:
        q = q.filter(Task.status.notin_(("completed", "task_changed_canceled")))
    rows = q.order_by(Task.target_delivery_date.is_(None), Task.target_delivery_date, Task.created_at).all()
    return [t.to_dict() for t in rows]


# ═════════════════════════════════════════════════════════════════════════════
# Links & check-ins
# ═════════════════════════════════════════════════════════════════════════════


def create_link(data: dict, user_id: str) -> dict:
    parent_type = data.get("parent_type")
    _, cycle_id = _resolve_parent(parent_type, data.get("parent_id"), user_id)
    link = Link(
        parent_type=parent_type,
        parent_id=data["parent_id"],
        kind=_choice(data.get("kind"), LINK_KINDS, "kind"),
        ref_id=_required_text(data, "ref_id"),
        created_by=user_id,
    )
    db.session.add(link)
    db.session.commit()
    invalidate_cycle(cycle_id)
    return link.to_dict()


def list_links(parent_type: str, parent_id: str, user_id: str) -> list[dict]:
    _resolve_parent(parent_type, parent_id, user_id)
    rows = Link.query.filter_by(parent_type=parent_type, parent_id=parent_id).order_by(Link.created_at).all()
    return [link.to_dict() for link in rows]


def delete_link(link_id: str, user_id: str) -> None:
    link = db.session.get(Link, link_id)
    if link is None:
        raise NotFoundError(resource="Link", resource_id=link_id)
    _, cycle_id = _resolve_parent(link.parent_type, link.parent_id, user_id)
    db.session.delete(link)
    db.session.commit()
    invalidate_cycle(cycle_id)


def create_checkin(data: dict, user_id: str) -> dict:
    parent_type = data.get("parent_type")
    _, cycle_id = _resolve_parent(parent_type, data.get("parent_id"), user_id)
    checkin = CheckIn(
        parent_type=parent_type,
        parent_id=data["parent_id"],
        date=_date_field(data, "date") or date.today(),
        summary=data.get("summary"),
        blockers=data.get("blockers"),
        next_steps=data.get("next_steps"),
        sentiment=_int_in_range(data.get("sentiment"), "sentiment", -2, 2),
        percent_to_goal=_int_in_range(data.get("percent_to_goal"), "percent_to_goal", 0, 100),
        created_by=user_id,
    )
    db.session.add(checkin)
    db.session.commit()
    invalidate_cycle(cycle_id)
    return checkin.to_dict()


def list_checkins(parent_type: str, parent_id: str, user_id: str) -> list[dict]:
    _resolve_parent(parent_type, parent_id, user_id)
    rows = (
        CheckIn.query.filter_by(parent_type=parent_type, parent_id=parent_id)
        .order_by(CheckIn.date.desc(), CheckIn.created_at.desc())
        .all()
    )
    return [c.to_dict() for c in rows]


def list_user_checkins(user_id: str, limit: int = 50) -> list[dict]:
    rows = (
        CheckIn.query.filter_by(created_by=user_id)
        .order_by(CheckIn.date.desc(), CheckIn.created_at.desc())
        .limit(limit)
        .all()
    )
    return [c.to_dict() for c in rows]
