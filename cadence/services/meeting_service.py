"""Meeting service — series, instances, series agenda, templates and meeting items.

Rules:
  - Every operation checks team membership through the owning series.
  - Template adoption replaces the series agenda in ONE transaction: on any
    failure the previous agenda is left untouched.
  - db.session.commit() happens in this file.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select

from cadence.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from cadence.models import db
from cadence.models.meeting import (
    COMPLETION_STATUSES,
    MEETING_FREQUENCIES,
    ActionItem,
    AgendaItem,
    AgendaTemplate,
    AgendaTemplateItem,
    MeetingInstance,
    MeetingSeries,
    Priority,
    Topic,
)
from cadence.services import team_service
from cadence.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

SYSTEM_TEMPLATES = [
    {
        "name": "Weekly Tactical",
        "description": "Opening comments, a quick scorecard pass, then priorities and topics.",
        "items": [
            ("Opening Comments", 5),
            ("Scorecard Review", 10),
            ("Priorities", 15),
            ("Topics", 25),
            ("Action Items", 5),
        ],
    },
]


# ── Lookups ───────────────────────────────────────────────────────────────────


def get_series(series_id: str, user_id: str) -> MeetingSeries:
    series = db.session.get(MeetingSeries, series_id)
    if series is None:
        raise NotFoundError(resource="MeetingSeries", resource_id=series_id)
    team_service.require_member(series.team_id, user_id)
    return series


def get_instance(instance_id: str, user_id: str) -> MeetingInstance:
    instance = db.session.get(MeetingInstance, instance_id)
    if instance is None:
        raise NotFoundError(resource="MeetingInstance", resource_id=instance_id)
    team_service.require_member(instance.series.team_id, user_id)
    return instance


def _required_text(data: dict, key: str) -> str:
    value = (data.get(key) or "").strip()
    if not value:
        raise ValidationError(f"{key} is required")
    return value


def _check_status(value):
    if value is not None and value not in COMPLETION_STATUSES:
        raise ValidationError(f"completion_status must be one of: {', '.join(sorted(COMPLETION_STATUSES))}")


def _date_field(data: dict, key: str):
    try:
        return parse_date_input(data.get(key))
    except ValueError as exc:
        raise ValidationError(str(exc), details={key: "invalid"})


# ═════════════════════════════════════════════════════════════════════════════
# Series
# ═════════════════════════════════════════════════════════════════════════════


def create_series(team_id: str, data: dict, user_id: str) -> dict:
    team_service.require_member(team_id, user_id)
    name = _required_text(data, "name")
    frequency = data.get("frequency") or "weekly"
    if frequency not in MEETING_FREQUENCIES:
        raise ValidationError(f"frequency must be one of: {', '.join(sorted(MEETING_FREQUENCIES))}")
    series = MeetingSeries(team_id=team_id, name=name, frequency=frequency, created_by=user_id)
    db.session.add(series)
    db.session.commit()
    logger.info("Meeting series %s created in team %s", series.id, team_id)
    return series.to_dict()


def list_series(team_id: str, user_id: str) -> list[dict]:
    team_service.require_member(team_id, user_id)
    rows = MeetingSeries.query.filter_by(team_id=team_id).order_by(MeetingSeries.name).all()
    return [s.to_dict() for s in rows]


def update_series(series_id: str, data: dict, user_id: str) -> dict:
    series = get_series(series_id, user_id)
    if "name" in data:
        series.name = _required_text(data, "name")
    if "frequency" in data:
        if data["frequency"] not in MEETING_FREQUENCIES:
            raise ValidationError(f"frequency must be one of: {', '.join(sorted(MEETING_FREQUENCIES))}")
        series.frequency = data["frequency"]
    db.session.commit()
    return series.to_dict()


def delete_series(series_id: str, user_id: str) -> None:
    series = get_series(series_id, user_id)
    team_service.require_admin(series.team_id, user_id)
    db.session.delete(series)
    db.session.commit()


# ═════════════════════════════════════════════════════════════════════════════
# Instances
# ═════════════════════════════════════════════════════════════════════════════


def create_instance(series_id: str, data: dict, user_id: str) -> dict:
    series = get_series(series_id, user_id)
    start_date = _date_field(data, "start_date")
    if start_date is None:
        raise ValidationError("start_date is required")
    instance = MeetingInstance(series_id=series.id, start_date=start_date)
    db.session.add(instance)
    db.session.commit()
    return instance.to_dict()


def instances_query(series_id: str, user_id: str):
    get_series(series_id, user_id)
    return MeetingInstance.query.filter_by(series_id=series_id).order_by(MeetingInstance.start_date.desc())


def delete_instance(instance_id: str, user_id: str) -> None:
    instance = get_instance(instance_id, user_id)
    db.session.delete(instance)
    db.session.commit()


# ═════════════════════════════════════════════════════════════════════════════
# Series agenda
# ═════════════════════════════════════════════════════════════════════════════


def list_agenda(series_id: str, user_id: str) -> list[dict]:
    series = get_series(series_id, user_id)
    return [i.to_dict() for i in series.agenda_items.all()]


def _next_order(model, parent_col, parent_id) -> int:
    current = db.session.execute(
        select(func.max(model.order_index)).where(parent_col == parent_id)
    ).scalar()
    return 0 if current is None else current + 1


def add_agenda_item(series_id: str, data: dict, user_id: str) -> dict:
    series = get_series(series_id, user_id)
    item = AgendaItem(
        series_id=series.id,
        title=_required_text(data, "title"),
        notes=data.get("notes"),
        assigned_to=data.get("assigned_to"),
        time_minutes=int(data.get("time_minutes") or 0),
        order_index=_next_order(AgendaItem, AgendaItem.series_id, series.id),
        created_by=user_id,
    )
    db.session.add(item)
    db.session.commit()
    return item.to_dict()


def _series_child(model, item_id, user_id, label):
    item = db.session.get(model, item_id)
    if item is None:
        raise NotFoundError(resource=label, resource_id=item_id)
    get_series(item.series_id, user_id)
    return item


def update_agenda_item(item_id: str, data: dict, user_id: str) -> dict:
    item = _series_child(AgendaItem, item_id, user_id, "AgendaItem")
    if "title" in data:
        item.title = _required_text(data, "title")
    for key in ("notes", "assigned_to"):
        if key in data:
            setattr(item, key, data[key])
    if "time_minutes" in data:
        item.time_minutes = int(data["time_minutes"] or 0)
    if "is_completed" in data:
        item.is_completed = bool(data["is_completed"])
    db.session.commit()
    return item.to_dict()


def delete_agenda_item(item_id: str, user_id: str) -> None:
    item = _series_child(AgendaItem, item_id, user_id, "AgendaItem")
    db.session.delete(item)
    db.session.commit()


def reorder_agenda(series_id: str, ordered_ids: list[str], user_id: str) -> list[dict]:
    """Set order_index from the position of each id in ``ordered_ids``.

    ``ordered_ids`` must name every agenda item of the series exactly once.
    """
    series = get_series(series_id, user_id)
    items = {i.id: i for i in series.agenda_items.all()}
    if sorted(ordered_ids) != sorted(items):
        raise ValidationError("ordered_ids must list every agenda item of the series exactly once")
    for index, item_id in enumerate(ordered_ids):
        items[item_id].order_index = index
    db.session.commit()
    return [i.to_dict() for i in series.agenda_items.all()]


# ═════════════════════════════════════════════════════════════════════════════
# Agenda templates
# ═════════════════════════════════════════════════════════════════════════════


def list_templates(user_id: str) -> list[dict]:
    rows = AgendaTemplate.query.filter(
        (AgendaTemplate.is_system.is_(True)) | (AgendaTemplate.created_by == user_id)
    ).order_by(AgendaTemplate.is_system.desc(), AgendaTemplate.name).all()
    return [t.to_dict() for t in rows]


def create_template(data: dict, user_id: str, *, is_system: bool = False) -> dict:
    template = AgendaTemplate(
        name=_required_text(data, "name"),
        description=data.get("description"),
        is_system=is_system,
        created_by=None if is_system else user_id,
    )
    for index, raw in enumerate(data.get("items") or []):
        title = (raw.get("title") or "").strip()
        if not title:
            raise ValidationError(f"Template item #{index + 1} is missing a title")
        template.items.append(AgendaTemplateItem(
            title=title,
            duration_minutes=int(raw.get("duration_minutes") or 0),
            order_index=index,
        ))
    db.session.add(template)
    db.session.commit()
    return template.to_dict()


def seed_system_templates() -> int:
    """Insert the built-in templates that do not exist yet. Returns how many were added."""
    added = 0
    for definition in SYSTEM_TEMPLATES:
        if AgendaTemplate.query.filter_by(name=definition["name"], is_system=True).first():
            continue
        template = AgendaTemplate(name=definition["name"], description=definition["description"], is_system=True)
        for index, (title, minutes) in enumerate(definition["items"]):
            template.items.append(AgendaTemplateItem(title=title, duration_minutes=minutes, order_index=index))
        db.session.add(template)
        added += 1
    db.session.commit()
    return added


def adopt_template(series_id: str, template_id: str, user_id: str) -> list[dict]:
    """Replace the series agenda with the template's items, atomically."""
    series = get_series(series_id, user_id)
    template = db.session.get(AgendaTemplate, template_id)
    if template is None:
        raise NotFoundError(resource="AgendaTemplate", resource_id=template_id)
    if not template.is_system and template.created_by != user_id:
        raise PermissionDeniedError("Template is not available to you")

    try:
        AgendaItem.query.filter_by(series_id=series.id).delete(synchronize_session="fetch")
        for index, tpl_item in enumerate(sorted(template.items, key=lambda i: i.order_index)):
            db.session.add(AgendaItem(
                series_id=series.id,
                title=tpl_item.title,
                time_minutes=tpl_item.duration_minutes or 0,
                order_index=index,
                created_by=user_id,
            ))
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Template %s adoption failed for series %s", template_id, series_id)
        raise

    logger.info("Series %s adopted template %s", series_id, template_id)
    return [i.to_dict() for i in series.agenda_items.all()]


# ═════════════════════════════════════════════════════════════════════════════
# Topics & priorities (per instance), action items (per series)
# ═════════════════════════════════════════════════════════════════════════════


def _instance_child(model, item_id, user_id, label):
    item = db.session.get(model, item_id)
    if item is None:
        raise NotFoundError(resource=label, resource_id=item_id)
    get_instance(item.instance_id, user_id)
    return item


def list_topics(instance_id: str, user_id: str) -> list[dict]:
    return [t.to_dict() for t in get_instance(instance_id, user_id).topics.all()]


def add_topic(instance_id: str, data: dict, user_id: str) -> dict:
    instance = get_instance(instance_id, user_id)
    _check_status(data.get("completion_status"))
    topic = Topic(
        instance_id=instance.id,
        title=_required_text(data, "title"),
        notes=data.get("notes"),
        assigned_to=data.get("assigned_to"),
        time_minutes=data.get("time_minutes"),
        completion_status=data.get("completion_status") or "not_completed",
        order_index=_next_order(Topic, Topic.instance_id, instance.id),
        created_by=user_id,
    )
    db.session.add(topic)
    db.session.commit()
    return topic.to_dict()


def update_topic(topic_id: str, data: dict, user_id: str) -> dict:
    topic = _instance_child(Topic, topic_id, user_id, "Topic")
    _check_status(data.get("completion_status"))
    if "title" in data:
        topic.title = _required_text(data, "title")
    for key in ("notes", "assigned_to", "time_minutes", "completion_status", "order_index"):
        if key in data:
            setattr(topic, key, data[key])
    db.session.commit()
    return topic.to_dict()


def delete_topic(topic_id: str, user_id: str) -> None:
    db.session.delete(_instance_child(Topic, topic_id, user_id, "Topic"))
    db.session.commit()


def list_priorities(instance_id: str, user_id: str) -> list[dict]:
    return [p.to_dict() for p in get_instance(instance_id, user_id).priorities.all()]


def add_priority(instance_id: str, data: dict, user_id: str) -> dict:
    instance = get_instance(instance_id, user_id)
    _check_status(data.get("completion_status"))
    priority = Priority(
        instance_id=instance.id,
        outcome=_required_text(data, "outcome"),
        activities=data.get("activities"),
        assigned_to=data.get("assigned_to"),
        completion_status=data.get("completion_status") or "pending",
        order_index=_next_order(Priority, Priority.instance_id, instance.id),
        created_by=user_id,
    )
    db.session.add(priority)
    db.session.commit()
    return priority.to_dict()


def update_priority(priority_id: str, data: dict, user_id: str) -> dict:
    priority = _instance_child(Priority, priority_id, user_id, "Priority")
    _check_status(data.get("completion_status"))
    if "outcome" in data:
        priority.outcome = _required_text(data, "outcome")
    for key in ("activities", "assigned_to", "completion_status", "order_index"):
        if key in data:
            setattr(priority, key, data[key])
    db.session.commit()
    return priority.to_dict()


def delete_priority(priority_id: str, user_id: str) -> None:
    db.session.delete(_instance_child(Priority, priority_id, user_id, "Priority"))
    db.session.commit()


def list_action_items(series_id: str, user_id: str) -> list[dict]:
    return [a.to_dict() for a in get_series(series_id, user_id).action_items.all()]


def add_action_item(series_id: str, data: dict, user_id: str) -> dict:
    series = get_series(series_id, user_id)
    _check_status(data.get("completion_status"))
    item = ActionItem(
        series_id=series.id,
        title=_required_text(data, "title"),
        notes=data.get("notes"),
        assigned_to=data.get("assigned_to"),
        due_date=_date_field(data, "due_date"),
        completion_status=data.get("completion_status") or "not_completed",
        order_index=_next_order(ActionItem, ActionItem.series_id, series.id),
        created_by=user_id,
    )
    db.session.add(item)
    db.session.commit()
    return item.to_dict()


def update_action_item(item_id: str, data: dict, user_id: str) -> dict:
    item = _series_child(ActionItem, item_id, user_id, "ActionItem")
    _check_status(data.get("completion_status"))
    if "title" in data:
        item.title = _required_text(data, "title")
    if "due_date" in data:
        item.due_date = _date_field(data, "due_date")
    for key in ("notes", "assigned_to", "completion_status", "order_index"):
        if key in data:
            setattr(item, key, data[key])
    db.session.commit()
    return item.to_dict()


def delete_action_item(item_id: str, user_id: str) -> None:
    db.session.delete(_series_child(ActionItem, item_id, user_id, "ActionItem"))
    db.session.commit()
