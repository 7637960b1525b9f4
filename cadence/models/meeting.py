"""
Meeting Models — recurring series, instances, agendas and meeting items.

    MeetingSeries ──┬── MeetingInstance ──┬── Topic
                    │                     └── Priority
                    ├── AgendaItem (series agenda)
                    └── ActionItem

    AgendaTemplate ── AgendaTemplateItem
"""

from cadence.models import _iso, _utcnow, _uuid, db


__all__ = [
    "MeetingSeries",
    "MeetingInstance",
    "AgendaItem",
    "AgendaTemplate",
    "AgendaTemplateItem",
    "Topic",
    "Priority",
    "ActionItem",
    "MEETING_FREQUENCIES",
    "COMPLETION_STATUSES",
]

MEETING_FREQUENCIES = {"daily", "weekly", "bi-weekly", "monthly", "quarter"}
COMPLETION_STATUSES = {"completed", "not_completed", "pending"}


# ═════════════════════════════════════════════════════════════════════════════
# Series & instances
# ═════════════════════════════════════════════════════════════════════════════

class MeetingSeries(db.Model):
    __tablename__ = "meeting_series"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    frequency = db.Column(db.String(20), nullable=False, default="weekly")
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    instances = db.relationship(
        "MeetingInstance", back_populates="series", lazy="dynamic", cascade="all, delete-orphan",
    )
    agenda_items = db.relationship(
        "AgendaItem", back_populates="series", lazy="dynamic", cascade="all, delete-orphan",
        order_by="AgendaItem.order_index",
    )
    action_items = db.relationship(
        "ActionItem", back_populates="series", lazy="dynamic", cascade="all, delete-orphan",
        order_by="ActionItem.order_index",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "name": self.name,
            "frequency": self.frequency,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class MeetingInstance(db.Model):
    __tablename__ = "meeting_instances"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    series_id = db.Column(
        db.String(36), db.ForeignKey("meeting_series.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    start_date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("series_id", "start_date", name="uq_instance_series_date"),
    )

    series = db.relationship("MeetingSeries", back_populates="instances")
    topics = db.relationship(
        "Topic", back_populates="instance", lazy="dynamic", cascade="all, delete-orphan",
        order_by="Topic.order_index",
    )
    priorities = db.relationship(
        "Priority", back_populates="instance", lazy="dynamic", cascade="all, delete-orphan",
        order_by="Priority.order_index",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "series_id": self.series_id,
            "start_date": _iso(self.start_date),
            "created_at": _iso(self.created_at),
        }


# ═════════════════════════════════════════════════════════════════════════════
# Agenda
# ═════════════════════════════════════════════════════════════════════════════

class AgendaItem(db.Model):
    """One line of a series' standing agenda."""

    __tablename__ = "meeting_series_agenda"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    series_id = db.Column(
        db.String(36), db.ForeignKey("meeting_series.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    notes = db.Column(db.Text)
    assigned_to = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    time_minutes = db.Column(db.Integer, default=0)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    is_completed = db.Column(db.Boolean, default=False)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    series = db.relationship("MeetingSeries", back_populates="agenda_items")

    def to_dict(self):
        return {
            "id": self.id,
            "series_id": self.series_id,
            "title": self.title,
            "notes": self.notes,
            "assigned_to": self.assigned_to,
            "time_minutes": self.time_minutes,
            "order_index": self.order_index,
            "is_completed": bool(self.is_completed),
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class AgendaTemplate(db.Model):
    __tablename__ = "agenda_templates"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    is_system = db.Column(db.Boolean, default=False)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    items = db.relationship(
        "AgendaTemplateItem", back_populates="template", lazy="select",
        cascade="all, delete-orphan", order_by="AgendaTemplateItem.order_index",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_system": bool(self.is_system),
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "items": [i.to_dict() for i in self.items],
        }


class AgendaTemplateItem(db.Model):
    __tablename__ = "agenda_template_items"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    template_id = db.Column(
        db.String(36), db.ForeignKey("agenda_templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    duration_minutes = db.Column(db.Integer, default=0)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    template = db.relationship("AgendaTemplate", back_populates="items")

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "title": self.title,
            "duration_minutes": self.duration_minutes,
            "order_index": self.order_index,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Meeting items
# ═════════════════════════════════════════════════════════════════════════════

class Topic(db.Model):
    __tablename__ = "meeting_instance_topics"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    instance_id = db.Column(
        db.String(36), db.ForeignKey("meeting_instances.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    notes = db.Column(db.Text)
    assigned_to = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    time_minutes = db.Column(db.Integer)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    completion_status = db.Column(db.String(20), nullable=False, default="not_completed")
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    instance = db.relationship("MeetingInstance", back_populates="topics")

    def to_dict(self):
        return {
            "id": self.id,
            "instance_id": self.instance_id,
            "title": self.title,
            "notes": self.notes,
            "assigned_to": self.assigned_to,
            "time_minutes": self.time_minutes,
            "order_index": self.order_index,
            "completion_status": self.completion_status,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Priority(db.Model):
    __tablename__ = "meeting_instance_priorities"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    instance_id = db.Column(
        db.String(36), db.ForeignKey("meeting_instances.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    outcome = db.Column(db.Text, nullable=False)
    activities = db.Column(db.Text)
    assigned_to = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    order_index = db.Column(db.Integer, nullable=False, default=0)
    completion_status = db.Column(db.String(20), nullable=False, default="pending")
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    instance = db.relationship("MeetingInstance", back_populates="priorities")

    def to_dict(self):
        return {
            "id": self.id,
            "instance_id": self.instance_id,
            "outcome": self.outcome,
            "activities": self.activities,
            "assigned_to": self.assigned_to,
            "order_index": self.order_index,
            "completion_status": self.completion_status,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ActionItem(db.Model):
    __tablename__ = "meeting_series_action_items"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    series_id = db.Column(
        db.String(36), db.ForeignKey("meeting_series.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    notes = db.Column(db.Text)
    assigned_to = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    due_date = db.Column(db.Date)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    completion_status = db.Column(db.String(20), nullable=False, default="not_completed")
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    series = db.relationship("MeetingSeries", back_populates="action_items")

    def to_dict(self):
        return {
            "id": self.id,
            "series_id": self.series_id,
            "title": self.title,
            "notes": self.notes,
            "assigned_to": self.assigned_to,
            "due_date": _iso(self.due_date),
            "order_index": self.order_index,
            "completion_status": self.completion_status,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
