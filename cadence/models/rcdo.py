"""
RCDO Models — strategy cycles, rallying cries, defining objectives,
metrics, strategic initiatives, tasks, check-ins and links.

    StrategyCycle (6 months, per team)
      └── RallyingCry (one per cycle)
            └── DefiningObjective ──┬── ObjectiveMetric (leading | lagging)
                                    └── StrategicInitiative ── Task

    CheckIn / Link attach polymorphically to an objective ("do") or an
    initiative ("initiative") via (parent_type, parent_id).
"""

from cadence.models import _iso, _utcnow, _uuid, db


__all__ = [
    "StrategyCycle",
    "RallyingCry",
    "DefiningObjective",
    "ObjectiveMetric",
    "StrategicInitiative",
    "Task",
    "CheckIn",
    "Link",
]

CYCLE_STATUSES = {"draft", "active", "review", "archived"}
RC_STATUSES = {"draft", "committed", "in_progress", "done"}
DO_STATUSES = {"draft", "active", "locked", "done", "final"}
DO_HEALTH = {"on_track", "at_risk", "off_track", "done"}
METRIC_TYPES = {"leading", "lagging"}
METRIC_DIRECTIONS = {"up", "down"}
METRIC_SOURCES = {"manual", "api", "sheet", "jira", "clearinsights"}
INITIATIVE_STATUSES = {"draft", "not_started", "active", "blocked", "done", "final"}
TASK_STATUSES = {
    "not_assigned", "assigned", "in_progress", "completed", "task_changed_canceled", "delayed",
}
PARENT_TYPES = {"do", "initiative"}
LINK_KINDS = {"meeting_priority", "action_item", "topic", "decision", "jira", "doc"}


# ═════════════════════════════════════════════════════════════════════════════
# Cycle & rallying cry
# ═════════════════════════════════════════════════════════════════════════════

class StrategyCycle(db.Model):
    __tablename__ = "rc_cycles"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    type = db.Column(db.String(10), nullable=False, default="half")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="draft")
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    rallying_cry = db.relationship(
        "RallyingCry", back_populates="cycle", uselist=False, cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "type": self.type,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "status": self.status,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class RallyingCry(db.Model):
    __tablename__ = "rc_rallying_cries"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    cycle_id = db.Column(
        db.String(36), db.ForeignKey("rc_cycles.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    title = db.Column(db.String(500), nullable=False)
    narrative = db.Column(db.Text)
    owner_user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    status = db.Column(db.String(20), nullable=False, default="draft")
    locked_at = db.Column(db.DateTime(timezone=True))
    locked_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    cycle = db.relationship("StrategyCycle", back_populates="rallying_cry")
    objectives = db.relationship(
        "DefiningObjective", back_populates="rallying_cry", cascade="all, delete-orphan",
        order_by="DefiningObjective.display_order",
    )

    def to_dict(self, include_children=False):
        d = {
            "id": self.id,
            "cycle_id": self.cycle_id,
            "title": self.title,
            "narrative": self.narrative,
            "owner_user_id": self.owner_user_id,
            "status": self.status,
            "locked_at": _iso(self.locked_at),
            "locked_by": self.locked_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_children:
            d["defining_objectives"] = [o.to_dict(include_children=True) for o in self.objectives]
        return d


# ═════════════════════════════════════════════════════════════════════════════
# Defining objectives & metrics
# ═════════════════════════════════════════════════════════════════════════════

class DefiningObjective(db.Model):
    __tablename__ = "rc_defining_objectives"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    rallying_cry_id = db.Column(
        db.String(36), db.ForeignKey("rc_rallying_cries.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(500), nullable=False)
    hypothesis = db.Column(db.Text)
    owner_user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    status = db.Column(db.String(20), nullable=False, default="draft")
    health = db.Column(db.String(20), nullable=False, default="on_track")
    confidence_pct = db.Column(db.Integer, default=50)
    weight_pct = db.Column(db.Integer, default=100)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    locked_at = db.Column(db.DateTime(timezone=True))
    locked_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    last_health_calc_at = db.Column(db.DateTime(timezone=True))
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    rallying_cry = db.relationship("RallyingCry", back_populates="objectives")
    metrics = db.relationship(
        "ObjectiveMetric", back_populates="objective", cascade="all, delete-orphan",
        order_by="ObjectiveMetric.display_order",
    )
    initiatives = db.relationship(
        "StrategicInitiative", back_populates="objective", cascade="all, delete-orphan",
        order_by="StrategicInitiative.display_order",
    )

    def to_dict(self, include_children=False):
        d = {
            "id": self.id,
            "rallying_cry_id": self.rallying_cry_id,
            "title": self.title,
            "hypothesis": self.hypothesis,
            "owner_user_id": self.owner_user_id,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "status": self.status,
            "health": self.health,
            "confidence_pct": self.confidence_pct,
            "weight_pct": self.weight_pct,
            "display_order": self.display_order,
            "locked_at": _iso(self.locked_at),
            "locked_by": self.locked_by,
            "last_health_calc_at": _iso(self.last_health_calc_at),
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_children:
            d["metrics"] = [m.to_dict() for m in self.metrics]
            d["initiatives"] = [i.to_dict() for i in self.initiatives]
        return d


class ObjectiveMetric(db.Model):
    __tablename__ = "rc_do_metrics"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    defining_objective_id = db.Column(
        db.String(36), db.ForeignKey("rc_defining_objectives.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(300), nullable=False)
    type = db.Column(db.String(10), nullable=False, default="leading")
    unit = db.Column(db.String(50))
    target_numeric = db.Column(db.Float)
    direction = db.Column(db.String(5), nullable=False, default="up")
    current_numeric = db.Column(db.Float)
    last_updated_at = db.Column(db.DateTime(timezone=True))
    source = db.Column(db.String(20), nullable=False, default="manual")
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    objective = db.relationship("DefiningObjective", back_populates="metrics")

    def to_dict(self):
        return {
            "id": self.id,
            "defining_objective_id": self.defining_objective_id,
            "name": self.name,
            "type": self.type,
            "unit": self.unit,
            "target_numeric": self.target_numeric,
            "direction": self.direction,
            "current_numeric": self.current_numeric,
            "last_updated_at": _iso(self.last_updated_at),
            "source": self.source,
            "display_order": self.display_order,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Initiatives & tasks
# ═════════════════════════════════════════════════════════════════════════════

class StrategicInitiative(db.Model):
    __tablename__ = "rc_strategic_initiatives"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    defining_objective_id = db.Column(
        db.String(36), db.ForeignKey("rc_defining_objectives.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text)
    owner_user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    participant_user_ids = db.Column(db.JSON, default=list)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    status = db.Column(db.String(20), nullable=False, default="draft")
    display_order = db.Column(db.Integer, nullable=False, default=0)
    locked_at = db.Column(db.DateTime(timezone=True))
    locked_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    objective = db.relationship("DefiningObjective", back_populates="initiatives")
    tasks = db.relationship(
        "Task", back_populates="initiative", cascade="all, delete-orphan",
        order_by="Task.created_at",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "defining_objective_id": self.defining_objective_id,
            "title": self.title,
            "description": self.description,
            "owner_user_id": self.owner_user_id,
            "participant_user_ids": self.participant_user_ids or [],
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "status": self.status,
            "display_order": self.display_order,
            "locked_at": _iso(self.locked_at),
            "locked_by": self.locked_by,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Task(db.Model):
    __tablename__ = "rc_tasks"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    strategic_initiative_id = db.Column(
        db.String(36), db.ForeignKey("rc_strategic_initiatives.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(500), nullable=False)
    notes = db.Column(db.Text)
    owner_user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), index=True)
    start_date = db.Column(db.Date)
    target_delivery_date = db.Column(db.Date)
    actual_delivery_date = db.Column(db.Date)
    status = db.Column(db.String(30), nullable=False, default="not_assigned")
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    initiative = db.relationship("StrategicInitiative", back_populates="tasks")

    def to_dict(self):
        return {
            "id": self.id,
            "strategic_initiative_id": self.strategic_initiative_id,
            "title": self.title,
            "notes": self.notes,
            "owner_user_id": self.owner_user_id,
            "start_date": _iso(self.start_date),
            "target_delivery_date": _iso(self.target_delivery_date),
            "actual_delivery_date": _iso(self.actual_delivery_date),
            "status": self.status,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ═════════════════════════════════════════════════════════════════════════════
# Check-ins & links (polymorphic parent)
# ═════════════════════════════════════════════════════════════════════════════

class CheckIn(db.Model):
    __tablename__ = "rc_checkins"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    parent_type = db.Column(db.String(20), nullable=False)
    parent_id = db.Column(db.String(36), nullable=False)
    date = db.Column(db.Date, nullable=False)
    summary = db.Column(db.Text)
    blockers = db.Column(db.Text)
    next_steps = db.Column(db.Text)
    sentiment = db.Column(db.Integer)
    percent_to_goal = db.Column(db.Integer)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.Index("ix_rc_checkins_parent", "parent_type", "parent_id"),
        db.CheckConstraint("sentiment IS NULL OR (sentiment BETWEEN -2 AND 2)", name="ck_checkin_sentiment"),
        db.CheckConstraint(
            "percent_to_goal IS NULL OR (percent_to_goal BETWEEN 0 AND 100)", name="ck_checkin_percent",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "parent_type": self.parent_type,
            "parent_id": self.parent_id,
            "date": _iso(self.date),
            "summary": self.summary,
            "blockers": self.blockers,
            "next_steps": self.next_steps,
            "sentiment": self.sentiment,
            "percent_to_goal": self.percent_to_goal,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Link(db.Model):
    __tablename__ = "rc_links"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    parent_type = db.Column(db.String(20), nullable=False)
    parent_id = db.Column(db.String(36), nullable=False)
    kind = db.Column(db.String(30), nullable=False)
    ref_id = db.Column(db.String(200), nullable=False)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.Index("ix_rc_links_parent", "parent_type", "parent_id"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "parent_type": self.parent_type,
            "parent_id": self.parent_id,
            "kind": self.kind,
            "ref_id": self.ref_id,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
        }
