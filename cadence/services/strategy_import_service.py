"""Strategy import — write a parsed markdown strategy into a cycle's RCDO tables.

Rules:
  - Validation errors abort before any write.
  - The whole import is ONE transaction: the existing rallying cry (and its
    cascade) is replaced, and on any step error everything is rolled back.
  - Progress is reported as steps: "Rallying Cry", then one per objective,
    each pending → loading → success | error. Steps after a failure stay
    pending.
  - Owners named in the document are resolved against the team's members;
    unresolved or missing owners fall back to the importing user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from cadence.core.exceptions import ValidationError
from cadence.models import db
from cadence.models.auth import User
from cadence.models.rcdo import (
    DefiningObjective,
    ObjectiveMetric,
    RallyingCry,
    StrategicInitiative,
)
from cadence.models.team import TeamMember
from cadence.services.navigation_service import invalidate_cycle
from cadence.services.strategy_markdown import (
    ParsedObjective,
    ParsedStrategy,
    parse_strategy_markdown,
    validate_parsed_strategy,
)

logger = logging.getLogger(__name__)

PENDING, LOADING, SUCCESS, ERROR = "pending", "loading", "success", "error"
RALLYING_CRY_STEP = "Rallying Cry"


@dataclass
class ImportStep:
    label: str
    status: str = PENDING

    def to_dict(self) -> dict:
        return {"label": self.label, "status": self.status}


@dataclass
class ImportResult:
    parsed: ParsedStrategy
    steps: list[ImportStep]
    warnings: list[str] = field(default_factory=list)
    rallying_cry_id: str | None = None
    objective_ids: list[str] = field(default_factory=list)
    initiative_ids: list[list[str]] = field(default_factory=list)
    owner_ids: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "rallying_cry_id": self.rallying_cry_id,
            "objective_ids": self.objective_ids,
            "initiative_ids": [i for ids in self.initiative_ids for i in ids],
            "steps": [s.to_dict() for s in self.steps],
            "warnings": self.warnings,
        }


class StrategyImportError(ValidationError):
    """A step failed; the transaction was rolled back."""

    def __init__(self, message: str, steps: list[ImportStep]):
        super().__init__(message, details={"steps": [s.to_dict() for s in steps]})
        self.steps = steps


# ── Owner resolution ─────────────────────────────────────────────────────────


def resolve_owner(name: str | None, users, fallback_user_id: str) -> str:
    """Match ``name`` case-insensitively on email, first, last or full name."""
    needle = (name or "").strip().lower()
    if needle:
        for user in users:
            candidates = (user.email, user.first_name, user.last_name, user.full_name, user.display_name)
            if any(c and c.strip().lower() == needle for c in candidates):
                return user.id
    return fallback_user_id


def team_users(team_id: str) -> list[User]:
    return (
        User.query.join(TeamMember, TeamMember.user_id == User.id)
        .filter(TeamMember.team_id == team_id)
        .all()
    )


# ── Import ───────────────────────────────────────────────────────────────────


def parse_and_validate(markdown: str):
    parsed = parse_strategy_markdown(markdown)
    return parsed, validate_parsed_strategy(parsed)


def initial_steps(parsed: ParsedStrategy) -> list[ImportStep]:
    return [ImportStep(RALLYING_CRY_STEP)] + [ImportStep(o.title or f"DO #{o.number}") for o in parsed.objectives]


def _create_objective(rc: RallyingCry, index: int, parsed_obj: ParsedObjective, users, user_id: str):
    owner_id = resolve_owner(parsed_obj.owner_name, users, user_id)
    obj = DefiningObjective(
        rallying_cry_id=rc.id,
        title=parsed_obj.title,
        hypothesis=f"<p>{parsed_obj.definition}</p>" if parsed_obj.definition else None,
        owner_user_id=owner_id,
        status="draft",
        health="on_track",
        confidence_pct=50,
        weight_pct=100,
        display_order=index,
        created_by=user_id,
    )
    db.session.add(obj)
    db.session.flush()

    if parsed_obj.primary_success_metric:
        db.session.add(ObjectiveMetric(
            defining_objective_id=obj.id,
            name=parsed_obj.primary_success_metric,
            type="lagging",
            direction="up",
            display_order=0,
        ))

    initiatives = []
    for si_index, parsed_si in enumerate(parsed_obj.initiatives):
        si = StrategicInitiative(
            defining_objective_id=obj.id,
            title=parsed_si.title,
            description=parsed_si.description_html,
            owner_user_id=resolve_owner(parsed_si.owner_name, users, user_id),
            status="draft",
            display_order=si_index,
            created_by=user_id,
        )
        db.session.add(si)
        initiatives.append(si)
    db.session.flush()
    return obj, initiatives


def import_strategy(cycle, markdown: str, user_id: str, *, lock_all: bool = False) -> ImportResult:
    """Replace ``cycle``'s rallying cry tree with the document's contents.

    Raises:
        ValidationError: the document failed validation (no writes).
        StrategyImportError: a step failed (rolled back, steps attached).
    """
    parsed, check = parse_and_validate(markdown)
    steps = initial_steps(parsed)
    if not check.valid:
        raise ValidationError(
            "Markdown validation failed",
            details={"errors": check.errors, "warnings": check.warnings, "steps": [s.to_dict() for s in steps]},
        )

    users = team_users(cycle.team_id)
    result = ImportResult(parsed=parsed, steps=steps, warnings=check.warnings)
    now = datetime.now(timezone.utc)
    current = steps[0]

    try:
        existing = RallyingCry.query.filter_by(cycle_id=cycle.id).first()
        if existing is not None:
            db.session.delete(existing)
            db.session.flush()

        current.status = LOADING
        rc = RallyingCry(cycle_id=cycle.id, title=parsed.rallying_cry, owner_user_id=user_id, status="draft")
        db.session.add(rc)
        db.session.flush()
        current.status = SUCCESS
        result.rallying_cry_id = rc.id

        for index, parsed_obj in enumerate(parsed.objectives):
            current = steps[index + 1]
            current.status = LOADING
            obj, initiatives = _create_objective(rc, index, parsed_obj, users, user_id)
            if lock_all:
                obj.status = "final"
                obj.locked_at = now
                obj.locked_by = user_id
                for si in initiatives:
                    si.locked_at = now
                    si.locked_by = user_id
            current.status = SUCCESS
            result.objective_ids.append(obj.id)
            result.initiative_ids.append([si.id for si in initiatives])
            result.owner_ids.append({
                "objective": obj.owner_user_id,
                "initiatives": [si.owner_user_id for si in initiatives],
            })

        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current.status = ERROR
        logger.exception("Strategy import into cycle %s failed at step %r", cycle.id, current.label)
        raise StrategyImportError(f"Import failed at step {current.label!r}: {exc}", steps) from exc

    invalidate_cycle(cycle.id)
    logger.info(
        "Imported strategy into cycle %s: %d objectives, %d initiatives",
        cycle.id, len(result.objective_ids), parsed.initiative_count,
    )
    return result


def canvas_objectives(result: ImportResult) -> list[dict]:
    """Objective dicts for ``build_strategy_layout`` from a committed import."""
    objectives = []
    for index, parsed_obj in enumerate(result.parsed.objectives):
        owners = result.owner_ids[index]
        objectives.append({
            "title": parsed_obj.title,
            "hypothesis": parsed_obj.definition,
            "primary_success_metric": parsed_obj.primary_success_metric,
            "owner_id": owners["objective"],
            "db_id": result.objective_ids[index],
            "initiatives": [
                {
                    "title": si.title,
                    "description": si.description,
                    "owner_id": owners["initiatives"][j],
                    "db_id": result.initiative_ids[index][j],
                }
                for j, si in enumerate(parsed_obj.initiatives)
            ],
        })
    return objectives
