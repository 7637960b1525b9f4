"""
RCDO Validation — guardrails for cycle activation and commit readiness.

Each check returns a ``CheckResult`` with blocking ``errors`` and advisory
``warnings``; callers decide whether to raise.

Usage:
    result = validate_rallying_cry_commit(objectives)
    if not result.valid:
        raise ValidationError("Rallying cry is not ready", details=result.to_dict())
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta

MIN_OBJECTIVES = 4
MAX_OBJECTIVES = 6
CYCLE_MONTHS = 6


@dataclass
class CheckResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    facts: dict = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings, **self.facts}


def _get(obj, key, default=None):
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


# ── Date helpers ─────────────────────────────────────────────────────────────


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def whole_months_between(start: date, end: date) -> int:
    """Number of complete calendar months from ``start`` to ``end``."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


def suggest_cycle_dates(today: date) -> tuple[date, date]:
    """First or second half of ``today``'s year."""
    if today.month <= 6:
        return date(today.year, 1, 1), date(today.year, 6, 30)
    return date(today.year, 7, 1), date(today.year, 12, 31)


# ── Checks ───────────────────────────────────────────────────────────────────


def validate_cycle_activation(start: date, end: date, other_active_cycles: int = 0) -> CheckResult:
    """A cycle spans six months and is the team's only active one.

    Both ``Jan 1 → Jul 1`` and ``Jan 1 → Jun 30`` count as six months.
    """
    result = CheckResult()
    if end <= start:
        result.errors.append("End date must be after start date")
    else:
        last_day = add_months(start, CYCLE_MONTHS) - timedelta(days=1)
        if end != last_day and whole_months_between(start, end) != CYCLE_MONTHS:
            result.errors.append("Cycle must be exactly 6 months in duration")
    if other_active_cycles:
        result.errors.append("Only one active cycle allowed per team at a time")
    if (start.month, start.day) not in ((1, 1), (7, 1)):
        result.warnings.append("Recommended cycle start dates are January 1 or July 1")
    return result


def validate_objective_commit(objective, metrics) -> CheckResult:
    """An objective needs an owner plus at least one leading and one lagging metric."""
    metrics = list(metrics or [])
    has_owner = bool(_get(objective, "owner_user_id"))
    has_leading = any(_get(m, "type") == "leading" for m in metrics)
    has_lagging = any(_get(m, "type") == "lagging" for m in metrics)

    result = CheckResult(facts={
        "has_owner": has_owner,
        "has_leading_metric": has_leading,
        "has_lagging_metric": has_lagging,
    })
    if not has_owner:
        result.errors.append("DO must have exactly one owner before activation")
    if not has_leading:
        result.errors.append("DO must have at least one leading metric")
    if not has_lagging:
        result.errors.append("DO must have at least one lagging metric")

    missing_targets = sum(1 for m in metrics if _get(m, "target_numeric") is None)
    if missing_targets:
        result.warnings.append(f"{missing_targets} metric(s) do not have target values set")
    return result


def validate_rallying_cry_commit(objectives) -> CheckResult:
    """Each objective carries ``owner_user_id``, ``title`` and ``metrics``."""
    objectives = list(objectives or [])
    count = len(objectives)
    result = CheckResult()

    if count == 0:
        result.errors.append("Rallying Cry must have at least one Defining Objective")
    elif count < MIN_OBJECTIVES:
        result.errors.append(f"Rallying Cry should have at least {MIN_OBJECTIVES} Defining Objectives")
    if count > MAX_OBJECTIVES:
        result.warnings.append(
            f"Rallying Cry has more than {MAX_OBJECTIVES} DOs. Consider consolidating for focus."
        )

    all_owners = all_metrics = True
    for obj in objectives:
        title = _get(obj, "title")
        metrics = _get(obj, "metrics") or []
        if not _get(obj, "owner_user_id"):
            all_owners = False
            result.errors.append(f'DO "{title}" is missing an owner')
        types = {_get(m, "type") for m in metrics}
        for kind in ("leading", "lagging"):
            if kind not in types:
                all_metrics = False
                result.errors.append(f'DO "{title}" is missing a {kind} metric')

    result.facts = {
        "do_count": count,
        "all_dos_have_owners": all_owners,
        "all_dos_have_metrics": all_metrics,
    }
    return result
