"""
RCDO Scoring — metric status, objective health and cycle score.

Pure functions over plain metric / objective mappings (model ``to_dict()``
output or ORM rows). Health is driven by *leading* metrics only:

    percent >= 80  → on_track
    percent >= 50  → at_risk
    otherwise      → off_track
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

ON_TRACK_THRESHOLD = 80
AT_RISK_THRESHOLD = 50
NO_LEADING_SCORE = 50


def _get(obj, key, default=None):
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _bucket(percent: float) -> str:
    if percent >= ON_TRACK_THRESHOLD:
        return "on_track"
    if percent >= AT_RISK_THRESHOLD:
        return "at_risk"
    return "off_track"


@dataclass
class MetricStatus:
    status: str
    percent_complete: float
    is_achieved: bool


@dataclass
class ObjectiveHealth:
    health: str
    score: float
    leading_metrics_count: int = 0
    on_track_count: int = 0
    at_risk_count: int = 0
    off_track_count: int = 0
    calculated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CycleScore:
    score: float
    weighted_score: float
    objective_scores: list[dict] = field(default_factory=list)
    calculated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return asdict(self)


def metric_status(metric) -> MetricStatus:
    """Completion of a single metric towards its target.

    ``direction == "up"``: higher is better, percent = current / target.
    ``direction == "down"``: at or below target is 100 %, every unit above it
    costs ``1 / target`` of the score.
    """
    current = _get(metric, "current_numeric")
    target = _get(metric, "target_numeric")
    if current is None or target is None or target == 0:
        return MetricStatus(status="unknown", percent_complete=0.0, is_achieved=False)

    if _get(metric, "direction", "up") == "down":
        if current <= target:
            percent, achieved = 100.0, True
        else:
            percent = max(0.0, 100 - ((current - target) / target) * 100)
            achieved = False
    else:
        percent = min(100.0, max(0.0, (current / target) * 100))
        achieved = current >= target

    return MetricStatus(status=_bucket(percent), percent_complete=percent, is_achieved=achieved)


def objective_health(metrics) -> ObjectiveHealth:
    leading = [m for m in metrics or [] if _get(m, "type") == "leading"]
    if not leading:
        return ObjectiveHealth(health="on_track", score=float(NO_LEADING_SCORE))

    statuses = [metric_status(m) for m in leading]
    score = sum(s.percent_complete for s in statuses) / len(leading)
    return ObjectiveHealth(
        health=_bucket(score),
        score=score,
        leading_metrics_count=len(leading),
        on_track_count=sum(1 for s in statuses if s.status == "on_track"),
        at_risk_count=sum(1 for s in statuses if s.status == "at_risk"),
        off_track_count=sum(1 for s in statuses if s.status == "off_track"),
    )


def cycle_score(objectives) -> CycleScore:
    """Simple and weight-normalised average of objective health scores.

    Each objective needs ``id``, ``title``, ``weight_pct`` and ``metrics``.
    With no weights set the weighted score falls back to the simple average.
    """
    objectives = list(objectives or [])
    if not objectives:
        return CycleScore(score=0.0, weighted_score=0.0)

    rows = []
    for obj in objectives:
        health = objective_health(_get(obj, "metrics") or [])
        rows.append({
            "do_id": _get(obj, "id"),
            "do_title": _get(obj, "title"),
            "health": health.health,
            "score": health.score,
            "weight": _get(obj, "weight_pct") or 0,
        })

    simple = sum(r["score"] for r in rows) / len(rows)
    total_weight = sum(r["weight"] for r in rows)
    if total_weight > 0:
        weighted = sum(r["score"] * r["weight"] / total_weight for r in rows)
    else:
        weighted = simple
    return CycleScore(score=simple, weighted_score=weighted, objective_scores=rows)
