"""
Strategy Markdown — parse and validate a rallying cry / objectives / initiatives
document. Pure: no database or canvas access.

Accepted layout::

    # Strategy H1 2026
    ## Rallying Cry — H1 2026
    > **Win the mid-market**

    ## DO #1 — Grow revenue (Owner: Ada)
    **Definition**
    One or more paragraph lines.
    **Primary Success Metric**
    * ARR up 30 %
    ### Strategic Initiatives
    1. **Launch partner program (Owner: grace@example.com)**
    * Sign ten partners

Header dashes may be an em dash, en dash, hyphen or colon.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from cadence.services.rcdo_validation import CheckResult

MAX_RECOMMENDED_OBJECTIVES = 6

_TITLE_RE = re.compile(r"^#\s+(.+)$")
_RC_HEADER_RE = re.compile(r"^##\s+Rallying\s+Cry\s*(?:[—–\-:]\s*(.*))?$", re.IGNORECASE)
_RC_QUOTE_RE = re.compile(r"^>\s*\*\*(.+)\*\*\s*$")
_DO_HEADER_RE = re.compile(r"^##\s+DO\s+#?(\d+)\s*[—–\-:]\s*(.*)$", re.IGNORECASE)
_OWNER_RE = re.compile(r"^(.+?)\s*\(Owner:\s*([^)]+)\)\s*$", re.IGNORECASE)
_SI_ITEM_RE = re.compile(r"^\d+\.\s+\*\*(.+)\*\*$")
_BULLET_RE = re.compile(r"^[*\-]\s*")

DEFINITION_MARK = "**Definition**"
METRIC_MARK = "**Primary Success Metric**"
INITIATIVES_MARK = "### Strategic Initiatives"


@dataclass
class ParsedInitiative:
    title: str
    bullets: list[str] = field(default_factory=list)
    owner_name: str | None = None

    @property
    def description(self) -> str:
        return "\n".join(f"• {b}" for b in self.bullets)

    @property
    def description_html(self) -> str:
        if not self.bullets:
            return ""
        return "<ul>" + "".join(f"<li>{b}</li>" for b in self.bullets) + "</ul>"


@dataclass
class ParsedObjective:
    number: int
    title: str
    definition: str = ""
    primary_success_metric: str = ""
    initiatives: list[ParsedInitiative] = field(default_factory=list)
    owner_name: str | None = None
    has_initiatives_section: bool = False


@dataclass
class ParsedStrategy:
    title: str = ""
    period: str = ""
    rallying_cry: str = ""
    objectives: list[ParsedObjective] = field(default_factory=list)

    @property
    def initiative_count(self) -> int:
        return sum(len(o.initiatives) for o in self.objectives)

    def summary(self) -> dict:
        return {
            "title": self.title,
            "period": self.period,
            "rallying_cry": self.rallying_cry,
            "objectives": [
                {
                    "number": o.number,
                    "title": o.title,
                    "owner_name": o.owner_name,
                    "has_definition": bool(o.definition),
                    "has_primary_success_metric": bool(o.primary_success_metric),
                    "initiatives": [{"title": i.title, "owner_name": i.owner_name} for i in o.initiatives],
                }
                for o in self.objectives
            ],
        }


def _split_owner(text: str) -> tuple[str, str | None]:
    match = _OWNER_RE.match(text)
    if match:
        return match.group(1).strip(), match.group(2).strip()
    return text.strip(), None


def parse_strategy_markdown(text: str) -> ParsedStrategy:
    parsed = ParsedStrategy()
    current: ParsedObjective | None = None
    initiative: ParsedInitiative | None = None
    section = "none"

    def close_initiative():
        nonlocal initiative
        if current is not None and initiative is not None:
            current.initiatives.append(initiative)
        initiative = None

    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line:
            continue

        match = _RC_QUOTE_RE.match(line)
        if match:
            parsed.rallying_cry = match.group(1).strip()
            section = "rc"
            continue

        match = _DO_HEADER_RE.match(line)
        if match:
            close_initiative()
            if current is not None:
                parsed.objectives.append(current)
            title, owner = _split_owner(match.group(2))
            current = ParsedObjective(number=int(match.group(1)), title=title, owner_name=owner)
            section = "none"
            continue

        match = _RC_HEADER_RE.match(line)
        if match:
            parsed.period = (match.group(1) or "").strip()
            section = "rc"
            continue

        match = _TITLE_RE.match(line)
        if match and not parsed.title:
            parsed.title = match.group(1).strip()
            continue

        if current is None:
            continue

        if line == DEFINITION_MARK:
            section = "definition"
            continue
        if line == METRIC_MARK:
            section = "metric"
            continue
        if line == INITIATIVES_MARK:
            close_initiative()
            current.has_initiatives_section = True
            section = "initiatives"
            continue

        if section == "definition" and not line.startswith("**"):
            current.definition = f"{current.definition} {line}".strip()
        elif section == "metric" and line.startswith("*"):
            metric = _BULLET_RE.sub("", line, count=1).strip()
            current.primary_success_metric = f"{current.primary_success_metric} {metric}".strip()
        elif section == "initiatives":
            match = _SI_ITEM_RE.match(line)
            if match:
                close_initiative()
                title, owner = _split_owner(match.group(1))
                initiative = ParsedInitiative(title=title, owner_name=owner)
            elif initiative is not None and line.startswith("*"):
                initiative.bullets.append(_BULLET_RE.sub("", line, count=1).strip())

    close_initiative()
    if current is not None:
        parsed.objectives.append(current)
    return parsed


def validate_parsed_strategy(parsed: ParsedStrategy) -> CheckResult:
    """Blocking errors and advisory warnings for an import."""
    result = CheckResult()
    if not parsed.rallying_cry:
        result.errors.append("No Rallying Cry found in the markdown file")
    if not parsed.objectives:
        result.errors.append("No Defining Objectives found in the markdown file")
    if len(parsed.objectives) > MAX_RECOMMENDED_OBJECTIVES:
        result.warnings.append(
            f"Found {len(parsed.objectives)} Defining Objectives. "
            f"Maximum recommended is {MAX_RECOMMENDED_OBJECTIVES}."
        )

    for index, obj in enumerate(parsed.objectives, start=1):
        if not obj.title:
            result.errors.append(f"DO #{index} is missing a title")
        if not obj.has_initiatives_section:
            result.errors.append(f'DO #{index} "{obj.title}" has no "{INITIATIVES_MARK}" section')
        elif not obj.initiatives:
            result.warnings.append(f'DO #{index} "{obj.title}" has no Strategic Initiatives')
        if not obj.definition:
            result.warnings.append(f'DO #{index} "{obj.title}" is missing a definition')
        if not obj.primary_success_metric:
            result.warnings.append(f'DO #{index} "{obj.title}" is missing a primary success metric')

    result.facts = {
        "objective_count": len(parsed.objectives),
        "initiative_count": parsed.initiative_count,
    }
    return result
