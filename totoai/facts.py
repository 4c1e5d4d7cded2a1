"""Adapters between the fact-extraction collaborator and the engine.

The extraction collaborator returns structured JSON per text chunk
(injuries, suspensions, form, tactical changes). This module validates
that payload, merges chunks, scores each fact and flattens everything
into Fact values the fact adjuster understands.
"""

import logging
from typing import Iterable, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from totoai.probability import Fact, FactType

logger = logging.getLogger(__name__)

NO_FACTS_DIGEST = "No specific facts available"


# ──────────────────────────────────────────────
# Extraction schemas
# ──────────────────────────────────────────────

class Injury(BaseModel):
    player: str
    position: Optional[str] = None
    severity: Literal["minor", "major", "unknown"] = "unknown"
    expected_return: Optional[str] = None
    description: Optional[str] = None


class Suspension(BaseModel):
    player: str
    reason: str
    matches: Optional[int] = None
    description: Optional[str] = None


class Form(BaseModel):
    team: str
    last_5: list[Literal["W", "L", "D"]] = Field(default_factory=list)
    summary: str = ""


class TacticalChange(BaseModel):
    type: Literal["coach_change", "formation", "tactical", "other"]
    description: str
    impact: Optional[str] = None
    team: Optional[str] = None


class ExtractedFacts(BaseModel):
    """Validated output of one extraction call."""

    injuries: list[Injury] = Field(default_factory=list)
    suspensions: list[Suspension] = Field(default_factory=list)
    form: list[Form] = Field(default_factory=list)
    tactical: list[TacticalChange] = Field(default_factory=list)


def parse_extraction(payload: dict) -> ExtractedFacts:
    """Validate a raw extraction payload; malformed payloads yield no facts."""
    try:
        return ExtractedFacts.model_validate(payload)
    except ValidationError as e:
        logger.warning("Discarding malformed fact extraction: %s", e.errors()[:3])
        return ExtractedFacts()


# ──────────────────────────────────────────────
# Merging
# ──────────────────────────────────────────────

def merge_extractions(extractions: Iterable[ExtractedFacts]) -> ExtractedFacts:
    """Merge per-chunk extractions, dropping duplicates.

    Injuries and suspensions dedupe on player name, form on team name
    (a complete five-result run replaces a shorter one), tactical changes
    on the first 20 characters of their description.
    """
    merged = ExtractedFacts()

    for facts in extractions:
        for injury in facts.injuries:
            if not any(i.player.lower() == injury.player.lower() for i in merged.injuries):
                merged.injuries.append(injury)

        for suspension in facts.suspensions:
            if not any(s.player.lower() == suspension.player.lower() for s in merged.suspensions):
                merged.suspensions.append(suspension)

        for form in facts.form:
            idx = next(
                (i for i, f in enumerate(merged.form) if f.team.lower() == form.team.lower()),
                None,
            )
            if idx is None:
                merged.form.append(form)
            elif len(form.last_5) == 5 and len(merged.form[idx].last_5) < 5:
                merged.form[idx] = form

        for tactical in facts.tactical:
            prefix = tactical.description.lower()[:20]
            if not any(prefix in t.description.lower() for t in merged.tactical):
                merged.tactical.append(tactical)

    return merged


# ──────────────────────────────────────────────
# Confidence & conversion
# ──────────────────────────────────────────────

def calculate_fact_confidence(
    description: Optional[str] = None,
    has_specifics: bool = False,
    source_count: int = 1,
) -> float:
    """Heuristic confidence for an extracted fact.

    Base 0.5, +0.1 for a detailed description (>20 chars), +0.1 when the
    fact carries a date or match count, +0.1 per corroborating source
    (max +0.3). Capped at 1.0.
    """
    confidence = 0.5
    if description and len(description) > 20:
        confidence += 0.1
    if has_specifics:
        confidence += 0.1
    confidence += min(source_count * 0.1, 0.3)
    return min(confidence, 1.0)


def facts_from_extraction(
    extracted: ExtractedFacts,
    source_count: int = 1,
) -> list[Fact]:
    """Flatten an extraction into Fact values.

    Form facts carry the run as ``W-L-D-W-L`` in their description so the
    fact adjuster can score it.
    """
    facts: list[Fact] = []

    for injury in extracted.injuries:
        returning = f", expected return: {injury.expected_return}" if injury.expected_return else ""
        facts.append(Fact(
            type=FactType.INJURY,
            entity=injury.player,
            description=(
                f"{injury.player} ({injury.position or 'unknown position'}) - "
                f"{injury.severity} injury{returning}. {injury.description or ''}"
            ).strip(),
            confidence=calculate_fact_confidence(
                injury.description, bool(injury.expected_return), source_count,
            ),
        ))

    for suspension in extracted.suspensions:
        count = ""
        if suspension.matches:
            count = f" ({suspension.matches} match{'es' if suspension.matches > 1 else ''})"
        facts.append(Fact(
            type=FactType.SUSPENSION,
            entity=suspension.player,
            description=(
                f"{suspension.player} suspended: {suspension.reason}{count}. "
                f"{suspension.description or ''}"
            ).strip(),
            confidence=calculate_fact_confidence(
                suspension.description, bool(suspension.matches), source_count,
            ),
        ))

    for form in extracted.form:
        facts.append(Fact(
            type=FactType.FORM,
            entity=form.team,
            description=f"{form.team} recent form (last 5): {'-'.join(form.last_5)}. {form.summary}".strip(),
            confidence=calculate_fact_confidence(form.summary, False, source_count),
        ))

    for tactical in extracted.tactical:
        impact = f". Impact: {tactical.impact}" if tactical.impact else ""
        facts.append(Fact(
            type=FactType.COACH_CHANGE if tactical.type == "coach_change" else FactType.OTHER,
            entity=tactical.team or "Team",
            description=f"{tactical.type}: {tactical.description}{impact}",
            confidence=calculate_fact_confidence(tactical.description, False, source_count),
        ))

    return facts


def format_facts_digest(facts: Iterable[Fact]) -> str:
    """One ``- TYPE: description`` line per fact, for the model prompt."""
    lines = [f"- {f.type.value.upper()}: {f.description}" for f in facts]
    return "\n".join(lines) if lines else NO_FACTS_DIGEST
