"""Probability primitives for 1X2 football markets.

Converts bookmaker decimal odds into fair (overround-removed) outcome
probabilities and perturbs them with categorized match evidence:
  - Market: implied probability per outcome, normalized by the overround
  - Evidence: injuries, suspensions, recent form, coaching changes
  - Prior: fixed home advantage

The fact adjuster is a heuristic linear model, not a fitted one. Its
constants are bundled in AdjustmentConfig so callers can override them.
"""

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from totoai.errors import InvalidInputError

logger = logging.getLogger(__name__)

# Probability triples must sum to 1 within this tolerance
PROB_TOLERANCE = 1e-9


# ──────────────────────────────────────────────
# Outcomes & fact categories
# ──────────────────────────────────────────────

class Outcome(str, Enum):
    """Match outcome. Declaration order is the arg-max tie priority."""

    HOME = "home"
    DRAW = "draw"
    AWAY = "away"

    @property
    def label(self) -> str:
        """Voucher label: 1 (home), X (draw), 2 (away)."""
        return _OUTCOME_LABELS[self]

    @classmethod
    def from_label(cls, value: Any) -> "Outcome":
        """Parse either a voucher label (1/X/2) or an outcome name."""
        if isinstance(value, Outcome):
            return value
        raw = str(value).strip().lower()
        for outcome, label in _OUTCOME_LABELS.items():
            if raw == label.lower() or raw == outcome.value:
                return outcome
        raise InvalidInputError(f"Unknown outcome: {value!r}")


_OUTCOME_LABELS = {
    Outcome.HOME: "1",
    Outcome.DRAW: "X",
    Outcome.AWAY: "2",
}

OUTCOME_PRIORITY = (Outcome.HOME, Outcome.DRAW, Outcome.AWAY)


class FactType(str, Enum):
    """Category of an extracted fact."""

    INJURY = "injury"
    SUSPENSION = "suspension"
    FORM = "form"
    COACH_CHANGE = "coach_change"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "FactType":
        """Lenient parse: unknown categories become OTHER."""
        if isinstance(value, FactType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


# ──────────────────────────────────────────────
# Value types
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class OutcomeProbabilities:
    """Probability triple over home/draw/away. Each value lies in [0, 1]."""

    home: float
    draw: float
    away: float

    def __post_init__(self):
        for name in ("home", "draw", "away"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or math.isnan(value):
                raise InvalidInputError(f"Probability {name} is not a number: {value!r}")
            if value < -PROB_TOLERANCE or value > 1.0 + PROB_TOLERANCE:
                raise InvalidInputError(f"Probability {name}={value} outside [0, 1]")

    def __getitem__(self, outcome: Any) -> float:
        return getattr(self, Outcome.from_label(outcome).value)

    @property
    def total(self) -> float:
        return self.home + self.draw + self.away

    def is_normalized(self, tolerance: float = PROB_TOLERANCE) -> bool:
        return abs(self.total - 1.0) <= tolerance

    def as_dict(self) -> dict[str, float]:
        return {"home": self.home, "draw": self.draw, "away": self.away}

    @classmethod
    def normalized(cls, home: float, draw: float, away: float) -> "OutcomeProbabilities":
        """Build a triple rescaled so the three values sum to 1."""
        if min(home, draw, away) < 0:
            raise InvalidInputError("Probabilities must be non-negative")
        total = home + draw + away
        if total <= 0:
            raise InvalidInputError("Probabilities must not all be zero")
        return cls(home=home / total, draw=draw / total, away=away / total)


@dataclass(frozen=True)
class MarketOdds:
    """Decimal odds triple. Every price must be greater than 1.0."""

    home: float
    draw: float
    away: float

    def __post_init__(self):
        for name in ("home", "draw", "away"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvalidInputError(f"Odds {name} is not a finite number: {value!r}")
            if value <= 1.0:
                raise InvalidInputError(f"Odds {name}={value} must be greater than 1.0")

    def price(self, outcome: Any) -> float:
        """Decimal odds for one outcome."""
        return getattr(self, Outcome.from_label(outcome).value)

    def as_dict(self) -> dict[str, float]:
        return {"home": self.home, "draw": self.draw, "away": self.away}


@dataclass
class Fact:
    """A single piece of categorized match evidence."""

    type: FactType
    entity: str
    description: str = ""
    confidence: float = 0.5

    def __post_init__(self):
        self.type = FactType.parse(self.type)
        self.entity = self.entity or ""
        self.description = self.description or ""
        try:
            confidence = float(self.confidence)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Fact confidence is not a number: {self.confidence!r}") from e
        self.confidence = min(1.0, max(0.0, confidence))

    @classmethod
    def from_dict(cls, data: dict) -> "Fact":
        """Build from a dict using either ``type`` or ``fact_type`` keys."""
        return cls(
            type=data.get("type") or data.get("fact_type") or FactType.OTHER,
            entity=data.get("entity") or "",
            description=data.get("description") or "",
            confidence=0.5 if data.get("confidence") is None else data["confidence"],
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "entity": self.entity,
            "description": self.description,
            "confidence": self.confidence,
        }


# ──────────────────────────────────────────────
# Adjustment constants
# ──────────────────────────────────────────────

INJURY_PENALTY = 0.03         # per injured player
SUSPENSION_PENALTY = 0.03     # per suspended player
COACH_CHANGE_PENALTY = 0.05   # new coach, once per side
FORM_WEIGHT = 0.10            # (form_score - 0.5) * 0.10 -> up to ±5%
FORM_MIDPOINT = 0.5
HOME_ADVANTAGE = 0.10
MIN_SIDE_PROB = 0.05
MAX_SIDE_PROB = 0.90

FORM_POINTS = {"W": 3, "D": 1, "L": 0}
FORM_RUN_PATTERN = re.compile(r"([WLD])-([WLD])-([WLD])-([WLD])-([WLD])", re.IGNORECASE)


@dataclass(frozen=True)
class AdjustmentConfig:
    """Constants of the fact adjuster."""

    injury_penalty: float = INJURY_PENALTY
    suspension_penalty: float = SUSPENSION_PENALTY
    coach_change_penalty: float = COACH_CHANGE_PENALTY
    form_weight: float = FORM_WEIGHT
    form_midpoint: float = FORM_MIDPOINT
    home_advantage: float = HOME_ADVANTAGE
    min_prob: float = MIN_SIDE_PROB
    max_prob: float = MAX_SIDE_PROB


DEFAULT_ADJUSTMENT = AdjustmentConfig()


# ──────────────────────────────────────────────
# Normalizer
# ──────────────────────────────────────────────

def odds_to_probs(odds: MarketOdds) -> OutcomeProbabilities:
    """Convert decimal odds to fair probabilities by removing the overround."""
    implied_home = 1.0 / odds.home
    implied_draw = 1.0 / odds.draw
    implied_away = 1.0 / odds.away

    # > 1.0 is the bookmaker margin
    total = implied_home + implied_draw + implied_away

    return OutcomeProbabilities(
        home=implied_home / total,
        draw=implied_draw / total,
        away=implied_away / total,
    )


def overround(odds: MarketOdds) -> float:
    """Sum of implied probabilities (1.0 = no bookmaker margin)."""
    return 1.0 / odds.home + 1.0 / odds.draw + 1.0 / odds.away


# ──────────────────────────────────────────────
# Outcome helpers
# ──────────────────────────────────────────────

def arg_max_outcome(probs: OutcomeProbabilities) -> Outcome:
    """Most likely outcome, ties broken home > draw > away."""
    best = Outcome.HOME
    for outcome in OUTCOME_PRIORITY[1:]:
        if probs[outcome] > probs[best]:
            best = outcome
    return best


def top_two_outcomes(probs: OutcomeProbabilities) -> list[Outcome]:
    """The two most likely outcomes, highest first (stable on ties)."""
    ranked = sorted(OUTCOME_PRIORITY, key=lambda o: probs[o], reverse=True)
    return ranked[:2]


def probability_margin(probs: OutcomeProbabilities) -> float:
    """Gap between the largest and second-largest probability."""
    ordered = sorted((probs.home, probs.draw, probs.away), reverse=True)
    return ordered[0] - ordered[1]


# ──────────────────────────────────────────────
# Fact Adjuster
# ──────────────────────────────────────────────

def parse_form_run(description: Optional[str]) -> Optional[list[str]]:
    """Extract a five-result run like ``W-L-D-W-W`` from free text."""
    if not description:
        return None
    match = FORM_RUN_PATTERN.search(description)
    if not match:
        return None
    return [r.upper() for r in match.groups()]


def form_score(results: Iterable[str]) -> float:
    """Score a W/D/L run: W=3, D=1, L=0, normalized to 0-1."""
    results = list(results)
    if not results:
        return 0.0
    points = sum(FORM_POINTS.get(r.upper(), 0) for r in results)
    return points / (len(results) * 3)


def facts_for_team(facts: Iterable[Fact], team: str) -> list[Fact]:
    """Facts whose entity mentions the team name (case-insensitive)."""
    if not team:
        return []
    needle = team.lower()
    return [f for f in facts if f.entity and needle in f.entity.lower()]


def _side_adjustment(side_facts: list[Fact], config: AdjustmentConfig) -> float:
    """Additive adjustment for one team from its facts."""
    adjustment = 0.0

    injuries = sum(1 for f in side_facts if f.type == FactType.INJURY)
    suspensions = sum(1 for f in side_facts if f.type == FactType.SUSPENSION)
    adjustment -= injuries * config.injury_penalty
    adjustment -= suspensions * config.suspension_penalty

    form_fact = next((f for f in side_facts if f.type == FactType.FORM), None)
    if form_fact is not None:
        run = parse_form_run(form_fact.description)
        if run:
            adjustment += (form_score(run) - config.form_midpoint) * config.form_weight
        else:
            logger.debug("Form fact for %s has no W/D/L run, skipped", form_fact.entity)

    if any(f.type == FactType.COACH_CHANGE for f in side_facts):
        adjustment -= config.coach_change_penalty

    return adjustment


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def adjust_probs_for_facts(
    base: OutcomeProbabilities,
    facts: Iterable[Fact],
    home_team: str,
    away_team: str,
    config: Optional[AdjustmentConfig] = None,
) -> OutcomeProbabilities:
    """Perturb a base triple with team evidence and the home-advantage prior.

    Args:
        base: Starting probabilities (usually the market's)
        facts: Evidence for the match; facts naming neither team are ignored
        home_team: Home team name, matched as a substring of fact entities
        away_team: Away team name
        config: Adjustment constants (defaults to DEFAULT_ADJUSTMENT)

    Returns:
        Adjusted triple summing to 1
    """
    config = config or DEFAULT_ADJUSTMENT
    facts = list(facts)

    home_adjust = _side_adjustment(facts_for_team(facts, home_team), config)
    away_adjust = _side_adjustment(facts_for_team(facts, away_team), config)
    home_adjust += config.home_advantage

    logger.debug(
        "Fact adjustment %s vs %s: home %+.4f, away %+.4f",
        home_team, away_team, home_adjust, away_adjust,
    )

    adjusted_home = _clamp(base.home + home_adjust, config.min_prob, config.max_prob)
    adjusted_away = _clamp(base.away + away_adjust, config.min_prob, config.max_prob)
    adjusted_draw = max(config.min_prob, 1.0 - adjusted_home - adjusted_away)

    return OutcomeProbabilities.normalized(adjusted_home, adjusted_draw, adjusted_away)
