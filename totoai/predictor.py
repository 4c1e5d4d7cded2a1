"""Match outcome estimators.

Four ways to turn a match snapshot into a PredictionResult:
  - baseline: market odds only
  - facts: market odds perturbed by extracted evidence
  - model: an external model's judgment (falls back to facts)
  - ensemble: fixed-weight blend of the three above

Every estimator returns a fresh result whose outcome is the arg-max of
its probabilities (ties home > draw > away).
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from totoai.ai.estimator import ModelEstimator
from totoai.errors import InvalidInputError
from totoai.facts import format_facts_digest
from totoai.match import MatchContext
from totoai.probability import (
    AdjustmentConfig,
    Fact,
    FactType,
    Outcome,
    OutcomeProbabilities,
    adjust_probs_for_facts,
    arg_max_outcome,
    odds_to_probs,
    probability_margin,
)

logger = logging.getLogger(__name__)

BASELINE_CONFIDENCE_BASE = 0.5
FACTS_CONFIDENCE_BASE = 0.6
MAX_KEY_FACTORS = 5
RATIONALE_EXCERPT = 150

BASELINE_KEY_FACTORS = ("Bookmaker odds", "Market consensus", "No additional context")
HOME_ADVANTAGE_FACTOR = "Home advantage factor applied"

OUTCOME_PHRASES = {
    Outcome.HOME: "home win",
    Outcome.DRAW: "draw",
    Outcome.AWAY: "away win",
}


class Method(str, Enum):
    """Which estimator produced a prediction."""

    BASELINE = "baseline"
    FACTS = "facts"
    MODEL = "model"
    ENSEMBLE = "ensemble"

    @classmethod
    def parse(cls, value: Any) -> "Method":
        if isinstance(value, Method):
            return value
        raw = str(value).strip().lower()
        if raw == "llm":
            return cls.MODEL
        try:
            return cls(raw)
        except ValueError:
            raise InvalidInputError(f"Unknown prediction method: {value!r}") from None


@dataclass(frozen=True)
class PredictionResult:
    """Immutable output of one estimator."""

    outcome: Outcome
    probabilities: OutcomeProbabilities
    confidence: float
    rationale: str
    key_factors: tuple[str, ...]
    method: Method

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "probabilities": self.probabilities.as_dict(),
            "confidence": self.confidence,
            "rationale": self.rationale,
            "keyFactors": list(self.key_factors),
            "method": self.method.value,
        }


@dataclass(frozen=True)
class EnsembleWeights:
    """Per-estimator weights of the ensemble. Must sum to 1."""

    baseline: float = 0.3
    facts: float = 0.3
    model: float = 0.4

    def __post_init__(self):
        if min(self.baseline, self.facts, self.model) < 0:
            raise InvalidInputError("Ensemble weights must be non-negative")
        if abs(self.baseline + self.facts + self.model - 1.0) > 1e-9:
            raise InvalidInputError("Ensemble weights must sum to 1")


DEFAULT_WEIGHTS = EnsembleWeights()


def _margin_confidence(base: float, probs: OutcomeProbabilities) -> float:
    """Base confidence plus the top-two margin, capped at 1."""
    return min(base + probability_margin(probs), 1.0)


# ──────────────────────────────────────────────
# Baseline
# ──────────────────────────────────────────────

def predict_baseline(match: MatchContext) -> PredictionResult:
    """Prediction from de-vigorized market odds alone."""
    probs = odds_to_probs(match.odds)
    outcome = arg_max_outcome(probs)

    return PredictionResult(
        outcome=outcome,
        probabilities=probs,
        confidence=_margin_confidence(BASELINE_CONFIDENCE_BASE, probs),
        rationale=(
            f"Market odds suggest {OUTCOME_PHRASES[outcome]} with {probs[outcome] * 100:.1f}% "
            "implied probability. This is a baseline prediction based purely on bookmaker odds."
        ),
        key_factors=BASELINE_KEY_FACTORS,
        method=Method.BASELINE,
    )


# ──────────────────────────────────────────────
# Facts-adjusted
# ──────────────────────────────────────────────

def predict_with_facts(
    match: MatchContext,
    facts: Optional[Iterable[Fact]] = None,
    config: Optional[AdjustmentConfig] = None,
) -> PredictionResult:
    """Market probabilities adjusted by match evidence and home advantage."""
    facts = list(match.facts if facts is None else facts)
    probs = adjust_probs_for_facts(odds_to_probs(match.odds), facts, match.home, match.away, config)
    outcome = arg_max_outcome(probs)

    key_factors = []
    injuries = sum(1 for f in facts if f.type == FactType.INJURY)
    suspensions = sum(1 for f in facts if f.type == FactType.SUSPENSION)
    if injuries:
        key_factors.append(f"{injuries} injury/injuries affecting lineup")
    if suspensions:
        key_factors.append(f"{suspensions} player(s) suspended")
    key_factors.append(HOME_ADVANTAGE_FACTOR)

    favoured = {Outcome.HOME: match.home, Outcome.AWAY: match.away}.get(outcome, "a draw")

    return PredictionResult(
        outcome=outcome,
        probabilities=probs,
        confidence=_margin_confidence(FACTS_CONFIDENCE_BASE, probs),
        rationale=(
            f"Based on {len(facts)} extracted facts, the adjusted probabilities favor {favoured}. "
            f"{key_factors[0]}. Odds baseline adjusted by recent form and team news."
        ),
        key_factors=tuple(key_factors),
        method=Method.FACTS,
    )


# ──────────────────────────────────────────────
# Model-assisted
# ──────────────────────────────────────────────

async def predict_with_model(
    match: MatchContext,
    estimator: Optional[ModelEstimator],
    facts: Optional[Iterable[Fact]] = None,
    extra_context: Optional[str] = None,
    config: Optional[AdjustmentConfig] = None,
) -> PredictionResult:
    """External model judgment, or the facts-adjusted result if it fails.

    A fallback result keeps method=facts so callers can tell no model
    judgment was used.
    """
    facts = list(match.facts if facts is None else facts)

    if estimator is None:
        logger.info(f"No model estimator configured for {match.match_id}, using facts-based prediction")
        return predict_with_facts(match, facts, config)

    baseline = odds_to_probs(match.odds)
    try:
        judgment = await estimator.estimate(match, baseline, format_facts_digest(facts), extra_context)
        probs = judgment.probabilities()
    except Exception as e:
        logger.warning(f"Model estimate failed for {match.match_id}, falling back to facts: {e}")
        return predict_with_facts(match, facts, config)

    return PredictionResult(
        outcome=arg_max_outcome(probs),
        probabilities=probs,
        confidence=judgment.confidence,
        rationale=judgment.rationale,
        key_factors=tuple(judgment.key_factors),
        method=Method.MODEL,
    )


# ──────────────────────────────────────────────
# Ensemble
# ──────────────────────────────────────────────

def _dedupe(items: Iterable[str]) -> list[str]:
    seen = set()
    unique = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


async def predict_ensemble(
    match: MatchContext,
    estimator: Optional[ModelEstimator] = None,
    facts: Optional[Iterable[Fact]] = None,
    extra_context: Optional[str] = None,
    weights: Optional[EnsembleWeights] = None,
    config: Optional[AdjustmentConfig] = None,
) -> PredictionResult:
    """Weighted blend of baseline, facts-adjusted and model-assisted results.

    The model branch runs as its own task. If it fails, its slot is filled
    by the facts-adjusted result so the weights stay as configured.
    """
    weights = weights or DEFAULT_WEIGHTS
    facts = list(match.facts if facts is None else facts)

    model_task = asyncio.create_task(
        predict_with_model(match, estimator, facts, extra_context, config)
    )
    try:
        baseline = predict_baseline(match)
        facts_based = predict_with_facts(match, facts, config)
    except Exception:
        model_task.cancel()
        raise

    try:
        model_based = await model_task
    except Exception as e:
        logger.warning(f"Model branch crashed for {match.match_id}, substituting facts: {e}")
        model_based = facts_based

    members = (
        (baseline, weights.baseline),
        (facts_based, weights.facts),
        (model_based, weights.model),
    )
    probs = OutcomeProbabilities.normalized(
        sum(r.probabilities.home * w for r, w in members),
        sum(r.probabilities.draw * w for r, w in members),
        sum(r.probabilities.away * w for r, w in members),
    )
    confidence = min(1.0, max(0.0, sum(r.confidence * w for r, w in members)))

    key_factors = _dedupe(
        [*baseline.key_factors, *facts_based.key_factors, *model_based.key_factors]
    )[:MAX_KEY_FACTORS]

    model_note = "AI analysis" if model_based.method == Method.MODEL else "facts fallback for AI analysis"
    rationale = (
        f"Ensemble prediction combining odds analysis ({weights.baseline * 100:.0f}%), "
        f"facts-based adjustment ({weights.facts * 100:.0f}%), and {model_note} "
        f"({weights.model * 100:.0f}%). {model_based.rationale[:RATIONALE_EXCERPT]}..."
    )

    return PredictionResult(
        outcome=arg_max_outcome(probs),
        probabilities=probs,
        confidence=confidence,
        rationale=rationale,
        key_factors=tuple(key_factors),
        method=Method.ENSEMBLE,
    )


# ──────────────────────────────────────────────
# Entry points
# ──────────────────────────────────────────────

async def generate_prediction(
    match: MatchContext,
    method: Any = Method.ENSEMBLE,
    estimator: Optional[ModelEstimator] = None,
    extra_context: Optional[str] = None,
    weights: Optional[EnsembleWeights] = None,
    config: Optional[AdjustmentConfig] = None,
) -> PredictionResult:
    """Route a prediction request to the requested estimator."""
    method = Method.parse(method)
    logger.info(f"Generating {method.value} prediction for {match.match_id} ({match.home} vs {match.away})")

    if method == Method.BASELINE:
        return predict_baseline(match)
    if method == Method.FACTS:
        return predict_with_facts(match, config=config)
    if method == Method.MODEL:
        return await predict_with_model(match, estimator, extra_context=extra_context, config=config)
    return await predict_ensemble(
        match, estimator, extra_context=extra_context, weights=weights, config=config,
    )


async def predict_slate(
    matches: Iterable[MatchContext],
    method: Any = Method.ENSEMBLE,
    estimator: Optional[ModelEstimator] = None,
    weights: Optional[EnsembleWeights] = None,
    config: Optional[AdjustmentConfig] = None,
) -> dict[str, PredictionResult]:
    """Predict several matches concurrently, keyed by match id."""
    matches = list(matches)
    results = await asyncio.gather(*(
        generate_prediction(m, method, estimator, weights=weights, config=config)
        for m in matches
    ))
    return {m.match_id: r for m, r in zip(matches, results)}
