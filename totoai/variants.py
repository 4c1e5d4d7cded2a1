"""Ticket variant generation for a slate of predicted matches.

Strategies:
  - single: one ticket on every match's predicted outcome
  - cover-2: two tickets covering the top two outcomes of the most
    confident match
  - cover-uncertain: every top-two combination of the (up to two) least
    decided matches
  - budget-optimized: the above as candidates, picked greedily by
    expected value within the budget

Expected value treats match outcomes as independent.
"""

import itertools
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Optional, Sequence

from totoai.budget import (
    EMPTY_COVERAGE,
    Coverage,
    compute_coverage,
    redistribute_leftover,
    select_within_budget,
)
from totoai.errors import InvalidInputError
from totoai.probability import (
    MarketOdds,
    Outcome,
    OutcomeProbabilities,
    arg_max_outcome,
    top_two_outcomes,
)
from totoai.uncertainty import combined_uncertainty

logger = logging.getLogger(__name__)

DEFAULT_MAX_VARIANTS = 10
UNCERTAIN_MATCHES = 2     # matches covered by cover-uncertain
COVER_OUTCOMES = 2        # outcomes covered per uncertain match
SELECTION_SUM_TOLERANCE = 0.01


class Strategy(str, Enum):
    """Ticket generation strategy."""

    SINGLE = "single"
    COVER_2 = "cover-2"
    COVER_UNCERTAIN = "cover-uncertain"
    BUDGET_OPTIMIZED = "budget-optimized"

    @classmethod
    def parse(cls, value: Any) -> "Strategy":
        if isinstance(value, Strategy):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidInputError(f"Unknown variant strategy: {value!r}") from None


# ──────────────────────────────────────────────
# Dataclasses
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class EventSelection:
    """One predicted match as input to ticket generation."""

    match_id: str
    home: str
    away: str
    outcome: Outcome                      # predicted (arg-max) outcome
    probabilities: OutcomeProbabilities
    confidence: float                     # 0.0-1.0
    odds: MarketOdds

    def __post_init__(self):
        if not self.match_id:
            raise InvalidInputError("Selection is missing a match id")
        if not 0.0 <= self.confidence <= 1.0:
            raise InvalidInputError(f"Confidence {self.confidence} for {self.match_id} outside [0, 1]")
        if not self.probabilities.is_normalized(1e-6):
            raise InvalidInputError(f"Probabilities for {self.match_id} do not sum to 1")

    @classmethod
    def from_prediction(cls, match, prediction) -> "EventSelection":
        """Build from a MatchContext and its PredictionResult."""
        return cls(
            match_id=match.match_id,
            home=match.home,
            away=match.away,
            outcome=prediction.outcome,
            probabilities=prediction.probabilities,
            confidence=prediction.confidence,
            odds=match.odds,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "EventSelection":
        """Build from ``{matchId, home, away, prediction: {...}, odds: {...}}``."""
        prediction = data.get("prediction") or {}
        probs = prediction.get("probabilities") or {}
        odds = data.get("odds") or {}
        try:
            raw = (float(probs["home"]), float(probs["draw"]), float(probs["away"]))
            market = MarketOdds(
                home=float(odds["home"]), draw=float(odds["draw"]), away=float(odds["away"]),
            )
            confidence = float(prediction.get("confidence", 0.0))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInputError(f"Malformed selection: {e}") from e

        # Rounded client-side triples are accepted and rescaled
        if abs(sum(raw) - 1.0) > SELECTION_SUM_TOLERANCE:
            raise InvalidInputError(f"Probabilities sum to {sum(raw):.4f}, expected 1")
        probabilities = OutcomeProbabilities.normalized(*raw)

        outcome = prediction.get("outcome")
        return cls(
            match_id=str(data.get("matchId") or data.get("match_id") or ""),
            home=data.get("home", ""),
            away=data.get("away", ""),
            outcome=Outcome.from_label(outcome) if outcome else arg_max_outcome(probabilities),
            probabilities=probabilities,
            confidence=confidence,
            odds=market,
        )


@dataclass(frozen=True)
class Pick:
    """One match/outcome choice on a ticket."""

    match_id: str
    home: str
    away: str
    outcome: Outcome
    odds: float
    confidence: float

    def to_dict(self, ndigits: Optional[int] = None) -> dict:
        return {
            "matchId": self.match_id,
            "home": self.home,
            "away": self.away,
            "outcome": self.outcome.value,
            "label": self.outcome.label,
            "odds": _round(self.odds, ndigits),
            "confidence": self.confidence,
        }


@dataclass
class TicketVariant:
    """A combination ticket. Stake may be rescaled once by the allocator."""

    id: str
    picks: list[Pick]
    total_odds: float
    stake: float
    hit_probability: float        # probability all picks are correct
    expected_return: float = 0.0  # stake * total_odds
    expected_value: float = 0.0   # hit_probability * expected_return - stake

    def __post_init__(self):
        self.restake(self.stake)

    def restake(self, stake: float) -> None:
        """Set the stake and recompute the derived money fields."""
        if stake < 0:
            raise InvalidInputError(f"Ticket {self.id} stake must be non-negative")
        self.stake = stake
        self.expected_return = stake * self.total_odds
        self.expected_value = self.hit_probability * self.expected_return - stake

    def to_dict(self, ndigits: Optional[int] = None) -> dict:
        return {
            "id": self.id,
            "picks": [p.to_dict(ndigits) for p in self.picks],
            "totalOdds": _round(self.total_odds, ndigits),
            "stake": _round(self.stake, ndigits),
            "expectedReturn": _round(self.expected_return, ndigits),
            "expectedValue": _round(self.expected_value, ndigits),
        }


@dataclass
class VariantsResult:
    """Tickets for one generation call plus cost and coverage."""

    tickets: list[TicketVariant] = field(default_factory=list)
    total_cost: float = 0.0
    coverage: Coverage = EMPTY_COVERAGE
    strategy: Strategy = Strategy.BUDGET_OPTIMIZED

    def to_dict(self, ndigits: Optional[int] = None) -> dict:
        coverage = self.coverage.to_dict()
        coverage["coveragePercent"] = _round(coverage["coveragePercent"], ndigits)
        return {
            "tickets": [t.to_dict(ndigits) for t in self.tickets],
            "totalCost": _round(self.total_cost, ndigits),
            "coverage": coverage,
            "strategy": self.strategy.value,
        }


def _round(value: float, ndigits: Optional[int]) -> float:
    return value if ndigits is None else round(value, ndigits)


# ──────────────────────────────────────────────
# Ticket helpers
# ──────────────────────────────────────────────

def _pick(selection: EventSelection, outcome: Optional[Outcome] = None) -> Pick:
    outcome = outcome or selection.outcome
    return Pick(
        match_id=selection.match_id,
        home=selection.home,
        away=selection.away,
        outcome=outcome,
        odds=selection.odds.price(outcome),
        confidence=selection.confidence,
    )


def hit_probability(picks: Iterable[Pick], selections: dict[str, EventSelection]) -> float:
    """Product of each pick's outcome probability (independence assumed).

    Picks for matches not in ``selections`` do not contribute.
    """
    probability = 1.0
    for pick in picks:
        selection = selections.get(pick.match_id)
        if selection is None:
            continue
        probability *= selection.probabilities[pick.outcome]
    return probability


def expected_value(ticket: TicketVariant, selections: dict[str, EventSelection]) -> float:
    """Probability-weighted payout minus stake, from the selections' probabilities."""
    return hit_probability(ticket.picks, selections) * ticket.stake * ticket.total_odds - ticket.stake


def _build_ticket(
    ticket_id: str,
    picks: list[Pick],
    stake: float,
    selections: dict[str, EventSelection],
) -> TicketVariant:
    return TicketVariant(
        id=ticket_id,
        picks=picks,
        total_odds=math.prod(p.odds for p in picks),
        stake=stake,
        hit_probability=hit_probability(picks, selections),
    )


def _index(selections: Sequence[EventSelection]) -> dict[str, EventSelection]:
    return {s.match_id: s for s in selections}


def outcome_combinations(choices: Sequence[Sequence[Outcome]]) -> Iterator[tuple[Outcome, ...]]:
    """Cartesian product of per-match outcome choices.

    The first match's outcome varies slowest. Each call returns a fresh
    iterator.
    """
    return itertools.product(*choices)


# ──────────────────────────────────────────────
# Strategies
# ──────────────────────────────────────────────

def generate_single(selections: Sequence[EventSelection], budget: float) -> list[TicketVariant]:
    """One ticket on every predicted outcome, staking the whole budget."""
    picks = [_pick(s) for s in selections]
    return [_build_ticket("single-1", picks, budget, _index(selections))]


def generate_cover_2(selections: Sequence[EventSelection], budget: float) -> list[TicketVariant]:
    """Two tickets splitting the budget over the most confident match's top two outcomes.

    Every other match stays on its predicted outcome. Ties on confidence
    go to the earlier selection.
    """
    ranked = sorted(selections, key=lambda s: s.confidence, reverse=True)
    covered, others = ranked[0], ranked[1:]
    fixed = [_pick(s) for s in others]
    stake = budget / COVER_OUTCOMES
    lookup = _index(selections)

    return [
        _build_ticket(f"cover2-{i}", [_pick(covered, outcome), *fixed], stake, lookup)
        for i, outcome in enumerate(top_two_outcomes(covered.probabilities), start=1)
    ]


def generate_cover_uncertain(
    selections: Sequence[EventSelection],
    budget: float,
    max_variants: int = DEFAULT_MAX_VARIANTS,
) -> list[TicketVariant]:
    """One ticket per top-two combination of the least decided matches.

    Stake per ticket is ``budget / min(max_variants, 2^k)`` for k uncertain
    matches; at most ``max_variants`` tickets are emitted.
    """
    ranked = sorted(
        selections,
        key=lambda s: combined_uncertainty(s.probabilities),
        reverse=True,
    )
    k = min(UNCERTAIN_MATCHES, len(ranked))
    uncertain, certain = ranked[:k], ranked[k:]

    if not uncertain:
        return generate_single(selections, budget)

    choices = [top_two_outcomes(s.probabilities) for s in uncertain]
    fixed = [_pick(s) for s in certain]
    stake = budget / min(max_variants, COVER_OUTCOMES ** k)
    lookup = _index(selections)

    tickets = []
    combos = itertools.islice(outcome_combinations(choices), max_variants)
    for i, combo in enumerate(combos, start=1):
        picks = [_pick(s, outcome) for s, outcome in zip(uncertain, combo)] + fixed
        tickets.append(_build_ticket(f"uncertain-{i}", picks, stake, lookup))
    return tickets


def generate_budget_optimized(
    selections: Sequence[EventSelection],
    budget: float,
    max_variants: int = DEFAULT_MAX_VARIANTS,
) -> list[TicketVariant]:
    """Best-EV tickets from all strategies that fit the budget.

    Candidates are each priced against the full budget, selected greedily
    by expected value, then any leftover is spread evenly.
    """
    candidates = generate_cover_uncertain(selections, budget, max_variants)
    candidates += generate_single(selections, budget)
    if len(selections) >= 2:
        candidates += generate_cover_2(selections, budget)

    selected = select_within_budget(candidates, budget, max_variants)
    redistribute_leftover(selected, budget)

    logger.debug(f"Budget-optimized: {len(selected)} of {len(candidates)} candidates selected")
    return selected


STRATEGY_GENERATORS = {
    Strategy.SINGLE: lambda s, budget, max_variants: generate_single(s, budget),
    Strategy.COVER_2: lambda s, budget, max_variants: generate_cover_2(s, budget),
    Strategy.COVER_UNCERTAIN: generate_cover_uncertain,
    Strategy.BUDGET_OPTIMIZED: generate_budget_optimized,
}


# ──────────────────────────────────────────────
# Main Entry Point
# ──────────────────────────────────────────────

def _validate(selections: Sequence[EventSelection], budget: float, max_variants: int) -> None:
    if isinstance(budget, bool) or not isinstance(budget, (int, float)) or not math.isfinite(budget):
        raise InvalidInputError(f"Budget must be a finite number, got {budget!r}")
    if budget <= 0:
        raise InvalidInputError(f"Budget must be positive, got {budget}")
    if isinstance(max_variants, bool) or not isinstance(max_variants, int) or max_variants < 1:
        raise InvalidInputError(f"max_variants must be a positive integer, got {max_variants!r}")

    seen = set()
    for selection in selections:
        if selection.match_id in seen:
            raise InvalidInputError(f"Duplicate match id in selections: {selection.match_id}")
        seen.add(selection.match_id)


def generate_variants(
    selections: Iterable[EventSelection],
    budget: float,
    strategy: Any = Strategy.BUDGET_OPTIMIZED,
    max_variants: int = DEFAULT_MAX_VARIANTS,
) -> VariantsResult:
    """Generate tickets for a slate with the given strategy.

    Args:
        selections: Predicted matches; an empty slate yields an empty result
        budget: Total stake pool, must be positive
        strategy: Strategy or its tag (single, cover-2, cover-uncertain, budget-optimized)
        max_variants: Ticket cap for cover-uncertain and budget-optimized

    Returns:
        VariantsResult with tickets, total cost and coverage

    Raises:
        InvalidInputError: on a non-positive budget, max_variants < 1,
            unknown strategy or duplicate match ids
    """
    selections = list(selections)
    strategy = Strategy.parse(strategy)
    _validate(selections, budget, max_variants)

    if not selections:
        return VariantsResult(strategy=strategy)

    tickets = STRATEGY_GENERATORS[strategy](selections, budget, max_variants)
    total_cost = sum(t.stake for t in tickets)
    coverage = compute_coverage(tickets, len(selections))

    logger.info(
        f"Generated {len(tickets)} {strategy.value} tickets for {len(selections)} matches: "
        f"cost {total_cost:.2f} of {budget:.2f}, coverage {coverage.coverage_percent:.2f}%"
    )

    return VariantsResult(
        tickets=tickets,
        total_cost=total_cost,
        coverage=coverage,
        strategy=strategy,
    )
