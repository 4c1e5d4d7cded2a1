"""Tests for the probability normalizer and fact adjuster."""

import pytest

from totoai.errors import InvalidInputError
from totoai.probability import (
    COACH_CHANGE_PENALTY,
    DEFAULT_ADJUSTMENT,
    FORM_WEIGHT,
    HOME_ADVANTAGE,
    INJURY_PENALTY,
    MAX_SIDE_PROB,
    MIN_SIDE_PROB,
    SUSPENSION_PENALTY,
    AdjustmentConfig,
    Fact,
    FactType,
    MarketOdds,
    Outcome,
    OutcomeProbabilities,
    adjust_probs_for_facts,
    arg_max_outcome,
    facts_for_team,
    form_score,
    odds_to_probs,
    overround,
    parse_form_run,
    probability_margin,
    top_two_outcomes,
)


def _probs(home, draw, away) -> OutcomeProbabilities:
    return OutcomeProbabilities(home=home, draw=draw, away=away)


# ──────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────

class TestConstants:
    def test_adjustment_constants_pinned(self):
        assert INJURY_PENALTY == 0.03
        assert SUSPENSION_PENALTY == 0.03
        assert COACH_CHANGE_PENALTY == 0.05
        assert FORM_WEIGHT == 0.10
        assert HOME_ADVANTAGE == 0.10
        assert MIN_SIDE_PROB == 0.05
        assert MAX_SIDE_PROB == 0.90

    def test_default_config_uses_constants(self):
        assert DEFAULT_ADJUSTMENT.home_advantage == HOME_ADVANTAGE
        assert DEFAULT_ADJUSTMENT.min_prob == MIN_SIDE_PROB
        assert DEFAULT_ADJUSTMENT.max_prob == MAX_SIDE_PROB


# ──────────────────────────────────────────────
# Value types
# ──────────────────────────────────────────────

class TestOutcome:
    def test_labels(self):
        assert Outcome.HOME.label == "1"
        assert Outcome.DRAW.label == "X"
        assert Outcome.AWAY.label == "2"

    @pytest.mark.parametrize("raw,expected", [
        ("1", Outcome.HOME), ("x", Outcome.DRAW), ("X", Outcome.DRAW),
        ("2", Outcome.AWAY), ("away", Outcome.AWAY), (Outcome.HOME, Outcome.HOME),
    ])
    def test_from_label(self, raw, expected):
        assert Outcome.from_label(raw) == expected

    def test_from_label_rejects_unknown(self):
        with pytest.raises(InvalidInputError):
            Outcome.from_label("3")


class TestMarketOdds:
    def test_rejects_odds_at_or_below_one(self):
        with pytest.raises(InvalidInputError):
            MarketOdds(home=1.0, draw=3.0, away=4.0)
        with pytest.raises(InvalidInputError):
            MarketOdds(home=2.0, draw=0.5, away=4.0)

    def test_rejects_non_finite(self):
        with pytest.raises(InvalidInputError):
            MarketOdds(home=float("inf"), draw=3.0, away=4.0)

    def test_price_by_outcome_or_label(self, sample_odds):
        assert sample_odds.price(Outcome.DRAW) == 3.20
        assert sample_odds.price("2") == 2.80


class TestOutcomeProbabilities:
    def test_rejects_out_of_range(self):
        with pytest.raises(InvalidInputError):
            _probs(1.2, 0.0, 0.0)
        with pytest.raises(InvalidInputError):
            _probs(-0.1, 0.6, 0.5)

    def test_normalized_rescales(self):
        probs = OutcomeProbabilities.normalized(2.0, 1.0, 1.0)
        assert probs.as_dict() == {"home": 0.5, "draw": 0.25, "away": 0.25}

    def test_normalized_rejects_all_zero(self):
        with pytest.raises(InvalidInputError):
            OutcomeProbabilities.normalized(0.0, 0.0, 0.0)

    def test_getitem_accepts_labels(self):
        probs = _probs(0.5, 0.3, 0.2)
        assert probs["X"] == 0.3
        assert probs[Outcome.AWAY] == 0.2


class TestFact:
    def test_unknown_type_becomes_other(self):
        assert Fact(type="weather", entity="Paks").type == FactType.OTHER

    def test_confidence_clamped(self):
        assert Fact(type="injury", entity="Paks", confidence=1.7).confidence == 1.0
        assert Fact(type="injury", entity="Paks", confidence=-1).confidence == 0.0

    def test_from_dict_accepts_fact_type_key(self):
        fact = Fact.from_dict({"fact_type": "coach_change", "entity": "MTK"})
        assert fact.type == FactType.COACH_CHANGE
        assert fact.description == ""

    def test_from_dict_null_confidence_defaults(self):
        assert Fact.from_dict({"type": "injury", "entity": "MTK", "confidence": None}).confidence == 0.5

    def test_non_numeric_confidence_rejected(self):
        with pytest.raises(InvalidInputError):
            Fact(type="injury", entity="MTK", confidence="high")


# ──────────────────────────────────────────────
# Normalizer
# ──────────────────────────────────────────────

class TestOddsToProbs:
    def test_known_odds(self, sample_odds):
        probs = odds_to_probs(sample_odds)
        # implied 0.4 + 0.3125 + 0.357143 = 1.069643
        assert overround(sample_odds) == pytest.approx(1.069643, abs=1e-6)
        assert probs.home == pytest.approx(0.4 / 1.069643, abs=1e-6)
        assert probs.draw == pytest.approx(0.3125 / 1.069643, abs=1e-6)
        assert probs.away == pytest.approx(0.357143 / 1.069643, abs=1e-6)
        assert probs.home == pytest.approx(0.3740, abs=1e-4)

    @pytest.mark.parametrize("home,draw,away", [
        (1.01, 50.0, 100.0), (2.0, 2.0, 2.0), (3.0, 3.0, 3.0), (1.5, 4.2, 6.5), (12.0, 7.0, 1.2),
    ])
    def test_sums_to_one_and_in_open_interval(self, home, draw, away):
        probs = odds_to_probs(MarketOdds(home=home, draw=draw, away=away))
        assert abs(probs.total - 1.0) <= 1e-9
        for value in (probs.home, probs.draw, probs.away):
            assert 0.0 < value < 1.0

    def test_idempotent(self, sample_odds):
        assert odds_to_probs(sample_odds) == odds_to_probs(sample_odds)

    def test_fair_odds_have_no_overround(self):
        odds = MarketOdds(home=3.0, draw=3.0, away=3.0)
        assert overround(odds) == pytest.approx(1.0)
        assert odds_to_probs(odds).home == pytest.approx(1 / 3)


# ──────────────────────────────────────────────
# Outcome helpers
# ──────────────────────────────────────────────

class TestOutcomeHelpers:
    def test_arg_max(self):
        assert arg_max_outcome(_probs(0.2, 0.3, 0.5)) == Outcome.AWAY

    def test_arg_max_ties_prefer_home_then_draw(self):
        assert arg_max_outcome(_probs(0.4, 0.4, 0.2)) == Outcome.HOME
        assert arg_max_outcome(_probs(0.2, 0.4, 0.4)) == Outcome.DRAW
        assert arg_max_outcome(_probs(1 / 3, 1 / 3, 1 / 3)) == Outcome.HOME

    def test_top_two(self):
        assert top_two_outcomes(_probs(0.2, 0.3, 0.5)) == [Outcome.AWAY, Outcome.DRAW]

    def test_top_two_stable_on_ties(self):
        assert top_two_outcomes(_probs(0.2, 0.4, 0.4)) == [Outcome.DRAW, Outcome.AWAY]

    def test_margin(self):
        assert probability_margin(_probs(0.5, 0.3, 0.2)) == pytest.approx(0.2)


# ──────────────────────────────────────────────
# Form parsing
# ──────────────────────────────────────────────

class TestForm:
    def test_parse_run(self):
        assert parse_form_run("Recent form: W-L-D-W-W, strong") == ["W", "L", "D", "W", "W"]

    def test_parse_run_case_insensitive(self):
        assert parse_form_run("form w-d-l-w-d") == ["W", "D", "L", "W", "D"]

    @pytest.mark.parametrize("text", [None, "", "Won the last three", "W-L-D-W"])
    def test_parse_run_missing(self, text):
        assert parse_form_run(text) is None

    def test_form_score(self):
        assert form_score(["W"] * 5) == 1.0
        assert form_score(["L"] * 5) == 0.0
        assert form_score(["W", "D", "L", "W", "D"]) == pytest.approx(8 / 15)

    def test_form_score_empty(self):
        assert form_score([]) == 0.0


# ──────────────────────────────────────────────
# Fact Adjuster
# ──────────────────────────────────────────────

class TestFactsForTeam:
    def test_case_insensitive_substring(self):
        facts = [Fact(type="injury", entity="FERENCVAROS TC"), Fact(type="injury", entity="Ujpest")]
        assert len(facts_for_team(facts, "ferencvaros")) == 1

    def test_empty_team_matches_nothing(self):
        assert facts_for_team([Fact(type="injury", entity="Ujpest")], "") == []


class TestAdjustProbsForFacts:
    HOME, AWAY = "Ferencvaros", "Ujpest"

    def _adjust(self, base, facts=(), config=None):
        return adjust_probs_for_facts(base, list(facts), self.HOME, self.AWAY, config)

    def test_no_facts_only_home_advantage(self):
        result = self._adjust(_probs(0.4, 0.3, 0.3))
        # home 0.4 + 0.10, away unchanged, draw = 1 - 0.5 - 0.3
        assert result.home == pytest.approx(0.5)
        assert result.away == pytest.approx(0.3)
        assert result.draw == pytest.approx(0.2)

    def test_no_facts_market_baseline(self, sample_odds):
        base = odds_to_probs(sample_odds)
        result = self._adjust(base)
        assert result.home == pytest.approx(base.home + 0.10)
        assert result.away == pytest.approx(base.away)
        assert result.draw == pytest.approx(1 - base.home - 0.10 - base.away)

    def test_injuries_and_suspensions(self):
        facts = [
            Fact(type="injury", entity=self.HOME),
            Fact(type="injury", entity=self.HOME),
            Fact(type="suspension", entity=self.AWAY),
        ]
        result = self._adjust(_probs(0.4, 0.3, 0.3), facts)
        assert result.home == pytest.approx(0.44)
        assert result.away == pytest.approx(0.27)
        assert result.draw == pytest.approx(0.29)

    def test_form_fact(self):
        facts = [Fact(type="form", entity=self.AWAY, description="W-W-W-W-W")]
        result = self._adjust(_probs(0.4, 0.3, 0.3), facts)
        assert result.away == pytest.approx(0.35)

    def test_form_fact_without_run_ignored(self):
        facts = [Fact(type="form", entity=self.AWAY, description="in great shape lately")]
        result = self._adjust(_probs(0.4, 0.3, 0.3), facts)
        assert result.away == pytest.approx(0.3)

    def test_only_first_form_fact_counts(self):
        facts = [
            Fact(type="form", entity=self.AWAY, description="L-L-L-L-L"),
            Fact(type="form", entity=self.AWAY, description="W-W-W-W-W"),
        ]
        result = self._adjust(_probs(0.4, 0.3, 0.3), facts)
        assert result.away == pytest.approx(0.25)

    def test_coach_change_applied_once(self):
        facts = [
            Fact(type="coach_change", entity=self.AWAY),
            Fact(type="coach_change", entity=self.AWAY),
        ]
        result = self._adjust(_probs(0.4, 0.3, 0.3), facts)
        assert result.away == pytest.approx(0.25)

    def test_unmatched_facts_ignored(self):
        facts = [Fact(type="injury", entity="Debrecen"), Fact(type="coach_change", entity="")]
        assert self._adjust(_probs(0.4, 0.3, 0.3), facts) == self._adjust(_probs(0.4, 0.3, 0.3))

    def test_clamped_at_upper_bound(self):
        result = self._adjust(_probs(0.85, 0.10, 0.05))
        assert result.home == pytest.approx(0.90)
        assert result.draw == pytest.approx(0.05)
        assert result.away == pytest.approx(0.05)

    def test_draw_floor_then_renormalized(self):
        result = self._adjust(_probs(0.10, 0.10, 0.80))
        # home 0.20, away 0.80, draw floored at 0.05 -> total 1.05
        assert result.home == pytest.approx(0.20 / 1.05)
        assert result.draw == pytest.approx(0.05 / 1.05)
        assert result.away == pytest.approx(0.80 / 1.05)
        assert abs(result.total - 1.0) <= 1e-9

    def test_custom_config(self):
        config = AdjustmentConfig(home_advantage=0.0)
        result = self._adjust(_probs(0.4, 0.3, 0.3), config=config)
        assert result.home == pytest.approx(0.4)

    @pytest.mark.parametrize("base", [
        (0.05, 0.05, 0.90), (0.90, 0.05, 0.05), (1 / 3, 1 / 3, 1 / 3), (0.0, 0.0, 1.0), (0.6, 0.4, 0.0),
    ])
    def test_always_sums_to_one(self, base, sample_facts):
        facts = sample_facts + [Fact(type="coach_change", entity=self.HOME)]
        result = self._adjust(_probs(*base), facts)
        assert abs(result.total - 1.0) <= 1e-9
        assert result.draw > 0
