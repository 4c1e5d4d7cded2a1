"""Shared test fixtures for TotoAI."""

import pytest

from totoai.ai.estimator import LLMEstimator
from totoai.ai.mock_client import MockAIClient
from totoai.match import MatchContext
from totoai.probability import Fact, MarketOdds
from totoai.store import MatchStore


@pytest.fixture
def sample_odds() -> MarketOdds:
    """Odds with implied sum ~1.0696 (about 7% overround)."""
    return MarketOdds(home=2.50, draw=3.20, away=2.80)


@pytest.fixture
def sample_match(sample_odds) -> MatchContext:
    """A fixture with no facts attached."""
    return MatchContext(
        match_id="m1",
        home="Ferencvaros",
        away="Ujpest",
        odds=sample_odds,
        league="NB I",
        kickoff="2026-10-24T18:00:00",
    )


@pytest.fixture
def sample_facts() -> list[Fact]:
    return [
        Fact(type="injury", entity="Ferencvaros", description="Striker out with hamstring strain", confidence=0.7),
        Fact(type="suspension", entity="Ujpest", description="Captain suspended for red card", confidence=0.8),
        Fact(type="form", entity="Ujpest", description="Ujpest recent form (last 5): W-W-D-W-L.", confidence=0.6),
    ]


@pytest.fixture
def slate_data() -> list[dict]:
    """Four-match slate as the odds source would supply it."""
    return [
        {"match_id": "m1", "home": "Ferencvaros", "away": "Ujpest", "league": "NB I",
         "odds": {"home": 2.50, "draw": 3.20, "away": 2.80}},
        {"match_id": "m2", "home": "Debrecen", "away": "Paks", "league": "NB I",
         "odds": {"home": 1.60, "draw": 3.90, "away": 5.50}},
        {"match_id": "m3", "home": "MTK", "away": "Gyor", "league": "NB I",
         "odds": {"home": 2.90, "draw": 3.10, "away": 2.45}},
        {"match_id": "m4", "home": "Kecskemet", "away": "Puskas Akademia", "league": "NB I",
         "odds_home": 4.20, "odds_draw": 3.60, "odds_away": 1.85},
    ]


@pytest.fixture
def slate(slate_data) -> list[MatchContext]:
    return [MatchContext.from_dict(d) for d in slate_data]


@pytest.fixture
def store(slate) -> MatchStore:
    return MatchStore(slate)


@pytest.fixture
def mock_client() -> MockAIClient:
    return MockAIClient()


@pytest.fixture
def mock_estimator(mock_client) -> LLMEstimator:
    """Model estimator backed by the canned staging client."""
    return LLMEstimator(client=mock_client)
