"""Match snapshot passed through the prediction pipeline."""

from dataclasses import dataclass, field
from typing import Any

from totoai.errors import InvalidInputError
from totoai.probability import Fact, MarketOdds


@dataclass
class MatchContext:
    """Read-only view of one fixture: teams, market odds and evidence."""

    match_id: str
    home: str
    away: str
    odds: MarketOdds
    league: str = ""
    kickoff: str = ""
    facts: list[Fact] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchContext":
        """Build from a snapshot dict (``odds`` nested or flat ``odds_home`` keys)."""
        odds = data.get("odds") or {
            "home": data.get("odds_home"),
            "draw": data.get("odds_draw"),
            "away": data.get("odds_away"),
        }
        match_id = data.get("match_id")
        if match_id is None:
            match_id = data.get("id")
        if match_id is None or str(match_id).strip() == "":
            raise InvalidInputError("Match is missing a match_id")
        return cls(
            match_id=str(match_id),
            home=data.get("home", ""),
            away=data.get("away", ""),
            odds=MarketOdds(home=odds.get("home"), draw=odds.get("draw"), away=odds.get("away")),
            league=data.get("league", "") or "",
            kickoff=data.get("kickoff", "") or data.get("start_time", "") or "",
            facts=[Fact.from_dict(f) for f in data.get("facts", [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "home": self.home,
            "away": self.away,
            "league": self.league,
            "kickoff": self.kickoff,
            "odds": self.odds.as_dict(),
            "facts": [f.to_dict() for f in self.facts],
        }
