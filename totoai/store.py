"""In-memory match snapshot store.

Holds the slate the API predicts on: fixtures with their market odds,
extracted facts and the latest prediction per match. Seeded from a JSON
file (a list of match objects, or ``{"matches": [...]}``) or in code.
Generated ticket sets are kept by id for export.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from totoai.errors import InvalidInputError, MatchNotFoundError, TicketSetNotFoundError
from totoai.match import MatchContext
from totoai.predictor import PredictionResult
from totoai.probability import Fact
from totoai.variants import EventSelection, VariantsResult

logger = logging.getLogger(__name__)


@dataclass
class MatchRecord:
    """A stored match and its most recent prediction."""

    match: MatchContext
    prediction: Optional[PredictionResult] = None
    predicted_at: Optional[datetime] = None

    @property
    def match_id(self) -> str:
        return self.match.match_id

    def selection(self) -> Optional[EventSelection]:
        """Variant-generation input, or None before the first prediction."""
        if self.prediction is None:
            return None
        return EventSelection.from_prediction(self.match, self.prediction)

    def to_dict(self) -> dict:
        data = self.match.to_dict()
        data["prediction"] = self.prediction.to_dict() if self.prediction else None
        data["predicted_at"] = self.predicted_at.isoformat() if self.predicted_at else None
        return data


@dataclass
class TicketSetRecord:
    """One stored variant-generation result."""

    id: str
    budget: float
    result: VariantsResult
    created_at: datetime


class MatchStore:
    """Match snapshots keyed by match id, in insertion order."""

    def __init__(self, matches: Optional[Iterable[MatchContext]] = None):
        self._records: dict[str, MatchRecord] = {}
        self._ticket_sets: dict[str, TicketSetRecord] = {}
        for match in matches or []:
            self.add(match)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "MatchStore":
        """Load a slate from a JSON seed file."""
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"Match seed {path} is not valid JSON: {e}") from e

        items = raw.get("matches", []) if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            raise InvalidInputError(f"Match seed {path} must contain a list of matches")

        store = cls(MatchContext.from_dict(item) for item in items)
        logger.info(f"Loaded {len(store)} matches from {path}")
        return store

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, match_id: str) -> bool:
        return match_id in self._records

    def add(self, match: MatchContext) -> MatchRecord:
        """Insert or replace a match. Replacing drops its stored prediction."""
        if match.match_id in self._records:
            logger.info(f"Replacing match {match.match_id} ({match.home} vs {match.away})")
        record = MatchRecord(match=match)
        self._records[match.match_id] = record
        return record

    def get(self, match_id: str) -> Optional[MatchRecord]:
        return self._records.get(match_id)

    def require(self, match_id: str) -> MatchRecord:
        record = self._records.get(match_id)
        if record is None:
            raise MatchNotFoundError(f"Match not found: {match_id}")
        return record

    def all(self) -> list[MatchRecord]:
        return list(self._records.values())

    def add_facts(self, match_id: str, facts: Iterable[Fact]) -> MatchRecord:
        """Append extracted facts to a match."""
        record = self.require(match_id)
        facts = list(facts)
        record.match.facts.extend(facts)
        logger.debug(f"Added {len(facts)} facts to {match_id}")
        return record

    def record_prediction(self, match_id: str, prediction: PredictionResult) -> MatchRecord:
        """Store a prediction as the match's latest."""
        record = self.require(match_id)
        record.prediction = prediction
        record.predicted_at = datetime.now(timezone.utc)
        return record

    def selections(self, match_ids: Iterable[str]) -> tuple[list[EventSelection], list[str]]:
        """Selections for the given matches, plus the ids that were skipped.

        Unknown ids raise MatchNotFoundError. Matches without a stored
        prediction are skipped.
        """
        selections, skipped = [], []
        for match_id in match_ids:
            selection = self.require(match_id).selection()
            if selection is None:
                logger.warning(f"No prediction stored for {match_id}, skipping")
                skipped.append(match_id)
            else:
                selections.append(selection)
        return selections, skipped

    def predicted(self, match_ids: Optional[Iterable[str]] = None) -> list[MatchRecord]:
        """Records with a stored prediction, newest first.

        Unknown ids in ``match_ids`` are ignored.
        """
        wanted = set(match_ids) if match_ids is not None else None
        records = [
            r for r in self._records.values()
            if r.prediction is not None and (wanted is None or r.match_id in wanted)
        ]
        return sorted(records, key=lambda r: r.predicted_at, reverse=True)

    # ── Ticket sets ──

    def save_ticket_set(self, result: VariantsResult, budget: float) -> TicketSetRecord:
        """Keep a generated ticket set under a fresh id."""
        record = TicketSetRecord(
            id=uuid.uuid4().hex[:12],
            budget=budget,
            result=result,
            created_at=datetime.now(timezone.utc),
        )
        self._ticket_sets[record.id] = record
        logger.debug(f"Stored ticket set {record.id} ({len(result.tickets)} tickets)")
        return record

    def require_ticket_set(self, ticket_id: str) -> TicketSetRecord:
        record = self._ticket_sets.get(ticket_id)
        if record is None:
            raise TicketSetNotFoundError(f"Ticket set not found: {ticket_id}")
        return record
