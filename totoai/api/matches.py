"""API endpoints for the match slate."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from totoai.api import get_store
from totoai.errors import InvalidInputError, MatchNotFoundError
from totoai.facts import ExtractedFacts, facts_from_extraction
from totoai.match import MatchContext
from totoai.probability import Fact, MarketOdds
from totoai.store import MatchStore

logger = logging.getLogger(__name__)

router = APIRouter()


class OddsBody(BaseModel):
    home: float
    draw: float
    away: float


class FactBody(BaseModel):
    type: str  # injury, suspension, form, coach_change, other
    entity: str
    description: str = ""
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class MatchBody(BaseModel):
    """A match snapshot from the odds source."""

    match_id: str
    home: str
    away: str
    odds: OddsBody
    league: str = ""
    kickoff: str = ""
    facts: list[FactBody] = Field(default_factory=list)


class FactsBody(BaseModel):
    """Plain facts, or a raw extraction payload to convert."""

    facts: Optional[list[FactBody]] = None
    extraction: Optional[ExtractedFacts] = None
    source_count: int = Field(default=1, ge=1)


@router.get("")
async def list_matches(store: MatchStore = Depends(get_store)):
    """List all matches in the slate."""
    return [r.to_dict() for r in store.all()]


@router.post("")
async def add_match(body: MatchBody, store: MatchStore = Depends(get_store)):
    """Add or replace a match snapshot."""
    try:
        match = MatchContext(
            match_id=body.match_id,
            home=body.home,
            away=body.away,
            odds=MarketOdds(home=body.odds.home, draw=body.odds.draw, away=body.odds.away),
            league=body.league,
            kickoff=body.kickoff,
            facts=[Fact(**f.model_dump()) for f in body.facts],
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return store.add(match).to_dict()


@router.get("/{match_id}")
async def get_match(match_id: str, store: MatchStore = Depends(get_store)):
    """Get a single match with its latest prediction."""
    record = store.get(match_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Match not found: {match_id}")
    return record.to_dict()


@router.post("/{match_id}/facts")
async def add_facts(
    match_id: str,
    body: FactsBody,
    store: MatchStore = Depends(get_store),
):
    """Attach facts to a match, converting an extraction payload if given."""
    facts: list[Fact] = [Fact(**f.model_dump()) for f in body.facts or []]
    if body.extraction is not None:
        facts.extend(facts_from_extraction(body.extraction, body.source_count))

    if not facts:
        raise HTTPException(status_code=400, detail="No facts supplied")

    try:
        record = store.add_facts(match_id, facts)
    except MatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info(f"Attached {len(facts)} facts to {match_id}")
    return {"match_id": match_id, "added": len(facts), "total": len(record.match.facts)}
