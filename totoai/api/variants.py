"""API endpoints for ticket variant generation."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from totoai.api import get_store
from totoai.config import settings
from totoai.errors import InvalidInputError, MatchNotFoundError
from totoai.store import MatchStore
from totoai.variants import EventSelection, Strategy, generate_variants

logger = logging.getLogger(__name__)

router = APIRouter()

# Money and odds in responses
RESPONSE_DECIMALS = 2


class VariantsRequest(BaseModel):
    """Request to generate ticket variants.

    Either ``match_ids`` (predictions taken from the store) or inline
    ``matches`` selections must be given.
    """

    match_ids: Optional[list[str]] = None
    matches: Optional[list[dict[str, Any]]] = None
    budget: float
    strategy: str = Strategy.BUDGET_OPTIMIZED.value
    max_variants: Optional[int] = None


@router.post("")
async def create_variants(body: VariantsRequest, store: MatchStore = Depends(get_store)):
    """Generate tickets for a slate of predicted matches."""
    max_variants = body.max_variants if body.max_variants is not None else settings.default_max_variants

    try:
        if body.matches:
            selections = [EventSelection.from_dict(m) for m in body.matches]
            skipped: list[str] = []
        elif body.match_ids:
            selections, skipped = store.selections(body.match_ids)
        else:
            raise InvalidInputError("Either match_ids or matches must be a non-empty list")

        if not selections:
            raise InvalidInputError("None of the requested matches has a prediction")

        result = generate_variants(selections, body.budget, body.strategy, max_variants)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    ticket_set = store.save_ticket_set(result, body.budget)

    payload = result.to_dict(RESPONSE_DECIMALS)
    payload["ticketId"] = ticket_set.id
    payload["skipped"] = skipped
    return payload
