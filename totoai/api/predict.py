"""API endpoints for match predictions."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from totoai.ai.estimator import ModelEstimator
from totoai.api import get_estimator, get_store
from totoai.errors import InvalidInputError, MatchNotFoundError
from totoai.predictor import Method, generate_prediction, predict_slate
from totoai.store import MatchStore

logger = logging.getLogger(__name__)

router = APIRouter()


class PredictRequest(BaseModel):
    """Request to predict one match."""

    match_id: str
    strategy: str = "ensemble"  # baseline, facts, model (or llm), ensemble
    extra_context: Optional[str] = None


class SlateRequest(BaseModel):
    """Request to predict several matches at once."""

    match_ids: list[str] = Field(min_length=1)
    strategy: str = "ensemble"


@router.post("")
async def predict(
    body: PredictRequest,
    store: MatchStore = Depends(get_store),
    estimator: Optional[ModelEstimator] = Depends(get_estimator),
):
    """Predict a match and store the result as its latest prediction."""
    try:
        method = Method.parse(body.strategy)
        record = store.require(body.match_id)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    result = await generate_prediction(
        record.match, method, estimator, extra_context=body.extra_context,
    )
    store.record_prediction(body.match_id, result)

    return {"match_id": body.match_id, **result.to_dict()}


@router.post("/slate")
async def predict_many(
    body: SlateRequest,
    store: MatchStore = Depends(get_store),
    estimator: Optional[ModelEstimator] = Depends(get_estimator),
):
    """Predict several matches concurrently."""
    try:
        method = Method.parse(body.strategy)
        records = [store.require(match_id) for match_id in body.match_ids]
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    results = await predict_slate([r.match for r in records], method, estimator)
    for match_id, result in results.items():
        store.record_prediction(match_id, result)

    logger.info(f"Predicted slate of {len(results)} matches with {method.value}")
    return {match_id: result.to_dict() for match_id, result in results.items()}
