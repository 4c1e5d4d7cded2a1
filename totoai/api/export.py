"""API endpoints for downloading predictions and ticket sets."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, Response

from totoai.api import get_store
from totoai.errors import TicketSetNotFoundError
from totoai.export import (
    PREDICTION_COLUMNS,
    TICKET_COLUMNS,
    export_filename,
    prediction_rows,
    predictions_document,
    ticket_document,
    ticket_rows,
    to_csv,
)
from totoai.store import MatchRecord, MatchStore, TicketSetRecord

logger = logging.getLogger(__name__)

router = APIRouter()

EXPORT_TYPES = ("predictions", "tickets")


def _check_type(type: Optional[str]) -> str:
    if type not in EXPORT_TYPES:
        raise HTTPException(status_code=400, detail='type must be either "predictions" or "tickets"')
    return type


def _predictions(store: MatchStore, event_ids: Optional[str]) -> list[MatchRecord]:
    ids = [i.strip() for i in event_ids.split(",") if i.strip()] if event_ids else None
    records = store.predicted(ids)
    if not records:
        raise HTTPException(status_code=404, detail="No predictions found")
    return records


def _ticket_set(store: MatchStore, ticket_id: Optional[str]) -> TicketSetRecord:
    if not ticket_id:
        raise HTTPException(status_code=400, detail="ticket_id is required for tickets export")
    try:
        return store.require_ticket_set(ticket_id)
    except TicketSetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.get("/csv")
async def export_csv(
    type: Optional[str] = None,
    event_ids: Optional[str] = None,
    ticket_id: Optional[str] = None,
    store: MatchStore = Depends(get_store),
):
    """Download predictions or one ticket set as CSV."""
    if _check_type(type) == "predictions":
        rows = prediction_rows(_predictions(store, event_ids))
        content = to_csv(rows, PREDICTION_COLUMNS)
        filename = export_filename("predictions", "csv")
    else:
        ticket_set = _ticket_set(store, ticket_id)
        rows = ticket_rows(ticket_set)
        if not rows:
            raise HTTPException(status_code=404, detail="No variants found for this ticket")
        content = to_csv(rows, TICKET_COLUMNS)
        filename = export_filename("ticket", "csv", ticket_set.id)

    logger.info(f"Exported {len(rows)} {type} rows as CSV")
    return Response(content=content, media_type="text/csv; charset=utf-8", headers=_attachment(filename))


@router.get("/json")
async def export_json(
    type: Optional[str] = None,
    event_ids: Optional[str] = None,
    ticket_id: Optional[str] = None,
    store: MatchStore = Depends(get_store),
):
    """Download predictions or one ticket set as a JSON document."""
    if _check_type(type) == "predictions":
        document = predictions_document(_predictions(store, event_ids))
        filename = export_filename("predictions", "json")
    else:
        ticket_set = _ticket_set(store, ticket_id)
        document = ticket_document(ticket_set)
        filename = export_filename("ticket", "json", ticket_set.id)

    return JSONResponse(content=document, headers=_attachment(filename))
