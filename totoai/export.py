"""CSV and JSON exports of stored predictions and ticket sets."""

import csv
import io
from datetime import datetime, timezone
from typing import Any, Iterable

from totoai.store import MatchRecord, TicketSetRecord

PREDICTION_COLUMNS = [
    "Event ID",
    "League",
    "Home Team",
    "Away Team",
    "Kickoff",
    "Prediction",
    "Home Win %",
    "Draw %",
    "Away Win %",
    "Confidence %",
    "Odds Home",
    "Odds Draw",
    "Odds Away",
    "Rationale",
    "Created At",
]

TICKET_COLUMNS = [
    "Variant #",
    "Event",
    "Pick",
    "Odds",
    "Confidence %",
    "Total Odds",
    "Stake",
    "Expected Return",
]


def _pct(value: float) -> str:
    return f"{value * 100:.1f}"


def _money(value: float) -> float:
    return round(value, 2)


def export_filename(kind: str, extension: str, ticket_id: str = "") -> str:
    """Download name like ``predictions_2026-10-19.csv`` or ``ticket_<id>_2026-10-19.json``."""
    day = datetime.now(timezone.utc).date().isoformat()
    stem = f"ticket_{ticket_id}" if ticket_id else kind
    return f"{stem}_{day}.{extension}"


# ──────────────────────────────────────────────
# Rows
# ──────────────────────────────────────────────

def prediction_rows(records: Iterable[MatchRecord]) -> list[dict[str, Any]]:
    """One flat row per predicted match."""
    rows = []
    for record in records:
        match, prediction = record.match, record.prediction
        probs = prediction.probabilities
        rows.append({
            "Event ID": match.match_id,
            "League": match.league,
            "Home Team": match.home,
            "Away Team": match.away,
            "Kickoff": match.kickoff,
            "Prediction": prediction.outcome.label,
            "Home Win %": _pct(probs.home),
            "Draw %": _pct(probs.draw),
            "Away Win %": _pct(probs.away),
            "Confidence %": _pct(prediction.confidence),
            "Odds Home": match.odds.home,
            "Odds Draw": match.odds.draw,
            "Odds Away": match.odds.away,
            "Rationale": prediction.rationale,
            "Created At": record.predicted_at.isoformat() if record.predicted_at else "",
        })
    return rows


def ticket_rows(ticket_set: TicketSetRecord) -> list[dict[str, Any]]:
    """One row per pick, repeating the ticket totals on each row."""
    rows = []
    for number, ticket in enumerate(ticket_set.result.tickets, start=1):
        for pick in ticket.picks:
            rows.append({
                "Variant #": number,
                "Event": f"{pick.home} vs {pick.away}",
                "Pick": pick.outcome.label,
                "Odds": pick.odds,
                "Confidence %": _pct(pick.confidence),
                "Total Odds": _money(ticket.total_odds),
                "Stake": _money(ticket.stake),
                "Expected Return": _money(ticket.expected_return),
            })
    return rows


def to_csv(rows: list[dict[str, Any]], columns: list[str]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns)
    writer.writeheader()
    for row in rows:
        writer.writerow({key: row.get(key, "") for key in columns})
    return buffer.getvalue()


# ──────────────────────────────────────────────
# Documents
# ──────────────────────────────────────────────

def predictions_document(records: list[MatchRecord]) -> dict[str, Any]:
    """Structured export of predictions with their match context and facts."""
    predictions = []
    for record in records:
        match, prediction = record.match, record.prediction
        predictions.append({
            "event": {
                "id": match.match_id,
                "league": match.league,
                "home_team": match.home,
                "away_team": match.away,
                "kickoff": match.kickoff,
                "odds": match.odds.as_dict(),
            },
            "prediction": {
                "outcome": prediction.outcome.label,
                "probabilities": prediction.probabilities.as_dict(),
                "confidence": prediction.confidence,
                "rationale": prediction.rationale,
                "key_factors": list(prediction.key_factors),
                "method": prediction.method.value,
            },
            "facts": [f.to_dict() for f in match.facts],
            "predicted_at": record.predicted_at.isoformat() if record.predicted_at else None,
        })

    return {
        "export_date": datetime.now(timezone.utc).isoformat(),
        "export_type": "predictions",
        "total_predictions": len(predictions),
        "predictions": predictions,
    }


def ticket_document(ticket_set: TicketSetRecord) -> dict[str, Any]:
    """Structured export of one ticket set."""
    result = ticket_set.result
    return {
        "export_date": datetime.now(timezone.utc).isoformat(),
        "export_type": "ticket",
        "ticket": {
            "id": ticket_set.id,
            "budget": ticket_set.budget,
            "strategy": result.strategy.value,
            "total_cost": _money(result.total_cost),
            "coverage": result.coverage.to_dict(),
            "created_at": ticket_set.created_at.isoformat(),
        },
        "variants": [t.to_dict(2) for t in result.tickets],
    }
