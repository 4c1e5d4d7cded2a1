"""Budget allocation and coverage for generated tickets.

Greedy EV-first selection under a shared stake pool, even redistribution
of whatever the pool has left, and outcome-space coverage reporting.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from totoai.variants import TicketVariant

logger = logging.getLogger(__name__)

# Cumulative stakes may exceed the budget by float noise only
BUDGET_TOLERANCE = 1e-9

OUTCOMES_PER_MATCH = 3


@dataclass(frozen=True)
class Coverage:
    """How much of the 3^N outcome space the tickets touch."""

    total_combinations: int
    covered_combinations: int
    coverage_percent: float

    def to_dict(self) -> dict:
        return {
            "totalCombinations": self.total_combinations,
            "coveredCombinations": self.covered_combinations,
            "coveragePercent": self.coverage_percent,
        }


EMPTY_COVERAGE = Coverage(total_combinations=0, covered_combinations=0, coverage_percent=0.0)


# ──────────────────────────────────────────────
# Selection
# ──────────────────────────────────────────────

def select_within_budget(
    candidates: Iterable["TicketVariant"],
    budget: float,
    max_variants: int,
    tolerance: float = BUDGET_TOLERANCE,
) -> list["TicketVariant"]:
    """Accept candidates by expected value until the pool or the cap runs out.

    Candidates are ranked by expected value, highest first (stable on
    ties). A candidate whose stake no longer fits is skipped and later,
    cheaper candidates are still considered.
    """
    ranked = sorted(candidates, key=lambda t: t.expected_value, reverse=True)

    selected: list["TicketVariant"] = []
    spent = 0.0
    for ticket in ranked:
        if len(selected) >= max_variants:
            break
        if spent + ticket.stake <= budget + tolerance:
            selected.append(ticket)
            spent += ticket.stake
        else:
            logger.debug(f"Skipping {ticket.id}: stake {ticket.stake:.2f} exceeds remaining {budget - spent:.2f}")

    return selected


def redistribute_leftover(
    tickets: list["TicketVariant"],
    budget: float,
    tolerance: float = BUDGET_TOLERANCE,
) -> float:
    """Spread unspent budget evenly across accepted tickets, in place.

    Returns the amount added to each ticket (0.0 if nothing was left).
    """
    if not tickets:
        return 0.0

    leftover = budget - sum(t.stake for t in tickets)
    if leftover <= tolerance:
        return 0.0

    extra = leftover / len(tickets)
    for ticket in tickets:
        ticket.restake(ticket.stake + extra)

    logger.info(f"Redistributed {leftover:.2f} leftover budget across {len(tickets)} tickets (+{extra:.2f} each)")
    return extra


# ──────────────────────────────────────────────
# Coverage
# ──────────────────────────────────────────────

def pick_signature(ticket: "TicketVariant") -> frozenset[str]:
    """Order-independent ``match_id:outcome`` signature of a ticket."""
    return frozenset(f"{p.match_id}:{p.outcome.value}" for p in ticket.picks)


def compute_coverage(tickets: Iterable["TicketVariant"], match_count: int) -> Coverage:
    """Distinct pick signatures over the 3^N combinations of N matches."""
    if match_count <= 0:
        return EMPTY_COVERAGE

    total = OUTCOMES_PER_MATCH ** match_count
    covered = len({pick_signature(t) for t in tickets})
    return Coverage(
        total_combinations=total,
        covered_combinations=covered,
        coverage_percent=100.0 * covered / total,
    )
