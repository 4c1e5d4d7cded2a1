"""Uncertainty scoring for outcome probability triples.

Higher scores mean a less decided match, i.e. a stronger candidate for
covering more than one outcome on a ticket.
"""

import math

from totoai.probability import OutcomeProbabilities, probability_margin

# Floor applied before log2 so zero probabilities stay finite
ENTROPY_FLOOR = 0.001
MAX_ENTROPY = math.log2(3)  # three outcomes, ~1.585 bits


def entropy_score(probs: OutcomeProbabilities) -> float:
    """Shannon entropy of the triple normalized to 0-1."""
    entropy = 0.0
    for p in (probs.home, probs.draw, probs.away):
        p = max(p, ENTROPY_FLOOR)
        entropy -= p * math.log2(p)
    return min(1.0, max(0.0, entropy / MAX_ENTROPY))


def margin_score(probs: OutcomeProbabilities) -> float:
    """1 minus the gap between the top two probabilities."""
    return 1.0 - probability_margin(probs)


def combined_uncertainty(probs: OutcomeProbabilities) -> float:
    """Mean of entropy and margin scores, weighted equally."""
    return (entropy_score(probs) + margin_score(probs)) / 2
