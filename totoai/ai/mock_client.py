"""Mock AI client for staging environment.

Returns a canned prediction judgment the estimator can fully parse,
without making any real API calls. Used when TOTOAI_MOCK_EXTERNAL=true.
"""

import json
import logging
from typing import Optional

from totoai.ai.client import TokenUsage

logger = logging.getLogger(__name__)

CANNED_JUDGMENT = {
    "outcome": "1",
    "confidence": 0.62,
    "probs": {"1": 0.46, "X": 0.27, "2": 0.27},
    "rationale": (
        "Staging mock judgment: the home side's recent form and home advantage "
        "outweigh the visitors' attacking numbers."
    ),
    "key_factors": ["Home advantage", "Recent form", "Staging mock"],
}


class MockAIClient:
    """Mock AI client that returns canned content without API calls.

    Matches the interface of AIClient so it can be swapped in transparently.
    """

    def __init__(self, payload: Optional[dict] = None, **kwargs):
        self.model = "mock"
        self.payload = payload or CANNED_JUDGMENT
        self.last_usage: Optional[TokenUsage] = TokenUsage(model="mock")
        self.calls = 0

    async def close(self) -> None:
        """No-op, nothing to close."""

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        json_mode: bool = False,
        operation: str = "",
    ) -> str:
        """Return the canned judgment as JSON."""
        self.calls += 1
        logger.info("[MOCK] generate() called for %s, returning canned judgment", operation or "chat")
        self.last_usage = TokenUsage(model="mock", operation=operation)
        return json.dumps(self.payload)
