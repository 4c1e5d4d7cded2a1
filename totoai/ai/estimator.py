"""Model-assisted probability estimation.

The engine treats the external model as an opaque judgment source. Any
backend (hosted LLM, local model, rule engine) can stand in as long as it
implements ModelEstimator.estimate(). Whatever comes back is validated
here; anything unusable surfaces as ModelEstimateError so the predictor
can substitute the facts-adjusted estimate.
"""

import json
import logging
import re
from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from totoai.errors import ModelEstimateError
from totoai.match import MatchContext
from totoai.probability import Outcome, OutcomeProbabilities

logger = logging.getLogger(__name__)

# Model triples may be off by rounding; beyond this they are rejected
MODEL_SUM_TOLERANCE = 0.02

PREDICTION_TEMPERATURE = 0.3
PREDICTION_MAX_TOKENS = 1000

SYSTEM_PROMPT = (
    "You are an expert football analyst. Analyze matches and provide "
    "predictions in JSON format."
)

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


# ──────────────────────────────────────────────
# Judgment schema
# ──────────────────────────────────────────────

class JudgmentProbs(BaseModel):
    """Probability triple keyed by voucher labels 1/X/2."""

    model_config = ConfigDict(populate_by_name=True)

    home: float = Field(alias="1", ge=0.0, le=1.0)
    draw: float = Field(alias="X", ge=0.0, le=1.0)
    away: float = Field(alias="2", ge=0.0, le=1.0)


class ModelJudgment(BaseModel):
    """Structured judgment returned by a model estimator."""

    outcome: Outcome
    confidence: float = Field(ge=0.0, le=1.0)
    probs: JudgmentProbs
    rationale: str
    key_factors: list[str]

    @field_validator("outcome", mode="before")
    @classmethod
    def _parse_outcome(cls, value):
        return Outcome.from_label(value)

    def probabilities(self, tolerance: float = MODEL_SUM_TOLERANCE) -> OutcomeProbabilities:
        """The judged triple rescaled to sum exactly to 1.

        Raises:
            ModelEstimateError: if the raw triple is off 1 by more than tolerance
        """
        total = self.probs.home + self.probs.draw + self.probs.away
        if abs(total - 1.0) > tolerance:
            raise ModelEstimateError(f"Model probabilities sum to {total:.4f}, expected ~1")
        return OutcomeProbabilities.normalized(self.probs.home, self.probs.draw, self.probs.away)


def parse_judgment(content: str, tolerance: float = MODEL_SUM_TOLERANCE) -> ModelJudgment:
    """Parse and validate raw model output.

    Raises:
        ModelEstimateError: on empty content, malformed JSON, schema
            violations, or a triple not summing to 1 within tolerance
    """
    text = (content or "").strip()
    if not text:
        raise ModelEstimateError("Model returned empty content")

    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ModelEstimateError(f"Model returned malformed JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ModelEstimateError("Model response is not a JSON object")

    try:
        judgment = ModelJudgment.model_validate(payload)
    except ValidationError as e:
        raise ModelEstimateError(f"Model response failed validation: {e.errors()[:3]}") from e

    judgment.probabilities(tolerance)
    return judgment


# ──────────────────────────────────────────────
# Estimator capability
# ──────────────────────────────────────────────

@runtime_checkable
class ModelEstimator(Protocol):
    """A source of model-assisted judgments for one match."""

    async def estimate(
        self,
        match: MatchContext,
        baseline: OutcomeProbabilities,
        digest: str,
        extra_context: Optional[str] = None,
    ) -> ModelJudgment:
        ...


def build_prediction_prompt(
    match: MatchContext,
    baseline: OutcomeProbabilities,
    digest: str,
    extra_context: Optional[str] = None,
) -> str:
    """Prompt asking for a 1/X/2 judgment in a fixed JSON shape."""
    extra = f"Additional Context:\n{extra_context}\n" if extra_context else ""
    return f"""You are a football match prediction expert. Based on the following data, predict the match outcome (1=Home Win, X=Draw, 2=Away Win).

Match: {match.home} vs {match.away}
League: {match.league}
Kickoff: {match.kickoff}

Odds (market baseline):
- Home Win (1): {match.odds.home} (implied prob: {baseline.home * 100:.1f}%)
- Draw (X): {match.odds.draw} (implied prob: {baseline.draw * 100:.1f}%)
- Away Win (2): {match.odds.away} (implied prob: {baseline.away * 100:.1f}%)

Key Facts:
{digest}

{extra}
Provide your prediction with reasoning. Return JSON with this exact structure:
{{
  "outcome": "1" | "X" | "2",
  "confidence": 0.0-1.0,
  "probs": {{
    "1": 0.45,
    "X": 0.28,
    "2": 0.27
  }},
  "rationale": "2-3 sentence explanation citing key factors",
  "key_factors": ["factor1", "factor2", "factor3"]
}}"""


def default_client():
    """AI client per settings: canned responses in staging, real API otherwise."""
    from totoai.config import settings

    if settings.mock_external:
        from totoai.ai.mock_client import MockAIClient
        return MockAIClient()
    from totoai.ai.client import AIClient
    return AIClient()


class LLMEstimator:
    """ModelEstimator backed by a chat model emitting JSON."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = default_client()
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def estimate(
        self,
        match: MatchContext,
        baseline: OutcomeProbabilities,
        digest: str,
        extra_context: Optional[str] = None,
    ) -> ModelJudgment:
        prompt = build_prediction_prompt(match, baseline, digest, extra_context)
        try:
            content = await self.client.generate(
                system_prompt=SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=PREDICTION_TEMPERATURE,
                max_tokens=PREDICTION_MAX_TOKENS,
                json_mode=True,
                operation="prediction_llm",
            )
        except Exception as e:
            raise ModelEstimateError(f"Model call failed for {match.match_id}: {e}") from e

        return parse_judgment(content)
