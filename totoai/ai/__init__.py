"""External model collaborators for TotoAI."""

from totoai.ai.client import AIClient
from totoai.ai.estimator import LLMEstimator, ModelEstimator, ModelJudgment

__all__ = ["AIClient", "LLMEstimator", "ModelEstimator", "ModelJudgment"]
