"""HTTP entry points and their shared dependencies."""

from typing import Optional

from fastapi import Request

from totoai.ai.estimator import ModelEstimator
from totoai.store import MatchStore


def get_store(request: Request) -> MatchStore:
    """Match store attached to the app at startup."""
    return request.app.state.store


def get_estimator(request: Request) -> Optional[ModelEstimator]:
    """Model estimator attached to the app at startup (None = facts only)."""
    return getattr(request.app.state, "estimator", None)
