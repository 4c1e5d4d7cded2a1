"""FastAPI application entry point for TotoAI."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from totoai import __version__
from totoai.ai.estimator import LLMEstimator
from totoai.api import export, matches, predict, variants
from totoai.config import settings
from totoai.store import MatchStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    logger.info("Starting TotoAI...")

    if settings.matches_path and settings.matches_path.exists():
        app.state.store = MatchStore.from_file(settings.matches_path)
    else:
        if settings.matches_path:
            logger.warning(f"Match seed {settings.matches_path} not found, starting with an empty slate")
        app.state.store = MatchStore()

    app.state.estimator = LLMEstimator()
    mode = "mock" if settings.mock_external else f"{settings.llm_provider}/{settings.chat_model}"
    logger.info(f"Model estimator ready ({mode}), {len(app.state.store)} matches loaded")

    yield

    # Shutdown
    logger.info("Shutting down TotoAI...")
    await app.state.estimator.close()


app = FastAPI(
    title="TotoAI",
    description="Football match prediction and betting ticket variants",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(predict.router, prefix="/api/predict", tags=["predict"])
app.include_router(variants.router, prefix="/api/variants", tags=["variants"])
app.include_router(matches.router, prefix="/api/matches", tags=["matches"])
app.include_router(export.router, prefix="/api/export", tags=["export"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}
