"""
sqlperf - Status API Entry Point

FastAPI application exposing live status of in-process experiments and the
persisted results store.

Usage:
    uvicorn sqlperf.main:app --port 8000
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sqlperf import __version__
from sqlperf.api.routes import experiments, results
from sqlperf.config import settings
from sqlperf.core.experiment_registry import registry

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT,
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(settings.LOG_FILE)
        if settings.LOG_FILE
        else logging.NullHandler(),
    ],
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager - handles startup and shutdown events.
    """
    logger.info("🚀 %s starting up...", settings.APP_NAME)
    logger.info("📁 Results location: %s", settings.RESULTS_LOCATION)
    logger.info(
        "🔧 Environment: %s", "Development" if settings.APP_DEBUG else "Production"
    )

    yield

    logger.info("🛑 %s shutting down...", settings.APP_NAME)
    running = [s for s in registry.list() if not s.is_finished]
    if running:
        # Workers cannot be cancelled; they finish in the background.
        logger.warning(
            "%d experiment(s) still running at shutdown: %s",
            len(running),
            ", ".join(str(s.timestamp) for s in running),
        )


app = FastAPI(
    title=settings.APP_NAME,
    description="Live status and results for query engine benchmark experiments",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(experiments.router, prefix="/api/experiments", tags=["experiments"])
app.include_router(results.router, prefix="/api/results", tags=["results"])


@app.get("/health")
async def health_check():
    """
    Health check endpoint.
    """
    running = sum(1 for s in registry.list() if not s.is_finished)
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
        "running_experiments": running,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sqlperf.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.APP_DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
