"""FastAPI entry point for the article evaluator service."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings
from services.run_manager import get_run_manager
from services.scoring_client import get_scoring_client

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle — start/stop shared resources."""
    client = get_scoring_client()
    await client.start()

    yield

    # Let an in-flight rubric finish before the pool goes away
    await get_run_manager().shutdown()
    await client.close()


app = FastAPI(
    title="Article Evaluator",
    description="Rubric-based article scoring through OpenAI-compatible endpoints",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Register routers ────────────────────────────────────────
from api.health import router as health_router  # noqa: E402
from api.evaluation import router as evaluation_router  # noqa: E402
from api.rubrics import router as rubrics_router  # noqa: E402

app.include_router(health_router)
app.include_router(evaluation_router)
app.include_router(rubrics_router)


if __name__ == "__main__":
    logger.info("Starting on port %d", settings.service_port)
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
    )
