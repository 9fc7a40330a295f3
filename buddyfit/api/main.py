"""
buddyfit.api.main — FastAPI application entry point
====================================================

Run with::

    uvicorn buddyfit.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from buddyfit.api.deps import get_cache, get_engine  # noqa: E402
from buddyfit.api.routes.admin import router as admin_router  # noqa: E402
from buddyfit.api.routes.badges import router as badges_router  # noqa: E402
from buddyfit.api.routes.gamification import router as gamification_router  # noqa: E402
from buddyfit.api.routes.motivation import router as motivation_router  # noqa: E402
from buddyfit.api.routes.pairings import router as pairings_router  # noqa: E402
from buddyfit.api.routes.progress import router as progress_router  # noqa: E402
from buddyfit.api.routes.workouts import router as workouts_router  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine and config cache."""
    engine = get_engine()
    get_cache()
    logger.info("BuddyFit API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("BuddyFit API shutting down")


app = FastAPI(
    title="BuddyFit Gamification API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(workouts_router, prefix="/api")
app.include_router(gamification_router, prefix="/api")
app.include_router(badges_router, prefix="/api")
app.include_router(motivation_router, prefix="/api")
app.include_router(pairings_router, prefix="/api")
app.include_router(progress_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
