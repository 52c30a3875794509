"""
FastAPI application for the Community Issue Tracker.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import get_settings
from .db.base import get_db, init_database
from .issues.routes import router as issues_router
from .issues.uploads import close_image_uploader
from .logging import configure_logging

logger = structlog.get_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings)
    logger.info("service_starting", app=settings.app_name, environment=settings.environment)

    try:
        init_database()
    except Exception as e:
        logger.error("service_start_failed", error=str(e))
        raise

    yield

    logger.info("service_stopping")
    await close_image_uploader()
    logger.info("service_stopped")


app = FastAPI(
    title="Community Issue Tracker",
    description="Maintenance issues reported by residents and resolved by hosts",
    version=importlib.metadata.version("community-issue-tracker"),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(issues_router)


@app.get("/healthz", tags=["system"])
def healthz(db: Session = Depends(get_db)) -> dict[str, bool]:
    """Health check endpoint, including a database round-trip."""
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.warning("healthz_db_failed", error=str(e))
        db_ok = False
    return {"ok": db_ok, "db": db_ok}


@app.get("/version", tags=["system"])
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": importlib.metadata.version("community-issue-tracker")}
