"""
FastAPI application for the study cycle tracker.

Provides REST API for:
- Workspaces, subjects and study session logging
- Study cycle management (create, update, activate, delete)
- Rotation (advance, force-complete, reset)
- Suggestion, statistics and history views
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from src.cycle.errors import (
    CycleConflictError,
    CycleNotFoundError,
    InvalidCycleStateError,
    InvalidSessionError,
    StudyCycleError,
    WorkspaceForbiddenError,
)
from src.db.database import check_connection, init_db
from src.db.models.base import utcnow

settings = get_settings()

ERROR_STATUS: dict[type[StudyCycleError], int] = {
    CycleNotFoundError: 404,
    InvalidCycleStateError: 400,
    InvalidSessionError: 400,
    CycleConflictError: 409,
    WorkspaceForbiddenError: 403,
}


def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        check_connection()
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    logger.info("Starting study cycle service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down study cycle service...")


app = FastAPI(
    title="Study Cycle Tracker",
    description="""
    Personal study-time tracker built around study cycles.

    ## Features

    - **Sessions**: Log minutes studied per subject
    - **Cycles**: Circular rotation of subjects with per-subject targets
    - **Progress**: Derived from logged sessions plus force-complete credits
    - **History**: Every advance and every completed rotation
    """,
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StudyCycleError)
async def study_cycle_error_handler(request: Request, exc: StudyCycleError) -> JSONResponse:
    """Map engine errors to HTTP status codes."""
    status = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        400,
    )
    logger.warning(f"{request.method} {request.url.path} -> {status}: {exc}")
    return JSONResponse(status_code=status, content={"detail": str(exc)})


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "study-cycle-tracker",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check endpoint with an actual connectivity test."""
    db_status, db_error = _check_database_health()

    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": utcnow().isoformat(),
        "components": {"database": db_status},
        "config": settings.get_cycle_config(),
    }
    if db_error:
        result["errors"] = {"database": db_error}

    return result


# ========================================
# Import and mount routers
# ========================================

from src.api.routers import cycle_router, workspace_router

app.include_router(workspace_router.router, prefix="/api/workspaces", tags=["Workspaces"])
app.include_router(
    cycle_router.router,
    prefix="/api/workspaces/{workspace_id}/cycle",
    tags=["Study Cycle"],
)
