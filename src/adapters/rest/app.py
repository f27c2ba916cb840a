"""
FastAPI application — REST adapter for the Lila pain companion.

Usage:
    python run_api.py

Or directly:
    uvicorn adapters.rest.app:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Ensure src/ is on sys.path when invoked via uvicorn directly
_src_dir = Path(__file__).resolve().parent.parent.parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from infrastructure.config import Settings
from factory import ServiceFactory
from adapters.rest.dependencies import set_factory
from adapters.rest.routers import (
    chat_ws,
    conversations,
    insights,
    insights_ws,
    pain_logs,
    patterns,
    profile,
    sessions,
)
from domain.exceptions import (
    ConversationStateError,
    DomainError,
    EntryNotFoundError,
    InvalidEntryError,
    InvalidPainLevelError,
    ProfileNotFoundError,
    RepositoryError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[DomainError], int]] = [
    (InvalidPainLevelError, 422),
    (InvalidEntryError, 422),
    (EntryNotFoundError, 404),
    (ProfileNotFoundError, 404),
    (ConversationStateError, 409),
    (RepositoryError, 503),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize ServiceFactory on startup."""
    project_root = _src_dir.parent
    config = Settings.from_env(project_root=project_root)
    factory = ServiceFactory(config)
    await factory.initialize()
    set_factory(factory)
    yield
    # aiosqlite connections are opened per operation, nothing to tear down


app = FastAPI(
    title="Lila Pain Companion",
    version="0.1.0",
    description="Pain logging, conversational check-ins and insights.",
    lifespan=lifespan,
)

# CORS: permissive for development; tighten allowed_origins in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        status_code = 400
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# Register routers
app.include_router(pain_logs.router)
app.include_router(insights.router)
app.include_router(patterns.router)
app.include_router(profile.router)
app.include_router(sessions.router)
app.include_router(conversations.router)
app.include_router(chat_ws.router)
app.include_router(insights_ws.router)


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok", "version": "0.1.0"}
