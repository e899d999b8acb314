from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from moodchat.db.base import SessionLocal, get_db
from moodchat.core.config import settings
from moodchat.core.logging import setup_logging
from moodchat.routers import chat as chat_router
from moodchat.routers import calendar as calendar_router
from moodchat.routers import mood as mood_router
from moodchat.services.coalescer import SessionUpdateCoalescer
from moodchat.services.mood_scorer import build_scorer
from moodchat.services.session_store import SessionStore
from moodchat.core.errors import (
    MoodChatException,
    moodchat_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(
        json_mode=settings.LOG_JSON,
        level=settings.LOG_LEVEL,
        cache_loggers=settings.APP_ENV != "test",
    )
    store = SessionStore(
        session_factory=SessionLocal,
        neutral_score=settings.NEUTRAL_MOOD_SCORE,
        initial_summary=settings.INITIAL_SESSION_SUMMARY,
    )
    app.state.session_store = store
    app.state.scorer = build_scorer(settings)
    app.state.coalescer = SessionUpdateCoalescer(
        store=store,
        window_seconds=settings.SESSION_FLUSH_WINDOW_SECONDS,
    )
    logger.info(
        "app_started",
        env=settings.APP_ENV,
        scorer=settings.MOOD_SCORER,
        flush_window_seconds=settings.SESSION_FLUSH_WINDOW_SECONDS,
    )
    try:
        yield
    finally:
        # Drain pending drafts so a graceful stop loses nothing.
        report = app.state.coalescer.shutdown()
        if report.failed:
            logger.error("drafts_lost_on_shutdown", session_ids=report.failed)
        close = getattr(app.state.scorer, "close", None)
        if close is not None:
            close()


app = FastAPI(
    title="Mood Chat API",
    description=(
        "**Mood-tracking support chat**\n\n"
        "Scores each conversational turn, coalesces per-session summary/mood "
        "updates into a single write after a quiet period, and serves "
        "per-day mood rollups for a calendar view.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Device-Id"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(MoodChatException, moodchat_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(chat_router.router)
app.include_router(calendar_router.router)
app.include_router(mood_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
