"""
Custom exception hierarchy for the mood chat service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

from typing import Any

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from moodchat.schemas.common import ErrorDetail

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class MoodChatException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidMoodScoreError(MoodChatException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_MOOD_SCORE"

    def __init__(self, score: Any):
        super().__init__(
            message=f"Mood score must be an integer in [0, 100]. Received {score!r}.",
            details={"mood_score": repr(score)},
        )


class InvalidSessionIdError(MoodChatException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_SESSION_ID"

    def __init__(self):
        super().__init__(message="Session id must be a non-empty string.")


class SessionNotFoundError(MoodChatException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Chat session {session_id} does not exist.",
            details={"session_id": session_id},
        )


class SessionStoreError(MoodChatException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SESSION_STORE_ERROR"

    def __init__(self, operation: str, reason: str | None = None):
        details: dict[str, Any] = {"operation": operation}
        if reason:
            details["reason"] = reason
        super().__init__(
            message=f"Session store operation '{operation}' failed.",
            details=details,
        )


class ScorerUnavailableError(MoodChatException):
    """Raised by scorer backends; never reaches an HTTP client."""
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "SCORER_UNAVAILABLE"

    def __init__(self, reason: str):
        super().__init__(
            message="Mood scorer is unavailable.",
            details={"reason": reason},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def moodchat_exception_handler(request: Request, exc: MoodChatException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append(ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"] if loc != "body"),
            message=error["msg"],
            type=error["type"],
        ).model_dump())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
