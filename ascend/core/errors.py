"""
Custom exception hierarchy for ASCEND.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette import status


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class AscendException(Exception):
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


class UserNotFoundError(AscendException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        super().__init__(
            message=f"User {user_id} does not exist.",
            details={"user_id": user_id},
        )


class HabitNotFoundError(AscendException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "HABIT_NOT_FOUND"

    def __init__(self, habit_id: int, user_id: str):
        super().__init__(
            message=f"Habit {habit_id} not found for user {user_id}.",
            details={"habit_id": habit_id, "user_id": user_id},
        )


class WeekHasNoDataError(AscendException):
    """Not a failure: the user simply has nothing recorded for that week."""
    http_status = status.HTTP_404_NOT_FOUND
    code = "NO_DATA_FOR_WEEK"

    def __init__(self, user_id: str, week_start: date):
        super().__init__(
            message=f"No data found for the week starting {week_start}.",
            details={"user_id": user_id, "week_start": str(week_start)},
        )


class InsightNotFoundError(AscendException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "INSIGHT_NOT_FOUND"

    def __init__(self, insight_id: int):
        super().__init__(
            message=f"Insight {insight_id} not found.",
            details={"insight_id": insight_id},
        )


class InsightAlreadyResolvedError(AscendException):
    http_status = status.HTTP_409_CONFLICT
    code = "INSIGHT_ALREADY_RESOLVED"

    def __init__(self, insight_id: int, state: str):
        super().__init__(
            message=f"Insight {insight_id} is already {state}.",
            details={"insight_id": insight_id, "state": state},
        )


class InsightPersistenceError(AscendException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INSIGHT_PERSISTENCE_FAILED"

    def __init__(self, user_id: str, reason: str):
        super().__init__(
            message=f"Generated insights could not be stored: {reason}",
            details={"user_id": user_id},
        )


class AdminAuthError(AscendException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "ADMIN_AUTH_REQUIRED"

    def __init__(self):
        super().__init__(message="Unauthorized - admin access required.")


class NarrativeError(Exception):
    """Raised by narrative collaborators. Never reaches an HTTP client."""


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def ascend_exception_handler(request: Request, exc: AscendException) -> JSONResponse:
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
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("Unhandled error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
