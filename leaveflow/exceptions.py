from typing import Any, ClassVar

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int
    details: dict[str, Any] = {}


class AppError(Exception):
    """Base application exception."""

    code: ClassVar[str] = "AppError"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppError):
    """The referenced leave request (or other entity) does not exist."""

    code = "NotFound"

    def __init__(self, message: str = "Leave request not found", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class ForbiddenError(AppError):
    """Role, ownership or self-approval mismatch."""

    code = "Forbidden"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


class IllegalTransitionError(AppError):
    """Status change rejected by the transition guard."""

    code = "IllegalTransition"

    def __init__(
        self,
        current: str,
        requested: str,
        allowed: list[str],
        required: list[str] | None = None,
    ) -> None:
        allowed_text = ", ".join(allowed) if allowed else "none (terminal state)"
        message = f"Invalid status transition: {current} -> {requested}. Allowed from {current}: {allowed_text}"
        details: dict[str, Any] = {"current_status": current, "requested_status": requested, "allowed": allowed}
        if required is not None:
            message = f"Request must be {' or '.join(required)} for this action (currently {current})"
            details["required_status"] = required
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class AlreadyResolvedError(AppError):
    """The request already reached a terminal status."""

    code = "AlreadyResolved"

    def __init__(self, current: str) -> None:
        super().__init__(
            f"Leave request is already {current}",
            status.HTTP_409_CONFLICT,
            {"current_status": current},
        )


class NoBalanceRecordError(AppError):
    """No ledger row exists for the employee, category and year."""

    code = "NoBalanceRecord"

    def __init__(self, category: str, year: int) -> None:
        super().__init__(
            f"No {category} balance record for {year}",
            status.HTTP_409_CONFLICT,
            {"category": category, "year": year},
        )


class InsufficientBalanceError(AppError):
    """The ledger cannot cover the requested days."""

    code = "InsufficientBalance"

    def __init__(self, category: str, available: int, required: int) -> None:
        super().__init__(
            f"Insufficient {category} balance: {available} available, {required} required",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            {"category": category, "available": available, "required": required},
        )


class ValidationFailedError(AppError):
    """Business-level input validation failure (comments, dates, day counts)."""

    code = "ValidationError"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, details)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.code,
            detail=exc.message,
            status_code=exc.status_code,
            details=exc.details,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
