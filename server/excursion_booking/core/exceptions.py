"""Booking error taxonomy rendered as RFC 9457 Problem Details."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

PROBLEM_BASE_URI = "https://myowntour.app/problems"


class ProblemDetailsException(HTTPException):
    """
    Base exception for every error raised past a service boundary.

    The body follows RFC 9457 and also carries ``success: false`` and
    ``error: <message>`` so that callers which only look at the uniform
    failure shape can render the message directly.
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        code: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.message = detail or title
        self.code = code
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
            "success": False,
            "error": self.message,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.code:
            self.problem_details["code"] = self.code

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )

    def __str__(self) -> str:
        return self.message


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
    ):
        extensions = {}
        if errors:
            extensions["errors"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            code="invalid_request",
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Raised when a route needs a signed-in user and none was presented."""

    def __init__(self, detail: str = "Authentication credentials are required"):
        super().__init__(
            status_code=401,
            title="Authorization Required",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/authentication-required",
            code="AUTH_REQUIRED",
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for authorization errors."""

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        required_roles: Optional[list] = None,
    ):
        extensions = {}
        if required_roles:
            extensions["required_roles"] = required_roles

        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/access-forbidden",
            code="FORBIDDEN",
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """A slot, excursion, booking or profile does not exist."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            code="NOT_FOUND",
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        code: str = "CONFLICT",
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-conflict",
            code=code,
            extensions=extensions,
        )


class StateConflictError(ConflictError):
    """A booking is already in the state the caller is asking for."""

    def __init__(self, booking_id: str, current_status: str, detail: str):
        super().__init__(
            detail=detail,
            conflicting_resource={"booking_id": booking_id, "status": current_status},
            code="STATE_CONFLICT",
        )


class CapacityExceededError(ProblemDetailsException):
    """The slot does not have enough spots left for the requested party."""

    def __init__(
        self,
        slot_id: str,
        requested_participants: int,
        available_spots: int,
        detail: Optional[str] = None,
    ):
        if not detail:
            detail = f"Only {max(0, available_spots)} spot(s) left for this slot."

        super().__init__(
            status_code=409,
            title="Insufficient Spots",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/insufficient-spots",
            code="insufficient_spots",
            extensions={
                "slot_id": slot_id,
                "requested_participants": requested_participants,
                "available_spots": available_spots,
                "retryable": False,
            },
        )


class UnavailableError(ProblemDetailsException):
    """The slot, excursion or guide cannot take bookings."""

    def __init__(self, conflict_type: str, detail: str, slot_id: Optional[str] = None):
        extensions = {"retryable": False}
        if slot_id:
            extensions["slot_id"] = slot_id

        super().__init__(
            status_code=409,
            title="Unavailable",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/{conflict_type.replace('_', '-')}",
            code=conflict_type,
            extensions=extensions,
        )


class PastDateError(ProblemDetailsException):
    """The slot is dated before today."""

    def __init__(self, slot_date: str, detail: str = "Cannot book a slot dated in the past."):
        super().__init__(
            status_code=422,
            title="Past Date",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/past-date",
            code="past_date",
            extensions={"slot_date": slot_date},
        )


class RemoteFailureError(ProblemDetailsException):
    """Wraps a failure of the database or of an outbound API."""

    def __init__(self, operation: str, detail: Optional[str] = None):
        super().__init__(
            status_code=503,
            title="Backend Failure",
            detail=detail or f"The backend failed while trying to {operation}",
            type_uri=f"{PROBLEM_BASE_URI}/remote-failure",
            code="REMOTE_FAILURE",
            extensions={"operation": operation, "retryable": True},
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    content = dict(exc.problem_details)
    content.setdefault("instance", request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI request validation failures as Problem Details."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "type": f"{PROBLEM_BASE_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "success": False,
            "error": "The request data failed validation",
            "code": "invalid_request",
            "instance": request.url.path,
            "violations": violations,
        },
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error_id = str(uuid.uuid4())

    problem_details = {
        "type": f"{PROBLEM_BASE_URI}/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "success": False,
        "error": "An unexpected error occurred while processing the request",
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": error_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
        media_type="application/problem+json",
    )
