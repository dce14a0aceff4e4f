"""Exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://tour-allocation.example.com/problems"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt

    Every domain error carries a machine-readable ``code`` and a ``retryable``
    flag so callers can tell business rejections from transient failures.
    """

    code: Optional[str] = None
    retryable: bool = False

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.message = detail or title
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        # Create the problem details object
        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if detail:
            self.problem_details["detail"] = detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        if self.code:
            self.problem_details["code"] = self.code
            self.problem_details["retryable"] = self.retryable

        # Add extensions
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
        instance: Optional[str] = None,
    ):
        extensions = {}
        if errors:
            extensions["errors"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            instance=instance,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    code = "NOT_FOUND"

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        title: str = "Resource Conflict",
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title=title,
            detail=detail,
            type_uri=type_uri or f"{PROBLEM_BASE_URI}/resource-conflict",
            instance=instance,
            extensions=extensions,
        )


# Business rule rejections

class CapacityExceededError(ConflictError):
    """Exception when a tour does not have enough free seats."""

    code = "CAPACITY_EXCEEDED"

    def __init__(self, tour_id: str, requested: int, current: int, maximum: int):
        self.tour_id = tour_id
        self.requested = requested
        self.available = max(0, maximum - current)
        super().__init__(
            detail=(
                f"Tour {tour_id} has insufficient capacity. "
                f"Requested: {requested}, Available: {self.available}"
            ),
            conflicting_resource={
                "tour_id": tour_id,
                "requested_seats": requested,
                "current_participants": current,
                "max_participants": maximum,
            },
            title="Capacity Exceeded",
            type_uri=f"{PROBLEM_BASE_URI}/capacity-exceeded",
        )


class RoomConflictError(ConflictError):
    """Exception when a room is already reserved for an overlapping interval."""

    code = "ROOM_CONFLICT"

    def __init__(self, room_id: str, check_in: date, check_out: date, conflicting_reservation_id: str):
        self.room_id = room_id
        self.conflicting_reservation_id = conflicting_reservation_id
        super().__init__(
            detail=(
                f"Room {room_id} is already reserved between "
                f"{check_in.isoformat()} and {check_out.isoformat()}"
            ),
            conflicting_resource={
                "room_id": room_id,
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
                "conflicting_reservation_id": conflicting_reservation_id,
            },
            title="Room Conflict",
            type_uri=f"{PROBLEM_BASE_URI}/room-conflict",
        )


class RoomCapacityExceededError(ConflictError):
    """Exception when more occupants are requested than a room holds."""

    code = "ROOM_CAPACITY_EXCEEDED"

    def __init__(self, room_id: str, occupant_count: int, capacity: int):
        self.room_id = room_id
        super().__init__(
            detail=f"Room {room_id} holds {capacity} occupants, {occupant_count} requested",
            conflicting_resource={
                "room_id": room_id,
                "occupant_count": occupant_count,
                "room_capacity": capacity,
            },
            title="Room Capacity Exceeded",
            type_uri=f"{PROBLEM_BASE_URI}/room-capacity-exceeded",
        )


class InvalidTransitionError(ConflictError):
    """Exception when a reservation status change is not allowed."""

    code = "INVALID_TRANSITION"

    def __init__(self, reservation_id: str, current_status: str, requested_status: str, detail: Optional[str] = None):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            detail=detail or (
                f"Reservation {reservation_id} cannot move from "
                f"'{current_status}' to '{requested_status}'"
            ),
            conflicting_resource={
                "reservation_id": reservation_id,
                "current_status": current_status,
                "requested_status": requested_status,
            },
            title="Invalid Status Transition",
            type_uri=f"{PROBLEM_BASE_URI}/invalid-transition",
        )


class ReservationClosedError(ConflictError):
    """Exception when a completed or cancelled reservation is modified."""

    code = "RESERVATION_CLOSED"

    def __init__(self, reservation_id: str, status: str, action: str):
        super().__init__(
            detail=f"Cannot {action}: reservation {reservation_id} is {status}",
            conflicting_resource={"reservation_id": reservation_id, "status": status},
            title="Reservation Closed",
            type_uri=f"{PROBLEM_BASE_URI}/reservation-closed",
        )


class TourUnavailableError(ConflictError):
    """Exception when a tour does not accept reservations."""

    code = "TOUR_UNAVAILABLE"

    def __init__(self, tour_id: str, reason: str):
        super().__init__(
            detail=f"Tour {tour_id} is not available for booking: {reason}",
            conflicting_resource={"tour_id": tour_id, "reason": reason},
            title="Tour Unavailable",
            type_uri=f"{PROBLEM_BASE_URI}/tour-unavailable",
        )


# Transient and fatal failures

class ServiceUnavailableError(ProblemDetailsException):
    """Base class for 503 responses."""

    def __init__(self, title: str, detail: str, type_uri: str, retry_after: Optional[int] = None):
        headers = {"Retry-After": str(retry_after)} if retry_after else None
        super().__init__(
            status_code=503,
            title=title,
            detail=detail,
            type_uri=type_uri,
            headers=headers,
        )


class LockTimeoutError(ServiceUnavailableError):
    """Exception when entity locks cannot be acquired in time."""

    code = "TIMEOUT"
    retryable = True

    def __init__(self, keys: list[str], timeout_seconds: float):
        self.keys = keys
        super().__init__(
            title="Timeout",
            detail=f"Timed out after {timeout_seconds}s waiting for {', '.join(keys)}",
            type_uri=f"{PROBLEM_BASE_URI}/timeout",
            retry_after=1,
        )


class ServiceBusyError(ServiceUnavailableError):
    """Exception when optimistic concurrency retries are exhausted."""

    code = "BUSY"
    retryable = True

    def __init__(self, operation: str, attempts: int):
        super().__init__(
            title="Busy",
            detail=f"{operation} kept conflicting with concurrent updates after {attempts} attempts",
            type_uri=f"{PROBLEM_BASE_URI}/busy",
            retry_after=1,
        )


class PersistenceError(ServiceUnavailableError):
    """Exception when storage is unavailable; the current request is abandoned."""

    code = "PERSISTENCE_FAILURE"

    def __init__(self, operation: str):
        super().__init__(
            title="Storage Unavailable",
            detail=f"{operation} could not be persisted",
            type_uri=f"{PROBLEM_BASE_URI}/persistence-failure",
        )


class InternalServerError(ProblemDetailsException):
    """Exception for internal server errors."""

    code = "INTERNAL"

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        error_id: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not error_id:
            error_id = str(uuid.uuid4())
        self.error_id = error_id

        extensions = {
            "error_id": error_id,
            "timestamp": _utc_timestamp(),
        }

        super().__init__(
            status_code=500,
            title="Internal Server Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/internal-server-error",
            instance=instance,
            extensions=extensions,
        )


class InvariantViolationError(InternalServerError):
    """A programming error: an internal invariant was about to be broken."""

    def __init__(self, invariant: str, context: Optional[Dict[str, Any]] = None):
        self.invariant = invariant
        super().__init__()
        logger.error(
            "Invariant violation detected",
            extra={
                "invariant": invariant,
                "error_id": self.error_id,
                **(context or {}),
            }
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
    content.setdefault("instance", str(request.url))
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body validation failures as Problem Details with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{PROBLEM_BASE_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "The request data failed validation",
            "instance": str(request.url),
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

    logger.error(
        "Unhandled exception",
        extra={"error_id": error_id, "path": request.url.path},
        exc_info=exc,
    )

    problem_details = {
        "type": f"{PROBLEM_BASE_URI}/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "code": "INTERNAL",
        "retryable": False,
        "error_id": error_id,
        "timestamp": _utc_timestamp(),
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
        media_type="application/problem+json",
    )
