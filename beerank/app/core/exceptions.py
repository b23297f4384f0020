"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.

Taxonomy:
    ValidationError  -> malformed input (coordinates, ratings, plan requests)
    ResourceNotFoundError -> unknown rank / route / journey / sign / user
    StateError       -> illegal lifecycle transition or referential conflict
    ConcurrencyError -> lost-update detected, safe to retry

"No route found" is a planning result, not an exception.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, List

logger = logging.getLogger("beerank.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """Raised when domain input is malformed."""

    def __init__(self, message: str, error_code: str = "ERR_VALIDATION_001", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class InvalidCoordinateError(ValidationError):
    """Raised for latitude/longitude outside the WGS84 range."""

    def __init__(self, latitude: Any, longitude: Any):
        super().__init__(
            message=f"Invalid coordinate ({latitude}, {longitude}): latitude must be in [-90, 90] and longitude in [-180, 180]",
            error_code="ERR_GEO_001",
            details={"latitude": latitude, "longitude": longitude}
        )


class SameOriginDestinationError(ValidationError):
    """Raised when a journey is planned from a rank to itself."""

    def __init__(self, rank_id: int):
        super().__init__(
            message="Origin and destination must be different ranks",
            error_code="ERR_PLAN_001",
            details={"rank_id": rank_id}
        )


class NoRankNearLocationError(ValidationError):
    """Raised when a coordinate cannot be snapped to an active rank."""

    def __init__(self, latitude: float, longitude: float, radius_km: float):
        super().__init__(
            message=f"No active taxi rank within {radius_km} km of ({latitude}, {longitude})",
            error_code="ERR_PLAN_002",
            details={"latitude": latitude, "longitude": longitude, "radius_km": radius_km}
        )


class InvalidRatingError(ValidationError):
    """Raised when a journey rating is outside 1..5."""

    def __init__(self, rating: Any):
        super().__init__(
            message="Rating must be an integer between 1 and 5",
            error_code="ERR_RATING_001",
            details={"rating": rating}
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class StateError(AppException):
    """Raised when an operation conflicts with the current state of a resource."""

    def __init__(self, message: str, error_code: str = "ERR_STATE_001", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class InvalidStateTransitionError(StateError):
    """Raised for an illegal journey transition; carries the legal next states."""

    def __init__(self, current_status: str, requested: str, allowed_next_states: List[str]):
        self.current_status = current_status
        self.allowed_next_states = allowed_next_states
        super().__init__(
            message=f"Cannot move journey from '{current_status}' to '{requested}'",
            error_code="ERR_STATE_002",
            details={
                "current_status": current_status,
                "requested": requested,
                "allowed_next_states": allowed_next_states
            }
        )


class RouteInUseError(StateError):
    """Raised when a route cannot be withdrawn because an active journey uses it."""

    def __init__(self, route_id: int, journey_ids: List[str]):
        super().__init__(
            message=f"Route {route_id} is used by {len(journey_ids)} active journey(s)",
            error_code="ERR_STATE_003",
            details={"route_id": route_id, "active_journey_ids": journey_ids}
        )


class RankInUseError(StateError):
    """Raised when a rank cannot be deleted because routes reference it."""

    def __init__(self, rank_id: int, route_count: int):
        super().__init__(
            message=f"Rank {rank_id} is referenced by {route_count} route(s); deactivate it instead",
            error_code="ERR_STATE_004",
            details={"rank_id": rank_id, "route_count": route_count}
        )


class ConcurrencyError(AppException):
    """Raised when a concurrent write was detected. The operation may be retried."""

    def __init__(self, message: str = "Concurrent update detected, please retry", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONCURRENCY_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Strip non-serializable context (e.g. raised ValueErrors) from Pydantic errors."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
