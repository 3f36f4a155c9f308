"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.services.auth_service import AuthService, InvalidSessionTokenError
from backend.services.booking_service import BookingLifecycleService
from backend.services.review_service import ReviewRatingAggregator
from backend.services.room_service import RoomAvailabilityStore


bearer_scheme = HTTPBearer(auto_error=False)


def _service_from_state(request: Request, attribute: str, label: str):
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_auth_service(request: Request) -> AuthService:
    return _service_from_state(request, "auth_service", "Auth service")


def get_room_store(request: Request) -> RoomAvailabilityStore:
    return _service_from_state(request, "room_store", "Room store")


def get_booking_service(request: Request) -> BookingLifecycleService:
    return _service_from_state(request, "booking_service", "Booking service")


def get_review_service(request: Request) -> ReviewRatingAggregator:
    return _service_from_state(request, "review_service", "Review service")


async def require_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> str:
    """Resolve the bearer token to the caller's email or reject with 401."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized access: bearer token is required",
        )
    try:
        return auth_service.resolve_caller(credentials.credentials)
    except InvalidSessionTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
