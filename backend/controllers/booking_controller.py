"""HTTP controller layer for the booking lifecycle."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, model_validator

from backend.controllers.dependencies import get_booking_service, require_caller
from backend.domain.errors import (
    AuthorizationError,
    ConflictError,
    DeadlineError,
    InvalidBookingError,
    NotFoundError,
)
from backend.domain.models import Booking, BookingRequest
from backend.repository.data_repository import PersistenceError
from backend.services.booking_service import BookingLifecycleService


router = APIRouter(tags=["bookings"])


class CreateBookingRequest(BaseModel):
    room_id: int = Field(gt=0)
    booked_by: str = Field(min_length=3)
    check_in_date: date
    check_out_date: date
    guest_name: str = ""
    phone: str = ""
    guests: int = Field(default=1, gt=0)

    @model_validator(mode="after")
    def validate_stay(self) -> "CreateBookingRequest":
        if self.check_out_date <= self.check_in_date:
            raise ValueError("check_out_date must be after check_in_date")
        return self


class UpdateBookingRequest(BaseModel):
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    guest_name: Optional[str] = None
    phone: Optional[str] = None
    guests: Optional[int] = Field(default=None, gt=0)


class BookingCreatedResponse(BaseModel):
    booking_id: int = Field(gt=0)


class BookingResponse(BaseModel):
    booking_id: int
    room_id: int
    booked_by: str
    check_in_date: date
    check_out_date: date
    guest_name: str
    phone: str
    guests: int
    created_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(**booking.to_dict())


class MessageResponse(BaseModel):
    message: str


@router.post(
    "/bookings",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    payload: CreateBookingRequest,
    caller_email: str = Depends(require_caller),
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingCreatedResponse:
    try:
        booking_id = service.create_booking(
            caller_email,
            BookingRequest(**payload.model_dump()),
        )
        return BookingCreatedResponse(booking_id=booking_id)
    except AuthorizationError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (ConflictError, InvalidBookingError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking",
        ) from exc


@router.get(
    "/bookings/{email}",
    response_model=list[BookingResponse],
    status_code=status.HTTP_200_OK,
)
def list_bookings(
    email: str,
    caller_email: str = Depends(require_caller),
    service: BookingLifecycleService = Depends(get_booking_service),
) -> list[BookingResponse]:
    try:
        bookings = service.list_bookings_for_caller(caller_email, email)
        return [BookingResponse.from_booking(booking) for booking in bookings]
    except AuthorizationError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load bookings",
        ) from exc


@router.patch(
    "/booking/{booking_id}",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
def update_booking(
    booking_id: int,
    payload: UpdateBookingRequest,
    caller_email: str = Depends(require_caller),
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.update_booking_dates(
            caller_email,
            booking_id,
            payload.model_dump(exclude_unset=True, exclude_none=True),
        )
        return BookingResponse.from_booking(booking)
    except AuthorizationError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidBookingError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update booking",
        ) from exc


@router.delete(
    "/bookings/{booking_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
)
def cancel_booking(
    booking_id: int,
    caller_email: str = Depends(require_caller),
    service: BookingLifecycleService = Depends(get_booking_service),
) -> MessageResponse:
    try:
        service.cancel_booking(caller_email, booking_id)
        return MessageResponse(message="Booking cancelled")
    except AuthorizationError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DeadlineError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel booking",
        ) from exc
