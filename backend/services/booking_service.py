"""Booking lifecycle: creation, owner-gated updates and deadline-gated cancellation."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Any, Callable, Mapping, Optional

from backend.domain.errors import (
    AuthorizationError,
    ConflictError,
    DeadlineError,
    InvalidBookingError,
    NotFoundError,
)
from backend.domain.models import Booking, BookingRequest
from backend.domain.policies import cancellation_deadline, is_cancellation_open, validate_stay_dates
from backend.repository.data_repository import (
    BOOKING_PATCHABLE_COLUMNS,
    DataRepository,
    PersistenceError,
)
from backend.services.room_service import RoomAvailabilityStore
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger, log_inconsistency


logger = get_logger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class BookingLifecycleService:
    """Enforces per-room exclusivity and per-caller ownership of bookings.

    Every check-then-write (booking row plus room occupancy, or an owner
    gated update) runs in a single repository transaction, so a failure
    between the steps rolls both back.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        room_store: Optional[RoomAvailabilityStore] = None,
        settings: Optional[Settings] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._room_store = room_store or RoomAvailabilityStore(
            repository=self._repository,
            settings=self._settings,
        )
        self._today = today or _utc_today

    @staticmethod
    def _ensure_owner(caller_email: str, owner_email: str) -> None:
        if caller_email != owner_email:
            logger.warning("Ownership check failed | caller=%s owner=%s", caller_email, owner_email)
            raise AuthorizationError("Forbidden: caller does not own this booking")

    def _get_owned_booking(
        self,
        caller_email: str,
        booking_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Booking:
        booking = self._repository.get_booking(booking_id, conn=conn)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        self._ensure_owner(caller_email, booking.booked_by)
        return booking

    def create_booking(self, caller_email: str, request: BookingRequest) -> int:
        self._ensure_owner(caller_email, request.booked_by)
        try:
            validate_stay_dates(request.check_in_date, request.check_out_date)
        except ValueError as exc:
            raise InvalidBookingError(str(exc)) from exc

        try:
            with self._repository.transaction("create_booking") as conn:
                room = self._room_store.get_room(request.room_id, conn=conn)
                if not room.is_free:
                    logger.warning("Booking rejected, room occupied | room_id=%s", room.room_id)
                    raise ConflictError("room already booked")
                booking_id = self._repository.insert_booking(request, conn=conn)
                self._room_store.occupy(room.room_id, booking_id, conn=conn)
        except PersistenceError:
            log_inconsistency(
                logger,
                "create_booking",
                room_id=request.room_id,
                booked_by=request.booked_by,
            )
            raise

        logger.info(
            "Booking created | booking_id=%s room_id=%s booked_by=%s",
            booking_id,
            request.room_id,
            request.booked_by,
        )
        return booking_id

    def list_bookings_for_caller(self, caller_email: str, target_email: str) -> list[Booking]:
        if caller_email != target_email:
            raise AuthorizationError("Forbidden: bookings of another user")
        return self._repository.list_bookings_by_owner(target_email)

    def update_booking_dates(
        self,
        caller_email: str,
        booking_id: int,
        patch: Mapping[str, Any],
    ) -> Booking:
        """Apply a partial update of dates or guest details for the owner.

        The read, the ownership and date checks and the write share one
        transaction.
        """
        try:
            with self._repository.transaction("update_booking") as conn:
                booking = self._get_owned_booking(caller_email, booking_id, conn=conn)
                unknown = set(patch) - BOOKING_PATCHABLE_COLUMNS
                if unknown:
                    raise InvalidBookingError(f"Booking fields are not patchable: {sorted(unknown)}")

                updated = replace(booking, **dict(patch))
                try:
                    validate_stay_dates(updated.check_in_date, updated.check_out_date)
                except ValueError as exc:
                    raise InvalidBookingError(str(exc)) from exc

                if not self._repository.update_booking_fields(booking_id, patch, conn=conn):
                    raise NotFoundError(f"Booking {booking_id} not found")
        except PersistenceError:
            log_inconsistency(logger, "update_booking", booking_id=booking_id)
            raise

        logger.info("Booking updated | booking_id=%s fields=%s", booking_id, sorted(patch))
        return updated

    def cancel_booking(self, caller_email: str, booking_id: int) -> None:
        window_days = self._settings.cancellation_window_days
        try:
            with self._repository.transaction("cancel_booking") as conn:
                booking = self._get_owned_booking(caller_email, booking_id, conn=conn)
                if not is_cancellation_open(booking.check_in_date, self._today(), window_days):
                    deadline = cancellation_deadline(booking.check_in_date, window_days)
                    raise DeadlineError(
                        "Cancellation deadline passed: bookings can be cancelled "
                        f"until {deadline.isoformat()}"
                    )
                if not self._repository.delete_booking(booking_id, conn=conn):
                    raise NotFoundError(f"Booking {booking_id} not found")
                self._room_store.release(booking.room_id, conn=conn)
        except PersistenceError:
            log_inconsistency(logger, "cancel_booking", booking_id=booking_id)
            raise

        logger.info("Booking cancelled | booking_id=%s room_id=%s", booking_id, booking.room_id)
