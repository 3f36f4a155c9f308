"""Domain error taxonomy shared by the booking, room and review services."""

from __future__ import annotations


class BookingDomainError(Exception):
    """Base class for rule violations detected before any write is committed."""


class AuthorizationError(BookingDomainError):
    """Raised when the caller is not the owner of the resource."""


class NotFoundError(BookingDomainError):
    """Raised when a referenced room, booking or discount does not exist."""


class ConflictError(BookingDomainError):
    """Raised when a room is already occupied or a booking was already reviewed."""


class DeadlineError(BookingDomainError):
    """Raised when a booking is cancelled after the cancellation window closed."""


class InvalidBookingError(BookingDomainError):
    """Raised when booking dates are inconsistent."""
