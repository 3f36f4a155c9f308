"""Domain models for rooms, bookings, discounts and reviews."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Union


@dataclass(frozen=True)
class Free:
    """Occupancy state of a room with no outstanding booking."""


@dataclass(frozen=True)
class OccupiedBy:
    booking_id: int


Occupancy = Union[Free, OccupiedBy]


def occupancy_from_column(booking_id: Optional[int]) -> Occupancy:
    if booking_id is None:
        return Free()
    return OccupiedBy(booking_id=int(booking_id))


@dataclass(frozen=True)
class Discount:
    discount_id: int
    title: str
    description: str
    percentage: float
    valid_until: Optional[date] = None

    def to_dict(self) -> dict[str, object]:
        return {
            "discount_id": self.discount_id,
            "title": self.title,
            "description": self.description,
            "percentage": self.percentage,
            "valid_until": self.valid_until,
        }


@dataclass(frozen=True)
class Room:
    room_id: int
    name: str
    description: str
    price_per_night: float
    room_size: str
    images: list[str] = field(default_factory=list)
    occupancy: Occupancy = field(default_factory=Free)
    special_offer_id: Optional[int] = None
    rating: float = 0.0
    review_count: int = 0

    @property
    def is_free(self) -> bool:
        return isinstance(self.occupancy, Free)

    @property
    def booking_status(self) -> str:
        return "available" if self.is_free else "unavailable"


@dataclass(frozen=True)
class RoomView:
    """Caller-facing room projection; the occupying booking id is never exposed."""

    room_id: int
    name: str
    description: str
    price_per_night: float
    room_size: str
    images: list[str]
    rating: float
    review_count: int
    booking_status: str
    special_offer: Optional[Discount] = None

    @classmethod
    def from_room(cls, room: Room, special_offer: Optional[Discount] = None) -> "RoomView":
        return cls(
            room_id=room.room_id,
            name=room.name,
            description=room.description,
            price_per_night=room.price_per_night,
            room_size=room.room_size,
            images=list(room.images),
            rating=room.rating,
            review_count=room.review_count,
            booking_status=room.booking_status,
            special_offer=special_offer,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "room_id": self.room_id,
            "name": self.name,
            "description": self.description,
            "price_per_night": self.price_per_night,
            "room_size": self.room_size,
            "images": list(self.images),
            "rating": self.rating,
            "review_count": self.review_count,
            "booking_status": self.booking_status,
            "special_offer": self.special_offer.to_dict() if self.special_offer else None,
        }


@dataclass(frozen=True)
class Booking:
    booking_id: int
    room_id: int
    booked_by: str
    check_in_date: date
    check_out_date: date
    guest_name: str = ""
    phone: str = ""
    guests: int = 1
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, object]:
        return {
            "booking_id": self.booking_id,
            "room_id": self.room_id,
            "booked_by": self.booked_by,
            "check_in_date": self.check_in_date,
            "check_out_date": self.check_out_date,
            "guest_name": self.guest_name,
            "phone": self.phone,
            "guests": self.guests,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class BookingRequest:
    room_id: int
    booked_by: str
    check_in_date: date
    check_out_date: date
    guest_name: str = ""
    phone: str = ""
    guests: int = 1


@dataclass(frozen=True)
class Reviewer:
    email: str
    name: str = ""
    image: str = ""


@dataclass(frozen=True)
class ReviewRequest:
    booking_id: int
    room_id: int
    user: Reviewer
    rating: float
    comment: str = ""


@dataclass(frozen=True)
class Review:
    review_id: int
    booking_id: int
    room_id: int
    reviewer: Reviewer
    rating: float
    comment: str
    created_at: datetime


@dataclass(frozen=True)
class ReviewSummary:
    """Public review projection without the reviewer's email."""

    review_id: int
    room_id: int
    reviewer_name: str
    reviewer_image: str
    rating: float
    comment: str
    created_at: datetime

    @classmethod
    def from_review(cls, review: Review) -> "ReviewSummary":
        return cls(
            review_id=review.review_id,
            room_id=review.room_id,
            reviewer_name=review.reviewer.name,
            reviewer_image=review.reviewer.image,
            rating=review.rating,
            comment=review.comment,
            created_at=review.created_at,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "review_id": self.review_id,
            "room_id": self.room_id,
            "reviewer_name": self.reviewer_name,
            "reviewer_image": self.reviewer_image,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class RoomFilter:
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    sort: str = "asc"
