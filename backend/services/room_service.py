"""Room occupancy state, availability projection and catalogue pass-through."""

from __future__ import annotations

import sqlite3
from datetime import date
from typing import Any, Mapping, Optional

from backend.domain.errors import ConflictError, NotFoundError
from backend.domain.models import Discount, Room, RoomFilter, RoomView
from backend.repository.data_repository import ROOM_PATCHABLE_COLUMNS, DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class RoomAvailabilityStore:
    """Owns each room's single-slot occupancy and its caller-facing status."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def get_room(self, room_id: int, conn: Optional[sqlite3.Connection] = None) -> Room:
        room = self._repository.get_room(room_id, conn=conn)
        if room is None:
            raise NotFoundError(f"Room {room_id} not found")
        return room

    def _view(self, room: Room) -> RoomView:
        special_offer = None
        if room.special_offer_id is not None:
            special_offer = self._repository.get_discount(room.special_offer_id)
        return RoomView.from_room(room, special_offer)

    def get_room_view(self, room_id: int) -> RoomView:
        return self._view(self.get_room(room_id))

    def occupy(
        self,
        room_id: int,
        booking_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        """Mark the room as held by ``booking_id`` only if it is currently free."""
        if not self._repository.set_room_occupancy_if_free(room_id, booking_id, conn=conn):
            logger.warning(
                "Occupancy write rejected | room_id=%s booking_id=%s",
                room_id,
                booking_id,
            )
            raise ConflictError("room already booked")

    def release(self, room_id: int, conn: Optional[sqlite3.Connection] = None) -> None:
        if not self._repository.clear_room_occupancy(room_id, conn=conn):
            raise NotFoundError(f"Room {room_id} not found")

    def list_rooms(self, room_filter: Optional[RoomFilter] = None) -> list[RoomView]:
        return [self._view(room) for room in self._repository.list_rooms(room_filter)]

    def list_featured_rooms(self, limit: Optional[int] = None) -> list[RoomView]:
        resolved_limit = limit or self._settings.featured_rooms_limit
        return [
            self._view(room)
            for room in self._repository.list_top_rated_rooms(resolved_limit)
        ]

    def create_room(
        self,
        *,
        name: str,
        description: str,
        price_per_night: float,
        room_size: str = "",
        images: Optional[list[str]] = None,
        special_offer_id: Optional[int] = None,
    ) -> int:
        if special_offer_id is not None:
            self.get_discount(special_offer_id)
        room_id = self._repository.insert_room(
            name=name,
            description=description,
            price_per_night=price_per_night,
            room_size=room_size,
            images=images,
            special_offer_id=special_offer_id,
        )
        logger.info("Room created | room_id=%s", room_id)
        return room_id

    def update_room(self, room_id: int, patch: Mapping[str, Any]) -> dict[str, Any]:
        """Apply descriptive fields and echo what was written.

        Occupancy and rating fields are owned by the booking and review flows and
        are rejected here.
        """
        applied = {key: value for key, value in patch.items() if key in ROOM_PATCHABLE_COLUMNS}
        rejected = set(patch) - set(applied)
        if rejected:
            raise ValueError(f"Room fields are not patchable: {sorted(rejected)}")
        if applied.get("special_offer_id") is not None:
            self.get_discount(int(applied["special_offer_id"]))
        if not self._repository.update_room_fields(room_id, applied):
            raise NotFoundError(f"Room {room_id} not found")
        return applied

    def create_discount(
        self,
        *,
        title: str,
        description: str,
        percentage: float,
        valid_until: Optional[date] = None,
    ) -> int:
        return self._repository.insert_discount(
            title=title,
            description=description,
            percentage=percentage,
            valid_until=valid_until,
        )

    def get_discount(self, discount_id: int) -> Discount:
        discount = self._repository.get_discount(discount_id)
        if discount is None:
            raise NotFoundError(f"Discount {discount_id} not found")
        return discount

    def list_discounts(self) -> list[Discount]:
        return self._repository.list_discounts()
