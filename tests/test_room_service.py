"""Tests for room views, occupancy transitions, listings and discounts."""

from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from backend.domain.errors import ConflictError, NotFoundError
from backend.domain.models import BookingRequest, Free, OccupiedBy, RoomFilter
from backend.repository.data_repository import DataRepository
from backend.services.room_service import RoomAvailabilityStore
from backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, featured_rooms_limit=2)


def _build_store(tmp_path, filename: str) -> tuple[RoomAvailabilityStore, DataRepository]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    return RoomAvailabilityStore(repository=repository, settings=settings), repository


def _insert_booking(repository: DataRepository, room_id: int) -> int:
    return repository.insert_booking(
        BookingRequest(
            room_id=room_id,
            booked_by="guest@example.com",
            check_in_date=date(2026, 6, 1),
            check_out_date=date(2026, 6, 3),
        )
    )


def test_room_view_inlines_discount_and_reports_available(tmp_path):
    store, repository = _build_store(tmp_path, "room_view.db")
    offer_id = repository.insert_discount("Summer", "10% off", 10.0)
    room_id = repository.insert_room("Suite", "Big", 200.0, special_offer_id=offer_id)

    view = store.get_room_view(room_id)

    assert view.booking_status == "available"
    assert view.special_offer is not None
    assert view.special_offer.title == "Summer"
    assert "booking_id" not in view.to_dict()


def test_room_view_of_missing_room_raises_not_found(tmp_path):
    store, _ = _build_store(tmp_path, "room_missing.db")
    with pytest.raises(NotFoundError):
        store.get_room_view(999)


def test_occupy_then_release_round_trip(tmp_path):
    store, repository = _build_store(tmp_path, "occupy.db")
    room_id = repository.insert_room("Double", "", 120.0)
    booking_id = _insert_booking(repository, room_id)

    store.occupy(room_id, booking_id)
    assert repository.get_room(room_id).occupancy == OccupiedBy(booking_id=booking_id)
    assert store.get_room_view(room_id).booking_status == "unavailable"

    store.release(room_id)
    assert repository.get_room(room_id).occupancy == Free()
    assert store.get_room_view(room_id).booking_status == "available"


def test_occupy_rejects_already_occupied_room(tmp_path):
    store, repository = _build_store(tmp_path, "occupy_twice.db")
    room_id = repository.insert_room("Twin", "", 90.0)
    first = _insert_booking(repository, room_id)
    second = _insert_booking(repository, room_id)

    store.occupy(room_id, first)
    with pytest.raises(ConflictError):
        store.occupy(room_id, second)

    assert repository.get_room(room_id).occupancy == OccupiedBy(booking_id=first)


def test_list_rooms_filters_by_price_and_sorts(tmp_path):
    store, repository = _build_store(tmp_path, "list_rooms.db")
    repository.insert_room("Cheap", "", 50.0)
    repository.insert_room("Mid", "", 120.0)
    repository.insert_room("Luxury", "", 300.0)

    ascending = store.list_rooms(RoomFilter(min_price=60.0, max_price=400.0))
    descending = store.list_rooms(RoomFilter(sort="desc"))

    assert [view.name for view in ascending] == ["Mid", "Luxury"]
    assert [view.name for view in descending] == ["Luxury", "Mid", "Cheap"]


def test_featured_rooms_are_top_rated_and_limited(tmp_path):
    store, repository = _build_store(tmp_path, "featured.db")
    repository.insert_room("Low", "", 80.0, rating=3.1, review_count=4)
    repository.insert_room("Top", "", 80.0, rating=4.9, review_count=10)
    repository.insert_room("High", "", 80.0, rating=4.5, review_count=2)

    assert [view.name for view in store.list_featured_rooms()] == ["Top", "High"]


def test_update_room_echoes_applied_patch(tmp_path):
    store, repository = _build_store(tmp_path, "update_room.db")
    room_id = repository.insert_room("Old name", "", 100.0)

    applied = store.update_room(room_id, {"name": "New name", "images": ["a.jpg"]})

    assert applied == {"name": "New name", "images": ["a.jpg"]}
    room = repository.get_room(room_id)
    assert room.name == "New name"
    assert room.images == ["a.jpg"]


def test_update_room_rejects_derived_fields(tmp_path):
    store, repository = _build_store(tmp_path, "update_derived.db")
    room_id = repository.insert_room("Room", "", 100.0)

    with pytest.raises(ValueError):
        store.update_room(room_id, {"rating": 5.0})
    assert repository.get_room(room_id).rating == 0.0


def test_update_missing_room_raises_not_found(tmp_path):
    store, _ = _build_store(tmp_path, "update_missing.db")
    with pytest.raises(NotFoundError):
        store.update_room(42, {"name": "Ghost"})


def test_create_room_with_unknown_discount_raises_not_found(tmp_path):
    store, _ = _build_store(tmp_path, "create_room.db")
    with pytest.raises(NotFoundError):
        store.create_room(name="Room", description="", price_per_night=80.0, special_offer_id=7)
