"""Tests for booking creation, owner-gated updates and deadline-gated cancellation."""

from __future__ import annotations

import sqlite3
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from dataclasses import replace
from datetime import date, timedelta

import pytest

from backend.domain.errors import (
    AuthorizationError,
    ConflictError,
    DeadlineError,
    InvalidBookingError,
    NotFoundError,
)
from backend.domain.models import BookingRequest, Free, OccupiedBy
from backend.repository.data_repository import DataRepository, PersistenceError
from backend.services.booking_service import BookingLifecycleService
from backend.utils.config import get_settings


TODAY = date(2026, 5, 1)
OWNER = "a@x.com"
OTHER = "b@x.com"


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        cancellation_window_days=1,
        database_timeout_seconds=10.0,
    )


def _build_service(tmp_path, filename: str) -> tuple[BookingLifecycleService, DataRepository]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    service = BookingLifecycleService(repository=repository, settings=settings, today=lambda: TODAY)
    return service, repository


def _count_bookings(repository: DataRepository, room_id: int) -> int:
    with closing(sqlite3.connect(repository.database_path)) as conn:
        row = conn.execute("SELECT COUNT(*) FROM Bookings WHERE room_id = ?;", (room_id,)).fetchone()
    return int(row[0])


def _slow_booking_writes(repository: DataRepository, monkeypatch, delay_seconds: float = 0.3) -> None:
    original = repository.update_booking_fields

    def delayed_update(*args, **kwargs):
        time.sleep(delay_seconds)
        return original(*args, **kwargs)

    monkeypatch.setattr(repository, "update_booking_fields", delayed_update)


def _request(room_id: int, booked_by: str = OWNER, check_in: date = date(2026, 5, 20)) -> BookingRequest:
    return BookingRequest(
        room_id=room_id,
        booked_by=booked_by,
        check_in_date=check_in,
        check_out_date=check_in + timedelta(days=2),
        guest_name="Guest",
        phone="+100000000",
        guests=2,
    )


def test_create_booking_occupies_room(tmp_path):
    service, repository = _build_service(tmp_path, "create.db")
    room_id = repository.insert_room("Suite", "", 150.0)

    booking_id = service.create_booking(OWNER, _request(room_id))

    assert repository.get_booking(booking_id).booked_by == OWNER
    assert repository.get_room(room_id).occupancy == OccupiedBy(booking_id=booking_id)


def test_create_booking_for_someone_else_is_forbidden(tmp_path):
    service, repository = _build_service(tmp_path, "create_forbidden.db")
    room_id = repository.insert_room("Suite", "", 150.0)

    with pytest.raises(AuthorizationError):
        service.create_booking(OTHER, _request(room_id, booked_by=OWNER))

    assert _count_bookings(repository, room_id) == 0
    assert repository.get_room(room_id).is_free


def test_second_booking_on_occupied_room_conflicts_without_side_effects(tmp_path):
    service, repository = _build_service(tmp_path, "conflict.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    first_id = service.create_booking(OWNER, _request(room_id))

    with pytest.raises(ConflictError, match="room already booked"):
        service.create_booking(OTHER, _request(room_id, booked_by=OTHER))

    assert _count_bookings(repository, room_id) == 1
    assert repository.get_room(room_id).occupancy == OccupiedBy(booking_id=first_id)


def test_create_booking_for_missing_room_raises_not_found(tmp_path):
    service, repository = _build_service(tmp_path, "missing_room.db")
    with pytest.raises(NotFoundError):
        service.create_booking(OWNER, _request(404))
    assert repository.list_bookings_by_owner(OWNER) == []


def test_create_booking_rejects_inverted_dates(tmp_path):
    service, repository = _build_service(tmp_path, "inverted.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    request = replace(_request(room_id), check_out_date=date(2026, 5, 19))

    with pytest.raises(InvalidBookingError):
        service.create_booking(OWNER, request)


def test_failed_occupancy_write_rolls_back_booking_insert(tmp_path, monkeypatch, caplog):
    service, repository = _build_service(tmp_path, "rollback.db")
    room_id = repository.insert_room("Suite", "", 150.0)

    def failing_occupy(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(repository, "set_room_occupancy_if_free", failing_occupy)

    with pytest.raises(PersistenceError):
        service.create_booking(OWNER, _request(room_id))

    assert _count_bookings(repository, room_id) == 0
    assert repository.get_room(room_id).occupancy == Free()
    assert "Inconsistent write aborted | operation=create_booking" in caplog.text


def test_concurrent_bookings_on_one_room_admit_exactly_one(tmp_path):
    service, repository = _build_service(tmp_path, "race.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    callers = [f"guest{index}@x.com" for index in range(8)]

    def attempt(email: str) -> str:
        try:
            service.create_booking(email, _request(room_id, booked_by=email))
            return "booked"
        except ConflictError:
            return "conflict"

    with ThreadPoolExecutor(max_workers=len(callers)) as pool:
        outcomes = list(pool.map(attempt, callers))

    assert outcomes.count("booked") == 1
    assert outcomes.count("conflict") == len(callers) - 1
    assert _count_bookings(repository, room_id) == 1
    assert not repository.get_room(room_id).is_free


def test_list_bookings_only_for_self(tmp_path):
    service, repository = _build_service(tmp_path, "list.db")
    first_room = repository.insert_room("One", "", 100.0)
    second_room = repository.insert_room("Two", "", 100.0)
    service.create_booking(OWNER, _request(second_room, check_in=date(2026, 6, 10)))
    service.create_booking(OWNER, _request(first_room, check_in=date(2026, 6, 1)))

    bookings = service.list_bookings_for_caller(OWNER, OWNER)

    assert [booking.room_id for booking in bookings] == [first_room, second_room]
    with pytest.raises(AuthorizationError):
        service.list_bookings_for_caller(OTHER, OWNER)


def test_update_booking_dates_by_owner(tmp_path):
    service, repository = _build_service(tmp_path, "update.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    booking_id = service.create_booking(OWNER, _request(room_id))

    updated = service.update_booking_dates(
        OWNER,
        booking_id,
        {"check_in_date": date(2026, 5, 25), "check_out_date": date(2026, 5, 28)},
    )

    assert updated.check_in_date == date(2026, 5, 25)
    stored = repository.get_booking(booking_id)
    assert stored.check_out_date == date(2026, 5, 28)
    assert stored.guest_name == "Guest"


def test_update_booking_by_non_owner_changes_nothing(tmp_path):
    service, repository = _build_service(tmp_path, "update_forbidden.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    booking_id = service.create_booking(OWNER, _request(room_id))

    with pytest.raises(AuthorizationError):
        service.update_booking_dates(OTHER, booking_id, {"check_in_date": date(2026, 5, 22)})

    assert repository.get_booking(booking_id).check_in_date == date(2026, 5, 20)


def test_update_booking_rejects_check_out_before_check_in(tmp_path):
    service, repository = _build_service(tmp_path, "update_invalid.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    booking_id = service.create_booking(OWNER, _request(room_id))

    with pytest.raises(InvalidBookingError):
        service.update_booking_dates(OWNER, booking_id, {"check_out_date": date(2026, 5, 10)})


def test_concurrent_date_patches_keep_check_out_after_check_in(tmp_path, monkeypatch):
    service, repository = _build_service(tmp_path, "update_race.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    booking_id = service.create_booking(OWNER, _request(room_id))
    _slow_booking_writes(repository, monkeypatch)
    patches = [{"check_in_date": date(2026, 5, 21)}, {"check_out_date": date(2026, 5, 21)}]

    def attempt(patch: dict) -> str:
        try:
            service.update_booking_dates(OWNER, booking_id, patch)
            return "updated"
        except InvalidBookingError:
            return "rejected"

    with ThreadPoolExecutor(max_workers=len(patches)) as pool:
        outcomes = list(pool.map(attempt, patches))

    assert sorted(outcomes) == ["rejected", "updated"]
    stored = repository.get_booking(booking_id)
    assert stored.check_out_date > stored.check_in_date


def test_cancel_racing_a_date_patch_never_frees_a_late_booking(tmp_path, monkeypatch):
    service, repository = _build_service(tmp_path, "cancel_race.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    booking_id = service.create_booking(OWNER, _request(room_id))
    _slow_booking_writes(repository, monkeypatch)

    def move_check_in_forward() -> str:
        try:
            service.update_booking_dates(OWNER, booking_id, {"check_in_date": date(2026, 5, 2)})
            return "updated"
        except NotFoundError:
            return "gone"

    def cancel() -> str:
        try:
            service.cancel_booking(OWNER, booking_id)
            return "cancelled"
        except DeadlineError:
            return "too late"

    with ThreadPoolExecutor(max_workers=2) as pool:
        patched = pool.submit(move_check_in_forward)
        cancelled = pool.submit(cancel)
        outcome = (patched.result(), cancelled.result())

    assert outcome in {("updated", "too late"), ("gone", "cancelled")}
    stored = repository.get_booking(booking_id)
    if stored is None:
        assert repository.get_room(room_id).occupancy == Free()
    else:
        assert stored.check_in_date == date(2026, 5, 2)
        assert repository.get_room(room_id).occupancy == OccupiedBy(booking_id=booking_id)


def test_non_owner_patch_with_unknown_field_is_forbidden(tmp_path):
    service, repository = _build_service(tmp_path, "update_unknown_field.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    booking_id = service.create_booking(OWNER, _request(room_id))

    with pytest.raises(AuthorizationError):
        service.update_booking_dates(OTHER, booking_id, {"room_id": 99})
    with pytest.raises(InvalidBookingError):
        service.update_booking_dates(OWNER, booking_id, {"room_id": 99})


def test_update_missing_booking_raises_not_found(tmp_path):
    service, _ = _build_service(tmp_path, "update_missing.db")
    with pytest.raises(NotFoundError):
        service.update_booking_dates(OWNER, 77, {"guests": 3})


def test_cancel_before_deadline_frees_room(tmp_path):
    service, repository = _build_service(tmp_path, "cancel.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    booking_id = service.create_booking(OWNER, _request(room_id, check_in=date(2026, 5, 3)))

    service.cancel_booking(OWNER, booking_id)

    assert repository.get_booking(booking_id) is None
    assert repository.get_room(room_id).occupancy == Free()


def test_cancel_after_deadline_keeps_booking_and_occupancy(tmp_path):
    service, repository = _build_service(tmp_path, "cancel_late.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    booking_id = service.create_booking(OWNER, _request(room_id, check_in=date(2026, 5, 2)))

    with pytest.raises(DeadlineError):
        service.cancel_booking(OWNER, booking_id)

    assert repository.get_booking(booking_id) is not None
    assert repository.get_room(room_id).occupancy == OccupiedBy(booking_id=booking_id)


def test_cancel_by_non_owner_is_forbidden(tmp_path):
    service, repository = _build_service(tmp_path, "cancel_forbidden.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    booking_id = service.create_booking(OWNER, _request(room_id))

    with pytest.raises(AuthorizationError):
        service.cancel_booking(OTHER, booking_id)

    assert repository.get_room(room_id).occupancy == OccupiedBy(booking_id=booking_id)


def test_failed_release_keeps_booking(tmp_path, monkeypatch):
    service, repository = _build_service(tmp_path, "cancel_rollback.db")
    room_id = repository.insert_room("Suite", "", 150.0)
    booking_id = service.create_booking(OWNER, _request(room_id))

    def failing_release(*args, **kwargs):
        raise sqlite3.OperationalError("database disk image is malformed")

    monkeypatch.setattr(repository, "clear_room_occupancy", failing_release)

    with pytest.raises(PersistenceError):
        service.cancel_booking(OWNER, booking_id)

    assert repository.get_booking(booking_id) is not None
    assert repository.get_room(room_id).occupancy == OccupiedBy(booking_id=booking_id)
