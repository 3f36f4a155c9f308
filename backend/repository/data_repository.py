"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

from backend.domain.errors import ConflictError
from backend.domain.models import (
    Booking,
    BookingRequest,
    Discount,
    Review,
    Reviewer,
    ReviewRequest,
    Room,
    RoomFilter,
    occupancy_from_column,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

ROOM_PATCHABLE_COLUMNS = frozenset(
    {"name", "description", "price_per_night", "room_size", "images", "special_offer_id"}
)
BOOKING_PATCHABLE_COLUMNS = frozenset(
    {"check_in_date", "check_out_date", "guest_name", "phone", "guests"}
)


class PersistenceError(RuntimeError):
    """Raised when an underlying storage operation fails."""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_column(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value))
    return value


def _room_from_row(row: sqlite3.Row) -> Room:
    return Room(
        room_id=int(row["id"]),
        name=str(row["name"]),
        description=str(row["description"]),
        price_per_night=float(row["price_per_night"]),
        room_size=str(row["room_size"]),
        images=list(json.loads(row["images"] or "[]")),
        occupancy=occupancy_from_column(row["booking_id"]),
        special_offer_id=row["special_offer_id"],
        rating=float(row["rating"]),
        review_count=int(row["review_count"]),
    )


def _discount_from_row(row: sqlite3.Row) -> Discount:
    valid_until = row["valid_until"]
    return Discount(
        discount_id=int(row["id"]),
        title=str(row["title"]),
        description=str(row["description"]),
        percentage=float(row["percentage"]),
        valid_until=date.fromisoformat(valid_until) if valid_until else None,
    )


def _booking_from_row(row: sqlite3.Row) -> Booking:
    return Booking(
        booking_id=int(row["id"]),
        room_id=int(row["room_id"]),
        booked_by=str(row["booked_by"]),
        check_in_date=date.fromisoformat(row["check_in_date"]),
        check_out_date=date.fromisoformat(row["check_out_date"]),
        guest_name=str(row["guest_name"]),
        phone=str(row["phone"]),
        guests=int(row["guests"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _review_from_row(row: sqlite3.Row) -> Review:
    return Review(
        review_id=int(row["id"]),
        booking_id=int(row["booking_id"]),
        room_id=int(row["room_id"]),
        reviewer=Reviewer(
            email=str(row["reviewer_email"]),
            name=str(row["reviewer_name"]),
            image=str(row["reviewer_image"]),
        ),
        rating=float(row["rating"]),
        comment=str(row["comment"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic.

    Every public method accepts an optional ``conn``. When omitted, the call runs
    in its own short-lived connection; when supplied, it joins the caller's
    transaction opened with :meth:`transaction`.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.database_timeout_seconds,
            isolation_level=None,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def transaction(self, operation: str = "write") -> Iterator[sqlite3.Connection]:
        """Run a block inside one ``BEGIN IMMEDIATE`` transaction.

        Commits on success and rolls back on any exception. ``sqlite3.Error`` is
        re-raised as :class:`PersistenceError`; domain errors propagate as-is.
        """
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            logger.exception("Database connection failed | operation=%s", operation)
            raise PersistenceError("Database is unavailable") from exc
        try:
            conn.execute("BEGIN IMMEDIATE;")
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.exception("Transaction rolled back | operation=%s", operation)
            raise PersistenceError(f"Storage operation '{operation}' failed") from exc
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _reading(self, conn: Optional[sqlite3.Connection]) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        try:
            own = self._connect()
        except sqlite3.Error as exc:
            logger.exception("Database connection failed | operation=read")
            raise PersistenceError("Database is unavailable") from exc
        try:
            yield own
        except sqlite3.Error as exc:
            logger.exception("Read failed")
            raise PersistenceError("Storage read failed") from exc
        finally:
            own.close()

    @contextmanager
    def _writing(
        self,
        conn: Optional[sqlite3.Connection],
        operation: str,
    ) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with self.transaction(operation) as own:
            yield own

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        with self.transaction("initialize_database") as conn:
            cursor = conn.cursor()

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS Discounts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    percentage REAL NOT NULL CHECK (percentage > 0 AND percentage <= 100),
                    valid_until TEXT
                );
                """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS Rooms (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    price_per_night REAL NOT NULL CHECK (price_per_night >= 0),
                    room_size TEXT NOT NULL DEFAULT '',
                    images TEXT NOT NULL DEFAULT '[]',
                    special_offer_id INTEGER
                        REFERENCES Discounts(id) ON DELETE SET NULL,
                    booking_id INTEGER
                        REFERENCES Bookings(id) DEFERRABLE INITIALLY DEFERRED,
                    rating REAL NOT NULL DEFAULT 0 CHECK (rating >= 0 AND rating <= 5),
                    review_count INTEGER NOT NULL DEFAULT 0 CHECK (review_count >= 0),
                    created_at TEXT NOT NULL
                );
                """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS Bookings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    room_id INTEGER NOT NULL
                        REFERENCES Rooms(id) DEFERRABLE INITIALLY DEFERRED,
                    booked_by TEXT NOT NULL,
                    check_in_date TEXT NOT NULL,
                    check_out_date TEXT NOT NULL,
                    guest_name TEXT NOT NULL DEFAULT '',
                    phone TEXT NOT NULL DEFAULT '',
                    guests INTEGER NOT NULL DEFAULT 1 CHECK (guests > 0),
                    created_at TEXT NOT NULL
                );
                """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS Reviews (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    booking_id INTEGER NOT NULL UNIQUE,
                    room_id INTEGER NOT NULL REFERENCES Rooms(id),
                    reviewer_email TEXT NOT NULL,
                    reviewer_name TEXT NOT NULL DEFAULT '',
                    reviewer_image TEXT NOT NULL DEFAULT '',
                    rating REAL NOT NULL CHECK (rating >= 0 AND rating <= 5),
                    comment TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL
                );
                """
            )

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_bookings_booked_by ON Bookings(booked_by);"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_reviews_room_created ON Reviews(room_id, created_at);"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_rooms_price ON Rooms(price_per_night);"
            )
        logger.info("Database initialized at %s", self._db_path)

    def seed_demo_data_if_empty(self) -> None:
        """Insert a small demo catalogue only when the Rooms table is empty."""
        with self.transaction("seed_demo_data") as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
            if int(cursor.fetchone()["count"]) > 0:
                logger.info("Rooms already present; skipping demo seed")
                return

            offer_id = self.insert_discount(
                title="Early bird",
                description="Book two weeks ahead and save.",
                percentage=15.0,
                conn=conn,
            )
            rooms = [
                ("Garden Suite", "Ground floor suite opening onto the garden.", 180.0, "45 m2", offer_id),
                ("Ocean View Double", "Double room with a sea-facing balcony.", 150.0, "32 m2", None),
                ("Standard Twin", "Two single beds, shared terrace.", 95.0, "24 m2", None),
                ("Attic Single", "Quiet single room under the roof.", 70.0, "16 m2", None),
            ]
            for name, description, price, size, special_offer_id in rooms:
                self.insert_room(
                    name=name,
                    description=description,
                    price_per_night=price,
                    room_size=size,
                    images=[],
                    special_offer_id=special_offer_id,
                    conn=conn,
                )
        logger.info("Demo seed completed with %s rooms", len(rooms))

    # --- Discounts ---

    def insert_discount(
        self,
        title: str,
        description: str,
        percentage: float,
        valid_until: Optional[date] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        with self._writing(conn, "insert_discount") as active:
            cursor = active.execute(
                """
                INSERT INTO Discounts (title, description, percentage, valid_until)
                VALUES (?, ?, ?, ?);
                """,
                (title, description, percentage, _to_column(valid_until)),
            )
            return int(cursor.lastrowid)

    def get_discount(
        self,
        discount_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Discount]:
        with self._reading(conn) as active:
            row = active.execute(
                "SELECT * FROM Discounts WHERE id = ?;",
                (discount_id,),
            ).fetchone()
            return _discount_from_row(row) if row is not None else None

    def list_discounts(self, conn: Optional[sqlite3.Connection] = None) -> list[Discount]:
        with self._reading(conn) as active:
            rows = active.execute("SELECT * FROM Discounts ORDER BY id ASC;").fetchall()
            return [_discount_from_row(row) for row in rows]

    # --- Rooms ---

    def insert_room(
        self,
        name: str,
        description: str,
        price_per_night: float,
        room_size: str = "",
        images: Optional[list[str]] = None,
        special_offer_id: Optional[int] = None,
        rating: float = 0.0,
        review_count: int = 0,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        with self._writing(conn, "insert_room") as active:
            cursor = active.execute(
                """
                INSERT INTO Rooms (
                    name,
                    description,
                    price_per_night,
                    room_size,
                    images,
                    special_offer_id,
                    rating,
                    review_count,
                    created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    name,
                    description,
                    price_per_night,
                    room_size,
                    json.dumps(images or []),
                    special_offer_id,
                    rating,
                    review_count,
                    _utc_now(),
                ),
            )
            return int(cursor.lastrowid)

    def get_room(
        self,
        room_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Room]:
        with self._reading(conn) as active:
            row = active.execute("SELECT * FROM Rooms WHERE id = ?;", (room_id,)).fetchone()
            return _room_from_row(row) if row is not None else None

    def list_rooms(
        self,
        room_filter: Optional[RoomFilter] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Room]:
        room_filter = room_filter or RoomFilter()
        clauses: list[str] = []
        params: list[float] = []
        if room_filter.min_price is not None:
            clauses.append("price_per_night >= ?")
            params.append(room_filter.min_price)
        if room_filter.max_price is not None:
            clauses.append("price_per_night <= ?")
            params.append(room_filter.max_price)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        direction = "DESC" if room_filter.sort == "desc" else "ASC"
        with self._reading(conn) as active:
            rows = active.execute(
                f"SELECT * FROM Rooms {where} ORDER BY price_per_night {direction}, id ASC;",
                tuple(params),
            ).fetchall()
            return [_room_from_row(row) for row in rows]

    def list_top_rated_rooms(
        self,
        limit: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Room]:
        with self._reading(conn) as active:
            rows = active.execute(
                """
                SELECT * FROM Rooms
                ORDER BY rating DESC, review_count DESC, id ASC
                LIMIT ?;
                """,
                (limit,),
            ).fetchall()
            return [_room_from_row(row) for row in rows]

    def update_room_fields(
        self,
        room_id: int,
        fields: Mapping[str, Any],
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Apply a partial update to descriptive room columns only."""
        unknown = set(fields) - ROOM_PATCHABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unsupported room fields: {sorted(unknown)}")
        if not fields:
            return self.get_room(room_id, conn=conn) is not None
        assignments = ", ".join(f"{column} = ?" for column in fields)
        values = tuple(_to_column(value) for value in fields.values())
        with self._writing(conn, "update_room_fields") as active:
            cursor = active.execute(
                f"UPDATE Rooms SET {assignments} WHERE id = ?;",
                (*values, room_id),
            )
            return cursor.rowcount == 1

    def set_room_occupancy_if_free(
        self,
        room_id: int,
        booking_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Compare-and-set occupancy; returns False when the room is already taken."""
        with self._writing(conn, "occupy_room") as active:
            cursor = active.execute(
                "UPDATE Rooms SET booking_id = ? WHERE id = ? AND booking_id IS NULL;",
                (booking_id, room_id),
            )
            return cursor.rowcount == 1

    def clear_room_occupancy(
        self,
        room_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        with self._writing(conn, "release_room") as active:
            cursor = active.execute(
                "UPDATE Rooms SET booking_id = NULL WHERE id = ?;",
                (room_id,),
            )
            return cursor.rowcount == 1

    def update_room_rating(
        self,
        room_id: int,
        rating: float,
        review_count: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        with self._writing(conn, "update_room_rating") as active:
            active.execute(
                "UPDATE Rooms SET rating = ?, review_count = ? WHERE id = ?;",
                (rating, review_count, room_id),
            )

    # --- Bookings ---

    def insert_booking(
        self,
        request: BookingRequest,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        with self._writing(conn, "insert_booking") as active:
            cursor = active.execute(
                """
                INSERT INTO Bookings (
                    room_id,
                    booked_by,
                    check_in_date,
                    check_out_date,
                    guest_name,
                    phone,
                    guests,
                    created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    request.room_id,
                    request.booked_by,
                    request.check_in_date.isoformat(),
                    request.check_out_date.isoformat(),
                    request.guest_name,
                    request.phone,
                    request.guests,
                    _utc_now(),
                ),
            )
            return int(cursor.lastrowid)

    def get_booking(
        self,
        booking_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Booking]:
        with self._reading(conn) as active:
            row = active.execute(
                "SELECT * FROM Bookings WHERE id = ?;",
                (booking_id,),
            ).fetchone()
            return _booking_from_row(row) if row is not None else None

    def list_bookings_by_owner(
        self,
        booked_by: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Booking]:
        with self._reading(conn) as active:
            rows = active.execute(
                """
                SELECT * FROM Bookings
                WHERE booked_by = ?
                ORDER BY check_in_date ASC, id ASC;
                """,
                (booked_by,),
            ).fetchall()
            return [_booking_from_row(row) for row in rows]

    def update_booking_fields(
        self,
        booking_id: int,
        fields: Mapping[str, Any],
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        unknown = set(fields) - BOOKING_PATCHABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unsupported booking fields: {sorted(unknown)}")
        if not fields:
            return self.get_booking(booking_id, conn=conn) is not None
        assignments = ", ".join(f"{column} = ?" for column in fields)
        values = tuple(_to_column(value) for value in fields.values())
        with self._writing(conn, "update_booking_fields") as active:
            cursor = active.execute(
                f"UPDATE Bookings SET {assignments} WHERE id = ?;",
                (*values, booking_id),
            )
            return cursor.rowcount == 1

    def delete_booking(
        self,
        booking_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        with self._writing(conn, "delete_booking") as active:
            cursor = active.execute("DELETE FROM Bookings WHERE id = ?;", (booking_id,))
            return cursor.rowcount == 1

    # --- Reviews ---

    def review_exists_for_booking(
        self,
        booking_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        with self._reading(conn) as active:
            row = active.execute(
                "SELECT 1 FROM Reviews WHERE booking_id = ? LIMIT 1;",
                (booking_id,),
            ).fetchone()
            return row is not None

    def insert_review(
        self,
        request: ReviewRequest,
        created_at: datetime,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        with self._writing(conn, "insert_review") as active:
            try:
                cursor = active.execute(
                    """
                    INSERT INTO Reviews (
                        booking_id,
                        room_id,
                        reviewer_email,
                        reviewer_name,
                        reviewer_image,
                        rating,
                        comment,
                        created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        request.booking_id,
                        request.room_id,
                        request.user.email,
                        request.user.name,
                        request.user.image,
                        request.rating,
                        request.comment,
                        created_at.isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                if "Reviews.booking_id" in str(exc):
                    raise ConflictError("already reviewed") from exc
                raise
            return int(cursor.lastrowid)

    def list_reviews(
        self,
        room_id: Optional[int] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Review]:
        where = "WHERE room_id = ?" if room_id is not None else ""
        params = (room_id,) if room_id is not None else ()
        with self._reading(conn) as active:
            rows = active.execute(
                f"SELECT * FROM Reviews {where} ORDER BY created_at DESC, id DESC;",
                params,
            ).fetchall()
            return [_review_from_row(row) for row in rows]
