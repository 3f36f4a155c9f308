"""Review admission and incremental room rating aggregation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from backend.domain.errors import AuthorizationError, ConflictError
from backend.domain.models import ReviewRequest, ReviewSummary
from backend.domain.policies import incremental_mean
from backend.repository.data_repository import DataRepository, PersistenceError
from backend.services.room_service import RoomAvailabilityStore
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger, log_inconsistency


logger = get_logger(__name__)


class ReviewRatingAggregator:
    """Admits one review per booking and keeps room rating/review_count in step."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        room_store: Optional[RoomAvailabilityStore] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._room_store = room_store or RoomAvailabilityStore(
            repository=self._repository,
            settings=self._settings,
        )

    def submit_review(self, caller_email: str, request: ReviewRequest) -> int:
        if request.user.email != caller_email:
            raise AuthorizationError("Forbidden: reviews can only be posted as yourself")

        try:
            with self._repository.transaction("submit_review") as conn:
                if self._repository.review_exists_for_booking(request.booking_id, conn=conn):
                    logger.warning("Duplicate review rejected | booking_id=%s", request.booking_id)
                    raise ConflictError("already reviewed")
                room = self._room_store.get_room(request.room_id, conn=conn)
                review_id = self._repository.insert_review(
                    request,
                    created_at=datetime.now(timezone.utc),
                    conn=conn,
                )
                new_rating = incremental_mean(room.rating, room.review_count, request.rating)
                self._repository.update_room_rating(
                    room.room_id,
                    rating=new_rating,
                    review_count=room.review_count + 1,
                    conn=conn,
                )
        except PersistenceError:
            log_inconsistency(
                logger,
                "submit_review",
                booking_id=request.booking_id,
                room_id=request.room_id,
            )
            raise

        logger.info(
            "Review admitted | review_id=%s room_id=%s rating=%s new_average=%s",
            review_id,
            request.room_id,
            request.rating,
            new_rating,
        )
        return review_id

    def list_reviews(self, room_id: Optional[int] = None) -> list[ReviewSummary]:
        """Return public review projections, most recent first."""
        return [
            ReviewSummary.from_review(review)
            for review in self._repository.list_reviews(room_id)
        ]
