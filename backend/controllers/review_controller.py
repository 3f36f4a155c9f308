"""HTTP controller layer for reviews."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_review_service, require_caller
from backend.domain.errors import AuthorizationError, ConflictError, NotFoundError
from backend.domain.models import Reviewer, ReviewRequest
from backend.repository.data_repository import PersistenceError
from backend.services.review_service import ReviewRatingAggregator


router = APIRouter(tags=["reviews"])


class ReviewerPayload(BaseModel):
    email: str = Field(min_length=3)
    name: str = ""
    image: str = ""


class SubmitReviewRequest(BaseModel):
    booking_id: int = Field(gt=0)
    room_id: int = Field(gt=0)
    user: ReviewerPayload
    rating: float = Field(ge=0.0, le=5.0)
    comment: str = ""


class ReviewCreatedResponse(BaseModel):
    review_id: int = Field(gt=0)


class ReviewSummaryResponse(BaseModel):
    review_id: int
    room_id: int
    reviewer_name: str
    reviewer_image: str
    rating: float = Field(ge=0.0, le=5.0)
    comment: str
    created_at: datetime


@router.post(
    "/reviews",
    response_model=ReviewCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_review(
    payload: SubmitReviewRequest,
    caller_email: str = Depends(require_caller),
    service: ReviewRatingAggregator = Depends(get_review_service),
) -> ReviewCreatedResponse:
    try:
        review_id = service.submit_review(
            caller_email,
            ReviewRequest(
                booking_id=payload.booking_id,
                room_id=payload.room_id,
                user=Reviewer(**payload.user.model_dump()),
                rating=payload.rating,
                comment=payload.comment,
            ),
        )
        return ReviewCreatedResponse(review_id=review_id)
    except AuthorizationError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit review",
        ) from exc


@router.get(
    "/reviews",
    response_model=list[ReviewSummaryResponse],
    status_code=status.HTTP_200_OK,
)
def list_reviews(
    room_id: Optional[int] = Query(default=None, gt=0),
    service: ReviewRatingAggregator = Depends(get_review_service),
) -> list[ReviewSummaryResponse]:
    """Most recent reviews first, without reviewer emails."""
    try:
        return [
            ReviewSummaryResponse(**summary.to_dict())
            for summary in service.list_reviews(room_id)
        ]
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load reviews",
        ) from exc
