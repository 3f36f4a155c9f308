"""HTTP controller layer for rooms and discounts."""

from __future__ import annotations

from datetime import date
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_room_store, require_caller
from backend.domain.errors import NotFoundError
from backend.domain.models import Discount, RoomFilter, RoomView
from backend.repository.data_repository import PersistenceError
from backend.services.room_service import RoomAvailabilityStore


router = APIRouter(tags=["rooms"])


class DiscountResponse(BaseModel):
    discount_id: int
    title: str
    description: str
    percentage: float = Field(gt=0.0, le=100.0)
    valid_until: Optional[date] = None

    @classmethod
    def from_discount(cls, discount: Discount) -> "DiscountResponse":
        return cls(**discount.to_dict())


class RoomViewResponse(BaseModel):
    room_id: int
    name: str
    description: str
    price_per_night: float
    room_size: str
    images: list[str]
    rating: float = Field(ge=0.0, le=5.0)
    review_count: int = Field(ge=0)
    booking_status: Literal["available", "unavailable"]
    special_offer: Optional[DiscountResponse] = None

    @classmethod
    def from_view(cls, view: RoomView) -> "RoomViewResponse":
        payload = view.to_dict()
        payload["special_offer"] = (
            DiscountResponse.from_discount(view.special_offer) if view.special_offer else None
        )
        return cls(**payload)


class CreateRoomRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    price_per_night: float = Field(ge=0.0)
    room_size: str = ""
    images: list[str] = Field(default_factory=list)
    special_offer_id: Optional[int] = Field(default=None, gt=0)


class UpdateRoomRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price_per_night: Optional[float] = Field(default=None, ge=0.0)
    room_size: Optional[str] = None
    images: Optional[list[str]] = None
    special_offer_id: Optional[int] = Field(default=None, gt=0)


class RoomCreatedResponse(BaseModel):
    room_id: int = Field(gt=0)


class CreateDiscountRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    percentage: float = Field(gt=0.0, le=100.0)
    valid_until: Optional[date] = None


class DiscountCreatedResponse(BaseModel):
    discount_id: int = Field(gt=0)


def _persistence_failure(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@router.get("/rooms", response_model=list[RoomViewResponse], status_code=status.HTTP_200_OK)
def list_rooms(
    min_price: Optional[float] = Query(default=None, ge=0.0),
    max_price: Optional[float] = Query(default=None, ge=0.0),
    sort: Literal["asc", "desc"] = "asc",
    store: RoomAvailabilityStore = Depends(get_room_store),
) -> list[RoomViewResponse]:
    try:
        views = store.list_rooms(RoomFilter(min_price=min_price, max_price=max_price, sort=sort))
        return [RoomViewResponse.from_view(view) for view in views]
    except PersistenceError as exc:
        raise _persistence_failure("Failed to load rooms") from exc


@router.get(
    "/rooms/featured",
    response_model=list[RoomViewResponse],
    status_code=status.HTTP_200_OK,
)
def list_featured_rooms(
    limit: Optional[int] = Query(default=None, gt=0, le=50),
    store: RoomAvailabilityStore = Depends(get_room_store),
) -> list[RoomViewResponse]:
    """Top-rated rooms for the landing page."""
    try:
        return [RoomViewResponse.from_view(view) for view in store.list_featured_rooms(limit)]
    except PersistenceError as exc:
        raise _persistence_failure("Failed to load featured rooms") from exc


@router.post(
    "/rooms",
    response_model=RoomCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_caller)],
)
def create_room(
    payload: CreateRoomRequest,
    store: RoomAvailabilityStore = Depends(get_room_store),
) -> RoomCreatedResponse:
    try:
        return RoomCreatedResponse(room_id=store.create_room(**payload.model_dump()))
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise _persistence_failure("Failed to create room") from exc


@router.get("/rooms/{room_id}", response_model=RoomViewResponse, status_code=status.HTTP_200_OK)
def get_room(
    room_id: int,
    store: RoomAvailabilityStore = Depends(get_room_store),
) -> RoomViewResponse:
    try:
        return RoomViewResponse.from_view(store.get_room_view(room_id))
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise _persistence_failure("Failed to load room") from exc


@router.patch(
    "/rooms/{room_id}",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_caller)],
)
def update_room(
    room_id: int,
    payload: UpdateRoomRequest,
    store: RoomAvailabilityStore = Depends(get_room_store),
) -> dict[str, Any]:
    """Echo the fields that were applied."""
    try:
        patch = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key == "special_offer_id"
        }
        return store.update_room(room_id, patch)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise _persistence_failure("Failed to update room") from exc


@router.get("/discounts", response_model=list[DiscountResponse], status_code=status.HTTP_200_OK)
def list_discounts(
    store: RoomAvailabilityStore = Depends(get_room_store),
) -> list[DiscountResponse]:
    try:
        return [DiscountResponse.from_discount(discount) for discount in store.list_discounts()]
    except PersistenceError as exc:
        raise _persistence_failure("Failed to load discounts") from exc


@router.get(
    "/discounts/{discount_id}",
    response_model=DiscountResponse,
    status_code=status.HTTP_200_OK,
)
def get_discount(
    discount_id: int,
    store: RoomAvailabilityStore = Depends(get_room_store),
) -> DiscountResponse:
    try:
        return DiscountResponse.from_discount(store.get_discount(discount_id))
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise _persistence_failure("Failed to load discount") from exc


@router.post(
    "/discounts",
    response_model=DiscountCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_caller)],
)
def create_discount(
    payload: CreateDiscountRequest,
    store: RoomAvailabilityStore = Depends(get_room_store),
) -> DiscountCreatedResponse:
    try:
        return DiscountCreatedResponse(discount_id=store.create_discount(**payload.model_dump()))
    except PersistenceError as exc:
        raise _persistence_failure("Failed to create discount") from exc
