"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and services, registers routers, and runs startup
initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.controllers.auth_controller import router as auth_router
from backend.controllers.booking_controller import router as booking_router
from backend.controllers.errors import register_error_handlers
from backend.controllers.review_controller import router as review_router
from backend.controllers.room_controller import router as room_router
from backend.repository.data_repository import DataRepository
from backend.services.auth_service import AuthService
from backend.services.booking_service import BookingLifecycleService
from backend.services.review_service import ReviewRatingAggregator
from backend.services.room_service import RoomAvailabilityStore
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service receives its repository explicitly and is exposed through
    app.state for the controller dependency providers.
    """
    settings = settings or get_settings()

    # --- Repository (one SQLite connection per operation) ---
    repository = DataRepository(settings)

    # --- Services ---
    room_store = RoomAvailabilityStore(repository=repository, settings=settings)
    booking_service = BookingLifecycleService(
        repository=repository,
        room_store=room_store,
        settings=settings,
    )
    review_service = ReviewRatingAggregator(
        repository=repository,
        room_store=room_store,
        settings=settings,
    )
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/", include_in_schema=False)
    def root() -> dict[str, str]:
        return {"message": "Server is running"}

    # --- Routers ---
    app.include_router(auth_router)
    app.include_router(room_router)
    app.include_router(booking_router)
    app.include_router(review_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.room_store = room_store
    app.state.booking_service = booking_service
    app.state.review_service = review_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before the demo catalogue is seeded.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo rooms (skipped if Rooms table not empty)")
        repository.seed_demo_data_if_empty()

    logger.info("Startup complete, system ready")


# Module-level app object for uvicorn
app = create_app()
