from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.core.artifacts import ArtifactStore, get_artifact_store as build_artifact_store
from src.core.crud import SqlBookingStore
from src.core.intake import StepSubmissionCoordinator
from src.core.store import BookingStore
from src.db import get_db
from src.integrations.base import BookingNotifier, LoggingNotifier
from src.integrations.telegram_notify import TelegramNotifier


async def get_booking_store(db: AsyncSession = Depends(get_db)) -> BookingStore:
    return SqlBookingStore(db)


@lru_cache(maxsize=1)
def get_artifact_store() -> ArtifactStore:
    settings = get_settings()
    return build_artifact_store(
        settings.artifact_backend,
        {
            "root": settings.artifact_root,
            "base_url": settings.artifact_base_url,
            "api_token": settings.artifact_api_token,
        },
    )


@lru_cache(maxsize=1)
def get_notifier() -> BookingNotifier:
    return TelegramNotifier.from_settings(get_settings()) or LoggingNotifier()


async def get_coordinator(
    store: BookingStore = Depends(get_booking_store),
    artifacts: ArtifactStore = Depends(get_artifact_store),
    notifier: BookingNotifier = Depends(get_notifier),
) -> StepSubmissionCoordinator:
    settings = get_settings()
    return StepSubmissionCoordinator(
        store,
        artifacts,
        notifier=notifier,
        max_upload_bytes=settings.max_upload_bytes,
        downpayment_ratio=settings.downpayment_ratio,
    )
