from __future__ import annotations

from fastapi import APIRouter

from src.core.artifacts import ARTIFACT_STORE_REGISTRY
from src.config import get_settings


router = APIRouter()


@router.get("/health")
async def health() -> dict:
    settings = get_settings()
    return {
        "status": "ok",
        "version": "0.1.0",
        "artifact_backend": settings.artifact_backend,
        "artifact_backend_known": settings.artifact_backend in ARTIFACT_STORE_REGISTRY,
    }
