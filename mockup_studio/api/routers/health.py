from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from mockup_studio.api.schemas.account import HealthResponse


SERVICE_NAME = "mockup-studio-api"

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(service=SERVICE_NAME, timestamp=datetime.now(timezone.utc))
