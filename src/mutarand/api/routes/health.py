from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from mutarand.core.config.settings import settings
from mutarand.core.instruction.operation import CATALOG_VERSION

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """
    Minimal health check response.

    Lightweight and side-effect free.
    """

    status: str
    environment: str
    catalog_version: int


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        environment=settings.env,
        catalog_version=CATALOG_VERSION,
    )
