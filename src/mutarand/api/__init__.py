from __future__ import annotations

from fastapi import APIRouter

from mutarand.api.routes.engines import router as engines_router
from mutarand.api.routes.health import router as health_router

# Top-level API router
router = APIRouter()

# Route composition
router.include_router(health_router)
router.include_router(engines_router)
