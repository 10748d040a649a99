from __future__ import annotations

from fastapi import APIRouter

from metrics_engine.api.health import router as health_router
from metrics_engine.api.metrics import router as metrics_router
from metrics_engine.api.payplans import router as payplans_router
from metrics_engine.api.targets import router as targets_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(metrics_router)
api_router.include_router(payplans_router)
api_router.include_router(targets_router)
