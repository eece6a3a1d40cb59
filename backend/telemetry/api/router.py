"""Top-level API router aggregation."""

from fastapi import APIRouter

from . import readings, forecast, insight

api_router = APIRouter(prefix="/api")

api_router.include_router(readings.router)
api_router.include_router(forecast.router)
api_router.include_router(insight.router)
