"""Forecast endpoints.

POST /api/forecast/run - Recompute the forecast and replace the stored one
GET  /api/forecast     - Current forecast table
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..config import settings
from ..models.database import get_db
from ..models.forecast import ForecastModel
from ..schemas.forecast import ForecastResponse
from ..services.forecast_engine import InsufficientHistoryError
from ..services.forecast_job import forecast_to_dict, run_forecast

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/forecast/run", response_model=ForecastResponse)
def run_forecast_endpoint(db: Session = Depends(get_db)):
    """Run the adaptive-window forecast over all stored readings."""
    try:
        rows = run_forecast(
            db,
            horizon_hours=settings.forecast_horizon_hours,
            min_history=settings.forecast_min_history,
        )
    except InsufficientHistoryError as exc:
        logger.warning("Forecast aborted: %s", exc)
        raise HTTPException(
            status_code=422,
            detail=(
                f"Not enough history to forecast {exc.metric}: "
                f"{exc.available} readings, at least {exc.required} needed. "
                "No forecast was written."
            ),
        )
    return {"rows": rows}


@router.get("/forecast", response_model=ForecastResponse)
def get_forecast(db: Session = Depends(get_db)):
    rows = db.query(ForecastModel).order_by(ForecastModel.timestamp).all()
    return {"rows": [forecast_to_dict(r) for r in rows]}
