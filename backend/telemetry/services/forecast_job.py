"""Forecast run over the stored readings.

Runs the forecast engine once per metric and replaces the forecasts table
with the result. If any metric lacks history the run aborts before the
table is touched, so a failed run never leaves partial output behind.
"""

import logging
from typing import Any, Sequence

from sqlalchemy import delete
from sqlalchemy.orm import Session

from ..models.forecast import ForecastModel
from ..models.reading import ReadingModel
from .forecast_engine import ForecastPoint, forecast_series, to_series

logger = logging.getLogger(__name__)

METRICS = ("distance", "temperature", "humidity", "pressure")


def build_forecast_rows(
    rows: Sequence[Any],
    horizon_hours: int = 24,
    min_history: int = 10,
) -> list[dict]:
    """Forecast every metric and merge them into one dict per future hour.

    ``rows`` are objects with ``timestamp`` and one attribute per metric.
    Raises InsufficientHistoryError from the first metric that is short.
    """
    per_metric: dict[str, list[ForecastPoint]] = {}
    for metric in METRICS:
        origin, series = to_series([(r.timestamp, getattr(r, metric)) for r in rows])
        per_metric[metric] = forecast_series(
            series, origin, horizon_hours=horizon_hours,
            min_history=min_history, metric=metric,
        )

    merged = []
    for step in range(horizon_hours):
        row: dict[str, Any] = {"timestamp": per_metric[METRICS[0]][step].timestamp}
        for metric in METRICS:
            fp = per_metric[metric][step]
            row[metric] = fp.point
            row[f"{metric}_upper"] = fp.upper
            row[f"{metric}_lower"] = fp.lower
        merged.append(row)
    return merged


def run_forecast(db: Session, horizon_hours: int = 24, min_history: int = 10) -> list[dict]:
    """Compute a fresh forecast and replace the stored one."""
    readings = db.query(ReadingModel).order_by(ReadingModel.timestamp).all()
    rows = build_forecast_rows(readings, horizon_hours, min_history)

    db.execute(delete(ForecastModel))
    db.add_all(ForecastModel(**row) for row in rows)
    db.commit()
    logger.info("Forecast replaced: %d hourly rows from %d readings", len(rows), len(readings))
    return rows


def forecast_to_dict(model: ForecastModel) -> dict:
    row: dict[str, Any] = {"timestamp": model.timestamp}
    for metric in METRICS:
        row[metric] = getattr(model, metric)
        row[f"{metric}_upper"] = getattr(model, f"{metric}_upper")
        row[f"{metric}_lower"] = getattr(model, f"{metric}_lower")
    return row
