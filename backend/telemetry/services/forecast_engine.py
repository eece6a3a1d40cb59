"""Adaptive-window linear regression forecaster.

For each metric, fits an ordinary least-squares line over the most recent
``w`` points of its hourly series and extrapolates it over the next H hours
with a symmetric 95% band (point +/- 1.96 sigma of the residuals).

The window adapts to how noisy the series is: a calm series gets the full
30-point window for stability, a volatile one shrinks toward 12 points so
the line follows recent behaviour instead of averaging it away.

    w = clamp(floor(30 / (variance + 1)), 12, 30), capped at len(series)
"""

import math
import statistics
from dataclasses import dataclass
from typing import Optional, Sequence

MIN_HISTORY = 10
MIN_WINDOW = 12
MAX_WINDOW = 30
Z_95 = 1.96
PRECISION = 3


class InsufficientHistoryError(Exception):
    """Fewer points than the minimum history length."""

    def __init__(self, metric: str, available: int, required: int):
        self.metric = metric
        self.available = available
        self.required = required
        super().__init__(
            f"{metric}: {available} points available, {required} required"
        )


@dataclass(frozen=True)
class TimeSeriesPoint:
    hour: float
    value: float


@dataclass(frozen=True)
class ForecastPoint:
    timestamp: int
    point: float
    upper: float
    lower: float


@dataclass(frozen=True)
class LinearFit:
    slope: float
    intercept: float
    sigma: float
    window: int
    degenerate: bool = False

    def at(self, hour: float) -> float:
        return self.intercept + self.slope * hour


def adaptive_window(values: Sequence[float]) -> int:
    """Window size for a series, from the variance of the whole series."""
    n = len(values)
    variance = statistics.stdev(values) ** 2 if n > 1 else 0.0
    w = math.floor(MAX_WINDOW / (variance + 1))
    w = max(MIN_WINDOW, min(MAX_WINDOW, w))
    return min(w, n)


def fit_window(points: Sequence[TimeSeriesPoint]) -> LinearFit:
    """Least-squares line over ``points`` with residual standard deviation.

    If every point shares the same hour the slope is undefined; fall back to
    a flat line at the mean with sigma taken from the values themselves.
    """
    n = len(points)
    xs = [p.hour for p in points]
    ys = [p.value for p in points]
    mean_x = sum(xs) / n
    mean_y = sum(ys) / n
    sxx = sum((x - mean_x) ** 2 for x in xs)

    if sxx == 0:
        sigma = statistics.stdev(ys) if n > 1 else 0.0
        return LinearFit(slope=0.0, intercept=mean_y, sigma=sigma, window=n, degenerate=True)

    sxy = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    slope = sxy / sxx
    intercept = mean_y - slope * mean_x
    sse = sum((y - (intercept + slope * x)) ** 2 for x, y in zip(xs, ys))
    dof = n - 2 if n > 2 else 1
    sigma = math.sqrt(sse / dof)
    return LinearFit(slope=slope, intercept=intercept, sigma=sigma, window=n)


def forecast_series(
    points: Sequence[TimeSeriesPoint],
    origin_timestamp: int,
    horizon_hours: int = 24,
    min_history: int = MIN_HISTORY,
    metric: str = "series",
) -> list[ForecastPoint]:
    """Forecast the next ``horizon_hours`` hours of one metric.

    Args:
        points: Series ordered by hour; ``hour`` is hours since
            ``origin_timestamp``.
        origin_timestamp: Unix seconds corresponding to hour 0.
        horizon_hours: Number of future hourly steps.
        min_history: Minimum number of points required; never below 2.
        metric: Name used in the insufficiency error.

    Raises:
        InsufficientHistoryError: fewer than ``min_history`` points.
    """
    # A line needs two points whatever the configured minimum
    required = max(min_history, 2)
    if len(points) < required:
        raise InsufficientHistoryError(metric, len(points), required)

    w = adaptive_window([p.value for p in points])
    fit = fit_window(points[-w:])
    band = Z_95 * fit.sigma
    last_hour = points[-1].hour

    result = []
    for step in range(1, horizon_hours + 1):
        hour = last_hour + step
        estimate = fit.at(hour)
        result.append(ForecastPoint(
            timestamp=int(round(origin_timestamp + hour * 3600)),
            point=round(estimate, PRECISION),
            upper=round(estimate + band, PRECISION),
            lower=round(estimate - band, PRECISION),
        ))
    return result


def to_series(rows: Sequence[tuple[int, Optional[float]]]) -> tuple[int, list[TimeSeriesPoint]]:
    """Turn (timestamp, value) rows into an hourly series.

    Rows with a missing value are skipped. Returns (origin_timestamp, points)
    where hour 0 is the first kept row.
    """
    kept = sorted((ts, v) for ts, v in rows if v is not None)
    if not kept:
        return 0, []
    origin = kept[0][0]
    return origin, [TimeSeriesPoint((ts - origin) / 3600.0, float(v)) for ts, v in kept]
