"""Tests for the adaptive-window regression forecaster."""

import pytest

from telemetry.services.forecast_engine import (
    MAX_WINDOW,
    MIN_WINDOW,
    InsufficientHistoryError,
    TimeSeriesPoint,
    adaptive_window,
    fit_window,
    forecast_series,
    to_series,
)

ORIGIN = 1_700_000_000
SCENARIO = [20, 21, 22, 21, 20, 19, 20, 21, 22, 23]


def _hourly(values):
    return [TimeSeriesPoint(float(i), float(v)) for i, v in enumerate(values)]


class TestAdaptiveWindow:
    def test_constant_series_uses_max_window(self):
        assert adaptive_window([5.0] * 40) == MAX_WINDOW

    def test_window_capped_at_series_length(self):
        assert adaptive_window([5.0] * 20) == 20

    def test_volatile_series_shrinks_to_min_window(self):
        values = [0.0, 100.0] * 20
        assert adaptive_window(values) == MIN_WINDOW

    def test_moderate_variance(self):
        """Sample variance ~1.33 gives floor(30 / 2.33) = 12."""
        assert adaptive_window(SCENARIO * 3) == 12


class TestFitWindow:
    def test_exact_line_has_zero_sigma(self):
        fit = fit_window(_hourly([2 * x + 1 for x in range(12)]))
        assert fit.slope == pytest.approx(2.0)
        assert fit.intercept == pytest.approx(1.0)
        assert fit.sigma == pytest.approx(0.0)
        assert not fit.degenerate

    def test_single_hour_falls_back_to_mean(self):
        points = [TimeSeriesPoint(5.0, v) for v in (10.0, 12.0, 14.0)]
        fit = fit_window(points)
        assert fit.degenerate
        assert fit.slope == 0.0
        assert fit.intercept == pytest.approx(12.0)
        assert fit.sigma == pytest.approx(2.0)


class TestForecastSeries:
    def test_minimum_history_accepted(self):
        result = forecast_series(_hourly(SCENARIO), ORIGIN, horizon_hours=24)
        assert len(result) == 24

    def test_one_short_of_minimum_rejected(self):
        with pytest.raises(InsufficientHistoryError) as info:
            forecast_series(_hourly(SCENARIO[:9]), ORIGIN, metric="temperature")
        assert info.value.metric == "temperature"
        assert info.value.available == 9
        assert info.value.required == 10

    def test_zero_minimum_still_needs_two_points(self):
        with pytest.raises(InsufficientHistoryError) as info:
            forecast_series([], ORIGIN, min_history=0)
        assert info.value.required == 2
        with pytest.raises(InsufficientHistoryError):
            forecast_series(_hourly([5.0]), ORIGIN, min_history=1)

    def test_two_points_with_lowered_minimum(self):
        result = forecast_series(_hourly([1.0, 3.0]), ORIGIN, horizon_hours=1, min_history=2)
        assert result[0].point == pytest.approx(5.0)

    def test_bounds_bracket_point(self):
        for fp in forecast_series(_hourly(SCENARIO * 2), ORIGIN):
            assert fp.lower <= fp.point <= fp.upper

    def test_band_is_symmetric(self):
        for fp in forecast_series(_hourly(SCENARIO), ORIGIN):
            assert fp.upper - fp.point == pytest.approx(fp.point - fp.lower, abs=2e-3)

    def test_identical_input_gives_identical_output(self):
        first = forecast_series(_hourly(SCENARIO), ORIGIN)
        second = forecast_series(_hourly(SCENARIO), ORIGIN)
        assert first == second

    def test_timestamps_step_hourly_after_last_point(self):
        result = forecast_series(_hourly(SCENARIO), ORIGIN, horizon_hours=3)
        assert [fp.timestamp for fp in result] == [
            ORIGIN + 10 * 3600, ORIGIN + 11 * 3600, ORIGIN + 12 * 3600,
        ]

    def test_linear_extrapolation(self):
        result = forecast_series(_hourly([2 * x + 1 for x in range(20)]), ORIGIN, horizon_hours=2)
        assert result[0].point == pytest.approx(41.0)
        assert result[1].point == pytest.approx(43.0)
        assert result[0].upper == result[0].point

    def test_values_rounded_to_three_decimals(self):
        values = [20.1234, 21.98765, 19.55555, 22.00001] * 3
        for fp in forecast_series(_hourly(values), ORIGIN):
            for v in (fp.point, fp.upper, fp.lower):
                assert round(v, 3) == v

    def test_all_points_same_hour_does_not_raise(self):
        points = [TimeSeriesPoint(0.0, float(v)) for v in SCENARIO]
        result = forecast_series(points, ORIGIN, horizon_hours=4)
        assert all(fp.point == pytest.approx(20.9) for fp in result)


class TestToSeries:
    def test_missing_values_skipped(self):
        origin, points = to_series([(ORIGIN, 1.0), (ORIGIN + 3600, None), (ORIGIN + 7200, 3.0)])
        assert origin == ORIGIN
        assert points == [TimeSeriesPoint(0.0, 1.0), TimeSeriesPoint(2.0, 3.0)]

    def test_rows_sorted_by_timestamp(self):
        _, points = to_series([(ORIGIN + 3600, 2.0), (ORIGIN, 1.0)])
        assert [p.value for p in points] == [1.0, 2.0]

    def test_empty(self):
        assert to_series([]) == (0, [])
