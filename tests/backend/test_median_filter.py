"""Tests for the median-of-few distance filter."""

import pytest

from telemetry.services.median_filter import (
    SPEED_OF_SOUND_CM_PER_SEC,
    duration_to_distance,
    median_distance,
)


def _duration_for(cm: float) -> float:
    return cm * 2 / SPEED_OF_SOUND_CM_PER_SEC


class TestDurationToDistance:
    def test_round_trip_distance(self):
        assert duration_to_distance(_duration_for(100.0)) == pytest.approx(100.0)

    def test_one_millisecond_echo(self):
        """1 ms round trip is ~17 cm one way."""
        assert duration_to_distance(0.001) == pytest.approx(17.15)


class TestMedianDistance:
    def test_odd_count_returns_middle(self):
        durations = [_duration_for(d) for d in (50, 10, 30)]
        assert median_distance(durations) == pytest.approx(30)

    def test_even_count_returns_lower_median(self):
        durations = [_duration_for(d) for d in (40, 10, 30, 20)]
        assert median_distance(durations) == pytest.approx(20)

    def test_single_outlier_rejected(self):
        """One spurious short echo does not drag the estimate."""
        durations = [_duration_for(d) for d in (120, 121, 3, 119, 122)]
        assert median_distance(durations) == pytest.approx(120)

    def test_out_of_range_conversions_discarded(self):
        durations = [_duration_for(d) for d in (1.0, 450.0, 80.0)]
        assert median_distance(durations) == pytest.approx(80)

    def test_range_limits_are_inclusive(self):
        assert median_distance([_duration_for(2.0)]) == pytest.approx(2.0)
        assert median_distance([_duration_for(400.0)]) == pytest.approx(400.0)

    def test_dropped_pulses_skipped(self):
        durations = [None, _duration_for(60), None, 0.0, -1.0]
        assert median_distance(durations) == pytest.approx(60)

    def test_no_valid_samples_is_unavailable(self):
        """Zero usable pulses must not come back as a false zero."""
        assert median_distance([None, None, None, None, None]) is None
        assert median_distance([]) is None
        assert median_distance([_duration_for(500), _duration_for(0.5)]) is None

    @pytest.mark.parametrize("distances", [
        (0.1, 2.5, 399.9, 401, 1000),
        (5, 5, 5),
        (1.9, 400.1),
        (250, 3, 398, 7, 120, 64),
    ])
    def test_result_always_in_range_or_unavailable(self, distances):
        durations = [_duration_for(d) for d in distances]
        result = median_distance(durations)
        in_range = [d for d in distances if 2 <= d <= 400]
        if in_range:
            assert result is not None
            assert 2.0 <= result <= 400.0
        else:
            assert result is None
