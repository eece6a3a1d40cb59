"""Median-of-few filter for ultrasonic ranging.

Single-pulse rangers produce spurious echoes and dropped pulses near their
range limits. Each pulse duration is converted to a distance, out-of-range
conversions are discarded, and the lower median of what remains is returned.
"""

from typing import Iterable, Optional

from ..state import DISTANCE_MAX_CM, DISTANCE_MIN_CM

# Speed of sound at ~20C
SPEED_OF_SOUND_CM_PER_SEC = 34300.0


def duration_to_distance(duration_sec: float) -> float:
    """Convert an echo round-trip duration to a one-way distance in cm."""
    return duration_sec * SPEED_OF_SOUND_CM_PER_SEC / 2.0


def median_distance(durations: Iterable[Optional[float]]) -> Optional[float]:
    """Return the filtered distance in cm, or None if no pulse was usable.

    Args:
        durations: Echo durations in seconds. ``None`` or non-positive
            values are dropped pulses.

    Returns:
        Lower median of the in-range distances, or None when no duration
        converts to a distance within [2, 400] cm.
    """
    valid = []
    for duration in durations:
        if duration is None or duration <= 0:
            continue
        distance = duration_to_distance(duration)
        if DISTANCE_MIN_CM <= distance <= DISTANCE_MAX_CM:
            valid.append(distance)

    if not valid:
        return None

    valid.sort()
    return valid[(len(valid) - 1) // 2]
