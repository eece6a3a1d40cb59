"""Sensor sampling: one validated Reading per call.

Environmental fields are read from the BME280 and range-checked one by one;
an implausible or unreadable field becomes None rather than aborting the
cycle, since partial telemetry (distance only, say) still has value.
"""

import logging
from typing import Optional

from ..hardware.bme280 import BME280, SensorReadError
from ..hardware.ultrasonic import UltrasonicRanger
from ..state import (
    Reading,
    humidity_plausible,
    pressure_plausible,
    temperature_plausible,
)
from .median_filter import median_distance
from .time_source import TimeSource

logger = logging.getLogger(__name__)


def _checked(name: str, value: Optional[float], plausible) -> Optional[float]:
    if value is None:
        return None
    if not plausible(value):
        logger.warning("Implausible %s %.2f discarded", name, value)
        return None
    return value


class SensorSampler:
    """Produces Readings from the ranger and the environmental sensor."""

    def __init__(
        self,
        ranger: UltrasonicRanger,
        environment: BME280,
        time_source: TimeSource,
        pulse_samples: int = 5,
        pulse_spacing: float = 0.06,
    ):
        self.ranger = ranger
        self.environment = environment
        self.time_source = time_source
        self.pulse_samples = pulse_samples
        self.pulse_spacing = pulse_spacing

    def check_sensors(self) -> None:
        """Open both sensors. SensorAbsentError propagates to the caller."""
        self.environment.open()
        self.ranger.open()

    def sample(self) -> Reading:
        temperature = humidity = pressure = None
        try:
            env = self.environment.read()
        except SensorReadError as exc:
            logger.warning("Environmental read failed: %s", exc)
        else:
            temperature = _checked("temperature", env.temperature_c, temperature_plausible)
            humidity = _checked("humidity", env.humidity_pct, humidity_plausible)
            pressure = _checked("pressure", env.pressure_hpa, pressure_plausible)

        try:
            durations = self.ranger.sample_pulses(self.pulse_samples, self.pulse_spacing)
        except (OSError, RuntimeError) as exc:
            logger.warning("Ranging failed: %s", exc)
            durations = []
        distance = median_distance(durations)
        if distance is None:
            logger.info(
                "No valid echo in %d pulses, distance unavailable", self.pulse_samples
            )

        return Reading(
            distance_cm=distance,
            temperature_c=temperature,
            humidity_pct=humidity,
            pressure_hpa=pressure,
            timestamp=int(self.time_source.now_unix_seconds()),
            environmental_valid=temperature is not None and humidity is not None,
        )
