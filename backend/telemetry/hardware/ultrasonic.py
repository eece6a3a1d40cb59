"""HC-SR04 class ultrasonic ranger driver.

A 10 us trigger pulse starts a measurement; the sensor raises the echo line
for as long as the sound took to travel out and back. Every wait is bounded
by ``echo_timeout`` so a missing echo costs at most two timeouts.
"""

import logging
import time
from typing import Callable, Optional

from .gpio import GpioPins

logger = logging.getLogger(__name__)

TRIGGER_PULSE_SEC = 10e-6
SETTLE_SEC = 2e-6


class UltrasonicRanger:
    """Measures raw echo durations on a trigger/echo pin pair."""

    def __init__(
        self,
        pins: GpioPins,
        trigger_pin: int,
        echo_pin: int,
        echo_timeout: float = 0.03,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.pins = pins
        self.trigger_pin = trigger_pin
        self.echo_pin = echo_pin
        self.echo_timeout = echo_timeout
        self._clock = clock
        self._sleep = sleep

    def open(self) -> None:
        self.pins.open()
        self.pins.setup_output(self.trigger_pin, initial=False)
        self.pins.setup_input(self.echo_pin)

    def measure_pulse(self) -> Optional[float]:
        """Fire one pulse and return the echo duration in seconds.

        Returns None if the echo never starts or never ends within the
        timeout (no target in range, or a dropped pulse).
        """
        self.pins.write(self.trigger_pin, False)
        self._sleep(SETTLE_SEC)
        self.pins.write(self.trigger_pin, True)
        self._sleep(TRIGGER_PULSE_SEC)
        self.pins.write(self.trigger_pin, False)

        deadline = self._clock() + self.echo_timeout
        start = self._clock()
        while not self.pins.read(self.echo_pin):
            start = self._clock()
            if start > deadline:
                logger.debug("Echo never started")
                return None

        deadline = start + self.echo_timeout
        end = start
        while self.pins.read(self.echo_pin):
            end = self._clock()
            if end > deadline:
                logger.debug("Echo never ended")
                return None

        return end - start

    def sample_pulses(self, count: int, spacing: float) -> list[Optional[float]]:
        """Fire ``count`` pulses, ``spacing`` seconds apart, keeping dropouts as None."""
        durations: list[Optional[float]] = []
        for i in range(count):
            if i:
                self._sleep(spacing)
            durations.append(self.measure_pulse())
        return durations
