"""GPIO pin wrapper for the ranger and status LED.

Provides a thin abstraction over RPi.GPIO so the drivers above it can be
exercised with a fake pin bank off the device.
"""

import logging
from typing import Any, Optional

from .errors import SensorAbsentError

logger = logging.getLogger(__name__)


class GpioPins:
    """Wrapper around RPi.GPIO using BCM pin numbering."""

    def __init__(self) -> None:
        self._gpio: Optional[Any] = None
        self._claimed: set[int] = set()

    @property
    def is_open(self) -> bool:
        return self._gpio is not None

    def open(self) -> None:
        """Load the GPIO library and select BCM numbering.

        Raises:
            SensorAbsentError: RPi.GPIO is missing or this is not a Pi.
        """
        if self.is_open:
            return
        try:
            import RPi.GPIO as GPIO

            GPIO.setwarnings(False)
            GPIO.setmode(GPIO.BCM)
        except (ImportError, RuntimeError) as exc:
            raise SensorAbsentError(f"GPIO unavailable: {exc}") from exc
        self._gpio = GPIO
        logger.info("GPIO opened (BCM numbering)")

    def close(self) -> None:
        """Release every pin claimed through this wrapper."""
        if self._gpio is not None:
            if self._claimed:
                self._gpio.cleanup(sorted(self._claimed))
            self._claimed.clear()
            self._gpio = None
            logger.info("GPIO closed")

    def setup_output(self, pin: int, initial: bool = False) -> None:
        gpio = self._require()
        gpio.setup(pin, gpio.OUT, initial=gpio.HIGH if initial else gpio.LOW)
        self._claimed.add(pin)

    def setup_input(self, pin: int) -> None:
        gpio = self._require()
        gpio.setup(pin, gpio.IN, pull_up_down=gpio.PUD_DOWN)
        self._claimed.add(pin)

    def write(self, pin: int, high: bool) -> None:
        gpio = self._require()
        gpio.output(pin, gpio.HIGH if high else gpio.LOW)

    def read(self, pin: int) -> bool:
        return bool(self._require().input(pin))

    def _require(self) -> Any:
        if self._gpio is None:
            raise RuntimeError("GPIO not open")
        return self._gpio

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
