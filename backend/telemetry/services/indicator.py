"""Status LED patterns.

The only user-visible failure channel on the device. Each pattern is a
fixed, bounded sequence so it can never stall the acquisition loop:

- success: one long blink
- upload failed: three short blinks
- offline: two slow blinks
"""

import logging
import time
from typing import Callable, Optional, Protocol

from ..hardware.gpio import GpioPins

logger = logging.getLogger(__name__)

# (on_seconds, off_seconds, count)
SUCCESS_PATTERN = (0.5, 0.0, 1)
UPLOAD_FAILED_PATTERN = (0.1, 0.1, 3)
OFFLINE_PATTERN = (0.4, 0.4, 2)


def pattern_duration(pattern: tuple[float, float, int]) -> float:
    """Seconds a pattern blocks the caller."""
    on_sec, off_sec, count = pattern
    return count * (on_sec + off_sec)


class Led(Protocol):
    def on(self) -> None: ...
    def off(self) -> None: ...


class GpioLed:
    """LED on a single output pin."""

    def __init__(self, pins: GpioPins, pin: int):
        self.pins = pins
        self.pin = pin

    def open(self) -> None:
        self.pins.open()
        self.pins.setup_output(self.pin, initial=False)

    def on(self) -> None:
        self.pins.write(self.pin, True)

    def off(self) -> None:
        self.pins.write(self.pin, False)


class StatusIndicator:
    def __init__(self, led: Optional[Led], sleep: Callable[[float], None] = time.sleep):
        self.led = led
        self._sleep = sleep
        self.history: list[str] = []

    def success(self) -> None:
        self._play("success", SUCCESS_PATTERN)

    def upload_failed(self) -> None:
        self._play("upload_failed", UPLOAD_FAILED_PATTERN)

    def offline(self) -> None:
        self._play("offline", OFFLINE_PATTERN)

    def _play(self, name: str, pattern: tuple[float, float, int]) -> None:
        self.history.append(name)
        if len(self.history) > 32:
            del self.history[:-32]
        if self.led is None:
            return
        on_sec, off_sec, count = pattern
        try:
            for _ in range(count):
                self.led.on()
                self._sleep(on_sec)
                self.led.off()
                if off_sec:
                    self._sleep(off_sec)
        except (OSError, RuntimeError) as exc:
            logger.warning("LED pattern %s failed: %s", name, exc)
