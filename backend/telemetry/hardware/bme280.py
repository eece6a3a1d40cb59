"""BME280 temperature / humidity / pressure driver over I2C.

Register layout and compensation formulas follow the Bosch BME280
datasheet (section 4.2.3 and 8.1, floating point variant). Measurements are
taken in forced mode: one conversion per read, sensor sleeps in between.
"""

import logging
import struct
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import SensorAbsentError, SensorReadError

logger = logging.getLogger(__name__)

CHIP_ID = 0x60

REG_CHIP_ID = 0xD0
REG_CALIB_00 = 0x88   # 26 bytes: T1..T3, P1..P9, (0xA0), H1
REG_CALIB_26 = 0xE1   # 7 bytes: H2..H6
REG_CTRL_HUM = 0xF2
REG_STATUS = 0xF3
REG_CTRL_MEAS = 0xF4
REG_DATA = 0xF7       # 8 bytes: press[3], temp[3], hum[2]

OSRS_X1 = 0b001
MODE_FORCED = 0b01
STATUS_MEASURING = 0x08

MEASUREMENT_TIMEOUT_SEC = 0.1


@dataclass(frozen=True)
class Calibration:
    """Factory trimming parameters read from the sensor NVM."""
    t1: int
    t2: int
    t3: int
    p1: int
    p2: int
    p3: int
    p4: int
    p5: int
    p6: int
    p7: int
    p8: int
    p9: int
    h1: int
    h2: int
    h3: int
    h4: int
    h5: int
    h6: int


@dataclass(frozen=True)
class EnvironmentSample:
    temperature_c: float
    humidity_pct: float
    pressure_hpa: Optional[float]


def _signed8(b: int) -> int:
    return b - 256 if b > 127 else b


def parse_calibration(block0: bytes, block1: bytes) -> Calibration:
    """Decode the two calibration register blocks."""
    (t1, t2, t3, p1, p2, p3, p4, p5, p6, p7, p8, p9,
     _unused, h1) = struct.unpack("<HhhHhhhhhhhhBB", bytes(block0[:26]))
    h2, h3 = struct.unpack("<hB", bytes(block1[:3]))
    e4, e5, e6, e7 = block1[3], block1[4], block1[5], block1[6]
    h4 = (_signed8(e4) << 4) | (e5 & 0x0F)
    h5 = (_signed8(e6) << 4) | (e5 >> 4)
    h6 = _signed8(e7)
    return Calibration(t1, t2, t3, p1, p2, p3, p4, p5, p6, p7, p8, p9,
                       h1, h2, h3, h4, h5, h6)


def parse_raw(data: bytes) -> tuple[int, int, int]:
    """Split the 8-byte data burst into (adc_T, adc_P, adc_H)."""
    adc_p = (data[0] << 12) | (data[1] << 4) | (data[2] >> 4)
    adc_t = (data[3] << 12) | (data[4] << 4) | (data[5] >> 4)
    adc_h = (data[6] << 8) | data[7]
    return adc_t, adc_p, adc_h


def compensate_temperature(cal: Calibration, adc_t: int) -> tuple[float, float]:
    """Return (degrees C, t_fine). t_fine feeds the other two compensations."""
    var1 = (adc_t / 16384.0 - cal.t1 / 1024.0) * cal.t2
    var2 = ((adc_t / 131072.0 - cal.t1 / 8192.0) ** 2) * cal.t3
    t_fine = var1 + var2
    return t_fine / 5120.0, t_fine


def compensate_pressure(cal: Calibration, adc_p: int, t_fine: float) -> Optional[float]:
    """Return pressure in hPa, or None if the calibration divisor is zero."""
    var1 = t_fine / 2.0 - 64000.0
    var2 = var1 * var1 * cal.p6 / 32768.0
    var2 = var2 + var1 * cal.p5 * 2.0
    var2 = var2 / 4.0 + cal.p4 * 65536.0
    var1 = (cal.p3 * var1 * var1 / 524288.0 + cal.p2 * var1) / 524288.0
    var1 = (1.0 + var1 / 32768.0) * cal.p1
    if var1 == 0:
        return None
    p = 1048576.0 - adc_p
    p = (p - var2 / 4096.0) * 6250.0 / var1
    var1 = cal.p9 * p * p / 2147483648.0
    var2 = p * cal.p8 / 32768.0
    p = p + (var1 + var2 + cal.p7) / 16.0
    return p / 100.0


def compensate_humidity(cal: Calibration, adc_h: int, t_fine: float) -> float:
    """Return relative humidity in percent, clamped to [0, 100]."""
    h = t_fine - 76800.0
    h = (adc_h - (cal.h4 * 64.0 + cal.h5 / 16384.0 * h)) * (
        cal.h2 / 65536.0 * (1.0 + cal.h6 / 67108864.0 * h * (1.0 + cal.h3 / 67108864.0 * h))
    )
    h = h * (1.0 - cal.h1 * h / 524288.0)
    return max(0.0, min(100.0, h))


class BME280:
    """Forced-mode BME280 reader on an smbus2-compatible bus."""

    def __init__(
        self,
        bus_number: int = 1,
        address: int = 0x76,
        bus: Optional[Any] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.bus_number = bus_number
        self.address = address
        self._bus = bus
        self._clock = clock
        self._sleep = sleep
        self.calibration: Optional[Calibration] = None

    def open(self) -> None:
        """Open the bus, verify the chip id and load calibration.

        Raises:
            SensorAbsentError: no I2C bus, nothing answered, or the chip is
                not a BME280.
        """
        try:
            if self._bus is None:
                from smbus2 import SMBus

                self._bus = SMBus(self.bus_number)
            chip_id = self._bus.read_byte_data(self.address, REG_CHIP_ID)
        except OSError as exc:
            raise SensorAbsentError(
                f"No device at 0x{self.address:02X} on bus {self.bus_number}: {exc}"
            ) from exc
        if chip_id != CHIP_ID:
            raise SensorAbsentError(f"Unexpected chip id 0x{chip_id:02X}")

        try:
            block0 = self._bus.read_i2c_block_data(self.address, REG_CALIB_00, 26)
            block1 = self._bus.read_i2c_block_data(self.address, REG_CALIB_26, 7)
        except OSError as exc:
            raise SensorAbsentError(f"Calibration read failed: {exc}") from exc
        self.calibration = parse_calibration(bytes(block0), bytes(block1))
        logger.info("BME280 found at 0x%02X on bus %d", self.address, self.bus_number)

    def close(self) -> None:
        if self._bus is not None and hasattr(self._bus, "close"):
            self._bus.close()
        self._bus = None

    def read(self) -> EnvironmentSample:
        """Trigger one forced-mode conversion and return compensated values.

        Raises:
            SensorReadError: bus error, conversion timeout, or not opened.
        """
        if self._bus is None or self.calibration is None:
            raise SensorReadError("BME280 not opened")
        try:
            self._bus.write_byte_data(self.address, REG_CTRL_HUM, OSRS_X1)
            self._bus.write_byte_data(
                self.address, REG_CTRL_MEAS,
                (OSRS_X1 << 5) | (OSRS_X1 << 2) | MODE_FORCED,
            )
            deadline = self._clock() + MEASUREMENT_TIMEOUT_SEC
            while self._bus.read_byte_data(self.address, REG_STATUS) & STATUS_MEASURING:
                if self._clock() > deadline:
                    raise SensorReadError("Conversion did not finish")
                self._sleep(0.002)
            data = bytes(self._bus.read_i2c_block_data(self.address, REG_DATA, 8))
        except OSError as exc:
            raise SensorReadError(f"I2C transfer failed: {exc}") from exc

        adc_t, adc_p, adc_h = parse_raw(data)
        temperature, t_fine = compensate_temperature(self.calibration, adc_t)
        return EnvironmentSample(
            temperature_c=temperature,
            humidity_pct=compensate_humidity(self.calibration, adc_h, t_fine),
            pressure_hpa=compensate_pressure(self.calibration, adc_p, t_fine),
        )
