#!/usr/bin/env python3
"""Environmental telemetry node daemon.

The parent process is a watchdog supervisor; the acquisition loop runs in a
child it restarts whenever a cycle fails to check in before the deadline.
A missing sensor at startup halts the node instead of restarting it.

Start:  python node_main.py
Stop:   Ctrl-C or SIGTERM
"""

import logging
import sys
from pathlib import Path

# Ensure the backend package is importable when running from the backend/ dir
sys.path.insert(0, str(Path(__file__).resolve().parent))

from telemetry.config import settings
from telemetry.hardware.bme280 import BME280, SensorAbsentError
from telemetry.hardware.gpio import GpioPins
from telemetry.hardware.ultrasonic import UltrasonicRanger
from telemetry.services.acquisition import AcquisitionLoop
from telemetry.services.connectivity import ConnectivitySupervisor, NetworkLink
from telemetry.services.indicator import GpioLed, StatusIndicator
from telemetry.services.sampler import SensorSampler
from telemetry.services.time_source import TimeSource
from telemetry.services.uploader import UploadClient
from telemetry.services.watchdog import EXIT_HALT, Watchdog, WatchdogSupervisor
from telemetry.state import NodeState

logger = logging.getLogger("telemetry.node")


def build_loop(watchdog: Watchdog) -> AcquisitionLoop:
    """Wire the hardware and services from settings."""
    state = NodeState()
    pins = GpioPins()

    led = GpioLed(pins, settings.led_pin)
    led.open()
    indicator = StatusIndicator(led)

    time_source = TimeSource(
        state.clock,
        server=settings.ntp_server,
        timeout=settings.ntp_timeout_sec,
        resync_interval=settings.ntp_resync_interval_sec,
        retry_interval=settings.ntp_retry_sec,
    )
    sampler = SensorSampler(
        ranger=UltrasonicRanger(
            pins, settings.trigger_pin, settings.echo_pin,
            echo_timeout=settings.echo_timeout_sec,
        ),
        environment=BME280(settings.i2c_bus, settings.bme280_address),
        time_source=time_source,
        pulse_samples=settings.pulse_samples,
        pulse_spacing=settings.pulse_spacing_sec,
    )
    connectivity = ConnectivitySupervisor(
        NetworkLink(settings.network_interface, settings.wifi_connection),
        indicator,
        attempts=settings.connect_attempts,
        wait=settings.connect_wait_sec,
    )
    uploader = UploadClient(settings.upload_url, indicator, timeout=settings.upload_timeout_sec)

    return AcquisitionLoop(
        state, sampler, time_source, connectivity, uploader, watchdog,
        interval=settings.sample_interval_sec,
        poll_interval=settings.poll_interval_sec,
    )


def run_node(watchdog: Watchdog) -> None:
    """Child entry point: start up, then loop until killed.

    Missing hardware (GPIO, I2C bus or a sensor) exits with EXIT_HALT so
    the supervisor stops instead of restarting into the same failure.
    """
    try:
        loop = build_loop(watchdog)
        loop.start()
    except SensorAbsentError as exc:
        logger.critical("Sensor absent, halting: %s", exc)
        sys.exit(EXIT_HALT)
    loop.run()


# --------------- Entry point ---------------

def main() -> int:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(levelname)s:     %(name)s - %(message)s",
    )
    supervisor = WatchdogSupervisor(
        run_node,
        deadline=settings.watchdog_deadline_sec,
        restart_delay=settings.restart_delay_sec,
    )
    logger.info("Node supervisor starting (watchdog %.0fs)", settings.watchdog_deadline_sec)
    try:
        return supervisor.run_forever()
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
