"""Fixed-interval acquisition loop.

Each cycle: connectivity check -> time resync -> sample -> upload if
connected -> watchdog feed. Cycles are scheduled from the previous cycle's
scheduled start so variable work time does not accumulate drift; between
cycles the loop polls in short steps and keeps feeding the watchdog.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..state import ConnectionState, NodeState, Reading
from .connectivity import ConnectivitySupervisor
from .sampler import SensorSampler
from .time_source import TimeSource
from .uploader import UploadClient, UploadOutcome, UploadResult
from .watchdog import Watchdog

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    reading: Reading
    connection: ConnectionState
    upload: Optional[UploadResult]


class AcquisitionLoop:
    """Owns NodeState and drives every component once per interval."""

    def __init__(
        self,
        state: NodeState,
        sampler: SensorSampler,
        time_source: TimeSource,
        connectivity: ConnectivitySupervisor,
        uploader: UploadClient,
        watchdog: Watchdog,
        interval: float = 5.0,
        poll_interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.state = state
        self.sampler = sampler
        self.time_source = time_source
        self.connectivity = connectivity
        self.uploader = uploader
        self.watchdog = watchdog
        self.interval = interval
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self._running = False
        self._cycles = 0
        self._uploads_ok = 0
        self._uploads_failed = 0
        self._offline_cycles = 0
        self._errors = 0

    @property
    def stats(self) -> dict:
        return {
            "cycles": self._cycles,
            "uploads_ok": self._uploads_ok,
            "uploads_failed": self._uploads_failed,
            "offline_cycles": self._offline_cycles,
            "errors": self._errors,
            "connection": self.state.connection.value,
        }

    def start(self) -> None:
        """Probe sensors and block until the first time sync.

        SensorAbsentError propagates: a missing sensor is a fatal halt.
        The sync wait has no timeout of its own; the watchdog is not fed
        here, so a sync that never succeeds ends in a restart.
        """
        self.sampler.check_sensors()
        self.time_source.wait_for_initial_sync(
            before_attempt=lambda: self.connectivity.ensure(self.state)
        )
        logger.info("Startup complete, sampling every %.1fs", self.interval)

    def run_cycle(self) -> CycleReport:
        connection = self.connectivity.ensure(self.state)
        if connection is ConnectionState.CONNECTED:
            self.time_source.maybe_resync()

        reading = self.sampler.sample()
        self._cycles += 1

        upload = None
        if connection is ConnectionState.CONNECTED:
            upload = self.uploader.upload(reading)
            if upload.outcome is UploadOutcome.SUCCESS:
                self._uploads_ok += 1
            else:
                self._uploads_failed += 1
        else:
            self._offline_cycles += 1
            logger.info("Offline cycle, reading at %d dropped", reading.timestamp)

        logger.info(
            "Cycle %d: distance=%s temp=%s hum=%s pres=%s valid=%s upload=%s",
            self._cycles, reading.distance_cm, reading.temperature_c,
            reading.humidity_pct, reading.pressure_hpa, reading.environmental_valid,
            upload.outcome.value if upload else "skipped",
        )
        return CycleReport(reading=reading, connection=connection, upload=upload)

    def run(self, max_cycles: Optional[int] = None) -> None:
        """Main loop. Runs until stopped, the process is killed, or max_cycles."""
        self._running = True
        next_start = self._clock()
        completed = 0

        while self._running:
            cycle_start = next_start
            try:
                self.run_cycle()
            except Exception as e:
                self._errors += 1
                logger.error("Cycle error: %s", e, exc_info=True)

            # Reached only when every step returned
            self.watchdog.feed()
            completed += 1
            if max_cycles is not None and completed >= max_cycles:
                break

            next_start = cycle_start + self.interval
            now = self._clock()
            if now > next_start:
                logger.warning("Cycle overran interval by %.2fs", now - next_start)
                next_start = now

            while self._running and self._clock() < next_start:
                self._sleep(min(self.poll_interval, max(0.0, next_start - self._clock())))
                self.watchdog.feed()

        self._running = False

    def stop(self) -> None:
        self._running = False
