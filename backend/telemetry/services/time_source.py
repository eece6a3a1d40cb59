"""Network time source.

Keeps an offset between the monotonic clock and Unix time, learned from
NTP. Once the first sync succeeds the clock never reverts to unsynchronized:
a failed resync keeps the previous offset, and issued timestamps never go
backwards even if a later sync pulls the offset back.
"""

import logging
import time
from typing import Any, Callable, Optional

import ntplib

from ..state import ClockState

logger = logging.getLogger(__name__)


class TimeSource:
    """Single time authority for Reading timestamps."""

    def __init__(
        self,
        clock_state: ClockState,
        server: str = "pool.ntp.org",
        timeout: float = 2.0,
        resync_interval: float = 60.0,
        retry_interval: float = 2.0,
        client: Optional[Any] = None,
        monotonic: Callable[[], float] = time.monotonic,
        wall: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.state = clock_state
        self.server = server
        self.timeout = timeout
        self.resync_interval = resync_interval
        self.retry_interval = retry_interval
        self._client = client if client is not None else ntplib.NTPClient()
        self._monotonic = monotonic
        self._wall = wall
        self._sleep = sleep

    def sync(self) -> bool:
        """Query NTP once. Returns True and updates the offset on success."""
        try:
            response = self._client.request(self.server, version=3, timeout=self.timeout)
        except (ntplib.NTPException, OSError) as exc:
            logger.warning("NTP sync with %s failed: %s", self.server, exc)
            return False

        mono = self._monotonic()
        epoch = self._wall() + response.offset
        self.state.offset_seconds = epoch - mono
        self.state.last_sync_at = mono
        logger.debug("NTP sync OK: offset %.3fs vs local clock", response.offset)
        return True

    def wait_for_initial_sync(self, before_attempt: Optional[Callable[[], Any]] = None) -> None:
        """Block until the first sync succeeds.

        There is no internal timeout; the watchdog bounds how long startup
        may take. ``before_attempt`` runs before each try, used by the loop
        to bring the network up.
        """
        attempt = 0
        while not self.state.synchronized:
            attempt += 1
            if before_attempt is not None:
                before_attempt()
            if self.sync():
                logger.info("Initial time sync succeeded after %d attempt(s)", attempt)
                return
            self._sleep(self.retry_interval)

    def maybe_resync(self) -> bool:
        """Resync if the refresh interval has elapsed. Failure is non-fatal."""
        if not self.state.synchronized:
            return self.sync()
        if self._monotonic() - self.state.last_sync_at < self.resync_interval:
            return False
        return self.sync()

    def now_unix_seconds(self) -> float:
        if not self.state.synchronized:
            raise RuntimeError("Clock not synchronized")
        now = self._monotonic() + self.state.offset_seconds
        if now < self.state.last_issued:
            now = self.state.last_issued
        self.state.last_issued = now
        return now
