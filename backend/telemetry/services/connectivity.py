"""Best-effort network association.

DISCONNECTED -> CONNECTING -> CONNECTED, or back to DISCONNECTED once the
attempt budget is spent. Called at the top of every cycle; when the link is
already up the check is a single sysfs read.
"""

import logging
import subprocess
import time
from pathlib import Path
from typing import Callable, Protocol

from ..state import ConnectionState, NodeState
from .indicator import StatusIndicator

logger = logging.getLogger(__name__)

SYSFS_NET = Path("/sys/class/net")
NMCLI_TIMEOUT_SEC = 2.0


class Link(Protocol):
    def is_associated(self) -> bool: ...
    def associate(self) -> None: ...


class NetworkLink:
    """Host network interface, brought up through NetworkManager if configured."""

    def __init__(self, interface: str = "wlan0", connection: str = "", sysfs: Path = SYSFS_NET):
        self.interface = interface
        self.connection = connection
        self._operstate = sysfs / interface / "operstate"

    def is_associated(self) -> bool:
        try:
            return self._operstate.read_text().strip() == "up"
        except OSError:
            return False

    def associate(self) -> None:
        """Start association without waiting for it to complete."""
        if not self.connection:
            return
        try:
            subprocess.run(
                ["nmcli", "--wait", "0", "connection", "up", "id", self.connection],
                check=False,
                capture_output=True,
                timeout=NMCLI_TIMEOUT_SEC,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.warning("nmcli connection up %s failed: %s", self.connection, exc)


class ConnectivitySupervisor:
    def __init__(
        self,
        link: Link,
        indicator: StatusIndicator,
        attempts: int = 30,
        wait: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.link = link
        self.indicator = indicator
        self.attempts = attempts
        self.wait = wait
        self._sleep = sleep

    def ensure(self, state: NodeState) -> ConnectionState:
        """Update ``state.connection`` with at most one bounded association attempt."""
        if self.link.is_associated():
            if state.connection is not ConnectionState.CONNECTED:
                logger.info("Network link up")
            state.connection = ConnectionState.CONNECTED
            return state.connection

        if state.connection is ConnectionState.CONNECTED:
            logger.warning("Network link lost")

        state.connection = ConnectionState.CONNECTING
        logger.info("Associating (%d attempts x %.2fs)", self.attempts, self.wait)
        self.link.associate()
        for _ in range(self.attempts):
            self._sleep(self.wait)
            if self.link.is_associated():
                logger.info("Network link up")
                state.connection = ConnectionState.CONNECTED
                return state.connection

        logger.warning("Association gave up after %d attempts", self.attempts)
        state.connection = ConnectionState.DISCONNECTED
        self.indicator.offline()
        return state.connection
