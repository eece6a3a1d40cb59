"""Process-level watchdog.

The acquisition loop runs in a child process and feeds a pipe once per
completed cycle (and while idling between cycles). The parent re-arms its
deadline on every feed; if the deadline passes without one, the child is
killed with SIGKILL and a fresh child is started. A hang inside a blocking
call cannot be interrupted in-process, so there is no softer recovery.
"""

import logging
import multiprocessing
import time
from dataclasses import dataclass
from multiprocessing.connection import Connection
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

# Child exit code meaning "do not restart me" (e.g. sensor absent)
EXIT_HALT = 3

_POLL_STEP_SEC = 0.25


class Watchdog:
    """Child-side handle. ``feed()`` re-arms the parent's deadline."""

    def __init__(self, conn: Optional[Connection] = None):
        self._conn = conn

    def feed(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.send_bytes(b"\x01")
        except (BrokenPipeError, OSError):
            # Parent gone; nothing left to report to
            self._conn = None


@dataclass
class ChildExit:
    reason: str  # "hang" or "exit"
    exitcode: Optional[int]
    elapsed: float
    feeds: int


class WatchdogSupervisor:
    """Runs ``target(watchdog, *args)`` in a child and restarts it on hang or exit."""

    def __init__(
        self,
        target: Callable[..., Any],
        deadline: float = 20.0,
        args: tuple = (),
        restart_delay: float = 1.0,
        start_method: str = "fork",
        max_restarts: Optional[int] = None,
    ):
        self.target = target
        self.deadline = deadline
        self.args = args
        self.restart_delay = restart_delay
        self.max_restarts = max_restarts
        self._ctx = multiprocessing.get_context(start_method)
        self.restarts = 0

    def run_once(self) -> ChildExit:
        """Start one child and supervise it until it exits or is killed."""
        recv_conn, send_conn = self._ctx.Pipe(duplex=False)
        proc = self._ctx.Process(
            target=_child_main,
            args=(self.target, send_conn, self.args),
            name="acquisition",
            daemon=True,
        )
        started = time.monotonic()
        proc.start()
        send_conn.close()

        feeds = 0
        armed_until = started + self.deadline
        try:
            while True:
                now = time.monotonic()
                if now >= armed_until:
                    logger.error(
                        "Watchdog deadline %.1fs exceeded (pid %s), killing child",
                        self.deadline, proc.pid,
                    )
                    proc.kill()
                    proc.join()
                    return ChildExit("hang", proc.exitcode, time.monotonic() - started, feeds)

                if recv_conn.poll(min(armed_until - now, _POLL_STEP_SEC)):
                    try:
                        while recv_conn.poll():
                            recv_conn.recv_bytes()
                            feeds += 1
                    except EOFError:
                        proc.join()
                        return ChildExit("exit", proc.exitcode, time.monotonic() - started, feeds)
                    armed_until = time.monotonic() + self.deadline
                elif not proc.is_alive():
                    proc.join()
                    return ChildExit("exit", proc.exitcode, time.monotonic() - started, feeds)
        finally:
            recv_conn.close()

    def run_forever(self) -> int:
        """Supervise until the child asks to halt or the restart budget runs out."""
        while True:
            result = self.run_once()
            if result.reason == "exit" and result.exitcode == EXIT_HALT:
                logger.critical("Child requested halt, not restarting")
                return EXIT_HALT
            logger.warning(
                "Child ended (%s, exit code %s) after %.1fs; restarting",
                result.reason, result.exitcode, result.elapsed,
            )
            self.restarts += 1
            if self.max_restarts is not None and self.restarts > self.max_restarts:
                logger.error("Restart budget of %d exhausted", self.max_restarts)
                return 1
            time.sleep(self.restart_delay)


def _child_main(target: Callable[..., Any], conn: Connection, args: tuple) -> None:
    target(Watchdog(conn), *args)
