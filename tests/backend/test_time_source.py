"""Tests for the NTP-backed time source."""

from types import SimpleNamespace

import ntplib
import pytest

from telemetry.services.time_source import TimeSource
from telemetry.state import ClockState

WALL = 1_700_000_000.0


class FakeNTPClient:
    """Replays a script of offsets (floats) and exceptions."""

    def __init__(self, script):
        self.script = list(script)
        self.requests = 0

    def request(self, host, version=3, timeout=5):
        self.requests += 1
        outcome = self.script.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(offset=outcome)


class FakeClock:
    def __init__(self):
        self.mono = 100.0
        self.sleeps: list[float] = []

    def monotonic(self):
        return self.mono

    def wall(self):
        return WALL + self.mono

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.mono += seconds


def _source(script, clock=None, **kwargs):
    clock = clock or FakeClock()
    client = FakeNTPClient(script)
    source = TimeSource(
        ClockState(),
        client=client,
        monotonic=clock.monotonic,
        wall=clock.wall,
        sleep=clock.sleep,
        **kwargs,
    )
    return source, client, clock


class TestInitialSync:
    def test_blocks_until_first_success(self):
        source, client, clock = _source(
            [ntplib.NTPException("no response"), OSError("unreachable"), 0.5],
            retry_interval=2.0,
        )
        attempts = []
        source.wait_for_initial_sync(before_attempt=lambda: attempts.append(1))
        assert client.requests == 3
        assert len(attempts) == 3
        assert clock.sleeps == [2.0, 2.0]
        assert source.state.synchronized

    def test_offset_maps_monotonic_to_unix(self):
        source, _, clock = _source([0.5])
        source.wait_for_initial_sync()
        assert source.now_unix_seconds() == pytest.approx(WALL + clock.mono + 0.5)

    def test_unsynchronized_clock_refuses_timestamps(self):
        source, _, _ = _source([])
        with pytest.raises(RuntimeError):
            source.now_unix_seconds()


class TestResync:
    def test_not_due_before_interval(self):
        source, client, clock = _source([0.0], resync_interval=60.0)
        source.wait_for_initial_sync()
        clock.mono += 30
        assert source.maybe_resync() is False
        assert client.requests == 1

    def test_due_after_interval(self):
        source, client, clock = _source([0.0, 0.2], resync_interval=60.0)
        source.wait_for_initial_sync()
        clock.mono += 61
        assert source.maybe_resync() is True
        assert client.requests == 2

    def test_failed_resync_keeps_offset(self):
        source, _, clock = _source([0.5, ntplib.NTPException("timeout")], resync_interval=60.0)
        source.wait_for_initial_sync()
        offset = source.state.offset_seconds
        clock.mono += 61
        assert source.maybe_resync() is False
        assert source.state.synchronized
        assert source.state.offset_seconds == offset

    def test_timestamps_never_go_backwards(self):
        """A resync that pulls the clock back must not reorder readings."""
        source, _, clock = _source([10.0, -5.0], resync_interval=60.0)
        source.wait_for_initial_sync()
        clock.mono += 61
        before = source.now_unix_seconds()
        source.maybe_resync()
        after = source.now_unix_seconds()
        assert after >= before
        clock.mono += 20
        assert source.now_unix_seconds() >= after
