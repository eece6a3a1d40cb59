"""Tests for the acquisition loop: cycle order, scheduling and watchdog feeds."""

import sys
from types import SimpleNamespace

import httpx
import pytest

import node_main
from telemetry.hardware.bme280 import EnvironmentSample, SensorAbsentError
from telemetry.services.acquisition import AcquisitionLoop
from telemetry.services.connectivity import ConnectivitySupervisor
from telemetry.services.indicator import StatusIndicator
from telemetry.services.sampler import SensorSampler
from telemetry.services.time_source import TimeSource
from telemetry.services.uploader import UploadClient, UploadOutcome, UploadResult
from telemetry.services.watchdog import EXIT_HALT
from telemetry.state import ConnectionState, NodeState, Reading


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


class FakeSampler:
    def __init__(self, clock, work=0.0, fail_first=False):
        self.clock = clock
        self.work = work
        self.fail_first = fail_first
        self.started_at: list[float] = []
        self.checked = False

    def check_sensors(self):
        self.checked = True

    def sample(self):
        self.started_at.append(self.clock.now)
        self.clock.now += self.work
        if self.fail_first and len(self.started_at) == 1:
            raise ValueError("boom")
        return Reading(100.0, 20.0, 50.0, 1000.0, 1_700_000_000, True)


class FakeTimeSource:
    def __init__(self):
        self.resyncs = 0
        self.initial_attempts = 0

    def wait_for_initial_sync(self, before_attempt=None):
        self.initial_attempts += 1
        if before_attempt:
            before_attempt()

    def maybe_resync(self):
        self.resyncs += 1
        return False


class FakeConnectivity:
    def __init__(self, result=ConnectionState.CONNECTED):
        self.result = result
        self.calls = 0

    def ensure(self, state):
        self.calls += 1
        state.connection = self.result
        return self.result


class FakeUploader:
    def __init__(self):
        self.sent: list[Reading] = []

    def upload(self, reading):
        self.sent.append(reading)
        return UploadResult(UploadOutcome.SUCCESS, status_code=302)


class FakeWatchdog:
    def __init__(self, clock):
        self.clock = clock
        self.fed_at: list[float] = []

    def feed(self):
        self.fed_at.append(self.clock.now)


def _loop(work=0.0, connection=ConnectionState.CONNECTED, fail_first=False):
    clock = FakeClock()
    parts = SimpleNamespace(
        clock=clock,
        sampler=FakeSampler(clock, work=work, fail_first=fail_first),
        time_source=FakeTimeSource(),
        connectivity=FakeConnectivity(connection),
        uploader=FakeUploader(),
        watchdog=FakeWatchdog(clock),
    )
    loop = AcquisitionLoop(
        NodeState(), parts.sampler, parts.time_source, parts.connectivity,
        parts.uploader, parts.watchdog,
        interval=5.0, poll_interval=0.1, clock=clock, sleep=clock.sleep,
    )
    return loop, parts


class TestRunCycle:
    def test_connected_cycle_uploads(self):
        loop, parts = _loop()
        report = loop.run_cycle()
        assert report.connection is ConnectionState.CONNECTED
        assert report.upload.outcome is UploadOutcome.SUCCESS
        assert parts.time_source.resyncs == 1
        assert parts.uploader.sent == [report.reading]
        assert loop.stats["uploads_ok"] == 1

    def test_offline_cycle_skips_upload_and_resync(self):
        loop, parts = _loop(connection=ConnectionState.DISCONNECTED)
        report = loop.run_cycle()
        assert report.upload is None
        assert parts.uploader.sent == []
        assert parts.time_source.resyncs == 0
        assert loop.stats["offline_cycles"] == 1
        assert loop.stats["connection"] == "disconnected"


class TestRun:
    def test_schedule_does_not_drift(self):
        loop, parts = _loop(work=1.5)
        loop.run(max_cycles=4)
        assert parts.sampler.started_at == pytest.approx([0.0, 5.0, 10.0, 15.0], abs=1e-6)

    def test_overrun_starts_next_cycle_immediately(self):
        loop, parts = _loop(work=7.0)
        loop.run(max_cycles=3)
        assert parts.sampler.started_at == pytest.approx([0.0, 7.0, 14.0])

    def test_watchdog_fed_through_idle_time(self):
        loop, parts = _loop(work=1.5)
        loop.run(max_cycles=3)
        fed = parts.watchdog.fed_at
        assert len(fed) > 3
        gaps = [b - a for a, b in zip(fed, fed[1:])]
        assert max(gaps) <= 1.5 + 0.1 + 1e-6

    def test_cycle_error_still_feeds_and_continues(self):
        loop, parts = _loop(fail_first=True)
        loop.run(max_cycles=2)
        assert loop.stats["errors"] == 1
        assert len(parts.sampler.started_at) == 2
        assert parts.watchdog.fed_at[0] == 0.0

    def test_stop_ends_loop(self):
        loop, parts = _loop()
        def upload_then_stop(reading):
            loop.stop()
            return UploadResult(UploadOutcome.SUCCESS)

        parts.uploader.upload = upload_then_stop
        loop.run()
        assert loop.stats["cycles"] == 1


class TestStart:
    def test_checks_sensors_then_syncs_with_network(self):
        loop, parts = _loop()
        loop.start()
        assert parts.sampler.checked
        assert parts.time_source.initial_attempts == 1
        assert parts.connectivity.calls == 1

    def test_absent_sensor_propagates(self):
        loop, parts = _loop()

        def absent():
            raise SensorAbsentError("No device at 0x76")

        parts.sampler.check_sensors = absent
        with pytest.raises(SensorAbsentError):
            loop.start()


class TestNodeWiring:
    def test_unavailable_distance_still_uploaded(self):
        """No valid echo: the reading goes out with distance=nan."""
        sent = []

        def handler(request):
            sent.append(dict(request.url.params))
            return httpx.Response(302, headers={"location": "/api/readings/latest"})

        class NoEcho:
            def open(self):
                pass

            def sample_pulses(self, count, spacing):
                return [None] * count

        class Env:
            def open(self):
                pass

            def read(self):
                return EnvironmentSample(21.0, 40.0, 1010.0)

        class Ntp:
            def request(self, host, version=3, timeout=5):
                return SimpleNamespace(offset=0.0)

        class UpLink:
            def is_associated(self):
                return True

            def associate(self):
                pass

        state = NodeState()
        indicator = StatusIndicator(led=None)
        time_source = TimeSource(state.clock, client=Ntp())
        loop = AcquisitionLoop(
            state,
            SensorSampler(NoEcho(), Env(), time_source),
            time_source,
            ConnectivitySupervisor(UpLink(), indicator),
            UploadClient(
                "https://store.test/api/readings/submit", indicator,
                transport=httpx.MockTransport(handler),
            ),
            watchdog=FakeWatchdog(FakeClock()),
        )
        loop.start()
        report = loop.run_cycle()

        assert report.reading.distance_cm is None
        assert report.upload.outcome is UploadOutcome.SUCCESS
        assert sent[0]["distance"] == "nan"
        assert sent[0]["temperature"] == "21.00"
        assert indicator.history == ["success"]

    def test_absent_sensor_halts_node(self, monkeypatch):
        class AbsentLoop:
            def start(self):
                raise SensorAbsentError("No device at 0x76")

            def run(self):
                raise AssertionError("must not run")

        monkeypatch.setattr(node_main, "build_loop", lambda watchdog: AbsentLoop())
        with pytest.raises(SystemExit) as info:
            node_main.run_node(None)
        assert info.value.code == EXIT_HALT

    def test_gpio_unavailable_halts_node(self, monkeypatch):
        """Off the Pi the LED pins cannot open; that is a halt, not a restart."""
        monkeypatch.setitem(sys.modules, "RPi", None)
        monkeypatch.setitem(sys.modules, "RPi.GPIO", None)
        with pytest.raises(SystemExit) as info:
            node_main.run_node(None)
        assert info.value.code == EXIT_HALT
