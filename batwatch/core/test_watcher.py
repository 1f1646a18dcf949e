from __future__ import annotations

import threading
import time
from typing import List

import pytest

from batwatch.core.bus import TOPIC_ALERT, TOPIC_TICK, SQLiteBus
from batwatch.core.config import WatcherConfig
from batwatch.core.errors import ParseError, SourceIOError
from batwatch.core.interval import on_interval
from batwatch.core.level import Level
from batwatch.core.percentage import Breakpoints, Percentage
from batwatch.core.status import Alert, Status
from batwatch.core.watcher import Watcher, WatcherState, advance

BP = Breakpoints.new(10, 13, 94, 97)


class ScriptedSource:
    """Replays readings; an exception instance in the script is raised."""

    def __init__(self, script):
        self.script = list(script)

    def read(self) -> Percentage:
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return Percentage(item)


class ListSink:
    def __init__(self) -> None:
        self.alerts: List[Alert] = []

    def send(self, alert: Alert) -> None:
        self.alerts.append(alert)


class BrokenSink:
    def send(self, alert: Alert) -> None:
        raise RuntimeError("display gone")


def _watcher(script, **kwargs) -> Watcher:
    cfg = WatcherConfig.new("/dev/null", BP, 0.01)
    return Watcher(cfg, source=ScriptedSource(script), **kwargs)


def test_advance_success_uses_transition():
    state, status = advance(BP, WatcherState(), Percentage(5))
    assert state.level is Level.CRITICAL
    assert state.percentage == 5
    assert state.ticks == 1
    assert status is Status.CRITICAL

    state, status = advance(BP, state, Percentage(12))
    assert state.level is Level.LOW
    assert status is None


def test_advance_failure_forces_unknown_every_time():
    err = SourceIOError("/sys/x", "No such file or directory")
    state, status = advance(BP, WatcherState(), err)
    assert state.level is Level.UNKNOWN
    assert status is Status.UNKNOWN
    assert "No such file" in state.error

    state, status = advance(BP, state, err)
    assert state.level is Level.UNKNOWN
    assert status is Status.UNKNOWN
    assert state.ticks == 2


def test_advance_does_not_mutate_previous_state():
    before = WatcherState()
    advance(BP, before, Percentage(50))
    assert before == WatcherState()


def test_end_to_end_scenario():
    sink = ListSink()
    watcher = _watcher(
        [5, 12, 50, 95, SourceIOError("/sys/x", "gone")],
        sink=sink,
    )

    assert watcher.state.level is Level.UNKNOWN

    first = watcher.tick()
    assert first is not None and first.status is Status.CRITICAL
    assert watcher.tick() is None
    assert watcher.tick() is None
    fourth = watcher.tick()
    assert fourth is not None and fourth.status is Status.HIGH

    fifth = watcher.tick()
    assert fifth is not None
    assert fifth.status is Status.UNKNOWN
    assert "gone" in fifth.detail
    assert watcher.state.level is Level.UNKNOWN

    assert [a.status for a in sink.alerts] == [Status.CRITICAL, Status.HIGH, Status.UNKNOWN]


def test_repeated_failures_each_alert():
    sink = ListSink()
    watcher = _watcher([ParseError("foo"), ParseError("foo"), ParseError("foo")], sink=sink)
    for _ in range(3):
        alert = watcher.tick()
        assert alert is not None and alert.status is Status.UNKNOWN
    assert len(sink.alerts) == 3


def test_recovery_after_failure_reports_new_level():
    watcher = _watcher([50, SourceIOError("/x", "gone"), 50])
    assert watcher.tick() is None
    assert watcher.tick().status is Status.UNKNOWN
    assert watcher.tick() is None
    assert watcher.state.level is Level.REGULAR


def test_sink_failure_does_not_break_watcher():
    watcher = _watcher([5, 99], sink=BrokenSink())
    assert watcher.tick().status is Status.CRITICAL
    assert watcher.state.level is Level.CRITICAL
    assert watcher.tick().status is Status.FULL
    assert watcher.state.level is Level.FULL


def test_tick_publishes_to_bus(tmp_path):
    bus = SQLiteBus(str(tmp_path / "events.db"))
    watcher = _watcher([5, 6], bus=bus)
    watcher.tick()
    watcher.tick()

    ticks = bus.tail(topic_prefix=TOPIC_TICK)
    assert len(ticks) == 2
    assert ticks[0].payload["level"] == "critical"
    assert ticks[0].payload["previous"] == "critical"
    alerts = bus.tail(topic_prefix=TOPIC_ALERT)
    assert len(alerts) == 1
    assert alerts[0].payload["status"] == "critical"


def test_run_stops_after_max_ticks():
    sink = ListSink()
    watcher = _watcher([5, 50, 99], sink=sink)
    emitted = watcher.run(max_ticks=3)
    assert emitted == 2
    assert watcher.state.ticks == 3
    assert [a.status for a in sink.alerts] == [Status.CRITICAL, Status.FULL]


def test_alerts_iterator_yields_only_alerts():
    watcher = _watcher([5, 6, 7, 50, 99])
    statuses = [a.status for a in watcher.alerts(max_ticks=5)]
    assert statuses == [Status.CRITICAL, Status.FULL]


def test_stop_before_run_tick():
    watcher = _watcher([5])
    watcher._stop.set()
    assert list(watcher.alerts(max_ticks=1)) == []
    assert watcher.state.ticks == 0


def test_on_interval_first_step_is_immediate():
    sleeps: List[float] = []
    it = on_interval(45.0, immediate=True, sleep=sleeps.append)
    next(it)
    assert sleeps == []
    next(it)
    next(it)
    assert sleeps == [45.0, 45.0]


def test_on_interval_not_immediate():
    sleeps: List[float] = []
    it = on_interval(3.0, immediate=False, sleep=sleeps.append)
    next(it)
    assert sleeps == [3.0]


@pytest.mark.parametrize("interval", [0, -1.0, float("nan"), float("inf")])
def test_config_rejects_non_positive_interval(interval):
    from batwatch.core.errors import MustBePositive

    with pytest.raises(MustBePositive):
        WatcherConfig.new("/sys/x", BP, interval)


def test_config_rejects_blank_source():
    from batwatch.core.errors import Required

    with pytest.raises(Required):
        WatcherConfig.new("   ", BP, 45)


def test_config_constructor_validates():
    from batwatch.core.errors import MustBePositive, Required

    with pytest.raises(Required):
        WatcherConfig(source="", breakpoints=BP, interval_s=45.0)
    with pytest.raises(MustBePositive):
        WatcherConfig(source="/sys/x", breakpoints=BP, interval_s=-1.0)

    cfg = WatcherConfig(source="  /sys/x \n", breakpoints=BP, interval_s=30)
    assert cfg.source == "/sys/x"
    assert cfg.interval_s == 30.0
    assert isinstance(cfg.interval_s, float)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"timeout_ms": -1},
        {"timeout_ms": 0},
        {"timeout_ms": 2.5},
        {"keep_last": 0},
        {"prune_every": 0},
    ],
)
def test_config_rejects_bad_timeout_and_retention(kwargs):
    from batwatch.core.errors import ValidationError

    with pytest.raises(ValidationError):
        WatcherConfig.new("/sys/x", BP, 45, **kwargs)


def test_alert_timeout_comes_from_config():
    cfg = WatcherConfig.new("/dev/null", BP, 0.01, timeout_ms=1234)
    watcher = Watcher(cfg, source=ScriptedSource([99]))
    assert watcher.tick().timeout_ms == 1234


def test_tick_prunes_bus_history(tmp_path):
    bus = SQLiteBus(str(tmp_path / "events.db"))
    cfg = WatcherConfig.new("/dev/null", BP, 0.01, keep_last=3, prune_every=2)
    watcher = Watcher(cfg, source=ScriptedSource([50] * 5), bus=bus)

    watcher.tick()
    assert len(bus.tail(limit=100)) == 1
    for _ in range(3):
        watcher.tick()
    ticks = bus.tail(limit=100)
    assert len(ticks) == 3
    assert ticks[0].payload["ticks"] == 4

    watcher.tick()
    assert len(bus.tail(limit=100)) == 4


class SlowSource:
    """Counts how many reads are in flight at once."""

    def __init__(self, delay: float = 0.05) -> None:
        self.delay = delay
        self.active = 0
        self.peak = 0
        self.guard = threading.Lock()

    def read(self) -> Percentage:
        with self.guard:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(self.delay)
        with self.guard:
            self.active -= 1
        return Percentage(50)


def test_ticks_never_overlap():
    source = SlowSource()
    watcher = Watcher(WatcherConfig.new("/dev/null", BP, 0.01), source=source)

    def worker() -> None:
        for _ in range(3):
            watcher.tick()

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert source.peak == 1
    assert watcher.state.ticks == 6
