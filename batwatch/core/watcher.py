from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, Optional, Protocol, Tuple, Union

from batwatch.core.bus import TOPIC_ALERT, TOPIC_STARTED, TOPIC_STOPPED, TOPIC_TICK, SQLiteBus
from batwatch.core.config import WatcherConfig
from batwatch.core.errors import ReadError
from batwatch.core.interval import on_interval
from batwatch.core.level import Level, transition
from batwatch.core.percentage import Breakpoints, Percentage
from batwatch.core.source import ReadingSource, resolve_source
from batwatch.core.status import Alert, Status

Reading = Union[Percentage, ReadError]


@dataclass(frozen=True)
class WatcherState:
    level: Level = Level.UNKNOWN
    percentage: Optional[int] = None
    error: Optional[str] = None
    ticks: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "percentage": self.percentage,
            "error": self.error,
            "ticks": self.ticks,
        }


def advance(
    breakpoints: Breakpoints, state: WatcherState, reading: Reading
) -> Tuple[WatcherState, Optional[Status]]:
    """
    One tick as a pure function of (breakpoints, previous state, reading).

    A failed read forces the level to UNKNOWN and always reports UNKNOWN,
    even when the level already was UNKNOWN: every consecutive failure is
    alerted, which the transition table alone would suppress.
    """
    if isinstance(reading, ReadError):
        new_state = replace(
            state,
            level=Level.UNKNOWN,
            percentage=None,
            error=str(reading),
            ticks=state.ticks + 1,
        )
        return new_state, Status.UNKNOWN

    level = breakpoints.classify(reading)
    status = transition(state.level, level)
    new_state = replace(
        state,
        level=level,
        percentage=reading.value,
        error=None,
        ticks=state.ticks + 1,
    )
    return new_state, status


class AlertSink(Protocol):
    def send(self, alert: Alert) -> None: ...


class Watcher:
    """
    Keeps track of the battery level and emits alerts when it changes.

    Ticks never overlap: a lock is held from the read until the alert has
    been handed to the sink.
    """

    def __init__(
        self,
        config: WatcherConfig,
        *,
        source: Optional[ReadingSource] = None,
        sink: Optional[AlertSink] = None,
        bus: Optional[SQLiteBus] = None,
    ) -> None:
        self.config = config
        self.source = source if source is not None else resolve_source(config.source)
        self.sink = sink
        self.bus = bus
        self.state = WatcherState()

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self.log = logging.getLogger("batwatch.core.watcher")

    def tick(self) -> Optional[Alert]:
        with self._lock:
            try:
                reading: Reading = self.source.read()
            except ReadError as exc:
                reading = exc
                self.log.warning("battery read failed: %s", exc)

            previous = self.state.level
            self.state, status = advance(self.config.breakpoints, self.state, reading)

            self.log.debug(
                "percentage=%s level=%s->%s status=%s",
                self.state.percentage,
                previous.value,
                self.state.level.value,
                status.value if status else None,
            )

            alert = None
            if status is not None:
                alert = Alert.from_status(
                    status, detail=self.state.error, timeout_ms=self.config.timeout_ms
                )

            self._publish(TOPIC_TICK, {**self.state.to_dict(), "previous": previous.value})
            if alert is not None:
                self.log.info("alert: %s", alert.summary)
                self._publish(TOPIC_ALERT, Alert.to_dict(alert))
                self._deliver(alert)
            if self.state.ticks % self.config.prune_every == 0:
                self._prune()
            return alert

    def _deliver(self, alert: Alert) -> None:
        if self.sink is None:
            return
        try:
            self.sink.send(alert)
        except Exception:
            self.log.exception("alert delivery failed: %s", alert.summary)

    def _publish(self, topic: str, payload: Dict[str, Any]) -> None:
        if self.bus is None:
            return
        try:
            self.bus.publish(topic, payload)
        except Exception:
            self.log.exception("bus publish failed: %s", topic)

    def _prune(self) -> None:
        if self.bus is None:
            return
        try:
            removed = self.bus.prune(keep_last=self.config.keep_last)
        except Exception:
            self.log.exception("bus prune failed")
            return
        if removed:
            self.log.debug("pruned %d events (keep_last=%d)", removed, self.config.keep_last)

    def alerts(self, max_ticks: Optional[int] = None) -> Iterator[Alert]:
        """
        Tick on the configured interval and yield every alert.

        The first tick is immediate; each following tick waits the full
        interval after the previous one finished.
        """
        ticks = 0
        for _ in on_interval(self.config.interval_s, immediate=True, sleep=self._stop.wait):
            if self._stop.is_set():
                return
            alert = self.tick()
            ticks += 1
            if alert is not None:
                yield alert
            if max_ticks is not None and ticks >= max_ticks:
                return

    def run(self, max_ticks: Optional[int] = None) -> int:
        self._stop.clear()
        self._publish(TOPIC_STARTED, {"ts": time.time(), **self.config.as_dict()})
        self.log.info(
            "watcher started source=%s interval=%ss", self.config.source, self.config.interval_s
        )
        emitted = 0
        try:
            for _alert in self.alerts(max_ticks=max_ticks):
                emitted += 1
        finally:
            self._publish(TOPIC_STOPPED, {"ts": time.time(), "ticks": self.state.ticks})
            self.log.info("watcher stopped after %d ticks", self.state.ticks)
        return emitted

    def stop(self) -> None:
        self._stop.set()
