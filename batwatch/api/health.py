from __future__ import annotations

import time

from batwatch.core.bus import TOPIC_TICK, SQLiteBus


def watcher_max_age(interval_s: float) -> float:
    """A tick older than two intervals plus some slack means the watcher is gone."""
    return float(interval_s) * 2 + 10.0


def watcher_health_ok(bus: SQLiteBus, max_age_s: float = 100.0) -> tuple[bool, float | None]:
    evt = bus.latest(TOPIC_TICK)
    if evt is None:
        return False, None
    age = time.time() - float(evt.ts)
    return age <= max_age_s, float(evt.ts)
