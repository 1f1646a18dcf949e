from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from batwatch.core import validate
from batwatch.core.paths import DEFAULT_IMAGE_PATH, DEFAULT_SOURCE
from batwatch.core.percentage import Breakpoints
from batwatch.core.status import DEFAULT_TIMEOUT_MS


def _load_toml(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}
    try:
        import tomllib  # py>=3.11

        return tomllib.loads(p.read_text(encoding="utf-8"))
    except ModuleNotFoundError:
        import tomli  # type: ignore

        return tomli.loads(p.read_text(encoding="utf-8"))


def _section(d: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = d.get(name)
    return value if isinstance(value, dict) else {}


@dataclass
class BatteryCfg:
    source: str = DEFAULT_SOURCE


@dataclass
class BreakpointsCfg:
    critical: int = 10
    low: int = 13
    high: int = 94
    full: int = 97


@dataclass
class WatcherCfg:
    interval_s: float = 45.0


@dataclass
class NotifyCfg:
    sinks: List[str] = field(default_factory=lambda: ["log", "desktop"])
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    app_name: str = "batwatch"


@dataclass
class DisplayCfg:
    image_path: str = DEFAULT_IMAGE_PATH
    width: int = 250
    height: int = 122


@dataclass
class UiCfg:
    host: str = "127.0.0.1"
    port: int = 8090


@dataclass
class RetentionCfg:
    events_keep_last: int = 5000
    prune_every_ticks: int = 100


@dataclass
class AppConfig:
    battery: BatteryCfg = field(default_factory=BatteryCfg)
    breakpoints: BreakpointsCfg = field(default_factory=BreakpointsCfg)
    watcher: WatcherCfg = field(default_factory=WatcherCfg)
    notify: NotifyCfg = field(default_factory=NotifyCfg)
    display: DisplayCfg = field(default_factory=DisplayCfg)
    ui: UiCfg = field(default_factory=UiCfg)
    retention: RetentionCfg = field(default_factory=RetentionCfg)


@dataclass(frozen=True)
class WatcherConfig:
    """
    Validated settings the watcher runs with.

    Building one is the fail-fast point: a bad source, breakpoint set,
    interval, alert timeout or retention setting raises a ValidationError
    here, before any tick happens.
    """

    source: str
    breakpoints: Breakpoints
    interval_s: float
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    keep_last: int = 5000
    prune_every: int = 100

    def __post_init__(self) -> None:
        object.__setattr__(self, "source", validate.required("battery.source", self.source))
        object.__setattr__(
            self,
            "interval_s",
            validate.greater_than_zero("watcher.interval_s", float(self.interval_s)),
        )
        for name, attr in (
            ("notify.timeout_ms", "timeout_ms"),
            ("retention.events_keep_last", "keep_last"),
            ("retention.prune_every_ticks", "prune_every"),
        ):
            value = validate.integer(name, getattr(self, attr))
            validate.greater_than_zero(name, value)

    @classmethod
    def new(
        cls,
        source: str,
        breakpoints: Breakpoints,
        interval_s: float,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        keep_last: int = 5000,
        prune_every: int = 100,
    ) -> "WatcherConfig":
        return cls(
            source=source,
            breakpoints=breakpoints,
            interval_s=interval_s,
            timeout_ms=timeout_ms,
            keep_last=keep_last,
            prune_every=prune_every,
        )

    @classmethod
    def from_app_config(cls, cfg: AppConfig) -> "WatcherConfig":
        bp = cfg.breakpoints
        return cls.new(
            source=cfg.battery.source,
            breakpoints=Breakpoints.new(bp.critical, bp.low, bp.high, bp.full),
            interval_s=cfg.watcher.interval_s,
            timeout_ms=cfg.notify.timeout_ms,
            keep_last=cfg.retention.events_keep_last,
            prune_every=cfg.retention.prune_every_ticks,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "breakpoints": self.breakpoints.as_dict(),
            "interval_s": self.interval_s,
            "timeout_ms": self.timeout_ms,
            "keep_last": self.keep_last,
            "prune_every": self.prune_every,
        }


class ConfigStore:
    """
    Loads config.toml, caches it, reloads when the file's mtime changes.
    Missing file or missing keys fall back to defaults.
    """

    def __init__(self, path: str = "config.toml"):
        self.path = path
        self._mtime: float = 0.0
        self._cfg: AppConfig = self._from_dict({})

    def _from_dict(self, d: Dict[str, Any]) -> AppConfig:
        # whole-number settings are passed through untouched and checked by
        # WatcherConfig, so `critical = 10.9` is rejected instead of truncated
        battery = _section(d, "battery")
        breakpoints = _section(d, "breakpoints")
        watcher = _section(d, "watcher")
        notify = _section(d, "notify")
        display = _section(d, "display")
        ui = _section(d, "ui")
        retention = _section(d, "retention")

        return AppConfig(
            battery=BatteryCfg(
                source=str(battery.get("source", DEFAULT_SOURCE)),
            ),
            breakpoints=BreakpointsCfg(
                critical=breakpoints.get("critical", 10),
                low=breakpoints.get("low", 13),
                high=breakpoints.get("high", 94),
                full=breakpoints.get("full", 97),
            ),
            watcher=WatcherCfg(
                interval_s=float(watcher.get("interval_s", 45.0)),
            ),
            notify=NotifyCfg(
                sinks=[str(s) for s in (notify.get("sinks", ["log", "desktop"]) or [])],
                timeout_ms=notify.get("timeout_ms", DEFAULT_TIMEOUT_MS),
                app_name=str(notify.get("app_name", "batwatch")),
            ),
            display=DisplayCfg(
                image_path=str(display.get("image_path", DEFAULT_IMAGE_PATH)),
                width=int(display.get("width", 250)),
                height=int(display.get("height", 122)),
            ),
            ui=UiCfg(
                host=str(ui.get("host", "127.0.0.1")),
                port=int(ui.get("port", 8090)),
            ),
            retention=RetentionCfg(
                events_keep_last=retention.get("events_keep_last", 5000),
                prune_every_ticks=retention.get("prune_every_ticks", 100),
            ),
        )

    def load(self) -> AppConfig:
        d = _load_toml(self.path)
        self._cfg = self._from_dict(d)
        try:
            self._mtime = Path(self.path).stat().st_mtime
        except OSError:
            self._mtime = time.time()
        return self._cfg

    def get(self) -> AppConfig:
        p = Path(self.path)
        if p.exists():
            m = p.stat().st_mtime
            if m > self._mtime:
                self.load()
        return self._cfg

    def reload(self) -> AppConfig:
        return self.load()
