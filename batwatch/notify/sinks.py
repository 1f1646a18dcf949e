from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Callable, Iterable, List, Optional, Sequence

from batwatch.core.bus import TOPIC_DELIVERED, SQLiteBus
from batwatch.core.config import AppConfig
from batwatch.core.status import Alert, Urgency
from batwatch.display.render import render_alert, save_alert_image

log = logging.getLogger("batwatch.notify.sinks")

SINK_NAMES = ("log", "desktop", "bus", "display")


class LogSink:
    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or log

    def send(self, alert: Alert) -> None:
        level = logging.WARNING if alert.urgency is Urgency.CRITICAL else logging.INFO
        if alert.detail:
            self.logger.log(level, "%s: %s", alert.summary, alert.detail)
        else:
            self.logger.log(level, "%s", alert.summary)


class DesktopSink:
    """Desktop notification through ``notify-send`` (libnotify)."""

    def __init__(
        self,
        app_name: str = "batwatch",
        binary: str = "notify-send",
        runner: Callable[..., object] = subprocess.run,
    ) -> None:
        self.app_name = app_name
        self.binary = binary
        self.runner = runner

    def command(self, alert: Alert) -> List[str]:
        cmd = [
            self.binary,
            "--app-name",
            self.app_name,
            "--urgency",
            alert.urgency.value,
            "--expire-time",
            str(alert.timeout_ms),
            alert.summary,
        ]
        if alert.detail:
            cmd.append(alert.detail)
        return cmd

    def send(self, alert: Alert) -> None:
        if shutil.which(self.binary) is None:
            raise FileNotFoundError(f"{self.binary} not found in PATH")
        self.runner(self.command(alert), check=True, capture_output=True, timeout=10)


class BusSink:
    def __init__(self, bus: SQLiteBus, topic: str = TOPIC_DELIVERED) -> None:
        self.bus = bus
        self.topic = topic

    def send(self, alert: Alert) -> None:
        self.bus.publish(self.topic, Alert.to_dict(alert))


class DisplaySink:
    """Renders the alert card to an image file (e-paper frame or dry run)."""

    def __init__(self, image_path: str, width: int = 250, height: int = 122) -> None:
        self.image_path = image_path
        self.width = width
        self.height = height

    def send(self, alert: Alert) -> None:
        image = render_alert(self.width, self.height, alert)
        save_alert_image(self.image_path, image)


class MultiSink:
    """
    Fans an alert out to several sinks.

    A failing sink is logged and skipped; the others still receive the
    alert and nothing propagates to the watcher.
    """

    def __init__(self, sinks: Sequence[object]) -> None:
        self.sinks = list(sinks)

    def send(self, alert: Alert) -> None:
        for sink in self.sinks:
            try:
                sink.send(alert)  # type: ignore[attr-defined]
            except Exception:
                log.exception("sink %s failed", type(sink).__name__)


def build_sinks(
    names: Iterable[str], cfg: AppConfig, bus: Optional[SQLiteBus] = None
) -> MultiSink:
    sinks: List[object] = []
    for raw in names:
        name = raw.strip().lower()
        if name == "log":
            sinks.append(LogSink())
        elif name == "desktop":
            sinks.append(DesktopSink(app_name=cfg.notify.app_name))
        elif name == "bus":
            if bus is None:
                log.warning("sink 'bus' requested without a bus, skipped")
                continue
            sinks.append(BusSink(bus))
        elif name == "display":
            sinks.append(
                DisplaySink(
                    cfg.display.image_path,
                    width=cfg.display.width,
                    height=cfg.display.height,
                )
            )
        else:
            raise ValueError(f"unknown sink {raw!r} (choose from {', '.join(SINK_NAMES)})")
    return MultiSink(sinks)
