import argparse
import json
import logging
import os
import signal
import sqlite3
import subprocess
import sys
import time
from pathlib import Path
from typing import Optional

from batwatch.core.bus import TOPIC_TICK, SQLiteBus
from batwatch.core.config import AppConfig, ConfigStore, WatcherConfig
from batwatch.core.errors import ReadError
from batwatch.core.paths import resolve_config_path, resolve_db_path, resolve_source_override
from batwatch.core.status import Alert

EX_OK = 0
EX_CONFIG = 2

log = logging.getLogger("batwatch.cli")


def _format_ts(ts: float | None) -> str:
    if not ts:
        return "-"
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(float(ts)))


def _print_json(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _load(args) -> tuple[AppConfig, WatcherConfig]:
    """
    Load and validate everything the watcher needs.

    Raises ValueError (ValidationError included) on bad settings so the
    caller can refuse to start.
    """
    cfg = ConfigStore(args.config).load()
    source = getattr(args, "source", None) or resolve_source_override()
    if source:
        cfg.battery.source = source
    interval = getattr(args, "interval", None)
    if interval is not None:
        cfg.watcher.interval_s = float(interval)
    return cfg, WatcherConfig.from_app_config(cfg)


def _open_bus(db_path: str) -> Optional[SQLiteBus]:
    try:
        return SQLiteBus(db_path=db_path)
    except (OSError, sqlite3.Error) as exc:
        log.warning("event DB %s unavailable: %s", db_path, exc)
        return None


def _build_watcher(args, cfg: AppConfig, wcfg: WatcherConfig, sink_names=None):
    from batwatch.core.watcher import Watcher
    from batwatch.notify.sinks import build_sinks

    bus = None
    if not args.no_bus:
        bus = _open_bus(args.db)
        if bus is None:
            log.warning("running without event history (use --db or --no-bus)")
    sinks = build_sinks(sink_names or cfg.notify.sinks, cfg, bus=bus)
    return Watcher(wcfg, sink=sinks, bus=bus)


def cmd_run(args) -> int:
    try:
        cfg, wcfg = _load(args)
        watcher = _build_watcher(args, cfg, wcfg, sink_names=args.sinks)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EX_CONFIG

    def _on_signal(signum, _frame) -> None:
        log.info("signal %s received, stopping", signum)
        watcher.stop()

    signal.signal(signal.SIGTERM, _on_signal)
    try:
        watcher.run(max_ticks=args.max_ticks)
    except KeyboardInterrupt:
        watcher.stop()
    return EX_OK


def cmd_once(args) -> int:
    try:
        cfg, wcfg = _load(args)
        watcher = _build_watcher(args, cfg, wcfg, sink_names=args.sinks or ["log"])
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EX_CONFIG

    alert = watcher.tick()
    payload = {
        "state": watcher.state.to_dict(),
        "alert": Alert.to_dict(alert) if alert else None,
    }
    if args.format == "json":
        _print_json(payload)
    else:
        st = watcher.state
        pct = f"{st.percentage}%" if st.percentage is not None else "?"
        print(f"level: {st.level.value} ({pct})")
        if st.error:
            print(f"error: {st.error}")
        print(f"alert: {alert.summary if alert else '-'}")
    return EX_OK


def cmd_config(args) -> int:
    try:
        cfg, wcfg = _load(args)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EX_CONFIG
    _print_json(
        {
            **wcfg.as_dict(),
            "notify": {
                "sinks": cfg.notify.sinks,
                "timeout_ms": cfg.notify.timeout_ms,
                "app_name": cfg.notify.app_name,
            },
        }
    )
    return EX_OK


def cmd_classify(args) -> int:
    from batwatch.core.percentage import Percentage

    try:
        _cfg, wcfg = _load(args)
        pct = Percentage.parse(args.value)
    except (ValueError, ReadError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EX_CONFIG
    print(wcfg.breakpoints.classify(pct).value)
    return EX_OK


def cmd_status(args) -> int:
    bus = _open_bus(args.db)
    if bus is None:
        print(f"error: cannot open event DB {args.db}", file=sys.stderr)
        return EX_CONFIG
    evt = bus.latest(TOPIC_TICK)
    if evt is None:
        print("level: <unknown> (no battery.tick yet)")
        return EX_OK

    st = evt.payload
    pct = st.get("percentage")
    print(f"level: {st.get('level')} ({pct if pct is not None else '?'}%)")
    if st.get("error"):
        print(f"error: {st.get('error')}")
    print(f"ts:    {_format_ts(evt.ts)}")
    return EX_OK


def cmd_events(args) -> int:
    bus = _open_bus(args.db)
    if bus is None:
        print(f"error: cannot open event DB {args.db}", file=sys.stderr)
        return EX_CONFIG
    evts = bus.tail(limit=args.limit, topic_prefix=args.topic_prefix)
    for e in reversed(evts):
        print(f"{_format_ts(e.ts)}  {e.topic}  {json.dumps(e.payload, ensure_ascii=False)}")
    return EX_OK


def cmd_web(args) -> int:
    from batwatch.api.web import create_app

    cfg = ConfigStore(args.config).load()
    app = create_app(config_path=args.config, db_path=args.db)
    app.run(host=args.host or cfg.ui.host, port=args.port or cfg.ui.port, debug=False)
    return EX_OK


def _write_unit(dst: Path, content: str) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    dst.write_text(content, encoding="utf-8")


def render_unit(*, workdir: str, python: str, config: str, db: str) -> str:
    """
    systemd --user unit. The desktop sink talks to the session D-Bus, which
    only a unit in the user's own manager can reach.
    """
    return f"""[Unit]
Description=batwatch battery watcher
PartOf=graphical-session.target
After=graphical-session.target

[Service]
WorkingDirectory={workdir}
Environment=PYTHONUNBUFFERED=1
Environment=BATWATCH_DB={db}
ExecStart={python} -m batwatch.cli --config {config} run
Restart=always
RestartSec=5

[Install]
WantedBy=graphical-session.target
"""


def cmd_install_systemd(args) -> int:
    if os.geteuid() == 0:
        print("error: run as the desktop user, not root (installs a --user unit).", file=sys.stderr)
        return EX_CONFIG

    workdir = Path(args.workdir).resolve()
    unit = render_unit(
        workdir=str(workdir),
        python=args.python or sys.executable,
        config=str((workdir / args.config).resolve()),
        db=args.db,
    )
    unit_path = Path(args.unit_path).expanduser()
    _write_unit(unit_path, unit)
    subprocess.check_call(["systemctl", "--user", "daemon-reload"])
    print(f"ok: installed {unit_path}. Enable/start with:")
    print(f"  systemctl --user enable --now {unit_path.name}")
    return EX_OK


def _add_watcher_args(s: argparse.ArgumentParser) -> None:
    s.add_argument("--source", default=None, help="Override battery.source (path or 'auto')")
    s.add_argument("--interval", type=float, default=None, help="Override watcher.interval_s")
    s.add_argument(
        "--sink",
        dest="sinks",
        action="append",
        default=None,
        help="Alert sink (log|desktop|bus|display), repeatable; default from config",
    )
    s.add_argument("--no-bus", action="store_true", help="Do not record events in the DB")


def build_parser() -> argparse.ArgumentParser:
    default_db = resolve_db_path()
    p = argparse.ArgumentParser(
        prog="batwatch",
        description="batwatch – battery level watcher and alerts",
    )
    p.add_argument(
        "--db",
        default=default_db,
        help=f"SQLite event DB path (default: {default_db})",
    )
    p.add_argument(
        "--config",
        default=resolve_config_path(),
        help="Path to config.toml (default: config.toml)",
    )
    p.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")

    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("run", help="Run the watcher loop")
    _add_watcher_args(s)
    s.add_argument("--max-ticks", type=int, default=None, help=argparse.SUPPRESS)
    s.set_defaults(fn=cmd_run)

    s = sub.add_parser("once", help="Run a single tick and print the result")
    _add_watcher_args(s)
    s.add_argument("--format", choices=["text", "json"], default="text")
    s.set_defaults(fn=cmd_once)

    s = sub.add_parser("config", help="Validate and print the effective config")
    s.add_argument("--source", default=None)
    s.add_argument("--interval", type=float, default=None)
    s.set_defaults(fn=cmd_config)

    s = sub.add_parser("classify", help="Print the level for a percentage")
    s.add_argument("value")
    s.set_defaults(fn=cmd_classify)

    s = sub.add_parser("status", help="Show the last recorded level")
    s.set_defaults(fn=cmd_status)

    s = sub.add_parser("events", help="Print recent events")
    s.add_argument("--limit", type=int, default=30)
    s.add_argument("--topic-prefix", default=None)
    s.set_defaults(fn=cmd_events)

    s = sub.add_parser("web", help="Run the Flask status page")
    s.add_argument("--host", default=None)
    s.add_argument("--port", type=int, default=None)
    s.set_defaults(fn=cmd_web)

    s = sub.add_parser("install-systemd", help="Install a systemd --user unit")
    s.add_argument("--workdir", default=".")
    s.add_argument("--python", default=None)
    s.add_argument("--unit-path", default="~/.config/systemd/user/batwatch.service")
    s.set_defaults(fn=cmd_install_systemd)

    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.log_level)
    return int(args.fn(args))


if __name__ == "__main__":
    raise SystemExit(main())
