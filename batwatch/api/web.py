import json
import time
from pathlib import Path

from flask import Flask, Response, abort, render_template, request, send_file

from batwatch.api.health import watcher_health_ok, watcher_max_age
from batwatch.core.bus import TOPIC_ALERT, TOPIC_TICK, SQLiteBus
from batwatch.core.config import ConfigStore
from batwatch.core.paths import resolve_db_path


def _json(payload, status: int = 200) -> Response:
    return Response(
        response=json.dumps(payload, ensure_ascii=False, indent=2),
        status=status,
        mimetype="application/json",
    )


def create_app(config_path: str = "config.toml", db_path: str | None = None) -> Flask:
    """Read-only status page over the watcher's event history."""
    app = Flask(__name__)
    bus = SQLiteBus(db_path=db_path or resolve_db_path())
    store = ConfigStore(config_path)
    store.load()

    def fmt_ts(ts: float | None) -> str:
        if not ts:
            return "-"
        return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(float(ts)))

    def health() -> dict:
        cfg = store.get()
        ok, last_ts = watcher_health_ok(bus, max_age_s=watcher_max_age(cfg.watcher.interval_s))
        return {"ok": ok, "last_tick_ts": last_ts}

    @app.context_processor
    def inject_helpers():
        return {"fmt_ts": fmt_ts}

    @app.get("/")
    def dashboard():
        tick = bus.latest(TOPIC_TICK)
        alerts = bus.tail(limit=10, topic_prefix=TOPIC_ALERT)
        return render_template(
            "status.html",
            tick=tick,
            alerts=alerts,
            health=health(),
            breakpoints=store.get().breakpoints,
        )

    @app.get("/health")
    def health_view():
        payload = health()
        return _json(payload, status=200 if payload["ok"] else 503)

    @app.get("/api/status")
    def api_status():
        tick = bus.latest(TOPIC_TICK)
        alert = bus.latest(TOPIC_ALERT)
        return _json(
            {
                "health": health(),
                "tick": tick.to_dict() if tick else None,
                "last_alert": alert.to_dict() if alert else None,
            }
        )

    @app.get("/api/events")
    def api_events():
        try:
            limit = max(1, min(500, int(request.args.get("limit", "50"))))
        except ValueError:
            abort(400)
        prefix = request.args.get("topic") or None
        return _json([evt.to_dict() for evt in bus.tail(limit=limit, topic_prefix=prefix)])

    @app.get("/alert.png")
    def alert_image():
        path = Path(store.get().display.image_path)
        if not path.exists():
            abort(404)
        return send_file(path.resolve(), mimetype="image/png")

    return app
