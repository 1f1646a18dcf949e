import json
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

TOPIC_TICK = "battery.tick"
TOPIC_ALERT = "battery.alert"
TOPIC_DELIVERED = "battery.delivered"
TOPIC_STARTED = "battery.watcher.started"
TOPIC_STOPPED = "battery.watcher.stopped"


@dataclass
class Event:
    id: int
    ts: float
    topic: str
    payload: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "ts": self.ts, "topic": self.topic, "payload": self.payload}


class SQLiteBus:
    """
    Append-only battery event history in SQLite.
    The watcher writes, the status page and the CLI read.
    """

    def __init__(self, db_path: str = "/var/lib/batwatch/events.db"):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._create_schema()

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _create_schema(self) -> None:
        with self._conn() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  ts REAL NOT NULL,
                  topic TEXT NOT NULL,
                  payload TEXT NOT NULL
                )
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_events_topic ON events(topic)")

    def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        with self._conn() as con:
            con.execute(
                "INSERT INTO events(ts, topic, payload) VALUES(?,?,?)",
                (time.time(), topic, json.dumps(payload, ensure_ascii=False)),
            )

    def tail(self, limit: int = 50, topic_prefix: Optional[str] = None) -> List[Event]:
        """Newest first."""
        sql = "SELECT id, ts, topic, payload FROM events "
        params: List[Any] = []
        if topic_prefix:
            sql += "WHERE topic LIKE ? "
            params.append(f"{topic_prefix}%")
        sql += "ORDER BY id DESC LIMIT ?"
        params.append(int(limit))

        with self._conn() as con:
            rows = con.execute(sql, params).fetchall()
        return [
            Event(id=int(row[0]), ts=float(row[1]), topic=str(row[2]), payload=json.loads(row[3]))
            for row in rows
        ]

    def latest(self, topic: str) -> Optional[Event]:
        events = self.tail(limit=1, topic_prefix=topic)
        return events[0] if events else None

    def prune(self, keep_last: int = 5000) -> int:
        with self._conn() as con:
            cur = con.execute(
                "DELETE FROM events WHERE id NOT IN "
                "(SELECT id FROM events ORDER BY id DESC LIMIT ?)",
                (int(keep_last),),
            )
            return int(cur.rowcount or 0)
