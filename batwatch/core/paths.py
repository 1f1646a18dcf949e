from __future__ import annotations

import os


DEFAULT_DB_PATH = "/var/lib/batwatch/events.db"
DEFAULT_CONFIG_PATH = "config.toml"
DEFAULT_SOURCE = "/sys/class/power_supply/BAT0/capacity"
DEFAULT_IMAGE_PATH = "/var/lib/batwatch/alert.png"
SYSFS_CAPACITY_GLOB = "/sys/class/power_supply/*/capacity"


def resolve_db_path() -> str:
    return os.environ.get("BATWATCH_DB", DEFAULT_DB_PATH)


def resolve_config_path() -> str:
    return os.environ.get("BATWATCH_CONFIG", DEFAULT_CONFIG_PATH)


def resolve_source_override() -> str | None:
    raw = os.environ.get("BATWATCH_SOURCE", "").strip()
    return raw or None
