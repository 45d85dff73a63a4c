from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("configs/config.json")


def _env_flag(name: str) -> bool | None:
    v = os.getenv(name, "").strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return None


class Config:
    def __init__(self, d: dict[str, Any]):
        self.raw = d
        a = d.get("api", {})
        self.api_debug_routes = bool(a.get("debug_routes", False))

        g = d.get("geofencing", {})
        self.task_name = str(g.get("task_name", "background-location-task"))
        self.cooldown_minutes = float(g.get("cooldown_minutes", 30))
        self.record_cooldown_on_failure = bool(g.get("record_cooldown_on_failure", False))
        self.default_trigger_radius_m = float(g.get("default_trigger_radius_m", 150.0))

        lu = d.get("location_updates", {})
        self.lu_accuracy = str(lu.get("accuracy", "balanced"))
        self.lu_time_interval_ms = int(lu.get("time_interval_ms", 30000))
        self.lu_distance_interval_m = float(lu.get("distance_interval_m", 25))
        fs = lu.get("foreground_service", {})
        self.fs_title = str(fs.get("title", "Location Lists Active"))
        self.fs_body = str(fs.get("body", "Watching for nearby stores"))
        self.fs_color = str(fs.get("color", "#6B2D8F"))

        s = d.get("storage", {})
        self.cache_path = Path(s.get("cache_path", "data/geofencing_stores.json"))
        self.registry_path = Path(s.get("registry_path", "data/task_registry.json"))
        self.outbox_path = Path(s.get("outbox_path", "data/notifications.jsonl"))
        cooldown_path = s.get("cooldown_path")
        self.cooldown_path = Path(cooldown_path) if cooldown_path else None

        p = d.get("permissions", {})
        self.perm_foreground_location = str(p.get("foreground_location", "granted"))
        self.perm_background_location = str(p.get("background_location", "granted"))
        self.perm_notifications = str(p.get("notifications", "granted"))

        lg = d.get("logging", {})
        self.log_level = str(lg.get("level", "INFO"))
        self.log_format = str(lg.get("format", "console"))

        # env has the final word
        self.log_level = os.getenv("LOG_LEVEL", self.log_level)
        self.log_format = os.getenv("LOG_FORMAT", self.log_format)
        debug_routes = _env_flag("API_DEBUG_ROUTES")
        if debug_routes is not None:
            self.api_debug_routes = debug_routes

    @property
    def cooldown_seconds(self) -> float:
        return self.cooldown_minutes * 60.0


def load_config(path: str | Path | None = None) -> Config:
    """Load the JSON config; a missing file means all defaults."""
    p = Path(path or os.getenv("STOREFENCE_CONFIG", "") or DEFAULT_CONFIG_PATH)
    if not p.exists():
        return Config({})
    with p.open("r", encoding="utf-8") as f:
        d = json.load(f)
    return Config(d)
