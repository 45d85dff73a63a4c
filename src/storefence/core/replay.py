"""Replay a recorded location track through the geofence pipeline.

Each sample is delivered as its own batch, with the cooldown clock pinned to
the sample time, so a track recorded over an afternoon replays in
milliseconds with the same notification decisions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Sequence

import pandas as pd
from dateutil import parser as dtp

from .cooldown import CooldownTracker
from .dispatcher import NotificationDispatcher
from .models import GeofenceSite
from .platform import MemoryNotificationService
from .task import BackgroundLocationTask

REQUIRED_COLUMNS = ("timestamp", "lat", "lon")
_ALIASES = {"latitude": "lat", "longitude": "lon", "lng": "lon", "time": "timestamp"}


def to_utc(ts: Any) -> datetime:
    """
    Any timestamp text -> aware UTC datetime.
    - Naive timestamp -> assumed UTC.
    - Aware timestamp -> converted to UTC.
    """
    dt = dtp.parse(str(ts))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def load_track(path: str | Path) -> pd.DataFrame:
    src = Path(path)
    if src.suffix.lower() in {".jsonl", ".ndjson"}:
        df = pd.read_json(src, lines=True, convert_dates=False)
    else:
        df = pd.read_csv(src)
    df = df.rename(columns={k: v for k, v in _ALIASES.items() if k in df.columns})

    for c in REQUIRED_COLUMNS:
        if c not in df.columns:
            raise ValueError(f"missing required column: {c}")
    if "accuracy" not in df.columns:
        df["accuracy"] = None

    df = df.dropna(subset=list(REQUIRED_COLUMNS)).copy()
    df["timestamp"] = df["timestamp"].map(to_utc)
    return df.sort_values(by="timestamp", kind="stable").reset_index(drop=True)


class _FixedSites:
    def __init__(self, sites: Sequence[GeofenceSite]):
        self._sites = list(sites)

    def load_all(self) -> list[GeofenceSite]:
        return list(self._sites)


def replay(
    track: pd.DataFrame,
    sites: Sequence[GeofenceSite],
    cooldown_minutes: float = 30,
) -> list[dict[str, Any]]:
    """Return the notifications the track would have fired, in order."""
    now = {"ts": 0.0}
    service = MemoryNotificationService()
    tracker = CooldownTracker(window_sec=cooldown_minutes * 60.0, clock=lambda: now["ts"])
    task = BackgroundLocationTask(_FixedSites(sites), tracker, NotificationDispatcher(service))

    fired: list[dict[str, Any]] = []
    for _, r in track.iterrows():
        ts = pd.Timestamp(r["timestamp"]).to_pydatetime()
        now["ts"] = ts.timestamp()
        accuracy = None if pd.isna(r["accuracy"]) else float(r["accuracy"])
        before = len(service.sent)
        task.handle(
            [
                {
                    "latitude": float(r["lat"]),
                    "longitude": float(r["lon"]),
                    "accuracy": accuracy,
                    "timestamp": ts,
                }
            ]
        )
        for n in service.sent[before:]:
            fired.append(
                {
                    "timestamp": ts.isoformat(),
                    "site_id": n.data.get("siteId"),
                    "title": n.title,
                    "body": n.body,
                }
            )
    return fired
