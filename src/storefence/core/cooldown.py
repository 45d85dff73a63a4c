from __future__ import annotations

from pathlib import Path
from time import time
from typing import Callable

import structlog

from ..utils.storage import read_json, write_json_atomic

logger = structlog.get_logger(__name__)

DEFAULT_COOLDOWN_SEC = 30 * 60.0


class CooldownTracker:
    """
    Per-site in-memory notification cooldown.
    state: site_id -> last_notified_ts (epoch seconds)

    Note:
      - now may be passed explicitly; otherwise the injected clock is used.
      - State lives as long as the tracker instance (process memory).
    """

    def __init__(self, window_sec: float = DEFAULT_COOLDOWN_SEC, clock: Callable[[], float] = time):
        self.window_sec = window_sec
        self.clock = clock
        self.state: dict[str, float] = {}

    def should_notify(self, site_id: str, now: float | None = None) -> bool:
        now = self.clock() if now is None else now
        last = self.state.get(site_id)
        if last is None:
            return True
        return now - last > self.window_sec

    def record_notification(self, site_id: str, now: float | None = None) -> None:
        now = self.clock() if now is None else now
        self.state[site_id] = now

    def last_notified(self, site_id: str) -> float | None:
        return self.state.get(site_id)

    def reset(self) -> None:
        self.state.clear()


class PersistentCooldownTracker(CooldownTracker):
    """Cooldown tracker whose state survives process restarts (JSON file)."""

    def __init__(
        self,
        path: str | Path,
        window_sec: float = DEFAULT_COOLDOWN_SEC,
        clock: Callable[[], float] = time,
    ):
        super().__init__(window_sec=window_sec, clock=clock)
        self.path = Path(path)
        self.state = self._load()

    def _load(self) -> dict[str, float]:
        try:
            d = read_json(self.path)
            if d is None:
                return {}
            return {str(k): float(v) for k, v in d.items()}
        except (OSError, ValueError, AttributeError, TypeError) as e:
            logger.warning("cooldown_state_unreadable", path=str(self.path), error=str(e))
            return {}

    def record_notification(self, site_id: str, now: float | None = None) -> None:
        super().record_notification(site_id, now)
        try:
            write_json_atomic(self.path, self.state)
        except OSError as e:
            # memory still holds the record; suppression holds until restart
            logger.warning(
                "cooldown_state_write_failed", path=str(self.path), site_id=site_id, error=str(e)
            )

    def reset(self) -> None:
        super().reset()
        write_json_atomic(self.path, self.state)
