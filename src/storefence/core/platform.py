"""Platform boundary: permissions, the background task registry, local notifications.

The core only talks to the protocols below. The concrete classes are the ones
this host ships: grants from config, a JSON task registry any process can
query, and a JSON-lines notification outbox the foreground app drains.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from time import time
from typing import Any, Protocol

import structlog

from ..utils.storage import read_json, write_json_atomic
from .errors import DispatchError, TaskRegistrationError

logger = structlog.get_logger(__name__)


# -------------------- permissions --------------------


class Permission(str, Enum):
    FOREGROUND_LOCATION = "foreground_location"
    BACKGROUND_LOCATION = "background_location"
    NOTIFICATIONS = "notifications"


PERMISSION_ORDER: tuple[Permission, ...] = (
    Permission.FOREGROUND_LOCATION,
    Permission.BACKGROUND_LOCATION,
    Permission.NOTIFICATIONS,
)


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


class PermissionGateway(Protocol):
    def request(self, permission: Permission) -> PermissionStatus: ...


class ConfiguredPermissions:
    """Answers permission requests from a fixed grant table."""

    def __init__(self, grants: dict[str, str]):
        self.grants = grants

    def request(self, permission: Permission) -> PermissionStatus:
        raw = str(self.grants.get(permission.value, PermissionStatus.UNDETERMINED.value)).lower()
        try:
            return PermissionStatus(raw)
        except ValueError:
            return PermissionStatus.UNDETERMINED


# -------------------- background task registry --------------------


@dataclass(frozen=True)
class ForegroundService:
    title: str
    body: str
    color: str


@dataclass(frozen=True)
class LocationUpdateOptions:
    accuracy: str = "balanced"
    time_interval_ms: int = 30000
    distance_interval_m: float = 25.0
    foreground_service: ForegroundService | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TaskRegistry(Protocol):
    def is_registered(self, name: str) -> bool: ...

    def start_location_updates(self, name: str, options: LocationUpdateOptions) -> None: ...

    def stop_location_updates(self, name: str) -> None: ...


class FileTaskRegistry:
    """Task registry persisted as JSON: name -> {options, registered_at}."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        try:
            d = read_json(self.path)
        except (OSError, ValueError) as e:
            raise TaskRegistrationError(f"cannot read task registry {self.path}: {e}") from e
        return d if isinstance(d, dict) else {}

    def _write(self, d: dict[str, Any]) -> None:
        try:
            write_json_atomic(self.path, d)
        except OSError as e:
            raise TaskRegistrationError(f"cannot write task registry {self.path}: {e}") from e

    def is_registered(self, name: str) -> bool:
        return name in self._read()

    def registered_tasks(self) -> dict[str, Any]:
        return self._read()

    def start_location_updates(self, name: str, options: LocationUpdateOptions) -> None:
        d = self._read()
        d[name] = {"options": options.to_dict(), "registered_at": time()}
        self._write(d)

    def stop_location_updates(self, name: str) -> None:
        d = self._read()
        if name not in d:
            raise TaskRegistrationError(f"task {name!r} is not registered")
        del d[name]
        self._write(d)


# -------------------- local notifications --------------------


@dataclass(frozen=True)
class NotificationRequest:
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    # None fires immediately
    trigger: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class NotificationService(Protocol):
    def schedule(self, request: NotificationRequest) -> str: ...


class OutboxNotificationService:
    """Appends scheduled notifications to a JSON-lines outbox file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def schedule(self, request: NotificationRequest) -> str:
        nid = uuid.uuid4().hex
        record = {"id": nid, "scheduled_at": time(), **request.to_dict()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8", newline="\n") as f:
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as e:
            raise DispatchError(f"cannot write notification outbox {self.path}: {e}") from e
        return nid

    def read_all(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        out: list[dict[str, Any]] = []
        with self.path.open("r", encoding="utf-8") as f:
            for line in f:
                s = line.strip()
                if not s:
                    continue
                try:
                    out.append(json.loads(s))
                except json.JSONDecodeError:
                    # torn tail line from an interrupted append
                    logger.warning("outbox_line_unreadable", path=str(self.path))
        return out

    def clear(self) -> int:
        n = len(self.read_all())
        if self.path.exists():
            self.path.unlink()
        return n


class MemoryNotificationService:
    """Keeps scheduled notifications in a list; used for dry runs."""

    def __init__(self):
        self.sent: list[NotificationRequest] = []

    def schedule(self, request: NotificationRequest) -> str:
        self.sent.append(request)
        return str(len(self.sent))
