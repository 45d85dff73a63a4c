import pytest

from storefence.core.errors import TaskRegistrationError
from storefence.core.platform import (
    ConfiguredPermissions,
    FileTaskRegistry,
    LocationUpdateOptions,
    NotificationRequest,
    OutboxNotificationService,
    Permission,
    PermissionStatus,
)


def test_configured_permissions():
    p = ConfiguredPermissions({"foreground_location": "granted", "notifications": "DENIED"})

    assert p.request(Permission.FOREGROUND_LOCATION) is PermissionStatus.GRANTED
    assert p.request(Permission.NOTIFICATIONS) is PermissionStatus.DENIED
    assert p.request(Permission.BACKGROUND_LOCATION) is PermissionStatus.UNDETERMINED


def test_configured_permissions_unknown_value():
    p = ConfiguredPermissions({"notifications": "maybe"})
    assert p.request(Permission.NOTIFICATIONS) is PermissionStatus.UNDETERMINED


def test_file_registry_lifecycle(tmp_path):
    reg = FileTaskRegistry(tmp_path / "reg" / "tasks.json")
    assert not reg.is_registered("t")

    reg.start_location_updates("t", LocationUpdateOptions(time_interval_ms=60000))
    assert reg.is_registered("t")
    assert reg.registered_tasks()["t"]["options"]["time_interval_ms"] == 60000

    reg.stop_location_updates("t")
    assert not reg.is_registered("t")


def test_file_registry_stop_unknown_task(tmp_path):
    with pytest.raises(TaskRegistrationError):
        FileTaskRegistry(tmp_path / "tasks.json").stop_location_updates("t")


def test_file_registry_corrupt(tmp_path):
    path = tmp_path / "tasks.json"
    path.write_text("{oops", encoding="utf-8")

    with pytest.raises(TaskRegistrationError):
        FileTaskRegistry(path).is_registered("t")


def test_outbox_append_read_clear(tmp_path):
    box = OutboxNotificationService(tmp_path / "notifications.jsonl")
    assert box.read_all() == []

    a = box.schedule(NotificationRequest("one", "first", {"siteId": "s1"}))
    b = box.schedule(NotificationRequest("two", "second", {"siteId": "s2"}))

    rows = box.read_all()
    assert [r["id"] for r in rows] == [a, b]
    assert rows[0]["data"] == {"siteId": "s1"}
    assert rows[0]["trigger"] is None

    assert box.clear() == 2
    assert box.read_all() == []


def test_outbox_ignores_torn_tail(tmp_path):
    box = OutboxNotificationService(tmp_path / "notifications.jsonl")
    box.schedule(NotificationRequest("one", "first"))
    with box.path.open("a", encoding="utf-8") as f:
        f.write('{"id": "half')

    assert len(box.read_all()) == 1
