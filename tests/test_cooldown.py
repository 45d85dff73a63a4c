import json

from conftest import T0

from storefence.core.cooldown import CooldownTracker, PersistentCooldownTracker

WINDOW = 30 * 60.0


def test_first_notification_is_allowed():
    assert CooldownTracker(WINDOW).should_notify("a", now=T0)


def test_suppressed_inside_window_released_after():
    t = CooldownTracker(WINDOW)
    t.record_notification("a", now=T0)

    assert not t.should_notify("a", now=T0 + 60)
    assert not t.should_notify("a", now=T0 + WINDOW)
    assert t.should_notify("a", now=T0 + WINDOW + 0.001)


def test_cooldown_is_per_site():
    t = CooldownTracker(WINDOW)
    t.record_notification("a", now=T0)

    assert t.should_notify("b", now=T0 + 1)


def test_record_overwrites(clock):
    t = CooldownTracker(WINDOW, clock=clock)
    t.record_notification("a")
    clock.advance(WINDOW + 1)
    t.record_notification("a")

    assert t.last_notified("a") == T0 + WINDOW + 1
    assert not t.should_notify("a")


def test_uses_injected_clock(clock):
    t = CooldownTracker(WINDOW, clock=clock)
    t.record_notification("a")

    clock.advance(5 * 60)
    assert not t.should_notify("a")
    clock.advance(26 * 60)
    assert t.should_notify("a")


def test_reset_forgets_everything():
    t = CooldownTracker(WINDOW)
    t.record_notification("a", now=T0)
    t.reset()

    assert t.last_notified("a") is None


def test_persistent_tracker_survives_restart(tmp_path):
    path = tmp_path / "cooldowns.json"
    PersistentCooldownTracker(path, WINDOW).record_notification("a", now=T0)

    restarted = PersistentCooldownTracker(path, WINDOW)

    assert restarted.last_notified("a") == T0
    assert not restarted.should_notify("a", now=T0 + 60)
    assert json.loads(path.read_text(encoding="utf-8")) == {"a": T0}


def test_persistent_tracker_starts_empty_on_garbage(tmp_path):
    path = tmp_path / "cooldowns.json"
    path.write_text("[not json", encoding="utf-8")

    t = PersistentCooldownTracker(path, WINDOW)

    assert t.should_notify("a", now=T0)


def test_persistent_tracker_keeps_memory_when_write_fails(tmp_path):
    path = tmp_path / "cooldowns.json"
    path.mkdir()

    t = PersistentCooldownTracker(path, WINDOW)
    t.record_notification("a", now=T0)

    assert t.last_notified("a") == T0
    assert not t.should_notify("a", now=T0 + 60)
