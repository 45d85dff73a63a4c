import json

import pytest

from storefence.core.replay import load_track, replay, to_utc


def write_csv(path, rows):
    lines = ["timestamp,lat,lon,accuracy"] + [",".join(str(v) for v in r) for r in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_to_utc_assumes_utc_for_naive():
    assert to_utc("2025-03-01 09:30:00").isoformat() == "2025-03-01T09:30:00+00:00"
    assert to_utc("2025-03-01T22:30:00+13:00").isoformat() == "2025-03-01T09:30:00+00:00"


def test_load_track_sorts_and_requires_columns(tmp_path):
    path = tmp_path / "track.csv"
    write_csv(path, [("2025-03-01 09:05:00", -41.1, 172.9, 5), ("2025-03-01 09:00:00", -41.2, 172.8, 5)])

    df = load_track(path)
    assert list(df["lat"]) == [-41.2, -41.1]

    bad = tmp_path / "bad.csv"
    bad.write_text("timestamp,lat\n2025-03-01,1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_track(bad)


def test_load_track_jsonl_aliases(tmp_path):
    path = tmp_path / "track.jsonl"
    path.write_text(
        json.dumps({"time": "2025-03-01T09:00:00Z", "latitude": -41.1207, "longitude": 172.9898}) + "\n",
        encoding="utf-8",
    )

    df = load_track(path)
    assert {"timestamp", "lat", "lon", "accuracy"} <= set(df.columns)
    assert len(df) == 1
    assert df["timestamp"][0].isoformat() == "2025-03-01T09:00:00+00:00"


def test_replay_applies_cooldown_on_track_time(tmp_path, countdown):
    path = tmp_path / "track.csv"
    write_csv(
        path,
        [
            ("2025-03-01 09:00:00", -41.1296, 172.9897, 8),  # ~1 km out
            ("2025-03-01 09:02:00", -41.1207, 172.9898, 8),  # arrive
            ("2025-03-01 09:07:00", -41.1207, 172.9898, 8),  # still there
            ("2025-03-01 09:40:00", -41.1206, 172.9897, 8),  # back after the window
        ],
    )

    fired = replay(load_track(path), [countdown], cooldown_minutes=30)

    assert [n["timestamp"] for n in fired] == [
        "2025-03-01T09:02:00+00:00",
        "2025-03-01T09:40:00+00:00",
    ]
    assert {n["site_id"] for n in fired} == {"store-countdown"}
