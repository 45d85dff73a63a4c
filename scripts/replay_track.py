# scripts/replay_track.py
import argparse
import json
from pathlib import Path

from storefence.core.cache import StoreLocationCache
from storefence.core.config import load_config
from storefence.core.log import configure_logging
from storefence.core.replay import load_track, replay


def main():
    ap = argparse.ArgumentParser(description="Replay a recorded track against the cached stores")
    ap.add_argument("--track", required=True, help="track file (CSV or JSONL): timestamp, lat, lon")
    ap.add_argument("--config", default="configs/config.json")
    ap.add_argument("--cache", default=None, help="site cache (defaults to storage.cache_path)")
    ap.add_argument("--cooldown-minutes", type=float, default=None)
    ap.add_argument("--out", default=None, help="write fired notifications as JSONL")
    args = ap.parse_args()

    cfg = load_config(args.config)
    configure_logging("WARNING", cfg.log_format)

    cache = StoreLocationCache(args.cache or cfg.cache_path)
    sites = cache.load_all()
    track = load_track(args.track)
    cooldown = cfg.cooldown_minutes if args.cooldown_minutes is None else args.cooldown_minutes
    fired = replay(track, sites, cooldown_minutes=cooldown)

    for n in fired:
        print(f"{n['timestamp']}  {n['site_id']}  {n['title']}  ({n['body']})")

    if args.out:
        out = Path(args.out)
        out.parent.mkdir(parents=True, exist_ok=True)
        with out.open("w", encoding="utf-8") as f:
            for n in fired:
                f.write(json.dumps(n, ensure_ascii=False) + "\n")
    print(f"[OK] samples: {len(track)} | sites: {len(sites)} | notifications: {len(fired)}")


if __name__ == "__main__":
    main()
