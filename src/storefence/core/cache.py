from __future__ import annotations

from pathlib import Path
from time import time
from typing import Any, Iterable

import structlog

from ..utils.storage import read_json, write_json_atomic
from .errors import CacheError
from .models import GeofenceSite, StoreRecord

logger = structlog.get_logger(__name__)

CACHE_FORMAT_VERSION = 1
DEFAULT_TRIGGER_RADIUS_M = 150.0


def sites_from_stores(
    stores: Iterable[StoreRecord | dict[str, Any]],
    default_radius_m: float = DEFAULT_TRIGGER_RADIUS_M,
) -> list[GeofenceSite]:
    """Keep only physical stores with a location and a usable radius."""
    sites: list[GeofenceSite] = []
    for raw in stores:
        store = raw if isinstance(raw, StoreRecord) else StoreRecord.model_validate(raw)
        if store.is_online or store.location is None:
            continue
        radius = default_radius_m if store.trigger_radius is None else store.trigger_radius
        if radius <= 0:
            logger.warning("store_skipped_bad_radius", store_id=store.id, trigger_radius=radius)
            continue
        sites.append(
            GeofenceSite(
                id=store.id,
                name=store.name,
                latitude=store.location.lat,
                longitude=store.location.lng,
                trigger_radius_m=radius,
                pending_item_count=store.unchecked_count,
            )
        )
    return sites


class StoreLocationCache:
    """
    Durable snapshot of the monitored sites.

    The foreground app replaces the whole set whenever its store list changes;
    the background task only reads. Each replace is a single atomic file swap,
    so a reader never observes a half-written snapshot.
    """

    def __init__(self, path: str | Path, default_radius_m: float = DEFAULT_TRIGGER_RADIUS_M):
        self.path = Path(path)
        self.default_radius_m = default_radius_m

    def replace_all(self, sites: Iterable[GeofenceSite]) -> None:
        items = list(sites)
        payload = {
            "version": CACHE_FORMAT_VERSION,
            "synced_at": time(),
            "sites": [s.to_dict() for s in items],
        }
        try:
            write_json_atomic(self.path, payload)
        except OSError as e:
            raise CacheError(f"cannot write site cache {self.path}: {e}") from e
        logger.info("site_cache_replaced", sites=len(items), path=str(self.path))

    def load_all(self) -> list[GeofenceSite]:
        try:
            d = read_json(self.path)
        except (OSError, ValueError) as e:
            raise CacheError(f"cannot read site cache {self.path}: {e}") from e
        if d is None:
            return []
        try:
            return [GeofenceSite.from_dict(s) for s in d.get("sites", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CacheError(f"malformed site cache {self.path}: {e}") from e

    def sync_stores(self, stores: Iterable[StoreRecord | dict[str, Any]]) -> list[GeofenceSite]:
        sites = sites_from_stores(stores, self.default_radius_m)
        self.replace_all(sites)
        return sites

    def clear(self) -> None:
        self.replace_all([])
