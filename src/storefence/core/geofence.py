from __future__ import annotations

from typing import Iterable

import structlog

from ..utils.geo import haversine_m
from .models import GeofenceSite, PositionSample, ProximityEvent

logger = structlog.get_logger(__name__)


def evaluate(sample: PositionSample, sites: Iterable[GeofenceSite]) -> list[ProximityEvent]:
    """
    Sites whose trigger radius contains the sample (boundary inclusive) and
    which still have unchecked items. Output keeps the cache order.
    """
    events: list[ProximityEvent] = []
    for site in sites:
        d = haversine_m(sample.latitude, sample.longitude, site.latitude, site.longitude)
        if d > site.trigger_radius_m:
            continue
        if site.pending_item_count <= 0:
            logger.debug("site_inside_nothing_pending", site_id=site.id, distance_m=round(d))
            continue
        events.append(ProximityEvent(site=site, distance_m=d, pending_item_count=site.pending_item_count))
    return events
