from __future__ import annotations

import structlog

from .models import GeofenceSite, ProximityEvent
from .platform import NotificationRequest, NotificationService

logger = structlog.get_logger(__name__)


def build_notification(event: ProximityEvent, debug: bool = False) -> NotificationRequest:
    n = event.pending_item_count
    prefix = "[DEBUG] " if debug else ""
    data: dict = {"siteId": event.site.id}
    if debug:
        data["debug"] = True
    return NotificationRequest(
        title=f"🛒 {prefix}You're at {event.site.name}!",
        body=f"You have {n} item{'' if n == 1 else 's'} to get",
        data=data,
        trigger=None,
    )


class NotificationDispatcher:
    def __init__(self, service: NotificationService):
        self.service = service

    def dispatch(self, event: ProximityEvent, debug: bool = False) -> bool:
        """Schedule an immediate notification; False if the platform refused it."""
        request = build_notification(event, debug=debug)
        try:
            nid = self.service.schedule(request)
        except Exception:
            logger.exception("notification_dispatch_failed", site_id=event.site.id)
            return False
        logger.info(
            "notification_dispatched",
            site_id=event.site.id,
            notification_id=nid,
            pending_items=event.pending_item_count,
            distance_m=round(event.distance_m),
        )
        return True

    def dispatch_for_site(self, site: GeofenceSite) -> bool:
        """Debug trigger: notify for a site as if the device had arrived, ignoring distance."""
        if site.pending_item_count <= 0:
            return False
        event = ProximityEvent(site=site, distance_m=0.0, pending_item_count=site.pending_item_count)
        return self.dispatch(event, debug=True)

    def dispatch_test(self) -> bool:
        try:
            self.service.schedule(
                NotificationRequest(
                    title="🧪 Test Notification",
                    body="If you see this, notifications are working!",
                    data={"test": True},
                )
            )
        except Exception:
            logger.exception("test_notification_failed")
            return False
        return True
