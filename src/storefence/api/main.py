from __future__ import annotations

from dataclasses import asdict
from time import time
from typing import Any, Callable

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from ..core.cache import StoreLocationCache
from ..core.config import Config, load_config
from ..core.cooldown import CooldownTracker, PersistentCooldownTracker
from ..core.dispatcher import NotificationDispatcher
from ..core.errors import CacheError, PermissionDeniedError, TaskRegistrationError
from ..core.lifecycle import LifecycleController
from ..core.log import configure_logging
from ..core.models import StoreRecord
from ..core.platform import (
    ConfiguredPermissions,
    FileTaskRegistry,
    ForegroundService,
    LocationUpdateOptions,
    NotificationService,
    OutboxNotificationService,
    PermissionGateway,
    TaskRegistry,
)
from ..core.task import BackgroundLocationTask


# -------------------- Pydantic schemas --------------------


class LocationBatch(BaseModel):
    locations: list[Any] = Field(default_factory=list)
    error: str | None = None


class TrackingStatus(BaseModel):
    active: bool
    state: str


class SyncOut(BaseModel):
    cached: int


class TaskReportOut(BaseModel):
    received: int
    accepted: int
    skipped: int
    events: int
    notified: int
    suppressed: int
    failed: int
    error: str | None = None


# -------------------- App factory --------------------


def location_options(cfg: Config) -> LocationUpdateOptions:
    return LocationUpdateOptions(
        accuracy=cfg.lu_accuracy,
        time_interval_ms=cfg.lu_time_interval_ms,
        distance_interval_m=cfg.lu_distance_interval_m,
        foreground_service=ForegroundService(
            title=cfg.fs_title, body=cfg.fs_body, color=cfg.fs_color
        ),
    )


def create_app(
    cfg: Config,
    permissions: PermissionGateway | None = None,
    registry: TaskRegistry | None = None,
    notifications: NotificationService | None = None,
    clock: Callable[[], float] = time,
) -> FastAPI:
    app = FastAPI(title="StoreFence – store arrival reminders", version="1.0")

    permissions = permissions or ConfiguredPermissions(
        {
            "foreground_location": cfg.perm_foreground_location,
            "background_location": cfg.perm_background_location,
            "notifications": cfg.perm_notifications,
        }
    )
    registry = registry or FileTaskRegistry(cfg.registry_path)
    notifications = notifications or OutboxNotificationService(cfg.outbox_path)

    cache = StoreLocationCache(cfg.cache_path, default_radius_m=cfg.default_trigger_radius_m)
    if cfg.cooldown_path is not None:
        tracker = PersistentCooldownTracker(cfg.cooldown_path, cfg.cooldown_seconds, clock)
    else:
        tracker = CooldownTracker(cfg.cooldown_seconds, clock)
    dispatcher = NotificationDispatcher(notifications)
    task = BackgroundLocationTask(
        cache, tracker, dispatcher, record_cooldown_on_failure=cfg.record_cooldown_on_failure
    )
    controller = LifecycleController(
        permissions, registry, cache, location_options(cfg), task_name=cfg.task_name
    )

    app.state.cache = cache
    app.state.tracker = tracker
    app.state.dispatcher = dispatcher
    app.state.task = task
    app.state.controller = controller
    app.state.notifications = notifications

    # -------------------- Endpoints --------------------

    @app.get("/health")
    def health():
        try:
            cached: int | None = len(cache.load_all())
        except CacheError:
            cached = None
        return {
            "ok": True,
            "version": "1.0",
            "tracking": controller.status(),
            "sites_cached": cached,
            "cooldown_minutes": cfg.cooldown_minutes,
        }

    @app.get("/geofencing/status", response_model=TrackingStatus)
    def geofencing_status():
        return TrackingStatus(active=controller.status(), state=controller.state.value)

    @app.post("/geofencing/start", response_model=TrackingStatus)
    def geofencing_start():
        try:
            controller.start()
        except PermissionDeniedError as e:
            raise HTTPException(
                status_code=403, detail={"permission": e.permission, "message": str(e)}
            ) from e
        except TaskRegistrationError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        return TrackingStatus(active=True, state=controller.state.value)

    @app.post("/geofencing/stop", response_model=TrackingStatus)
    def geofencing_stop():
        try:
            controller.stop()
        except TaskRegistrationError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        return TrackingStatus(active=controller.status(), state=controller.state.value)

    @app.put("/stores", response_model=SyncOut)
    def sync_stores(stores: list[StoreRecord]):
        """Whole-list replace, called whenever the owning app's stores change."""
        try:
            sites = cache.sync_stores(stores)
        except CacheError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        return SyncOut(cached=len(sites))

    @app.get("/stores/cached")
    def cached_sites():
        try:
            return [s.to_dict() for s in cache.load_all()]
        except CacheError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e

    @app.post("/locations", response_model=TaskReportOut)
    def deliver_locations(batch: LocationBatch):
        """
        Flow (platform -> task):
          1) Refuse while the task is not registered (stop() halts delivery)
          2) Hand the batch to the background task; it never raises
        """
        if not controller.status():
            raise HTTPException(status_code=409, detail=f"task {cfg.task_name!r} is not registered")
        report = task.handle(batch.locations, error=batch.error)
        return TaskReportOut(**asdict(report))

    @app.get("/notifications")
    def list_notifications():
        if isinstance(notifications, OutboxNotificationService):
            return notifications.read_all()
        return []

    @app.delete("/notifications")
    def clear_notifications():
        if isinstance(notifications, OutboxNotificationService):
            return {"cleared": notifications.clear()}
        return {"cleared": 0}

    if cfg.api_debug_routes:

        @app.post("/debug/notifications/test")
        def debug_test_notification():
            return {"sent": dispatcher.dispatch_test()}

        @app.post("/debug/sites/{site_id}/trigger")
        def debug_trigger_site(site_id: str):
            try:
                sites = cache.load_all()
            except CacheError as e:
                raise HTTPException(status_code=503, detail=str(e)) from e
            site = next((s for s in sites if s.id == site_id), None)
            if site is None:
                raise HTTPException(status_code=404, detail=f"site {site_id!r} is not cached")
            return {"sent": dispatcher.dispatch_for_site(site)}

    return app


# -------------------- Module app --------------------

cfg: Config = load_config()
configure_logging(cfg.log_level, cfg.log_format)
app = create_app(cfg)
