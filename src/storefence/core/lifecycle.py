from __future__ import annotations

from enum import Enum

import structlog

from .cache import StoreLocationCache
from .errors import CacheError, GeofencingError, PermissionDeniedError, TaskRegistrationError
from .platform import (
    PERMISSION_ORDER,
    LocationUpdateOptions,
    PermissionGateway,
    PermissionStatus,
    TaskRegistry,
)

logger = structlog.get_logger(__name__)

LOCATION_TASK_NAME = "background-location-task"


class TrackingState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    ACTIVE = "active"


class LifecycleController:
    """
    start / stop / status for background geofencing.

    status() asks the task registry, not this object: another process may
    have started or stopped the task since.
    """

    def __init__(
        self,
        permissions: PermissionGateway,
        registry: TaskRegistry,
        cache: StoreLocationCache,
        options: LocationUpdateOptions,
        task_name: str = LOCATION_TASK_NAME,
    ):
        self.permissions = permissions
        self.registry = registry
        self.cache = cache
        self.options = options
        self.task_name = task_name
        self.state = TrackingState.STOPPED

    def start(self) -> bool:
        """
        Raises:
          PermissionDeniedError: a required permission was not granted.
          TaskRegistrationError: the platform refused the task.
        """
        logger.info("geofencing_starting", task=self.task_name)
        self.state = TrackingState.STARTING
        try:
            for perm in PERMISSION_ORDER:
                status = self.permissions.request(perm)
                if status is not PermissionStatus.GRANTED:
                    logger.error("permission_not_granted", permission=perm.value, status=status.value)
                    raise PermissionDeniedError(perm.value, status.value)
                logger.info("permission_granted", permission=perm.value)

            self._log_cache_state()

            try:
                self.registry.start_location_updates(self.task_name, self.options)
            except TaskRegistrationError:
                raise
            except Exception as e:
                raise TaskRegistrationError(f"cannot register {self.task_name!r}: {e}") from e
        except GeofencingError:
            self.state = TrackingState.STOPPED
            raise

        self.state = TrackingState.ACTIVE
        logger.info("geofencing_started", task=self.task_name)
        return True

    def stop(self) -> None:
        if self.registry.is_registered(self.task_name):
            self.registry.stop_location_updates(self.task_name)
            logger.info("geofencing_stopped", task=self.task_name)
        self.state = TrackingState.STOPPED

    def status(self) -> bool:
        return self.registry.is_registered(self.task_name)

    def _log_cache_state(self) -> None:
        try:
            n = len(self.cache.load_all())
        except CacheError as e:
            logger.warning("site_cache_unreadable", error=str(e))
            return
        if n == 0:
            logger.warning("no_sites_cached_yet")
        else:
            logger.info("sites_cached", sites=n)
