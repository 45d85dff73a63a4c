from __future__ import annotations


class GeofencingError(Exception):
    """Base class for geofencing failures."""


class PermissionDeniedError(GeofencingError):
    def __init__(self, permission: str, status: str = "denied"):
        self.permission = permission
        self.status = status
        super().__init__(f"{permission.replace('_', ' ')} permission {status}")


class TaskRegistrationError(GeofencingError):
    pass


class CacheError(GeofencingError):
    pass


class DispatchError(GeofencingError):
    pass
