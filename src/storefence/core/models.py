from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# -------------------- cached geofence records --------------------


@dataclass(frozen=True, slots=True)
class GeofenceSite:
    """A monitored physical store, as snapshotted into the location cache."""

    id: str
    name: str
    latitude: float
    longitude: float
    trigger_radius_m: float
    pending_item_count: int = 0

    def __post_init__(self):
        if not self.trigger_radius_m > 0:
            raise ValueError(f"trigger radius must be positive (site {self.id!r})")
        if self.pending_item_count < 0:
            raise ValueError(f"pending item count cannot be negative (site {self.id!r})")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> GeofenceSite:
        return cls(
            id=str(d["id"]),
            name=str(d.get("name", "")),
            latitude=float(d["latitude"]),
            longitude=float(d["longitude"]),
            trigger_radius_m=float(d["trigger_radius_m"]),
            pending_item_count=int(d.get("pending_item_count", 0)),
        )


@dataclass(frozen=True, slots=True)
class ProximityEvent:
    site: GeofenceSite
    distance_m: float
    pending_item_count: int


# -------------------- platform position samples --------------------


class PositionSample(BaseModel):
    """One location fix from the platform provider.

    Accepts the platform's nested shape
    ``{"coords": {"latitude", "longitude", "accuracy"}, "timestamp": <epoch ms>}``
    as well as a flat one. Numeric timestamps are epoch milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    accuracy: float | None = Field(default=None, description="meters")
    timestamp: datetime

    @model_validator(mode="before")
    @classmethod
    def _flatten_platform_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        out = dict(data)
        coords = out.pop("coords", None)
        if isinstance(coords, dict):
            for k in ("latitude", "longitude", "accuracy"):
                if k in coords and k not in out:
                    out[k] = coords[k]
        ts = out.get("timestamp")
        if isinstance(ts, (int, float)) and not isinstance(ts, bool):
            try:
                out["timestamp"] = datetime.fromtimestamp(ts / 1000.0, tz=UTC)
            except (OverflowError, OSError, ValueError) as e:
                raise ValueError("timestamp out of range") from e
        return out


# -------------------- store-management input --------------------


class LatLng(BaseModel):
    lat: float
    lng: float


class StoreItem(BaseModel):
    id: str | None = None
    text: str = ""
    checked: bool = False


class StoreRecord(BaseModel):
    """A store as the owning app holds it; only geofence-relevant fields are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = ""
    is_online: bool = Field(default=False, alias="isOnline")
    location: LatLng | None = None
    trigger_radius: float | None = Field(default=None, alias="triggerRadius")
    items: list[StoreItem] = Field(default_factory=list)

    @property
    def unchecked_count(self) -> int:
        return sum(1 for i in self.items if not i.checked)
