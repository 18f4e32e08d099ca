from datetime import datetime, timezone

from pydantic import BaseModel, computed_field
from shapely.geometry import LineString, mapping


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_ms(ts: datetime) -> int:
    """Milliseconds since the Unix epoch; naive datetimes are taken as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(round(ts.timestamp() * 1000))


def from_epoch_ms(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)


class VesselSnapshot(BaseModel):
    vessel_id: int
    latitude: float
    longitude: float
    speed_knots: float
    heading_deg: float
    at_dock: bool = False
    in_service: bool = True
    timestamp: datetime
    vessel_name: str | None = None

    model_config = {"frozen": True}


class Ping(BaseModel):
    vessel_id: int
    latitude: float
    longitude: float
    speed_knots: float = 0.0
    heading_deg: float = 0.0
    at_dock: bool = False
    timestamp: datetime

    model_config = {"frozen": True}

    @property
    def timestamp_ms(self) -> int:
        return epoch_ms(self.timestamp)


def ping_from_snapshot(snapshot: VesselSnapshot) -> Ping:
    """Reduce a snapshot to the fields kept in history."""
    return Ping(
        vessel_id=snapshot.vessel_id,
        latitude=round(snapshot.latitude, 5),
        longitude=round(snapshot.longitude, 5),
        speed_knots=snapshot.speed_knots if snapshot.speed_knots > 0.2 else 0.0,
        heading_deg=snapshot.heading_deg,
        at_dock=snapshot.at_dock,
        timestamp=snapshot.timestamp,
    )


class AnimationState(BaseModel):
    vessel_id: int
    displayed_latitude: float
    displayed_longitude: float
    displayed_heading: float
    last_raw_snapshot: VesselSnapshot

    @computed_field
    @property
    def at_dock(self) -> bool:
        return self.last_raw_snapshot.at_dock

    @computed_field
    @property
    def in_service(self) -> bool:
        return self.last_raw_snapshot.in_service

    @computed_field
    @property
    def speed_knots(self) -> float:
        return self.last_raw_snapshot.speed_knots

    @computed_field
    @property
    def vessel_name(self) -> str | None:
        return self.last_raw_snapshot.vessel_name

    @classmethod
    def from_snapshot(cls, snapshot: VesselSnapshot) -> "AnimationState":
        return cls(
            vessel_id=snapshot.vessel_id,
            displayed_latitude=snapshot.latitude,
            displayed_longitude=snapshot.longitude,
            displayed_heading=snapshot.heading_deg % 360.0,
            last_raw_snapshot=snapshot,
        )


class VesselOutcome(BaseModel):
    """Per-vessel result of one smoothing tick."""

    vessel_id: int
    state: AnimationState | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.state is not None


class Trail(BaseModel):
    vessel_id: int
    coordinates: list[tuple[float, float]]  # (lon, lat)
    smoothed: bool
    point_count: int

    def to_geojson(self) -> dict:
        return {
            "type": "Feature",
            "properties": {
                "vessel_id": self.vessel_id,
                "smoothed": self.smoothed,
                "point_count": self.point_count,
            },
            "geometry": mapping(LineString(self.coordinates)),
        }


class TrackingFrame(BaseModel):
    generated_at: datetime
    vessels: list[AnimationState]


class CacheStatus(BaseModel):
    vessel_count: int
    ping_count: int
    watermark_ms: int
    is_fetching: bool
    is_stale: bool
