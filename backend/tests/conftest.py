from datetime import datetime, timedelta, timezone

import pytest

from ferrytrack.models.schemas import Ping, VesselSnapshot, epoch_ms

T0 = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


class FakePingSource:
    """In-memory ping store honouring the strictly-greater-than contract."""

    def __init__(self, pings=None):
        self.pings: list[Ping] = sorted(pings or [], key=lambda p: p.timestamp)
        self.calls: list[tuple[int, int]] = []
        self.fail_with: Exception | None = None

    def add(self, *pings: Ping):
        self.pings = sorted([*self.pings, *pings], key=lambda p: p.timestamp)

    async def fetch_since(self, since_ms: int, limit: int) -> list[Ping]:
        self.calls.append((since_ms, limit))
        if self.fail_with is not None:
            raise self.fail_with
        return [p for p in self.pings if epoch_ms(p.timestamp) > since_ms][:limit]


def make_snapshot(vessel_id=1, lat=47.60, lon=-122.33, speed=0.0, heading=90.0, at=T0, **kw) -> VesselSnapshot:
    return VesselSnapshot(
        vessel_id=vessel_id,
        latitude=lat,
        longitude=lon,
        speed_knots=speed,
        heading_deg=heading,
        timestamp=at,
        **kw,
    )


def make_ping(vessel_id=1, lat=47.60, lon=-122.33, at=T0, at_dock=False, **kw) -> Ping:
    return Ping(vessel_id=vessel_id, latitude=lat, longitude=lon, timestamp=at, at_dock=at_dock, **kw)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FakePingSource()
