import math

import pytest

from conftest import make_snapshot
from ferrytrack.services import projector
from ferrytrack.services.geodesy import haversine_km
from ferrytrack.services.projector import project_snapshot


def test_projects_along_heading():
    snap = make_snapshot(speed=10.0, heading=90.0, at_dock=False, in_service=True)

    out = project_snapshot(snap, seconds=15)

    expected_km = 10 * 1.852 / 3600 * 15
    assert haversine_km(snap.latitude, snap.longitude, out.latitude, out.longitude) == pytest.approx(
        expected_km, abs=1e-6
    )
    assert out.longitude > snap.longitude
    assert out.latitude == pytest.approx(snap.latitude, abs=1e-5)
    # Everything but position passes through
    assert out.model_dump(exclude={"latitude", "longitude"}) == snap.model_dump(exclude={"latitude", "longitude"})


@pytest.mark.parametrize("speed", [0.0, 0.9, 40.1, 102.3])
def test_out_of_range_speed_is_not_projected(speed):
    snap = make_snapshot(speed=speed)
    assert project_snapshot(snap) is snap


@pytest.mark.parametrize("speed, heading", [(math.nan, 90.0), (10.0, math.nan), (math.inf, 90.0)])
def test_non_finite_motion_is_not_projected(speed, heading):
    snap = make_snapshot(speed=speed, heading=heading)
    assert project_snapshot(snap) is snap


def test_geodesic_failure_returns_input(monkeypatch):
    def boom(*args):
        raise ValueError("bad geometry")

    monkeypatch.setattr(projector, "destination_point", boom)
    snap = make_snapshot(speed=12.0)

    assert project_snapshot(snap) is snap
