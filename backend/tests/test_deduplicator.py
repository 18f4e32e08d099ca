from datetime import timedelta

from conftest import T0, make_snapshot
from ferrytrack.services.deduplicator import dedupe_snapshots


def test_keeps_latest_snapshot_per_vessel():
    batch = [
        make_snapshot(vessel_id=1, lat=47.1, at=T0),
        make_snapshot(vessel_id=2, lat=48.0, at=T0),
        make_snapshot(vessel_id=1, lat=47.3, at=T0 + timedelta(seconds=20)),
        make_snapshot(vessel_id=1, lat=47.2, at=T0 + timedelta(seconds=10)),
    ]

    latest = dedupe_snapshots(batch)

    assert set(latest) == {1, 2}
    assert latest[1].latitude == 47.3
    assert latest[1].timestamp == T0 + timedelta(seconds=20)
    assert latest[2].latitude == 48.0


def test_equal_timestamps_prefer_later_arrival():
    first = make_snapshot(vessel_id=5, lat=47.0, at=T0)
    second = make_snapshot(vessel_id=5, lat=47.5, at=T0)

    assert dedupe_snapshots([first, second])[5] is second
    assert dedupe_snapshots([second, first])[5] is first


def test_empty_batch():
    assert dedupe_snapshots([]) == {}
