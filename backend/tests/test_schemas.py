from datetime import datetime

from conftest import T0, make_snapshot
from ferrytrack.models.schemas import AnimationState, epoch_ms, from_epoch_ms, ping_from_snapshot


def test_epoch_ms_treats_naive_as_utc():
    naive = datetime(2024, 6, 1, 12, 0, 0)

    assert epoch_ms(naive) == epoch_ms(T0) == 1717243200000
    assert from_epoch_ms(1717243200000) == T0


def test_ping_from_snapshot_rounds_and_floors_drift():
    snap = make_snapshot(lat=47.6025449, lon=-122.3398151, speed=0.15, heading=271.0, at_dock=True)

    ping = ping_from_snapshot(snap)

    assert ping.latitude == 47.60254
    assert ping.longitude == -122.33982
    assert ping.speed_knots == 0.0
    assert ping.heading_deg == 271.0
    assert ping.at_dock is True
    assert ping.timestamp_ms == epoch_ms(T0)


def test_ping_from_snapshot_keeps_real_speed():
    assert ping_from_snapshot(make_snapshot(speed=0.3)).speed_knots == 0.3


def test_animation_state_exposes_raw_status():
    state = AnimationState.from_snapshot(
        make_snapshot(speed=12.5, at_dock=False, in_service=False, vessel_name="Kaleetan")
    )

    dumped = state.model_dump(mode="json")

    assert dumped["speed_knots"] == 12.5
    assert dumped["in_service"] is False
    assert dumped["vessel_name"] == "Kaleetan"
    assert dumped["last_raw_snapshot"]["timestamp"].startswith("2024-06-01T12:00:00")
