from collections.abc import Iterable

from ferrytrack.models.schemas import VesselSnapshot


def dedupe_snapshots(batch: Iterable[VesselSnapshot]) -> dict[int, VesselSnapshot]:
    """Collapse a batch to the most recent snapshot per vessel.

    On equal timestamps the snapshot that arrived later in the batch wins.
    """
    latest: dict[int, VesselSnapshot] = {}
    for snapshot in batch:
        current = latest.get(snapshot.vessel_id)
        if current is None or snapshot.timestamp >= current.timestamp:
            latest[snapshot.vessel_id] = snapshot
    return latest
