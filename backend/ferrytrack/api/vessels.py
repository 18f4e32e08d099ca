from fastapi import APIRouter, HTTPException, Request

from ferrytrack.services.tracking_context import VesselTrackingContext

router = APIRouter()


def _tracking(request: Request) -> VesselTrackingContext:
    return request.app.state.tracking


@router.get("/vessels")
async def list_vessels(request: Request):
    states = _tracking(request).animated_vessels()
    return {
        "count": len(states),
        "vessels": [s.model_dump(mode="json") for s in states],
    }


@router.get("/vessels/{vessel_id}")
async def vessel_state(vessel_id: int, request: Request):
    state = _tracking(request).smoother.state_for(vessel_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Vessel not tracked")
    return state.model_dump(mode="json")


@router.get("/vessels/{vessel_id}/trail")
async def vessel_trail(vessel_id: int, request: Request):
    tracking = _tracking(request)
    if tracking.smoother.state_for(vessel_id) is None:
        raise HTTPException(status_code=404, detail="Vessel not tracked")
    trail = tracking.trail_for(vessel_id)
    if trail is None:
        raise HTTPException(status_code=404, detail="Not enough history for a trail")
    return trail.to_geojson()


@router.get("/trails")
async def all_trails(request: Request):
    trails = _tracking(request).trails()
    return {
        "type": "FeatureCollection",
        "features": [t.to_geojson() for t in trails.values()],
    }
