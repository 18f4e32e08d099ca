from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/status")
async def tracking_status(request: Request):
    tracking = request.app.state.tracking
    scheduler = request.app.state.scheduler
    return {
        "tracked_vessels": len(tracking.animated_vessels()),
        "scheduler_running": scheduler.running,
        "ping_cache": tracking.ping_cache.status().model_dump(),
    }


@router.post("/reconnect")
async def reconnect(request: Request, reason: str = "api"):
    triggered = request.app.state.reconnect.signal(reason)
    return {"triggered": triggered}
