from fastapi import APIRouter

from ferrytrack.api.vessels import router as vessels_router
from ferrytrack.api.tracking import router as tracking_router

api_router = APIRouter()
api_router.include_router(vessels_router, tags=["vessels"])
api_router.include_router(tracking_router, prefix="/tracking", tags=["tracking"])
