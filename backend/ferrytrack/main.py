import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ferrytrack.config import settings
from ferrytrack.database import init_db, close_db
from ferrytrack.ingestors.ping_source import PostgresPingSource, build_ping_source
from ferrytrack.ingestors.wsf_feed import WsfFeedClient
from ferrytrack.models.enums import PingSourceKind
from ferrytrack.processors.ping_recorder import PingRecorder, PingRetention
from ferrytrack.processors.reconnect import ReconnectDebouncer
from ferrytrack.processors.scheduler import TrackingScheduler
from ferrytrack.services.ping_cache import IncrementalPingCache
from ferrytrack.services.smoother import ExponentialSmoother
from ferrytrack.services.tracking_context import VesselTrackingContext
from ferrytrack.services.trail_builder import TrailBuilder
from ferrytrack.api.router import api_router
from ferrytrack.api.ws import ws_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("ferrytrack")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting ferry tracker...")
    use_postgres = PingSourceKind(settings.ping_source) is PingSourceKind.POSTGRES
    if use_postgres:
        await init_db()

    source = build_ping_source(settings)
    feed = WsfFeedClient()
    tracking = VesselTrackingContext(
        smoother=ExponentialSmoother(),
        ping_cache=IncrementalPingCache(source),
        trail_builder=TrailBuilder(),
    )
    recorder = retention = None
    if settings.record_pings and isinstance(source, PostgresPingSource):
        recorder = PingRecorder(tracking, source)
        retention = PingRetention(source)
    scheduler = TrackingScheduler(tracking, feed, recorder=recorder, retention=retention)
    reconnect = ReconnectDebouncer(tracking.ping_cache.refresh)

    app.state.tracking = tracking
    app.state.scheduler = scheduler
    app.state.reconnect = reconnect

    await scheduler.start()
    logger.info("Tracking scheduler started (ping source: %s)", settings.ping_source)

    yield

    logger.info("Shutting down tracking tasks...")
    await scheduler.stop()
    await reconnect.aclose()
    await feed.aclose()
    await source.aclose()
    if use_postgres:
        await close_db()
    logger.info("Ferry tracker stopped.")


app = FastAPI(
    title="Ferry Vessel Tracker",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")
app.include_router(ws_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
