from datetime import datetime, timezone

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from conftest import T0
from ferrytrack.ingestors.wsf_feed import FeedError, WsfFeedClient, parse_vessel_location, parse_wsf_date

T0_WSF = "/Date(1717243200000-0700)/"


def record(**kw):
    base = {
        "VesselID": 2,
        "VesselName": "Chimacum ",
        "Latitude": 47.6025,
        "Longitude": -122.3398,
        "Speed": 14.2,
        "Heading": 275,
        "AtDock": False,
        "InService": True,
        "TimeStamp": T0_WSF,
    }
    base.update(kw)
    return base


def test_parse_wcf_date_ignores_offset_suffix():
    assert parse_wsf_date(T0_WSF) == T0
    assert parse_wsf_date("/Date(1717243200000)/") == T0


def test_parse_iso_date():
    assert parse_wsf_date("2024-06-01T12:00:00Z") == T0
    assert parse_wsf_date("2024-06-01T12:00:00") == datetime(2024, 6, 1, 12, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", [None, "", "yesterday", 1717243200000])
def test_parse_bad_date(value):
    assert parse_wsf_date(value) is None


def test_parse_vessel_location():
    snap = parse_vessel_location(record())

    assert snap.vessel_id == 2
    assert snap.vessel_name == "Chimacum"
    assert snap.latitude == 47.6025
    assert snap.speed_knots == 14.2
    assert snap.heading_deg == 275.0
    assert snap.at_dock is False
    assert snap.timestamp == T0


@pytest.mark.parametrize(
    "overrides",
    [
        {"VesselID": None},
        {"Latitude": None},
        {"Latitude": 0, "Longitude": 0},
        {"Latitude": 91.0},
        {"Longitude": -181.0},
        {"TimeStamp": "garbage"},
        {"Latitude": "n/a"},
        {"Longitude": [47]},
        {"VesselID": "not-a-number"},
        {"Speed": "fast"},
        {"Heading": {"deg": 90}},
    ],
)
def test_unusable_records_are_skipped(overrides):
    assert parse_vessel_location(record(**overrides)) is None


def test_missing_speed_and_heading_default_to_zero():
    snap = parse_vessel_location(record(Speed=None, Heading=None, VesselName=None))

    assert snap.speed_knots == 0.0
    assert snap.heading_deg == 0.0
    assert snap.vessel_name is None


@pytest.fixture
async def feed_server():
    state = {"status": 200, "payload": [], "params": None, "body": None}

    async def vessel_locations(request):
        state["params"] = dict(request.query)
        if state["status"] != 200:
            return web.Response(status=state["status"])
        if state["body"] is not None:
            return web.Response(text=state["body"], content_type="text/html")
        # The live endpoint does not always send a JSON content type
        return web.json_response(state["payload"], content_type="text/plain")

    app = web.Application()
    app.router.add_get("/vessellocations", vessel_locations)
    server = TestServer(app)
    await server.start_server()
    server.state = state
    yield server
    await server.close()


async def test_fetch_parses_usable_records(feed_server):
    feed_server.state["payload"] = [record(), record(VesselID=3, Latitude=0, Longitude=0), "junk"]
    client = WsfFeedClient(str(feed_server.make_url("/vessellocations")), api_key="secret", timeout=5)

    try:
        snapshots = await client.fetch()
    finally:
        await client.aclose()

    assert [s.vessel_id for s in snapshots] == [2]
    assert feed_server.state["params"] == {"apiaccesscode": "secret"}


async def test_fetch_http_error_raises_feed_error(feed_server):
    feed_server.state["status"] = 503
    client = WsfFeedClient(str(feed_server.make_url("/vessellocations")), api_key="", timeout=5)

    try:
        with pytest.raises(FeedError):
            await client.fetch()
    finally:
        await client.aclose()

    assert feed_server.state["params"] == {}


async def test_fetch_non_list_payload_raises(feed_server):
    feed_server.state["payload"] = {"Message": "invalid access code"}
    client = WsfFeedClient(str(feed_server.make_url("/vessellocations")), api_key="bad", timeout=5)

    try:
        with pytest.raises(FeedError):
            await client.fetch()
    finally:
        await client.aclose()


async def test_fetch_non_json_body_raises_feed_error(feed_server):
    feed_server.state["body"] = "<html>maintenance</html>"
    client = WsfFeedClient(str(feed_server.make_url("/vessellocations")), api_key="", timeout=5)

    try:
        with pytest.raises(FeedError):
            await client.fetch()
    finally:
        await client.aclose()


async def test_fetch_keeps_good_records_next_to_malformed_ones(feed_server):
    feed_server.state["payload"] = [record(), record(VesselID=5, Latitude="n/a"), record(VesselID="x")]
    client = WsfFeedClient(str(feed_server.make_url("/vessellocations")), api_key="", timeout=5)

    try:
        snapshots = await client.fetch()
    finally:
        await client.aclose()

    assert [s.vessel_id for s in snapshots] == [2]
