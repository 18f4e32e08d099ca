import logging
import re
from datetime import datetime, timezone

import aiohttp
from pydantic import ValidationError

from ferrytrack.config import settings
from ferrytrack.models.schemas import VesselSnapshot, from_epoch_ms

logger = logging.getLogger("ferrytrack.wsf_feed")

# WCF-style JSON date, e.g. /Date(1700000000000-0800)/
_WSF_DATE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")


class FeedError(Exception):
    """The vessel feed could not be fetched or decoded."""


def parse_wsf_date(value) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None

    m = _WSF_DATE.match(value.strip())
    if m:
        # The millisecond count is UTC; the suffix is only the display offset
        return from_epoch_ms(int(m.group(1)))

    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def parse_vessel_location(record: dict) -> VesselSnapshot | None:
    vessel_id = record.get("VesselID")
    if not vessel_id:
        return None

    ts = parse_wsf_date(record.get("TimeStamp"))
    if ts is None:
        return None

    try:
        lat = record.get("Latitude")
        lon = record.get("Longitude")
        if lat is None or lon is None:
            return None
        lat, lon = float(lat), float(lon)
        if lat == 0 and lon == 0:
            return None
        if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
            return None

        name = str(record.get("VesselName") or "").strip() or None
        return VesselSnapshot(
            vessel_id=vessel_id,
            latitude=lat,
            longitude=lon,
            speed_knots=float(record.get("Speed") or 0),
            heading_deg=float(record.get("Heading") or 0),
            at_dock=bool(record.get("AtDock", False)),
            in_service=bool(record.get("InService", True)),
            timestamp=ts,
            vessel_name=name,
        )
    except (TypeError, ValueError, ValidationError) as e:
        logger.debug("Skipping malformed vessel record %s: %s", vessel_id, e)
        return None


class WsfFeedClient:
    """Polls the WSF vessel-locations endpoint."""

    def __init__(self, url: str | None = None, api_key: str | None = None, timeout: float | None = None):
        self.url = url or settings.wsf_api_url
        self.api_key = settings.wsf_api_key if api_key is None else api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.feed_timeout)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def fetch(self) -> list[VesselSnapshot]:
        session = self._get_session()
        params = {"apiaccesscode": self.api_key} if self.api_key else None
        try:
            async with session.get(self.url, params=params) as resp:
                if resp.status != 200:
                    raise FeedError(f"WSF feed returned HTTP {resp.status}")
                payload = await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise FeedError(f"WSF feed request failed: {e}") from e
        except ValueError as e:
            raise FeedError(f"WSF feed returned invalid JSON: {e}") from e

        if not isinstance(payload, list):
            raise FeedError("WSF feed payload is not a list")

        snapshots = []
        for record in payload:
            if not isinstance(record, dict):
                continue
            parsed = parse_vessel_location(record)
            if parsed is not None:
                snapshots.append(parsed)

        logger.debug("WSF feed: %d of %d records usable", len(snapshots), len(payload))
        return snapshots

    async def aclose(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
