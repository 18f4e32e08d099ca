"""Historical ping sources for the incremental ping cache.

Every source answers one query: pings with a timestamp strictly greater than
`since_ms`, ordered ascending by timestamp, at most `limit` rows.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

import aiohttp
from pydantic import ValidationError

from ferrytrack.config import Settings, settings
from ferrytrack.database import get_db
from ferrytrack.models.enums import PingSourceKind
from ferrytrack.models.schemas import Ping, VesselSnapshot, from_epoch_ms, ping_from_snapshot

logger = logging.getLogger("ferrytrack.ping_source")


class PingSourceError(Exception):
    """A ping fetch failed in transport or returned an unusable payload."""


class PingSource(Protocol):
    async def fetch_since(self, since_ms: int, limit: int) -> list[Ping]: ...


def parse_ping(record: dict) -> Ping | None:
    ts = record.get("timestamp")
    if isinstance(ts, (int, float)) and not isinstance(ts, bool):
        record = {**record, "timestamp": from_epoch_ms(ts)}
    try:
        return Ping.model_validate(record)
    except ValidationError as e:
        logger.debug("Skipping malformed ping %s: %s", record, e)
        return None


class HttpPingSource:
    """Reads pings from `GET {base_url}/pings?since_ms=..&limit=..`."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.ping_api_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.ping_fetch_timeout)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def fetch_since(self, since_ms: int, limit: int) -> list[Ping]:
        session = self._get_session()
        params = {"since_ms": str(since_ms), "limit": str(limit)}
        try:
            async with session.get(f"{self.base_url}/pings", params=params) as resp:
                if resp.status != 200:
                    raise PingSourceError(f"Ping API returned HTTP {resp.status}")
                payload = await resp.json()
        except aiohttp.ClientError as e:
            raise PingSourceError(f"Ping API request failed: {e}") from e

        if not isinstance(payload, list):
            raise PingSourceError("Ping API payload is not a list")

        pings = [p for p in (parse_ping(r) for r in payload if isinstance(r, dict)) if p is not None]
        if len(pings) < len(payload):
            logger.warning("Dropped %d malformed ping(s)", len(payload) - len(pings))
        return pings

    async def aclose(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


class PostgresPingSource:
    """Reads pings from the `vessel_pings` table."""

    async def fetch_since(self, since_ms: int, limit: int) -> list[Ping]:
        db = get_db()
        rows = await db.fetch(
            """
            SELECT vessel_id, latitude, longitude, speed_knots, heading_deg,
                   at_dock, timestamp
            FROM vessel_pings
            WHERE timestamp > to_timestamp($1 / 1000.0)
            ORDER BY timestamp ASC
            LIMIT $2
            """,
            since_ms,
            limit,
        )
        return [_row_to_ping(r) for r in rows]

    async def record(self, snapshots: Iterable[VesselSnapshot]) -> int:
        """Store snapshots as history pings. Returns the number of rows written."""
        rows = [
            (p.vessel_id, p.latitude, p.longitude, p.speed_knots, p.heading_deg, p.at_dock, p.timestamp)
            for p in (ping_from_snapshot(s) for s in snapshots)
        ]
        if not rows:
            return 0

        db = get_db()
        async with db.acquire() as conn:
            await conn.executemany(
                """
                INSERT INTO vessel_pings
                    (vessel_id, latitude, longitude, speed_knots, heading_deg, at_dock, timestamp)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (vessel_id, timestamp) DO NOTHING
                """,
                rows,
            )
        return len(rows)

    async def delete_older_than(self, cutoff: datetime, limit: int) -> int:
        """Delete up to `limit` of the oldest pings before `cutoff`. Returns the row count."""
        db = get_db()
        status = await db.execute(
            """
            DELETE FROM vessel_pings
            WHERE ctid IN (
                SELECT ctid FROM vessel_pings
                WHERE timestamp < $1
                ORDER BY timestamp ASC
                LIMIT $2
            )
            """,
            cutoff,
            limit,
        )
        # Command tag, e.g. "DELETE 42"
        return int(status.split()[-1])

    async def aclose(self):
        return None


def _row_to_ping(row) -> Ping:
    ts: datetime = row["timestamp"]
    return Ping(
        vessel_id=row["vessel_id"],
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        speed_knots=float(row["speed_knots"] or 0),
        heading_deg=float(row["heading_deg"] or 0),
        at_dock=bool(row["at_dock"]),
        timestamp=ts,
    )


def build_ping_source(cfg: Settings = settings) -> HttpPingSource | PostgresPingSource:
    kind = PingSourceKind(cfg.ping_source)
    if kind is PingSourceKind.POSTGRES:
        return PostgresPingSource()
    return HttpPingSource(cfg.ping_api_url, cfg.ping_fetch_timeout)
