"""Backward search for the newest GFS snapshot published upstream."""

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from config import settings
from .archive import ArchiveStore
from .stamps import as_utc, canonical_stamp, previous_moment, stamp_parts

logger = logging.getLogger("windhub.harvester")

GFS_LEVELS = ("lev_10_m_above_ground", "lev_surface")
GFS_VARIABLES = ("var_TMP", "var_UGRD", "var_VGRD")
GFS_EXTENT = {"leftlon": 0, "rightlon": 360, "toplat": 90, "bottomlat": -90}


class HarvestOutcome(str, enum.Enum):
    FOUND = "found"
    ALREADY_HAVE = "already_have"
    NO_DATA = "no_data"


@dataclass(frozen=True, slots=True)
class HarvestResult:
    outcome: HarvestOutcome
    stamp: str | None
    target_moment: datetime | None
    attempts: int

    @property
    def found(self) -> bool:
        return self.outcome is HarvestOutcome.FOUND

    def to_payload(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "stamp": self.stamp,
            "target_moment": self.target_moment.isoformat() if self.target_moment else None,
            "attempts": self.attempts,
        }


def build_query(day: str, hours: str) -> dict[str, Any]:
    params: dict[str, Any] = {"file": f"gfs.t{hours}z.pgrb2.1p00.f000"}
    for key in GFS_LEVELS + GFS_VARIABLES:
        params[key] = "on"
    params.update(GFS_EXTENT)
    params["dir"] = f"/gfs.{day}/{hours}/atmos"
    return params


class Harvester:
    def __init__(
        self,
        archive: ArchiveStore | None = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        interval_hours: int | None = None,
        max_age: timedelta | None = None,
    ) -> None:
        self.archive = archive or ArchiveStore.from_settings()
        self._client = client
        self._owns_client = client is None
        self.interval_hours = interval_hours or settings.stamp_interval_hours
        self.max_age = max_age if max_age is not None else timedelta(days=settings.harvest_max_age_days)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"User-Agent": settings.gfs_user_agent}
            self._client = httpx.AsyncClient(headers=headers, timeout=settings.gfs_request_timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def harvest(self, target: datetime, *, now: datetime | None = None) -> HarvestResult:
        """Walk back one interval at a time until a snapshot downloads or the age guard trips.

        ``now`` is the reference for the age guard. Callers running a chain pass the
        same value to every harvest so the guard cannot drift with wall time.
        """
        reference = as_utc(now) if now is not None else datetime.now(timezone.utc)
        moment = as_utc(target)
        attempts = 0

        while True:
            if reference - moment > self.max_age:
                logger.info(
                    "Hit %d day limit at %s; harvest complete or there is a big gap in data",
                    self.max_age.days,
                    canonical_stamp(moment, self.interval_hours),
                )
                return HarvestResult(HarvestOutcome.NO_DATA, None, None, attempts)

            stamp = canonical_stamp(moment, self.interval_hours)
            attempts += 1
            outcome = await self._attempt(stamp, moment)
            if outcome is not None:
                return HarvestResult(outcome, stamp, moment, attempts)
            moment = previous_moment(moment, self.interval_hours)

    async def _attempt(self, stamp: str, moment: datetime) -> HarvestOutcome | None:
        """One download. ``None`` means step back an interval."""
        day, hours = stamp_parts(moment, self.interval_hours)
        client = await self._get_client()
        try:
            async with client.stream("GET", settings.gfs_base_url, params=build_query(day, hours)) as response:
                logger.info("response %s | %s", response.status_code, stamp)
                if response.status_code != 200:
                    return None
                if self.archive.has_archived(stamp):
                    logger.info("already have %s, not looking further", stamp)
                    return HarvestOutcome.ALREADY_HAVE
                await self._stage(stamp, response)
        except httpx.HTTPError as exc:
            logger.debug("Request for %s failed: %s", stamp, exc)
            self.archive.discard_staged(stamp)
            return None
        return HarvestOutcome.FOUND

    async def _stage(self, stamp: str, response: httpx.Response) -> None:
        self.archive.ensure_dirs()
        partial = self.archive.partial_staged_path(stamp)
        logger.info("piping %s", stamp)
        try:
            with partial.open("wb") as handle:
                async for chunk in response.aiter_bytes():
                    handle.write(chunk)
            os.replace(partial, self.archive.staged_path(stamp))
        except BaseException:
            # covers write errors and cancellation as well as transport errors
            self.archive.discard_staged(stamp)
            raise


__all__ = ["GFS_EXTENT", "GFS_LEVELS", "GFS_VARIABLES", "HarvestOutcome", "HarvestResult", "Harvester", "build_query"]
