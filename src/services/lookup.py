"""Read-only queries against the archived JSON snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from config import settings
from .archive import ArchiveStore
from .stamps import as_utc, canonical_stamp, next_moment, previous_moment

logger = logging.getLogger("windhub.lookup")

SECONDS_PER_DAY = 86400


class WindDataError(RuntimeError):
    """Base class for lookup errors surfaced to API callers."""


class InvalidLookupTime(WindDataError, ValueError):
    def __init__(self, value: Any) -> None:
        super().__init__(f"Invalid params, expecting: timeIso=ISO_TIME_STRING (got {value!r})")
        self.value = value


class NoDataWithinLimit(WindDataError):
    def __init__(self, message: str = "No data within searchLimit") -> None:
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class LookupResult:
    stamp: str
    path: Path


def parse_lookup_time(value: str | None) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC.

    Accepts what ``datetime.fromisoformat`` reads on 3.11+: extended and basic
    forms (``2024-11-25T08:00Z``, ``20241125T0800Z``), with or without an offset.
    """
    if value is None or not str(value).strip():
        raise InvalidLookupTime(value)
    text = str(value).strip()
    if text.endswith("z"):
        text = text[:-1] + "Z"
    try:
        return as_utc(datetime.fromisoformat(text))
    except (ValueError, OverflowError) as exc:
        raise InvalidLookupTime(value) from exc


def day_distance(origin: datetime, moment: datetime) -> int:
    """Whole days between the two moments, truncated toward zero."""
    seconds = abs((origin - moment).total_seconds())
    return int(seconds // SECONDS_PER_DAY)


class LookupService:
    def __init__(
        self,
        archive: ArchiveStore | None = None,
        *,
        interval_hours: int | None = None,
        max_lookback: timedelta | None = None,
    ) -> None:
        self.archive = archive or ArchiveStore.from_settings()
        self._interval_hours = interval_hours
        self._max_lookback = max_lookback

    @property
    def interval_hours(self) -> int:
        return self._interval_hours or settings.stamp_interval_hours

    @property
    def max_lookback(self) -> timedelta:
        return self._max_lookback or timedelta(days=settings.lookup_max_lookback_days)

    def _probe(self, moment: datetime) -> LookupResult | None:
        stamp = canonical_stamp(moment, self.interval_hours)
        if self.archive.has_archived(stamp):
            return LookupResult(stamp, self.archive.archived_path(stamp))
        return None

    def _step(self, moment: datetime, *, forward: bool, origin: datetime) -> datetime:
        try:
            if forward:
                return next_moment(moment, self.interval_hours)
            return previous_moment(moment, self.interval_hours)
        except OverflowError as exc:
            raise NoDataWithinLimit(f"No data within reach of the calendar edge near {origin.isoformat()}") from exc

    def latest(self, *, now: datetime | None = None, max_lookback: timedelta | None = None) -> LookupResult:
        """Newest archived snapshot at or before ``now``, walking back one interval at a time."""
        origin = as_utc(now) if now is not None else datetime.now(timezone.utc)
        bound = max_lookback or self.max_lookback
        moment = origin
        while origin - moment <= bound:
            found = self._probe(moment)
            if found is not None:
                return found
            logger.debug("%s doesnt exist yet, trying previous interval", canonical_stamp(moment, self.interval_hours))
            moment = self._step(moment, forward=False, origin=origin)
        raise NoDataWithinLimit(f"No data within {bound.days} days of {origin.isoformat()}")

    def nearest(
        self,
        target: datetime,
        search_limit_days: int | None = None,
        *,
        max_lookback: timedelta | None = None,
    ) -> LookupResult:
        """First archived snapshot met while stepping from ``target``.

        Steps backward until ``search_limit_days`` whole days away, then jumps the
        same number of days forward (back to ``target``) and steps forward to the
        same bound. A backward hit always wins, even when a forward candidate is
        closer in absolute time. Without a day limit only the backward leg runs.
        Either way the walk never spans more than ``max_lookback`` per leg.
        """
        if search_limit_days is not None and search_limit_days < 0:
            raise ValueError("search_limit_days must not be negative")
        origin = as_utc(target)
        bound = max_lookback or self.max_lookback
        limit = min(search_limit_days, max(bound.days, 1)) if search_limit_days else None
        moment = origin
        forward = False

        while True:
            if limit is not None:
                if day_distance(origin, moment) >= limit:
                    if forward:
                        raise NoDataWithinLimit()
                    forward = True
                    try:
                        moment = moment + timedelta(days=limit)
                    except OverflowError as exc:
                        raise NoDataWithinLimit() from exc
                    continue
            elif origin - moment > bound:
                raise NoDataWithinLimit(f"No data within {bound.days} days before {origin.isoformat()}")

            found = self._probe(moment)
            if found is not None:
                return found
            moment = self._step(moment, forward=forward, origin=origin)


lookup_service = LookupService()

__all__ = [
    "InvalidLookupTime",
    "LookupResult",
    "LookupService",
    "NoDataWithinLimit",
    "WindDataError",
    "day_distance",
    "lookup_service",
    "parse_lookup_time",
]
