"""Interval-aligned stamp keys for GFS snapshots.

A stamp is ``YYYYMMDD`` followed by the two digit hour bucket, e.g.
``2024112506``. Hour buckets are floored, never rounded, so a stamp always
names the newest cycle at or before the given moment.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

DEFAULT_INTERVAL_HOURS = 6


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def round_hours(hours: int, interval: int = DEFAULT_INTERVAL_HOURS) -> str:
    """Floor ``hours`` to the interval boundary and zero pad to two digits."""
    if interval <= 0:
        raise ValueError("interval must be positive")
    bucket = (hours // interval) * interval
    return f"{bucket:02d}"


def stamp_parts(moment: datetime, interval: int = DEFAULT_INTERVAL_HOURS) -> tuple[str, str]:
    """Return ``(YYYYMMDD, HH)`` for the UTC calendar date and hour bucket."""
    utc = as_utc(moment)
    return utc.strftime("%Y%m%d"), round_hours(utc.hour, interval)


def canonical_stamp(moment: datetime, interval: int = DEFAULT_INTERVAL_HOURS) -> str:
    day, hours = stamp_parts(moment, interval)
    return day + hours


def previous_moment(moment: datetime, interval: int = DEFAULT_INTERVAL_HOURS) -> datetime:
    return moment - timedelta(hours=interval)


def next_moment(moment: datetime, interval: int = DEFAULT_INTERVAL_HOURS) -> datetime:
    return moment + timedelta(hours=interval)


def parse_stamp(stamp: str) -> datetime:
    """Inverse of :func:`canonical_stamp` for the bucket start time."""
    if len(stamp) != 10 or not stamp.isdigit():
        raise ValueError(f"Invalid stamp: {stamp!r}")
    return datetime.strptime(stamp, "%Y%m%d%H").replace(tzinfo=timezone.utc)


__all__ = [
    "DEFAULT_INTERVAL_HOURS",
    "as_utc",
    "canonical_stamp",
    "next_moment",
    "parse_stamp",
    "previous_moment",
    "round_hours",
    "stamp_parts",
]
