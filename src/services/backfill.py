"""Harvest/convert cycles that fill the gap behind the newest snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from config import settings
from .archive import ArchiveStore
from .converter import ConversionOrchestrator, ConversionResult
from .harvester import Harvester, HarvestOutcome, HarvestResult
from .stamps import as_utc, canonical_stamp, previous_moment

logger = logging.getLogger("windhub.backfill")

StopReason = Literal["no_data", "already_have", "conversion_failed", "depth_limit", "have_previous"]


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    iso = dt.astimezone(timezone.utc).isoformat(timespec="seconds")
    if iso.endswith("+00:00"):
        return iso[:-6] + "Z"
    return iso


@dataclass(slots=True)
class BackfillStep:
    depth: int
    harvest: HarvestResult
    conversion: ConversionResult | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "depth": self.depth,
            "harvest": self.harvest.to_payload(),
            "conversion": self.conversion.to_payload() if self.conversion else None,
        }


@dataclass(slots=True)
class BackfillReport:
    started_at: datetime
    steps: list[BackfillStep] = field(default_factory=list)
    finished_at: datetime | None = None
    stop_reason: StopReason | None = None

    @property
    def archived_stamps(self) -> list[str]:
        return [step.conversion.stamp for step in self.steps if step.conversion is not None and step.conversion.ok]

    @property
    def max_depth(self) -> int:
        return max((step.depth for step in self.steps), default=0)

    def to_payload(self) -> dict[str, Any]:
        return {
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
            "stop_reason": self.stop_reason,
            "archived": self.archived_stamps,
            "steps": [step.to_payload() for step in self.steps],
        }


class BackfillController:
    """Drives harvest then convert, then repeats for the preceding interval.

    Depth counts extra cycles behind the first successful conversion and is
    capped by ``max_depth`` independently of the harvester's age guard.
    """

    def __init__(
        self,
        harvester: Harvester,
        converter: ConversionOrchestrator,
        archive: ArchiveStore | None = None,
        *,
        max_depth: int | None = None,
        interval_hours: int | None = None,
    ) -> None:
        self.harvester = harvester
        self.converter = converter
        self.archive = archive or harvester.archive
        self.max_depth = settings.backfill_max_depth if max_depth is None else max_depth
        self.interval_hours = interval_hours or settings.stamp_interval_hours

    async def run(self, target: datetime, *, now: datetime | None = None) -> BackfillReport:
        reference = as_utc(now) if now is not None else datetime.now(timezone.utc)
        report = BackfillReport(started_at=datetime.now(timezone.utc))
        moment = as_utc(target)
        depth = 0

        while True:
            harvest = await self.harvester.harvest(moment, now=reference)
            if harvest.outcome is not HarvestOutcome.FOUND or harvest.stamp is None or harvest.target_moment is None:
                report.steps.append(BackfillStep(depth, harvest))
                report.stop_reason = "already_have" if harvest.outcome is HarvestOutcome.ALREADY_HAVE else "no_data"
                break

            logger.info("Iteration %d: converting %s", depth, harvest.stamp)
            conversion = await self.converter.convert(harvest.stamp)
            report.steps.append(BackfillStep(depth, harvest, conversion))
            if not conversion.ok:
                report.stop_reason = "conversion_failed"
                break

            prev_moment = previous_moment(harvest.target_moment, self.interval_hours)
            prev_stamp = canonical_stamp(prev_moment, self.interval_hours)
            if depth >= self.max_depth:
                logger.info("Backfill depth %d reached after %s", self.max_depth, harvest.stamp)
                report.stop_reason = "depth_limit"
                break
            if self.archive.has_archived(prev_stamp):
                logger.info("got older, no need to harvest further")
                report.stop_reason = "have_previous"
                break

            logger.info("attempting to harvest older data %s", prev_stamp)
            depth += 1
            moment = prev_moment

        report.finished_at = datetime.now(timezone.utc)
        return report


__all__ = ["BackfillController", "BackfillReport", "BackfillStep", "StopReason"]
