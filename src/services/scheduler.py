"""Periodic harvest task with a single in-flight chain."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Optional

from config import settings
from .archive import ArchiveStore
from .backfill import BackfillController, BackfillReport
from .converter import ConversionOrchestrator
from .harvester import Harvester

logger = logging.getLogger("windhub.scheduler")


class HarvestScheduler:
    def __init__(
        self,
        controller: BackfillController | None = None,
        *,
        interval_minutes: float | None = None,
        history_limit: int | None = None,
    ) -> None:
        if controller is None:
            archive = ArchiveStore.from_settings()
            controller = BackfillController(Harvester(archive), ConversionOrchestrator(archive), archive)
        self.controller = controller
        self._interval_minutes = interval_minutes
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task[None]] = None
        self._running = False
        self._history: deque[BackfillReport] = deque(maxlen=history_limit or settings.harvest_history_limit)
        self._last_tick: datetime | None = None

    @property
    def interval_minutes(self) -> float:
        return self._interval_minutes or settings.harvest_interval_minutes

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def start(self) -> None:
        if self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="harvest-scheduler")
        logger.info("Harvest scheduler started (every %.1f min)", self.interval_minutes)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            finally:
                self._task = None
                logger.info("Harvest scheduler stopped")
        await self.controller.harvester.close()

    async def run_once(self, now: datetime | None = None) -> BackfillReport | None:
        """Run one harvest/backfill chain; returns None when a chain is already running."""
        if self._lock.locked():
            logger.info("Harvest already in flight; skipping tick")
            return None
        async with self._lock:
            reference = now or datetime.now(timezone.utc)
            self._last_tick = reference
            report = await self.controller.run(reference, now=reference)
            self._history.append(report)
            logger.info(
                "Harvest chain finished: %s (archived %s)",
                report.stop_reason,
                ", ".join(report.archived_stamps) or "nothing",
            )
            return report

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001 - a failed tick must not end the loop
                logger.exception("Harvest tick failed")
            await asyncio.sleep(self.interval_minutes * 60.0)

    def history(self, limit: int = 10) -> list[dict[str, Any]]:
        reports = list(self._history)[-limit:] if limit > 0 else []
        return [report.to_payload() for report in reports]

    def status(self, *, history_limit: int = 10) -> dict[str, Any]:
        stamps = self.controller.archive.list_stamps()
        return {
            "enabled": settings.harvest_enabled,
            "running": self._task is not None and not self._task.done(),
            "in_flight": self.in_flight,
            "interval_minutes": self.interval_minutes,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "archived_count": len(stamps),
            "newest_stamp": stamps[-1] if stamps else None,
            "history": self.history(history_limit),
        }

    def clear(self) -> None:
        self._history.clear()
        self._last_tick = None


harvest_scheduler = HarvestScheduler()


async def start_scheduler(scheduler: HarvestScheduler | None = None) -> None:
    if not settings.harvest_enabled:
        logger.info("Harvest disabled (set HARVEST_ENABLED=true to enable).")
        return
    logger.info("Harvest enabled; first run starts now.")
    await (scheduler or harvest_scheduler).start()


async def stop_scheduler(scheduler: HarvestScheduler | None = None) -> None:
    await (scheduler or harvest_scheduler).stop()


__all__ = ["HarvestScheduler", "harvest_scheduler", "start_scheduler", "stop_scheduler"]
