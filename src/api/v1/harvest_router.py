from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from services.scheduler import harvest_scheduler
from .dependencies import require_api_key

router = APIRouter(prefix="/harvest", tags=["harvest"])


class HarvestStatusResponse(BaseModel):
    enabled: bool
    running: bool = Field(description="True while the periodic task is scheduled")
    in_flight: bool = Field(description="True while a harvest/backfill chain is executing")
    interval_minutes: float
    last_tick: str | None = None
    archived_count: int
    newest_stamp: str | None = None
    history: list[dict[str, Any]] = Field(default_factory=list)


class HarvestRunResponse(BaseModel):
    started_at: str | None = None
    finished_at: str | None = None
    stop_reason: str | None = None
    archived: list[str] = Field(default_factory=list)
    steps: list[dict[str, Any]] = Field(default_factory=list)


@router.get("/status", response_model=HarvestStatusResponse)
async def get_harvest_status(history: int = Query(10, ge=0, le=200)):
    return await asyncio.to_thread(harvest_scheduler.status, history_limit=history)


@router.post("/run", response_model=HarvestRunResponse, dependencies=[Depends(require_api_key)])
async def trigger_harvest():
    report = await harvest_scheduler.run_once()
    if report is None:
        raise HTTPException(status_code=409, detail="Harvest already in flight")
    return report.to_payload()
