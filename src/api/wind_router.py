from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse, PlainTextResponse

from api.v1.dependencies import require_api_key
from services.lookup import InvalidLookupTime, LookupResult, NoDataWithinLimit, lookup_service, parse_lookup_time

router = APIRouter(tags=["wind"])


def _file_response(result: LookupResult) -> FileResponse:
    return FileResponse(result.path, media_type="application/json", headers={"X-Data-Stamp": result.stamp})


@router.get("/", response_class=PlainTextResponse)
async def root():
    return "hello wind data hub.. go to /latest for wind data.."


@router.get("/alive", response_class=PlainTextResponse, dependencies=[Depends(require_api_key)])
async def alive():
    return "wind data hub is alive"


@router.get("/latest", dependencies=[Depends(require_api_key)])
async def get_latest():
    try:
        result = await asyncio.to_thread(lookup_service.latest)
    except NoDataWithinLimit as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _file_response(result)


@router.get("/nearest", dependencies=[Depends(require_api_key)])
async def get_nearest(
    time_iso: str | None = Query(None, alias="timeIso", description="ISO 8601 target time"),
    search_limit: int | None = Query(None, alias="searchLimit", ge=0, description="Search window in days"),
):
    try:
        target = parse_lookup_time(time_iso)
    except InvalidLookupTime as exc:
        raise HTTPException(status_code=400, detail="Invalid params, expecting: timeIso=ISO_TIME_STRING") from exc
    try:
        result = await asyncio.to_thread(lookup_service.nearest, target, search_limit)
    except NoDataWithinLimit as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _file_response(result)
