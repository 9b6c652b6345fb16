"""Automation history API endpoints."""

import json

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import Response

from autoscrape.context import AppContext
from autoscrape.dependencies.context import get_context
from autoscrape.exceptions import HistoryImportError
from autoscrape.schemas.history import HistoryEntryRead, HistoryStatistics, StorageInfo

router = APIRouter(prefix="/history", tags=["history"])


@router.get("", response_model=list[HistoryEntryRead])
async def list_history(
    ctx: AppContext = Depends(get_context),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    success: bool | None = Query(None, description="Filter by outcome"),
):
    """List history entries, newest first."""
    entries = ctx.history.all()
    if success is not None:
        entries = [e for e in entries if e.success == success]
    return entries[skip:skip + limit]


@router.get("/statistics", response_model=HistoryStatistics)
async def get_statistics(ctx: AppContext = Depends(get_context)):
    return ctx.history.statistics()


@router.get("/storage", response_model=StorageInfo)
async def get_storage_info(ctx: AppContext = Depends(get_context)):
    return ctx.history.storage_info()


@router.get("/export")
async def export_history(ctx: AppContext = Depends(get_context)):
    """Download the full history as a JSON document."""
    return Response(
        content=ctx.history.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="automation-history.json"'},
    )


@router.post("/import")
async def import_history(
    payload: dict = Body(...),
    ctx: AppContext = Depends(get_context),
):
    """Merge an exported history document."""
    try:
        imported = ctx.history.import_json(payload)
    except HistoryImportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"imported": imported}


@router.delete("")
async def clear_history(
    ctx: AppContext = Depends(get_context),
    older_than_days: int | None = Query(None, ge=0, description="Only drop entries older than this"),
):
    if older_than_days is None:
        removed = ctx.history.clear()
    else:
        removed = ctx.history.clear_older_than(older_than_days)
    return {"removed": removed}


@router.get("/scenes/{scene_id}", response_model=list[HistoryEntryRead])
async def get_scene_history(scene_id: str, ctx: AppContext = Depends(get_context)):
    return ctx.history.for_scene(scene_id)


@router.get("/scenes/{scene_id}/last", response_model=HistoryEntryRead)
async def get_last_automation(scene_id: str, ctx: AppContext = Depends(get_context)):
    entry = ctx.history.last_for_scene(scene_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="No history for scene")
    return entry
