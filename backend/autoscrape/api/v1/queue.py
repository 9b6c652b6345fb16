"""Rescrape queue API endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from autoscrape.context import AppContext
from autoscrape.dependencies.context import get_context
from autoscrape.schemas.queue import QueueEntryRead

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("", response_model=list[QueueEntryRead])
async def list_queue(ctx: AppContext = Depends(get_context)):
    """Scheduled re-scrapes, soonest first."""
    return ctx.queue.entries()


@router.get("/due", response_model=list[QueueEntryRead])
async def list_due(ctx: AppContext = Depends(get_context)):
    return ctx.queue.due_entries()


@router.delete("/{scene_id}", status_code=204)
async def remove_entry(scene_id: str, ctx: AppContext = Depends(get_context)):
    if not ctx.queue.remove(scene_id):
        raise HTTPException(status_code=404, detail="Scene not queued")


@router.delete("")
async def clear_queue(ctx: AppContext = Depends(get_context)):
    return {"removed": ctx.queue.clear()}
