"""Scene status API endpoints."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from autoscrape.context import AppContext
from autoscrape.dependencies.context import get_context
from autoscrape.schemas.history import HistoryEntryRead
from autoscrape.schemas.status import CompletionSnapshot

router = APIRouter(prefix="/scenes", tags=["scenes"])


class SceneStatusResponse(BaseModel):
    snapshot: CompletionSnapshot
    status: str
    last_automation: HistoryEntryRead | None = None


@router.get("/{scene_id}/status", response_model=SceneStatusResponse)
async def get_scene_status(
    scene_id: str,
    ctx: AppContext = Depends(get_context),
    fresh: bool = Query(False, description="Bypass the cached scene"),
):
    """Detect which providers a scene already carries."""
    snapshot = await ctx.tracker.refresh(scene_id, fresh=fresh)
    return SceneStatusResponse(
        snapshot=snapshot,
        status=ctx.tracker.completion().status,
        last_automation=ctx.history.last_for_scene(scene_id),
    )
