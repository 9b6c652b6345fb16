"""Recent notification API endpoints."""

from fastapi import APIRouter, Depends, Query

from autoscrape.context import AppContext
from autoscrape.dependencies.context import get_context
from autoscrape.services.notifier import Notification

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[Notification])
async def list_notifications(
    ctx: AppContext = Depends(get_context),
    limit: int = Query(20, ge=1, le=100),
):
    return ctx.notifier.recent(limit)
