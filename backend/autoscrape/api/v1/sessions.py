"""Automation session API endpoints."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel

from autoscrape.context import AppContext
from autoscrape.dependencies.context import get_context
from autoscrape.exceptions import SessionConflictError
from autoscrape.schemas.automation import DecisionRequest, RunOptions, SessionSummary

router = APIRouter(prefix="/sessions", tags=["sessions"])


class StartSessionRequest(BaseModel):
    scene_id: str
    force_providers: list[str] | None = None


def _active_or_404(ctx: AppContext, scene_id: str):
    session = ctx.automation.get_session(scene_id)
    if session is None or not ctx.automation.is_active(scene_id):
        raise HTTPException(status_code=404, detail="No active session for scene")
    return session


@router.post("", response_model=SessionSummary, status_code=202)
async def start_session(
    body: StartSessionRequest,
    background_tasks: BackgroundTasks,
    ctx: AppContext = Depends(get_context),
):
    """Start automation for a scene. Runs in the background."""
    if ctx.surface is None:
        raise HTTPException(status_code=503, detail="No scene surface available")

    busy = [s for s in ctx.automation.active_scene_ids() if s != body.scene_id]
    if busy:
        # One browser page drives every session
        raise HTTPException(status_code=409, detail=f"Surface busy with scene {busy[0]}")

    try:
        session = ctx.automation.prepare(body.scene_id)
    except SessionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    options = RunOptions(force_providers=body.force_providers)
    background_tasks.add_task(ctx.run_scene, body.scene_id, options, None, session)
    return session.to_summary()


@router.get("/{scene_id}", response_model=SessionSummary)
async def get_session(scene_id: str, ctx: AppContext = Depends(get_context)):
    """Get the active or most recent session for a scene."""
    session = ctx.automation.get_session(scene_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session.to_summary()


@router.post("/{scene_id}/cancel", response_model=SessionSummary)
async def cancel_session(scene_id: str, ctx: AppContext = Depends(get_context)):
    session = _active_or_404(ctx, scene_id)
    ctx.automation.cancel(scene_id)
    return session.to_summary()


@router.post("/{scene_id}/skip", response_model=SessionSummary)
async def skip_current_source(scene_id: str, ctx: AppContext = Depends(get_context)):
    """Skip the provider currently being processed."""
    session = _active_or_404(ctx, scene_id)
    ctx.automation.skip_current_source(scene_id)
    return session.to_summary()


@router.post("/{scene_id}/decision", response_model=SessionSummary)
async def submit_decision(
    scene_id: str,
    body: DecisionRequest,
    ctx: AppContext = Depends(get_context),
):
    """Answer a pending apply/skip/cancel prompt."""
    session = _active_or_404(ctx, scene_id)
    if not ctx.automation.submit_decision(scene_id, body.decision):
        raise HTTPException(status_code=409, detail="Session is not waiting for a decision")
    return session.to_summary()
