"""Persisted automation configuration API endpoints."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from autoscrape.context import AppContext
from autoscrape.dependencies.context import get_context
from autoscrape.exceptions import ConfigError
from autoscrape.schemas.automation import AutomationConfig

router = APIRouter(prefix="/config", tags=["config"])


@router.get("", response_model=AutomationConfig)
async def get_config(ctx: AppContext = Depends(get_context)):
    return ctx.config_store.load()


@router.patch("", response_model=AutomationConfig)
async def update_config(
    values: dict[str, Any] = Body(...),
    ctx: AppContext = Depends(get_context),
):
    """Update some keys; the rest keep their stored or default values."""
    try:
        return ctx.config_store.update(values)
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("", response_model=AutomationConfig)
async def reset_config(ctx: AppContext = Depends(get_context)):
    return ctx.config_store.reset()
