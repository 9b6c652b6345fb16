"""Per-provider scrape statistics API endpoints."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from autoscrape.context import AppContext
from autoscrape.dependencies.context import get_context
from autoscrape.schemas.source_stats import SourceStatsRead

router = APIRouter(prefix="/source-stats", tags=["source-stats"])


class SourceStatsResponse(SourceStatsRead):
    ratio: float


class RouteOrderResponse(BaseModel):
    adaptive: bool
    order: list[str]


@router.get("", response_model=list[SourceStatsResponse])
async def list_source_stats(ctx: AppContext = Depends(get_context)):
    return [
        SourceStatsResponse(**stats.model_dump(), ratio=stats.success_ratio)
        for stats in ctx.stats.load_all().values()
    ]


@router.get("/order", response_model=RouteOrderResponse)
async def get_route_order(ctx: AppContext = Depends(get_context)):
    """Order providers would currently be scraped in."""
    config = ctx.config_store.load()
    ctx.router.enabled = config.adaptive_routing
    pending = [p for p in ctx.tracker.providers if config.provider_enabled(p)]
    return RouteOrderResponse(
        adaptive=config.adaptive_routing,
        order=ctx.router.order(pending, ctx.stats.load_all()),
    )


@router.delete("")
async def reset_source_stats(
    ctx: AppContext = Depends(get_context),
    provider: str | None = Query(None, description="Reset a single provider"),
):
    return {"removed": ctx.stats.reset(provider)}
