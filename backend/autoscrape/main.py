"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import redis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from autoscrape.api.v1 import router as api_v1_router
from autoscrape.config import get_settings
from autoscrape.context import AppContext

logger = logging.getLogger(__name__)
settings = get_settings()

VERSION_QUERY = "query Version { version { version } }"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the service context unless one was handed to create_app."""
    if getattr(app.state, "ctx", None) is not None:
        yield
        return
    logger.info("Starting %s...", settings.app_name)
    async with AppContext(settings) as ctx:
        app.state.ctx = ctx
        logger.info("Services ready (surface: %s)", type(ctx.surface).__name__ if ctx.surface else "none")
        yield
        logger.info("Shutting down...")
    app.state.ctx = None


def _check_database(ctx: AppContext) -> dict:
    with ctx.db_engine.connect() as conn:
        conn.execute(text("SELECT 1")).scalar()
    return {"ok": True}


async def _check_stash(ctx: AppContext) -> dict:
    data = await ctx.query_client.query(VERSION_QUERY)
    return {"ok": True, "version": (data.get("version") or {}).get("version")}


def _check_redis() -> dict:
    redis.from_url(settings.redis_url, socket_timeout=5).ping()
    return {"ok": True}


def create_app(ctx: AppContext | None = None) -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Multi-source metadata automation for Stash scenes",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.ctx = ctx

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_v1_router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "app": settings.app_name}

    @app.get("/health/detailed")
    async def detailed_health_check():
        """Database, Stash API, Redis broker and browser surface."""
        ctx = app.state.ctx
        checks = {}
        for name, check in (
            ("database", lambda: _check_database(ctx)),
            ("stash", lambda: _check_stash(ctx)),
            ("redis", _check_redis),
        ):
            try:
                result = check()
                if hasattr(result, "__await__"):
                    result = await result
                checks[name] = result
            except Exception as e:
                checks[name] = {"ok": False, "message": str(e)}

        checks["surface"] = {
            "ok": ctx.surface is not None,
            "active_sessions": ctx.automation.active_scene_ids(),
        }

        healthy = all(check["ok"] for check in checks.values())
        return {
            "status": "healthy" if healthy else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": checks,
        }

    return app


app = create_app()
