"""API v1 router aggregation."""

from fastapi import APIRouter

from autoscrape.api.v1.sessions import router as sessions_router
from autoscrape.api.v1.scenes import router as scenes_router
from autoscrape.api.v1.history import router as history_router
from autoscrape.api.v1.queue import router as queue_router
from autoscrape.api.v1.source_stats import router as source_stats_router
from autoscrape.api.v1.config import router as config_router
from autoscrape.api.v1.notifications import router as notifications_router

router = APIRouter(prefix="/api/v1")

router.include_router(sessions_router)
router.include_router(scenes_router)
router.include_router(history_router)
router.include_router(queue_router)
router.include_router(source_stats_router)
router.include_router(config_router)
router.include_router(notifications_router)
