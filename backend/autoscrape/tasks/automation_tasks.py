"""Scheduled re-scrape dispatch and unattended automation runs."""

import asyncio
import logging

from autoscrape.config import get_settings
from autoscrape.context import AppContext
from autoscrape.engine.automation import skip_decision
from autoscrape.models.base import get_session_factory
from autoscrape.providers.registry import list_providers
from autoscrape.schemas.automation import RunOptions
from autoscrape.services.rescrape_queue import RescrapeQueue
from autoscrape.services.config_store import ConfigStore
from autoscrape.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="autoscrape.tasks.automation_tasks.dispatch_due_rescrapes")
def dispatch_due_rescrapes():
    """
    Find queued scenes whose retry time has passed and dispatch a forced run
    for each. The attempt is counted here, so an entry waiting behind a busy
    worker is not picked up again by the next beat.
    """
    settings = get_settings()
    session_factory = get_session_factory(settings.database_url)
    config = ConfigStore(session_factory).load()
    queue = RescrapeQueue(
        session_factory,
        retry_interval_minutes=config.rescrape_retry_minutes,
        max_backoff_minutes=config.max_backoff_minutes,
    )
    providers = list_providers()

    dispatched = 0
    for entry in queue.due_entries():
        queue.mark_attempted(entry)
        run_scene_automation.delay(entry.scene_id, providers)
        dispatched += 1

    logger.info(f"Dispatched {dispatched} re-scrape runs")
    return {"dispatched": dispatched}


async def _run_scene(scene_id: str, force_providers: list[str] | None) -> dict:
    settings = get_settings()
    async with AppContext(settings) as ctx:
        summary = await ctx.run_scene(
            scene_id,
            options=RunOptions(force_providers=force_providers),
            decide=skip_decision,
        )
    return summary.model_dump(mode="json")


@celery_app.task(name="autoscrape.tasks.automation_tasks.run_scene_automation")
def run_scene_automation(scene_id: str, force_providers: list[str] | None = None):
    """Run one unattended session. Operator prompts resolve to skip."""
    summary = asyncio.run(_run_scene(scene_id, force_providers))
    logger.info(
        f"[{scene_id}] Unattended automation {summary['state']}: "
        f"used {summary['sources_used']}, skipped {summary['skipped_sources']}"
    )
    return {
        "scene_id": scene_id,
        "state": summary["state"],
        "success": summary["success"],
        "sources_used": summary["sources_used"],
    }
