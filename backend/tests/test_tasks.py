"""Tests for the Celery maintenance and dispatch tasks."""

from types import SimpleNamespace

from autoscrape.config import Settings
from autoscrape.providers.registry import list_providers
from autoscrape.services.history_store import HistoryStore
from autoscrape.services.rescrape_queue import RescrapeQueue
from autoscrape.tasks import automation_tasks, maintenance_tasks
from autoscrape.tasks.celery_app import celery_app


def test_beat_schedule():
    schedule = celery_app.conf.beat_schedule
    assert schedule["dispatch-due-rescrapes"]["task"] == "autoscrape.tasks.automation_tasks.dispatch_due_rescrapes"
    assert schedule["prune-history"]["task"] == "autoscrape.tasks.maintenance_tasks.prune_history"


def test_dispatch_due_rescrapes_once_per_entry(monkeypatch, session_factory):
    queue = RescrapeQueue(session_factory, retry_interval_minutes=0)
    queue.enqueue("1")
    RescrapeQueue(session_factory, retry_interval_minutes=600).enqueue("2")

    dispatched = []
    monkeypatch.setattr(automation_tasks, "get_session_factory", lambda url: session_factory)
    monkeypatch.setattr(
        automation_tasks, "run_scene_automation",
        SimpleNamespace(delay=lambda *args: dispatched.append(args)),
    )

    # Second beat fires before any worker has picked up the first run
    first = automation_tasks.dispatch_due_rescrapes.run()
    second = automation_tasks.dispatch_due_rescrapes.run()

    assert first == {"dispatched": 1}
    assert second == {"dispatched": 0}
    assert dispatched == [("1", list_providers())]
    assert queue.get("1").attempt_count == 1
    assert queue.get("2").attempt_count == 0


def test_prune_history_uses_retention(monkeypatch, session_factory):
    monkeypatch.setattr(maintenance_tasks, "get_settings", lambda: Settings(history_retention_days=7))
    monkeypatch.setattr(maintenance_tasks, "get_session_factory", lambda url: session_factory)
    history = HistoryStore(session_factory)
    history.import_json({"history": [
        {"recordId": "1", "timestamp": "2001-01-01T00:00:00Z", "success": True},
    ]})

    assert maintenance_tasks.prune_history.run() == {"removed": 1}
    assert history.all() == []
