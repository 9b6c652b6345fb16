"""End-to-end tests for the automation engine against a scripted surface."""

import asyncio

import pytest

from autoscrape.engine.cancellation import CancellationToken
from autoscrape.engine.session import AutomationSession, SessionFinalizedError
from autoscrape.engine.waits import run_step, sleep, wait_until
from autoscrape.exceptions import (
    SessionConflictError,
    StepTimeoutError,
    SurfaceError,
    UserCancelled,
    UserSkipped,
)
from autoscrape.schemas.automation import Decision, RunOptions, SessionState
from autoscrape.schemas.scraped import ScrapedData, ScrapeOutcome

from conftest import STASHDB_ENDPOINT, TPDB_ENDPOINT, scene_payload


async def wait_for_decision(ctx, scene_id="1", timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        session = ctx.automation.get_session(scene_id)
        if session is not None and session.awaiting_decision and session.decision is None:
            return session
        await asyncio.sleep(0.01)
    raise AssertionError("session never asked for a decision")


def action_names(summary, status=None):
    return [a.name for a in summary.actions if status is None or a.status == status]


class TestWaits:
    async def test_run_step_returns_result(self):
        async def work():
            return 42

        assert await run_step(work(), CancellationToken(), 1.0) == 42

    async def test_run_step_timeout_cancels_task(self):
        cancelled = asyncio.Event()

        async def hang():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(StepTimeoutError, match="timeout waiting for thing"):
            await run_step(hang(), CancellationToken(), 0.05, name="thing", poll_interval=0.01)
        assert cancelled.is_set()

    async def test_run_step_observes_cancel(self):
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.03, token.cancel)

        with pytest.raises(UserCancelled):
            await run_step(asyncio.sleep(10), token, None, poll_interval=0.01)

    async def test_run_step_skip_only_when_skippable(self):
        token = CancellationToken()
        token.request_skip()

        with pytest.raises(UserSkipped):
            await run_step(asyncio.sleep(10), token, 1.0, poll_interval=0.01, skippable=True)
        assert token.skip_requested is False

        token.request_skip()
        with pytest.raises(StepTimeoutError):
            await run_step(asyncio.sleep(10), token, 0.05, poll_interval=0.01)
        assert token.skip_requested is True

    async def test_run_step_surfaces_step_errors(self):
        async def broken():
            raise SurfaceError("Save button not found")

        with pytest.raises(SurfaceError):
            await run_step(broken(), CancellationToken(), 1.0)

    async def test_wait_until_and_sleep(self):
        state = {"ready": False}
        asyncio.get_running_loop().call_later(0.02, state.update, {"ready": True})
        await wait_until(lambda: state["ready"], CancellationToken(), 1.0, poll_interval=0.01)

        with pytest.raises(StepTimeoutError):
            await wait_until(lambda: False, CancellationToken(), 0.03, poll_interval=0.01)

        token = CancellationToken()
        token.cancel()
        with pytest.raises(UserCancelled):
            await sleep(1.0, token)


class TestSession:
    def test_finalize_freezes(self, clock):
        session = AutomationSession("1", clock=clock)
        session.add_action("Scrape stashdb", "success")
        clock.advance(seconds=3)
        session.finalize(SessionState.COMPLETED)

        assert session.success is True
        assert session.duration_ms == 3000
        with pytest.raises(SessionFinalizedError):
            session.add_warning("late")
        session.finalize(SessionState.FAILED)
        assert session.state == SessionState.COMPLETED

    def test_decision_only_when_awaiting(self):
        session = AutomationSession("1")
        assert session.submit_decision(Decision.APPLY) is False
        session.begin_decision()
        assert session.submit_decision(Decision.APPLY) is True
        assert session.end_decision() == Decision.APPLY
        assert session.awaiting_decision is False

    def test_errors_are_truncated(self):
        session = AutomationSession("1")
        session.add_error("e" * 300)
        assert len(session.errors[0]) == 201


class TestAutomationRun:
    async def test_scrapes_both_sources_saves_and_organizes(self, ctx, surface):
        summary = await ctx.run_scene("1")

        assert summary.state == SessionState.COMPLETED
        assert summary.success is True
        assert summary.sources_used == ["stashdb", "theporndb"]
        assert summary.organized is True
        assert surface.scraped() == ["stashdb", "theporndb"]
        assert surface.calls.count("save") == 1
        assert surface.calls.index("save") < surface.calls.index("organize")
        assert "title" in summary.fields_updated

        entry = ctx.history.last_for_scene("1")
        assert entry.success is True
        assert entry.sources_used == ["stashdb", "theporndb"]
        assert entry.extra_data == {"stashdb": True, "theporndb": True}
        assert ctx.stats.get("stashdb").success_count == 1
        assert not ctx.automation.is_active("1")

    async def test_already_scraped_source_is_skipped(self, ctx, surface, stash_api):
        stash_api.scenes["1"] = scene_payload("1", stash_ids=[STASHDB_ENDPOINT])

        summary = await ctx.run_scene("1")

        assert surface.scraped() == ["theporndb"]
        assert summary.sources_used == ["theporndb"]
        assert summary.organized is True
        skipped = [a for a in summary.actions if a.name == "Scrape stashdb"]
        assert skipped[0].status == "skip"
        assert "already scraped" in skipped[0].detail

    async def test_fully_enriched_scene_is_left_alone(self, ctx, surface, stash_api):
        stash_api.scenes["1"] = scene_payload("1", stash_ids=[STASHDB_ENDPOINT, TPDB_ENDPOINT])
        surface.organized = True

        summary = await ctx.run_scene("1")

        assert summary.success is True
        assert surface.scraped() == []
        assert "organize" not in surface.calls
        assert summary.organized is True

    async def test_timed_out_source_is_skipped(self, ctx, surface):
        surface.outcomes["stashdb"] = "hang"

        summary = await ctx.run_scene("1")

        assert summary.state == SessionState.COMPLETED
        assert summary.skipped_sources == ["stashdb"]
        assert summary.sources_used == ["theporndb"]
        assert any("timeout" in w for w in summary.warnings)
        assert ctx.stats.get("stashdb").fail_count == 1
        assert ctx.stats.get("theporndb").success_count == 1
        # "all" policy: stashdb never made it onto the scene
        assert summary.organized is False
        assert "organize" not in surface.calls

    async def test_no_match_and_surface_errors_are_skipped(self, ctx, surface):
        surface.outcomes["stashdb"] = ScrapeOutcome(found=False, reason="no results")
        surface.outcomes["theporndb"] = SurfaceError("No ThePornDB entry in scrape menu")

        summary = await ctx.run_scene("1")

        assert summary.success is True
        assert summary.sources_used == []
        assert summary.skipped_sources == ["stashdb", "theporndb"]
        assert ctx.stats.get("theporndb").fail_count == 1
        assert surface.calls.count("save") == 1

    async def test_any_policy_organizes_with_one_source(self, ctx, surface):
        ctx.config_store.set("organize_policy", "any")
        surface.outcomes["stashdb"] = ScrapeOutcome(found=False, reason="no results")

        summary = await ctx.run_scene("1")

        assert summary.sources_used == ["theporndb"]
        assert summary.organized is True

    async def test_cancel_mid_run(self, ctx, surface):
        surface.on_apply = lambda: ctx.automation.cancel("1")

        summary = await ctx.run_scene("1")

        assert summary.state == SessionState.CANCELLED
        assert summary.cancelled is True
        assert summary.success is False
        assert summary.sources_used == ["stashdb"]
        assert surface.scraped() == ["stashdb"]
        assert "save" not in surface.calls
        assert "organize" not in surface.calls
        assert ctx.history.last_for_scene("1").status == "cancelled"
        assert not ctx.automation.is_active("1")

    async def test_cancel_between_sources_stops_before_next_scrape(self, ctx, surface):
        session = ctx.automation.prepare("1")
        mark_source_used = session.mark_source_used

        def finish_then_cancel(provider, fields):
            mark_source_used(provider, fields)
            ctx.automation.cancel("1")

        session.mark_source_used = finish_then_cancel

        summary = await ctx.run_scene("1", session=session)

        assert summary.state == SessionState.CANCELLED
        assert surface.scraped() == ["stashdb"]
        assert "save" not in surface.calls
        assert "organize" not in surface.calls
        entry = ctx.history.last_for_scene("1")
        assert entry.success is False
        assert entry.sources_used == ["stashdb"]

    async def test_navigation_to_scene_failure_releases_scene(self, ctx, surface):
        surface.scene_id = "2"
        surface.fail_goto = True
        session = ctx.automation.prepare("1")

        summary = await ctx.run_scene("1", session=session)

        assert summary.state == SessionState.FAILED
        assert "Could not open scene 1" in summary.errors[0]
        assert surface.scraped() == []
        assert not ctx.automation.is_active("1")
        assert ctx.history.last_for_scene("1").success is False
        assert ctx.notifier.recent()[0].level == "error"

        surface.fail_goto = False
        summary = await ctx.run_scene("1")

        assert summary.state == SessionState.COMPLETED
        assert ("goto", "1") in surface.calls

    async def test_skip_current_source(self, ctx, surface):
        surface.outcomes["stashdb"] = "hang"
        surface.on_scrape = lambda provider: provider == "stashdb" and ctx.automation.skip_current_source("1")

        summary = await ctx.run_scene("1")

        assert summary.skipped_sources == ["stashdb"]
        assert summary.sources_used == ["theporndb"]
        assert ctx.stats.get("stashdb") is None
        assert not any("timeout" in w for w in summary.warnings)

    async def test_second_session_for_same_scene_conflicts(self, ctx):
        ctx.automation.prepare("1")

        with pytest.raises(SessionConflictError):
            await ctx.run_scene("1")
        with pytest.raises(SessionConflictError):
            ctx.automation.prepare("1")

    async def test_edit_panel_failure_fails_session(self, ctx, surface):
        surface.fail_edit_panel = True

        summary = await ctx.run_scene("1")

        assert summary.state == SessionState.FAILED
        assert "edit panel" in summary.errors[0]
        assert surface.scraped() == []
        assert ctx.history.last_for_scene("1").success is False
        assert not ctx.automation.is_active("1")

    async def test_save_failure_fails_session(self, ctx, surface):
        surface.fail_save = True

        summary = await ctx.run_scene("1")

        assert summary.state == SessionState.FAILED
        assert summary.sources_used == ["stashdb", "theporndb"]
        assert "organize" not in surface.calls

    async def test_navigation_away_fails_session(self, ctx, surface):
        def navigate(provider):
            surface.scene_id = "2"

        surface.on_scrape = navigate

        summary = await ctx.run_scene("1")

        assert summary.state == SessionState.FAILED
        assert "Navigation detected" in summary.errors[0]

    async def test_forced_providers_ignore_detection(self, ctx, surface, stash_api):
        stash_api.scenes["1"] = scene_payload("1", stash_ids=[STASHDB_ENDPOINT, TPDB_ENDPOINT])

        summary = await ctx.run_scene("1", RunOptions(force_providers=["theporndb", "nowhere"]))

        assert surface.scraped() == ["theporndb"]
        assert any("nowhere" in w for w in summary.warnings)

    async def test_due_queue_entry_forces_rescrape(self, ctx, surface, stash_api, clock):
        stash_api.scenes["1"] = scene_payload("1", stash_ids=[STASHDB_ENDPOINT, TPDB_ENDPOINT])
        ctx.queue.enqueue("1", "Low confidence")
        clock.advance(minutes=31)

        summary = await ctx.run_scene("1")

        assert surface.scraped() == ["stashdb", "theporndb"]
        assert ctx.queue.get("1").attempt_count == 1
        assert "Scheduled re-scrape" in action_names(summary)

    async def test_low_score_is_queued_and_skipped_unattended(self, ctx, surface):
        surface.outcomes["stashdb"] = ScrapeOutcome(found=True, data=ScrapedData(title="Only a title"))

        async def never(session, provider, outcome, score):
            return Decision.SKIP

        summary = await ctx.automation.run("1", decide=never)

        assert summary.skipped_sources == ["stashdb"]
        assert summary.sources_used == ["theporndb"]
        entry = ctx.queue.get("1")
        assert entry is not None
        assert "Low confidence" in entry.reason

    async def test_operator_decisions(self, ctx, surface):
        ctx.config_store.set("auto_apply_changes", False)
        run = asyncio.create_task(ctx.run_scene("1"))

        session = await wait_for_decision(ctx)
        assert session.current_source == "stashdb"
        assert ctx.automation.submit_decision("1", Decision.APPLY)

        session = await wait_for_decision(ctx)
        assert session.current_source == "theporndb"
        assert ctx.automation.submit_decision("1", Decision.SKIP)

        summary = await run
        assert summary.sources_used == ["stashdb"]
        assert summary.skipped_sources == ["theporndb"]
        assert len(ctx.queue) == 0

    async def test_operator_cancel_decision(self, ctx):
        ctx.config_store.set("auto_apply_changes", False)
        run = asyncio.create_task(ctx.run_scene("1"))

        await wait_for_decision(ctx)
        ctx.automation.submit_decision("1", Decision.CANCEL)

        summary = await run
        assert summary.state == SessionState.CANCELLED
        assert summary.sources_used == []

    async def test_one_notification_per_session(self, ctx, surface):
        await ctx.run_scene("1")
        surface.fail_edit_panel = True
        await ctx.run_scene("1")

        levels = [n.level for n in ctx.notifier.recent()]
        assert levels == ["error", "success"]

    async def test_disabled_provider_is_not_scraped(self, ctx, surface):
        ctx.config_store.set("auto_scrape_theporndb", False)

        summary = await ctx.run_scene("1")

        assert surface.scraped() == ["stashdb"]
        assert summary.organized is True

    async def test_adaptive_routing_prefers_reliable_source(self, ctx, surface):
        ctx.config_store.set("adaptive_routing", True)
        for _ in range(3):
            ctx.stats.record("stashdb", ok=False)
        ctx.stats.record("theporndb", ok=True)

        await ctx.run_scene("1")

        assert surface.scraped() == ["theporndb", "stashdb"]

    async def test_last_session_is_kept_after_finish(self, ctx):
        await ctx.run_scene("1")

        session = ctx.automation.get_session("1")
        assert session is not None
        assert session.finalized
        assert ctx.tracker.last_automation["scene_id"] == "1"
