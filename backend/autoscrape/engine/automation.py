"""
The automation engine: one end-to-end enrichment run per scene.

    idle -> detecting -> scraping(provider...) -> creating_linked_entities
         -> applying -> saving -> organizing -> completed | cancelled | failed

Provider-level failures (no match, timeout, surface errors) are recorded as
warnings and the provider is skipped for the rest of the session. Only
structural failures (edit panel won't open, no save control, navigation
away from the scene) fail the session. Whatever happens, the session ends
with exactly one history entry and one notification and the scene is free
for a new run.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Awaitable, Callable

from autoscrape.engine.session import AutomationSession
from autoscrape.engine.waits import DEFAULT_POLL_INTERVAL, run_step, wait_until
from autoscrape.exceptions import (
    AutomationError,
    SessionConflictError,
    StepTimeoutError,
    StructuralError,
    SurfaceError,
    UserCancelled,
    UserSkipped,
)
from autoscrape.schemas.automation import (
    AutomationConfig,
    Decision,
    OrganizePolicy,
    RunOptions,
    SessionState,
    SessionSummary,
)
from autoscrape.schemas.scraped import ScrapeOutcome
from autoscrape.schemas.status import CompletionSnapshot
from autoscrape.services.adaptive_router import AdaptiveRouter
from autoscrape.services.config_store import ConfigStore
from autoscrape.services.history_store import HistoryStore
from autoscrape.services.notifier import Notifier
from autoscrape.services.rescrape_queue import RescrapeQueue
from autoscrape.services.scoring import score_scraped_data
from autoscrape.services.source_stats import SourceStatsStore
from autoscrape.services.status_tracker import StatusTracker
from autoscrape.surface.base import SceneSurface
from autoscrape.utils import truncate, utcnow

logger = logging.getLogger(__name__)

DecisionHandler = Callable[[AutomationSession, str, ScrapeOutcome, int], Awaitable[Decision]]

USER_SKIPPED = "user skipped"
SCRAPE_TIMEOUT_REASON = "timeout waiting for scraper outcome"
MAX_FINISHED_SESSIONS = 50


async def skip_decision(session, provider, outcome, score) -> Decision:
    """Decision handler for unattended runs: never apply without auto-apply."""
    return Decision.SKIP


class AutomationEngine:
    def __init__(
        self,
        surface: SceneSurface,
        tracker: StatusTracker,
        router: AdaptiveRouter,
        queue: RescrapeQueue,
        history: HistoryStore,
        stats: SourceStatsStore,
        config_store: ConfigStore,
        notifier: Notifier,
        edit_panel_timeout: float = 6.0,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        decision_timeout: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.surface = surface
        self.tracker = tracker
        self.router = router
        self.queue = queue
        self.history = history
        self.stats = stats
        self.config_store = config_store
        self.notifier = notifier
        self.edit_panel_timeout = edit_panel_timeout
        self.poll_interval = poll_interval
        self.decision_timeout = decision_timeout
        self.clock = clock

        self._active: dict[str, AutomationSession] = {}
        self._finished: OrderedDict[str, AutomationSession] = OrderedDict()

    # --- Session registry ---------------------------------------------------------

    def is_active(self, scene_id: str) -> bool:
        return scene_id in self._active

    def active_scene_ids(self) -> list[str]:
        return list(self._active)

    def get_session(self, scene_id: str) -> AutomationSession | None:
        """The active session for a scene, else its most recent finished one."""
        return self._active.get(scene_id) or self._finished.get(scene_id)

    def prepare(self, scene_id: str, scene_name: str | None = None) -> AutomationSession:
        """Claim the scene for a new session. Raises SessionConflictError if taken."""
        if scene_id in self._active:
            raise SessionConflictError(scene_id)
        session = AutomationSession(scene_id, scene_name=scene_name, clock=self.clock)
        self._active[scene_id] = session
        return session

    def cancel(self, scene_id: str) -> bool:
        session = self._active.get(scene_id)
        if session is None:
            return False
        logger.info(f"[{scene_id}] Cancel requested")
        session.cancel()
        return True

    def skip_current_source(self, scene_id: str) -> bool:
        session = self._active.get(scene_id)
        if session is None:
            return False
        logger.info(f"[{scene_id}] Skip requested for {session.current_source or 'current source'}")
        session.skip_current_source()
        return True

    def submit_decision(self, scene_id: str, decision: Decision) -> bool:
        session = self._active.get(scene_id)
        if session is None:
            return False
        return session.submit_decision(decision)

    # --- Run ----------------------------------------------------------------------

    async def run(
        self,
        scene_id: str,
        options: RunOptions | None = None,
        decide: DecisionHandler | None = None,
        session: AutomationSession | None = None,
        navigate: bool = False,
    ) -> SessionSummary:
        """Run one session to a terminal state and return its summary.

        With ``navigate`` the surface is first brought to the scene; a
        navigation failure fails the session like any structural error.
        """
        if session is None:
            session = self.prepare(scene_id)
        elif self._active.get(scene_id) is not session:
            raise SessionConflictError(scene_id)

        options = options or RunOptions()
        decide = decide or self._await_operator_decision
        url = None
        final_state = SessionState.FAILED
        logger.info(f"[{scene_id}] Automation started")
        try:
            config = self.config_store.load()
            self.router.enabled = config.adaptive_routing
            self.queue.configure(config.rescrape_retry_minutes, config.max_backoff_minutes)
            self.notifier.enabled = config.show_notifications
            if navigate:
                await self._navigate(session)
            url = await self.surface.current_url()
            await self._run(session, config, options, decide)
            final_state = SessionState.COMPLETED
        except UserCancelled as e:
            final_state = SessionState.CANCELLED
            session.add_warning(str(e) or "Automation cancelled")
            session.add_action("automation", "cancelled")
        except AutomationError as e:
            logger.error(f"[{scene_id}] Automation failed: {e}")
            session.add_error(e)
            session.add_action("automation", "error", truncate(e))
        except Exception as e:
            logger.exception(f"[{scene_id}] Unexpected error during automation")
            session.add_error(e)
            session.add_action("automation", "error", truncate(e))
        finally:
            session.finalize(final_state)
            try:
                await self._finish(session, url)
            finally:
                self._active.pop(scene_id, None)
                self._remember(session)

        return session.to_summary()

    async def _run(
        self,
        session: AutomationSession,
        config: AutomationConfig,
        options: RunOptions,
        decide: DecisionHandler,
    ) -> None:
        scene_id = session.scene_id
        token = session.token
        session.transition(SessionState.DETECTING)

        forced = self._forced_providers(session, options)

        try:
            await run_step(
                self.surface.open_edit_panel(), token, self.edit_panel_timeout,
                name="edit panel", poll_interval=self.poll_interval,
            )
        except (SurfaceError, StepTimeoutError) as e:
            raise StructuralError(f"Could not open edit panel: {e}") from e
        await self._ensure_same_scene(session)

        baseline = await self.tracker.refresh(scene_id)
        session.baseline = baseline
        if baseline.scene is not None:
            session.scene_name = session.scene_name or baseline.scene.display_name
        token.raise_if_cancelled()

        pending = self._pending_providers(session, config, baseline, forced)
        order = self.router.order(pending, self.stats.load_all())
        if order:
            logger.info(f"[{scene_id}] Source order: {' -> '.join(order)}")
        else:
            logger.info(f"[{scene_id}] All sources already scraped")

        for provider in order:
            await self._run_provider(session, provider, config, decide)

        token.raise_if_cancelled()
        await self._save(session, config)

        token.raise_if_cancelled()
        await self._organize(session, config, baseline, forced)

    def _forced_providers(self, session: AutomationSession, options: RunOptions) -> list[str] | None:
        known = self.tracker.providers
        if options.force_rescrape:
            unknown = [p for p in options.force_providers if p not in known]
            for name in unknown:
                session.add_warning(f"Unknown provider {name} ignored")
            return [p for p in known if p in options.force_providers]

        entry = self.queue.due_entry(session.scene_id)
        if entry is None:
            return None
        entry = self.queue.mark_attempted(entry)
        session.add_action(
            "Scheduled re-scrape", "success",
            f"attempt {entry.attempt_count}: {entry.reason}" if entry else None,
        )
        logger.info(f"[{session.scene_id}] Due re-scrape, forcing all providers")
        return list(known)

    def _pending_providers(
        self,
        session: AutomationSession,
        config: AutomationConfig,
        baseline: CompletionSnapshot,
        forced: list[str] | None,
    ) -> list[str]:
        if forced is not None:
            return list(forced)
        pending = []
        for provider in self.tracker.providers:
            if not config.provider_enabled(provider):
                continue
            if config.skip_already_scraped and baseline.is_scraped(provider):
                status = baseline.status_for(provider)
                session.add_action(
                    f"Scrape {provider}", "skip",
                    f"already scraped ({status.strategy_name}, {status.confidence}%)",
                )
                continue
            pending.append(provider)
        return pending

    async def _navigate(self, session: AutomationSession) -> None:
        goto_scene = getattr(self.surface, "goto_scene", None)
        if goto_scene is None:
            return
        try:
            if await self.surface.current_scene_id() == session.scene_id:
                return
            await goto_scene(session.scene_id)
        except SurfaceError as e:
            raise StructuralError(f"Could not open scene {session.scene_id}: {e}") from e
        session.add_action("Open scene", "success")

    async def _ensure_same_scene(self, session: AutomationSession) -> None:
        current = await self.surface.current_scene_id()
        if current is not None and current != session.scene_id:
            raise StructuralError(
                f"Navigation detected during automation (now on scene {current})"
            )

    # --- Per provider -------------------------------------------------------------

    def _skip_provider(self, session: AutomationSession, provider: str, reason: str, failed: bool) -> None:
        session.mark_source_skipped(provider)
        session.add_action(f"Scrape {provider}", "skip", reason)
        if failed:
            self.stats.record(provider, ok=False)

    async def _run_provider(
        self,
        session: AutomationSession,
        provider: str,
        config: AutomationConfig,
        decide: DecisionHandler,
    ) -> None:
        scene_id = session.scene_id
        token = session.token

        token.raise_if_cancelled()
        await self._ensure_same_scene(session)
        session.transition(SessionState.SCRAPING, source=provider)

        if token.consume_skip():
            self._skip_provider(session, provider, USER_SKIPPED, failed=False)
            return

        outcome_timeout = config.scraper_outcome_timeout_ms / 1000
        visible_timeout = config.visible_wait_timeout_ms / 1000
        try:
            outcome = await run_step(
                self.surface.invoke_scrape(provider, outcome_timeout),
                token,
                outcome_timeout + visible_timeout,
                name=f"{provider} scrape",
                poll_interval=self.poll_interval,
                skippable=True,
            )
        except UserSkipped:
            self._skip_provider(session, provider, USER_SKIPPED, failed=False)
            return
        except StepTimeoutError:
            outcome = ScrapeOutcome(found=False, reason=SCRAPE_TIMEOUT_REASON)
        except SurfaceError as e:
            outcome = ScrapeOutcome(found=False, reason=truncate(e))

        if not outcome.found:
            reason = outcome.reason or "no match"
            logger.warning(f"[{scene_id}/{provider}] No match: {reason}")
            session.add_warning(f"{provider}: {reason}")
            self._skip_provider(session, provider, reason, failed=True)
            return

        self.stats.record(provider, ok=True)
        session.add_action(f"Scrape {provider}", "success")
        token.raise_if_cancelled()
        await self._ensure_same_scene(session)

        if config.auto_create_performers:
            await self._create_linked_entities(session, provider, outcome_timeout)
            token.raise_if_cancelled()

        if token.consume_skip():
            session.mark_source_skipped(provider)
            session.add_action(f"Apply {provider} data", "skip", USER_SKIPPED)
            return

        session.transition(SessionState.APPLYING, source=provider)
        score = score_scraped_data(outcome.data, config.score_weights)
        decision = await self._decide(session, provider, outcome, score, config, decide)

        if decision == Decision.CANCEL:
            session.cancel()
            raise UserCancelled("Automation cancelled by operator")
        if decision == Decision.SKIP:
            session.mark_source_skipped(provider)
            session.add_action(f"Apply {provider} data", "skip", f"operator skipped (score {score})")
            return

        try:
            fields = await run_step(
                self.surface.apply_scraped_data(outcome.data),
                token,
                visible_timeout,
                name=f"{provider} apply",
                poll_interval=self.poll_interval,
                skippable=True,
            )
        except UserSkipped:
            session.mark_source_skipped(provider)
            session.add_action(f"Apply {provider} data", "skip", USER_SKIPPED)
            return
        except (SurfaceError, StepTimeoutError) as e:
            logger.warning(f"[{scene_id}/{provider}] Apply failed: {e}")
            session.add_warning(f"{provider}: apply failed: {truncate(e)}")
            session.mark_source_skipped(provider)
            session.add_action(f"Apply {provider} data", "warning", truncate(e))
            return

        session.mark_source_used(provider, fields or [])
        session.add_action(f"Apply {provider} data", "success", f"score {score}, {len(fields or [])} fields")
        logger.info(f"[{scene_id}/{provider}] Applied {len(fields or [])} fields (score {score})")

    async def _create_linked_entities(self, session: AutomationSession, provider: str, timeout: float) -> None:
        session.transition(SessionState.CREATING_LINKED_ENTITIES, source=provider)
        try:
            created = await run_step(
                self.surface.create_linked_entities(),
                session.token,
                timeout,
                name="linked entity creation",
                poll_interval=self.poll_interval,
            )
        except (SurfaceError, StepTimeoutError) as e:
            logger.warning(f"[{session.scene_id}/{provider}] Linked entity creation failed: {e}")
            session.add_warning(f"{provider}: linked entity creation failed: {truncate(e)}")
            session.add_action("create_linked_entities", "warning", truncate(e))
            return
        if created:
            session.add_action("create_linked_entities", "success", f"{created} created")

    async def _decide(
        self,
        session: AutomationSession,
        provider: str,
        outcome: ScrapeOutcome,
        score: int,
        config: AutomationConfig,
        decide: DecisionHandler,
    ) -> Decision:
        if config.auto_apply_changes:
            if score >= config.min_auto_apply_score:
                return Decision.APPLY
            reason = f"Low confidence ({provider} score {score} < {config.min_auto_apply_score})"
            session.add_warning(reason)
            self.queue.enqueue(session.scene_id, reason)
        return await decide(session, provider, outcome, score)

    async def _await_operator_decision(self, session, provider, outcome, score) -> Decision:
        """Suspend until the operator decides. A skip request counts as ``skip``."""
        session.begin_decision()
        logger.info(f"[{session.scene_id}/{provider}] Waiting for operator decision (score {score})")
        try:
            await wait_until(
                lambda: session.decision is not None,
                session.token,
                self.decision_timeout,
                name="operator decision",
                poll_interval=self.poll_interval,
                skippable=True,
            )
        except UserSkipped:
            return Decision.SKIP
        except StepTimeoutError:
            session.add_warning(f"{provider}: no operator decision, skipped")
            return Decision.SKIP
        finally:
            decision = session.end_decision()
        return decision or Decision.SKIP

    # --- Save / organize --------------------------------------------------------------

    async def _save(self, session: AutomationSession, config: AutomationConfig) -> None:
        await self._ensure_same_scene(session)
        session.transition(SessionState.SAVING)
        try:
            await run_step(
                self.surface.save(),
                session.token,
                config.visible_wait_timeout_ms / 1000,
                name="save",
                poll_interval=self.poll_interval,
            )
        except (SurfaceError, StepTimeoutError) as e:
            raise StructuralError(f"Could not save scene: {e}") from e
        session.add_action("Save scene", "success")

    def _organize_allowed(
        self,
        session: AutomationSession,
        config: AutomationConfig,
        baseline: CompletionSnapshot,
        forced: list[str] | None,
    ) -> bool:
        required = forced if forced is not None else [
            p for p in self.tracker.providers if config.provider_enabled(p)
        ]
        have = [p for p in required if p in session.sources_used or baseline.is_scraped(p)]
        if config.organize_policy == OrganizePolicy.ANY:
            return bool(have)
        return bool(required) and len(have) == len(required)

    async def _organize(
        self,
        session: AutomationSession,
        config: AutomationConfig,
        baseline: CompletionSnapshot,
        forced: list[str] | None,
    ) -> None:
        if not config.auto_organize:
            session.organized = baseline.organized
            return

        await self._ensure_same_scene(session)
        already = await self.surface.is_organized()
        if already is None:
            already = baseline.organized
        if already:
            session.organized = True
            session.add_action("Mark as organized", "skip", "already organized")
            return

        if not self._organize_allowed(session, config, baseline, forced):
            detail = "need all sources" if config.organize_policy == OrganizePolicy.ALL else "no sources found"
            session.add_action("Mark as organized", "skip", detail)
            return

        session.transition(SessionState.ORGANIZING)
        try:
            organized = await run_step(
                self.surface.mark_organized(),
                session.token,
                config.visible_wait_timeout_ms / 1000,
                name="organize",
                poll_interval=self.poll_interval,
            )
        except (SurfaceError, StepTimeoutError) as e:
            logger.warning(f"[{session.scene_id}] Organize failed: {e}")
            session.add_warning(f"Organize failed: {truncate(e)}")
            session.add_action("Mark as organized", "warning", truncate(e))
            return
        session.organized = bool(organized)
        if organized:
            session.add_action("Mark as organized", "success")
        else:
            session.add_warning("Organization status unclear")
            session.add_action("Mark as organized", "warning", "status unclear")

    # --- Teardown -------------------------------------------------------------------

    async def _finish(
        self,
        session: AutomationSession,
        url: str | None,
    ) -> None:
        scene_id = session.scene_id
        baseline = session.baseline
        summary = session.to_summary()

        presence = {}
        for provider in self.tracker.providers:
            had = baseline.is_scraped(provider) if baseline is not None else False
            presence[provider] = had or provider in session.sources_used

        try:
            self.history.record(summary, url=url, extra_data=presence)
        except Exception as e:
            logger.error(f"[{scene_id}] Could not write history entry: {e}")

        self.tracker.record_automation(summary.model_dump(mode="json"))

        if session.state == SessionState.COMPLETED:
            used = ", ".join(session.sources_used) or "no new sources"
            self.notifier.notify(f"Automation completed ({used})", "success", scene_id)
            try:
                await self.tracker.refresh(scene_id, fresh=True)
            except AutomationError as e:
                logger.warning(f"[{scene_id}] Status refresh after automation failed: {e}")
        elif session.state == SessionState.CANCELLED:
            self.notifier.notify("Automation cancelled", "warning", scene_id)
        else:
            error = session.errors[-1] if session.errors else "unknown error"
            self.notifier.notify(f"Automation failed: {error}", "error", scene_id)

        logger.info(
            f"[{scene_id}] Automation {session.state.value} in {summary.duration_ms}ms, "
            f"sources used: {session.sources_used}, skipped: {session.skipped_sources}"
        )

    def _remember(self, session: AutomationSession) -> None:
        self._finished[session.scene_id] = session
        self._finished.move_to_end(session.scene_id)
        while len(self._finished) > MAX_FINISHED_SESSIONS:
            self._finished.popitem(last=False)
