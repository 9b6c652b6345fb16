"""Mutable state of one automation run."""

from datetime import datetime
from typing import Callable

from autoscrape.engine.cancellation import CancellationToken
from autoscrape.schemas.automation import (
    ActionLogEntry,
    Decision,
    SessionState,
    SessionSummary,
)
from autoscrape.schemas.status import CompletionSnapshot
from autoscrape.utils import truncate, unique, utcnow


class SessionFinalizedError(RuntimeError):
    """Raised when something tries to change a finished session."""


class AutomationSession:
    """
    Owned by exactly one engine run. Mutated by the engine and by the
    operator's cancel/skip/decision signals, then frozen by ``finalize``.
    """

    def __init__(
        self,
        scene_id: str,
        scene_name: str | None = None,
        token: CancellationToken | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.scene_id = scene_id
        self.scene_name = scene_name
        self.token = token or CancellationToken()
        self.clock = clock

        self.state = SessionState.IDLE
        self.current_source: str | None = None
        self.start_time = clock()
        self.end_time: datetime | None = None

        self.actions: list[ActionLogEntry] = []
        self.sources_used: list[str] = []
        self.skipped_sources: list[str] = []
        self.fields_updated: list[str] = []
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.success = False
        self.organized = False

        self.awaiting_decision = False
        self.decision: Decision | None = None
        self.baseline: CompletionSnapshot | None = None
        self._finalized = False

    # Operator signals

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def cancel(self) -> None:
        self.token.cancel()

    def skip_current_source(self) -> None:
        self.token.request_skip()

    def submit_decision(self, decision: Decision) -> bool:
        """Deliver the operator's decision. False when none is pending."""
        if not self.awaiting_decision or self._finalized:
            return False
        self.decision = decision
        return True

    def begin_decision(self) -> None:
        self._check_mutable()
        self.decision = None
        self.awaiting_decision = True

    def end_decision(self) -> Decision | None:
        decision = self.decision
        self.awaiting_decision = False
        self.decision = None
        return decision

    # Engine updates

    def _check_mutable(self) -> None:
        if self._finalized:
            raise SessionFinalizedError(f"Session for scene {self.scene_id} is finalized")

    def transition(self, state: SessionState, source: str | None = None) -> None:
        self._check_mutable()
        self.state = state
        if source is not None:
            self.current_source = source

    def add_action(self, name: str, status: str, detail: str | None = None) -> None:
        self._check_mutable()
        self.actions.append(ActionLogEntry(name=name, status=status, detail=detail, timestamp=self.clock()))

    def add_warning(self, message: str) -> None:
        self._check_mutable()
        self.warnings.append(truncate(message))

    def add_error(self, error) -> None:
        self._check_mutable()
        self.errors.append(truncate(error))

    def mark_source_used(self, provider: str, fields: list[str]) -> None:
        self._check_mutable()
        if provider not in self.sources_used:
            self.sources_used.append(provider)
        self.fields_updated = unique(self.fields_updated + list(fields))

    def mark_source_skipped(self, provider: str) -> None:
        self._check_mutable()
        if provider not in self.skipped_sources:
            self.skipped_sources.append(provider)

    def finalize(self, state: SessionState) -> None:
        """Enter a terminal state and freeze the session."""
        if self._finalized:
            return
        self.state = state
        self.success = state == SessionState.COMPLETED
        self.current_source = None
        self.awaiting_decision = False
        self.end_time = self.clock()
        self._finalized = True

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def duration_ms(self) -> int | None:
        end = self.end_time or self.clock()
        return max(0, int((end - self.start_time).total_seconds() * 1000))

    def to_summary(self) -> SessionSummary:
        return SessionSummary(
            scene_id=self.scene_id,
            scene_name=self.scene_name,
            state=self.state,
            current_source=self.current_source,
            start_time=self.start_time,
            end_time=self.end_time,
            duration_ms=self.duration_ms,
            actions=list(self.actions),
            sources_used=list(self.sources_used),
            skipped_sources=list(self.skipped_sources),
            fields_updated=list(self.fields_updated),
            errors=list(self.errors),
            warnings=list(self.warnings),
            cancelled=self.cancelled,
            success=self.success,
            organized=self.organized,
            awaiting_decision=self.awaiting_decision,
        )
