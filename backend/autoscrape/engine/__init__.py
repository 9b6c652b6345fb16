"""Automation engine: session state machine, cancellation and timed waits."""

from autoscrape.engine.automation import AutomationEngine, skip_decision
from autoscrape.engine.cancellation import CancellationToken
from autoscrape.engine.session import AutomationSession

__all__ = ["AutomationEngine", "AutomationSession", "CancellationToken", "skip_decision"]
