"""Cooperative cancellation and skip signals for one session."""

from autoscrape.exceptions import UserCancelled, UserSkipped


class CancellationToken:
    """
    Polled, never preemptive. ``cancel`` stops the whole session at the next
    checkpoint; ``request_skip`` only affects the provider currently running
    and is cleared once consumed.
    """

    def __init__(self):
        self._cancelled = False
        self._skip_requested = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def skip_requested(self) -> bool:
        return self._skip_requested

    def cancel(self) -> None:
        self._cancelled = True

    def request_skip(self) -> None:
        self._skip_requested = True

    def consume_skip(self) -> bool:
        """Return whether a skip was pending, clearing it."""
        requested = self._skip_requested
        self._skip_requested = False
        return requested

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise UserCancelled("Automation cancelled")

    def raise_if_skipped(self) -> None:
        if self.consume_skip():
            raise UserSkipped("user skipped")
