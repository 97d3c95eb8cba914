"""Interval timer interface shared by the poller and the marker animation."""

from __future__ import annotations

from typing import Callable, Protocol


class IntervalTimer(Protocol):
    """Repeating timer driven by the host event loop."""

    def start(self, interval_ms: int, callback: Callable[[], None]) -> None:
        """Call ``callback`` every ``interval_ms`` until stopped."""
        ...

    def stop(self) -> None:
        """Cancel the timer. Stopping an idle timer is a no-op."""
        ...

    def is_active(self) -> bool:
        ...
