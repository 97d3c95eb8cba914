"""Background job interface used for blocking HTTP calls."""

from __future__ import annotations

from typing import Callable, Protocol, TypeVar

T = TypeVar("T")


class BackgroundRunner(Protocol):
    """Runs ``job`` somewhere and hands its result to ``on_done`` on the caller's thread."""

    def submit(self, job: Callable[[], T], on_done: Callable[[T], None]) -> None:
        ...


class InlineRunner:
    """Runs the job immediately on the calling thread."""

    def submit(self, job: Callable[[], T], on_done: Callable[[T], None]) -> None:
        on_done(job())
