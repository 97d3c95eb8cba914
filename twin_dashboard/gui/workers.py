"""QThreadPool-backed implementation of :class:`twin_dashboard.workers.BackgroundRunner`."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

log = logging.getLogger(__name__)


class _Relay(QObject):
    finished = Signal(object, object)


class _Job(QRunnable):
    def __init__(self, job: Callable[[], Any], on_done: Callable[[Any], None], relay: _Relay) -> None:
        super().__init__()
        self._job = job
        self._on_done = on_done
        self._relay = relay

    def run(self) -> None:
        try:
            result = self._job()
        except Exception:
            log.exception("Background job failed")
            return
        self._relay.finished.emit(self._on_done, result)


class QtBackgroundRunner(QObject):
    """Runs jobs on a thread pool and delivers results on the thread that owns the runner."""

    def __init__(self, parent: Optional[QObject] = None, pool: Optional[QThreadPool] = None) -> None:
        super().__init__(parent)
        self._pool = pool or QThreadPool.globalInstance()
        self._relay = _Relay(self)
        # relay lives on the GUI thread, so emits from pool threads are queued
        self._relay.finished.connect(self._deliver)

    def submit(self, job: Callable[[], Any], on_done: Callable[[Any], None]) -> None:
        self._pool.start(_Job(job, on_done, self._relay))

    def wait(self, timeout_ms: int = -1) -> bool:
        return self._pool.waitForDone(timeout_ms)

    @Slot(object, object)
    def _deliver(self, on_done: Callable[[Any], None], result: Any) -> None:
        on_done(result)
