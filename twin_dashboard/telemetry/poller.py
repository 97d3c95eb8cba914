"""Telemetry polling loop and one-shot viewer token fetch."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from twin_dashboard.telemetry.series import (
    ErrorKind,
    TelemetrySnapshot,
    parse_reading,
    sort_newest_first,
)
from twin_dashboard.timers import IntervalTimer
from twin_dashboard.workers import BackgroundRunner, InlineRunner

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 30_000
DEFAULT_TIMEOUT_S = 10.0
CONNECTION_ERROR_TEXT = "Connection Error. Retrying..."

SnapshotCallback = Callable[[TelemetrySnapshot], None]


class TelemetryFetchError(RuntimeError):
    """Raised when the telemetry endpoint cannot be read."""


class TokenFetchError(RuntimeError):
    """Raised when the viewer access token cannot be obtained."""


def _get_json(session, url: str, timeout_s: float, error_cls) -> Any:
    try:
        response = session.get(url, timeout=timeout_s)
    except requests.RequestException as exc:
        raise error_cls(f"Request to {url} failed: {exc}") from exc
    if not response.ok:
        raise error_cls(f"HTTP Error: {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:
        raise error_cls(f"Invalid JSON from {url}: {exc}") from exc


def fetch_telemetry(url: str, session=None, timeout_s: float = DEFAULT_TIMEOUT_S) -> Dict[str, Any]:
    """GET the telemetry document ``{current?, history?}``."""
    body = _get_json(session or requests.Session(), url, timeout_s, TelemetryFetchError)
    if not isinstance(body, dict):
        raise TelemetryFetchError(f"Unexpected telemetry body type: {type(body).__name__}")
    return body


def fetch_access_token(url: str, session=None, timeout_s: float = DEFAULT_TIMEOUT_S) -> Optional[str]:
    """Fetch the viewer access token once.

    Failures are logged and reported as ``None``; there is no retry, the viewer
    stays on its authenticating placeholder for the rest of the session.
    """
    try:
        body = _get_json(session or requests.Session(), url, timeout_s, TokenFetchError)
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise TokenFetchError("Token response did not contain 'access_token'")
    except TokenFetchError as exc:
        log.error("Token error: %s", exc)
        return None
    log.info("Secure token acquired")
    return token


FetchOutcome = Tuple[Optional[Dict[str, Any]], Optional[TelemetryFetchError]]


class TelemetryPoller:
    """Fetches telemetry on a fixed interval and publishes whole snapshots.

    The HTTP call runs through ``runner``; results are folded into the
    snapshot on the runner's delivery thread. A tick that fires while a
    fetch is still in flight is skipped, and results delivered after
    :meth:`stop` are discarded.
    """

    def __init__(
        self,
        url: str,
        timer: IntervalTimer,
        session=None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        runner: Optional[BackgroundRunner] = None,
    ) -> None:
        self.url = url
        self.timeout_s = timeout_s
        self._timer = timer
        self._runner = runner or InlineRunner()
        self._session = session or requests.Session()
        self._snapshot = TelemetrySnapshot()
        self._listeners: List[SnapshotCallback] = []
        self._active = False
        self._in_flight = False

    @property
    def snapshot(self) -> TelemetrySnapshot:
        return self._snapshot

    @property
    def active(self) -> bool:
        return self._active

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def start(self, interval_ms: int = DEFAULT_POLL_INTERVAL_MS) -> None:
        if self._active:
            return
        self._active = True
        log.info("Polling %s every %d ms", self.url, interval_ms)
        self.poll_once()
        if self._active:
            self._timer.start(interval_ms, self.poll_once)

    def stop(self) -> None:
        self._active = False
        self._timer.stop()

    def poll_once(self) -> None:
        """Dispatch one fetch; the outcome is folded into a new snapshot when it arrives."""
        if not self._active:
            return
        if self._in_flight:
            log.debug("Previous telemetry fetch still running, skipping tick")
            return
        self._in_flight = True
        self._runner.submit(self._fetch, self._settle)

    def _fetch(self) -> FetchOutcome:
        try:
            return fetch_telemetry(self.url, session=self._session, timeout_s=self.timeout_s), None
        except TelemetryFetchError as exc:
            return None, exc

    def _settle(self, outcome: FetchOutcome) -> None:
        self._in_flight = False
        # stop() may have been called while the request was in flight
        if not self._active:
            log.debug("Discarding telemetry received after stop")
            return
        body, error = outcome
        if error is not None:
            log.warning("Telemetry fetch failed: %s", error)
            self._publish(replace(
                self._snapshot,
                last_fetch_error=ErrorKind.TELEMETRY_FETCH_FAILED,
                is_loading=False,
            ))
            return
        self._publish(self._apply(body))

    def _apply(self, body: Dict[str, Any]) -> TelemetrySnapshot:
        snapshot = replace(self._snapshot, last_fetch_error=None, is_loading=False)
        current = body.get("current")
        if current is not None:
            snapshot = replace(snapshot, current=parse_reading(current))
        history = body.get("history")
        if isinstance(history, list):
            snapshot = replace(snapshot, history=sort_newest_first(parse_reading(row) for row in history))
        elif history is not None:
            log.warning("Ignoring non-list history of type %s", type(history).__name__)
        return snapshot

    def _publish(self, snapshot: TelemetrySnapshot) -> None:
        self._snapshot = snapshot
        for callback in list(self._listeners):
            callback(snapshot)
