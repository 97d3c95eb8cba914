"""Presentation models shared between the GUI and the synchronizer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from enum import Enum, auto
from typing import Callable, List, Optional, Tuple

from twin_dashboard.telemetry.poller import CONNECTION_ERROR_TEXT
from twin_dashboard.telemetry.series import (
    STALE_AFTER_MS,
    ErrorKind,
    Reading,
    TelemetrySnapshot,
    is_stale,
)

log = logging.getLogger(__name__)

STATUS_ONLINE = "ONLINE / ACTIVE"
STATUS_OFFLINE = "OFFLINE / SIGNAL LOST"
MISSING_VALUE = "--"
HISTORY_ROWS = 10


class ViewState(Enum):
    """Which telemetry overlay is on screen."""

    COLLAPSED = auto()
    MINI_POPUP = auto()
    DETAIL_PANEL = auto()


class ViewStateController:
    """Keeps the mini popup and the detail panel mutually exclusive.

    Transitions are synchronous. The detail panel only opens once the poller
    has settled at least once.
    """

    def __init__(self) -> None:
        self._state = ViewState.COLLAPSED
        self._data_ready = False
        self._listeners: List[Callable[[ViewState], None]] = []

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def data_ready(self) -> bool:
        return self._data_ready

    def subscribe(self, callback: Callable[[ViewState], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def set_snapshot(self, snapshot: TelemetrySnapshot) -> None:
        self._data_ready = not snapshot.is_loading

    def open_mini_popup(self) -> None:
        self._transition(ViewState.MINI_POPUP)

    def toggle_detail(self) -> None:
        if self._state is ViewState.DETAIL_PANEL:
            self._transition(ViewState.MINI_POPUP)
            return
        if not self._data_ready:
            log.debug("Detail panel requested before first telemetry poll settled")
            return
        self._transition(ViewState.DETAIL_PANEL)

    def close(self) -> None:
        self._transition(ViewState.COLLAPSED)

    def background_click(self) -> None:
        self.close()

    def _transition(self, new_state: ViewState) -> None:
        if new_state is self._state:
            return
        log.debug("View state %s -> %s", self._state.name, new_state.name)
        self._state = new_state
        for callback in list(self._listeners):
            callback(new_state)


def format_value(value: Optional[float], decimals: int, unit: str) -> str:
    text = MISSING_VALUE if value is None else f"{value:.{decimals}f}"
    return f"{text} {unit}"


def format_time(timestamp: Optional[datetime], tz: Optional[tzinfo] = None) -> str:
    if timestamp is None:
        return "N/A"
    return timestamp.astimezone(tz).strftime("%H:%M:%S")


@dataclass(slots=True)
class SensorCard:
    """Text shown on the data card, popup header and log table."""

    device_name: str
    stale: bool
    temperature: str
    humidity: str
    pressure: str
    last_sync: str
    banner: Optional[str] = None
    loading: bool = False
    log_rows: List[Tuple[str, str, str, str]] = field(default_factory=list)

    @property
    def status_text(self) -> str:
        return STATUS_OFFLINE if self.stale else STATUS_ONLINE

    @classmethod
    def from_snapshot(
        cls,
        device_name: str,
        snapshot: TelemetrySnapshot,
        now: Optional[datetime] = None,
        tz: Optional[tzinfo] = None,
        stale_after_ms: int = STALE_AFTER_MS,
        history_rows: int = HISTORY_ROWS,
    ) -> "SensorCard":
        current = snapshot.current or Reading()
        rows = [
            (
                format_time(row.timestamp, tz),
                MISSING_VALUE if row.temperature is None else f"{row.temperature:.1f}",
                MISSING_VALUE if row.humidity is None else f"{row.humidity:.1f}",
                MISSING_VALUE if row.pressure is None else f"{row.pressure:.0f}",
            )
            for row in snapshot.history[:history_rows]
        ]
        banner = None
        if snapshot.last_fetch_error is ErrorKind.TELEMETRY_FETCH_FAILED:
            banner = CONNECTION_ERROR_TEXT
        return cls(
            device_name=device_name,
            stale=is_stale(snapshot.current, now=now, threshold_ms=stale_after_ms),
            temperature=format_value(current.temperature, 1, "°F"),
            humidity=format_value(current.humidity, 1, "%"),
            pressure=format_value(current.pressure, 0, "hPa"),
            last_sync=format_time(current.timestamp, tz),
            banner=banner,
            loading=snapshot.is_loading,
            log_rows=rows,
        )
