"""Telemetry readings and the dashboard snapshot they live in."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Tuple

STALE_AFTER_MS = 300_000


class Metric(Enum):
    """Environmental quantities reported by the sensor."""

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    PRESSURE = "pressure"


class ErrorKind(Enum):
    """Failure and degraded states surfaced by the dashboard."""

    TOKEN_FETCH_FAILED = "token_fetch_failed"
    TELEMETRY_FETCH_FAILED = "telemetry_fetch_failed"
    STALE_DATA = "stale_data"
    INSUFFICIENT_CHART_DATA = "insufficient_chart_data"
    EXTENSION_LOAD_FAILED = "extension_load_failed"


@dataclass(frozen=True)
class Reading:
    """Single telemetry sample."""

    temperature: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    timestamp: Optional[datetime] = None

    def value(self, metric: Metric) -> Optional[float]:
        return getattr(self, metric.value)


@dataclass(frozen=True)
class TelemetrySnapshot:
    """Dashboard state after a poll. Replaced as a whole, never mutated."""

    current: Optional[Reading] = None
    history: Tuple[Reading, ...] = ()
    last_fetch_error: Optional[ErrorKind] = None
    is_loading: bool = True


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


_EPOCH_TEXT = re.compile(r"-?\d+(?:\.\d+)?", re.ASCII)
_ISO_FRACTION = re.compile(r"\.(\d+)", re.ASCII)


def _pad_fraction(match: "re.Match[str]") -> str:
    # fromisoformat on 3.10 only takes 3 or 6 fractional digits; .NET feeds send 7
    return "." + match.group(1)[:6].ljust(6, "0")


def _from_epoch(epoch: float) -> Optional[datetime]:
    if not math.isfinite(epoch):
        return None
    # epoch milliseconds
    if abs(epoch) > 1e12:
        epoch /= 1000.0
    try:
        return datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or epoch value (seconds or milliseconds) into an aware datetime.

    Anything unparseable yields ``None``; this never raises on feed data.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return _from_epoch(float(value))
        except OverflowError:
            return None
    if not isinstance(value, str):
        return None
    text = value.strip()
    if _EPOCH_TEXT.fullmatch(text):
        return _from_epoch(float(text))
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _ISO_FRACTION.sub(_pad_fraction, text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_reading(payload: Mapping[str, Any]) -> Reading:
    """Normalise one feed record (``temp``, ``humidity``, ``pressure``, ``lastUpdated``)."""
    if not isinstance(payload, Mapping):
        return Reading()
    return Reading(
        temperature=_to_float(payload.get("temp")),
        humidity=_to_float(payload.get("humidity")),
        pressure=_to_float(payload.get("pressure")),
        timestamp=parse_timestamp(payload.get("lastUpdated")),
    )


def sort_newest_first(readings: Iterable[Reading]) -> Tuple[Reading, ...]:
    """Order readings newest-first; readings without a timestamp go last."""
    readings = list(readings)
    with_ts = [r for r in readings if r.timestamp is not None]
    without_ts = [r for r in readings if r.timestamp is None]
    with_ts.sort(key=lambda r: r.timestamp, reverse=True)
    return tuple(with_ts + without_ts)


def is_stale(
    reading: Optional[Reading],
    now: Optional[datetime] = None,
    threshold_ms: int = STALE_AFTER_MS,
) -> bool:
    """Return True when the reading is missing or older than ``threshold_ms``.

    A reading exactly ``threshold_ms`` old still counts as fresh.
    """
    if reading is None or reading.timestamp is None:
        return True
    now = now or datetime.now(timezone.utc)
    elapsed_ms = (now - reading.timestamp).total_seconds() * 1000.0
    return elapsed_ms > threshold_ms
