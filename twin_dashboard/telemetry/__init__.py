"""Telemetry acquisition, normalisation and aggregation."""

from .aggregation import DailyBucket, ExtremeMode, ExtremePoint, aggregate, day_key, find_extreme
from .logger import TelemetryLogger
from .poller import (
    CONNECTION_ERROR_TEXT,
    TelemetryFetchError,
    TelemetryPoller,
    TokenFetchError,
    fetch_access_token,
    fetch_telemetry,
)
from .series import (
    ErrorKind,
    Metric,
    Reading,
    TelemetrySnapshot,
    is_stale,
    parse_reading,
    parse_timestamp,
)

__all__ = [
    "CONNECTION_ERROR_TEXT",
    "DailyBucket",
    "ErrorKind",
    "ExtremeMode",
    "ExtremePoint",
    "Metric",
    "Reading",
    "TelemetryFetchError",
    "TelemetryLogger",
    "TelemetryPoller",
    "TelemetrySnapshot",
    "TokenFetchError",
    "aggregate",
    "day_key",
    "fetch_access_token",
    "fetch_telemetry",
    "find_extreme",
    "is_stale",
    "parse_reading",
    "parse_timestamp",
]
