"""Daily aggregation of raw readings and global extreme lookup."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from twin_dashboard.telemetry.series import Metric, Reading

DAY_KEY_FORMAT = "%m/%d/%y"


class ExtremeMode(Enum):
    MIN = "min"
    MAX = "max"


@dataclass(frozen=True)
class DailyBucket:
    """One calendar day reduced to the mean of its numeric samples."""

    date_key: str
    day: date
    average: float
    sample_count: int


@dataclass(frozen=True)
class ExtremePoint:
    """Raw reading holding a metric's minimum or maximum over the whole history."""

    reading: Reading
    metric_key: Metric

    @property
    def value(self) -> float:
        return self.reading.value(self.metric_key)


def local_day(timestamp: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of ``timestamp`` in ``tz`` (machine local zone when ``tz`` is None)."""
    return timestamp.astimezone(tz).date()


def day_key(timestamp: datetime, tz: Optional[tzinfo] = None) -> str:
    """``MM/DD/YY`` key of the local calendar day.

    Built from the date fields directly so the result never depends on the process locale.
    """
    day = local_day(timestamp, tz)
    return f"{day.month:02d}/{day.day:02d}/{day.year % 100:02d}"


def _numeric_samples(history: Iterable[Reading], metric: Metric) -> Iterable[Tuple[Reading, float]]:
    for reading in history:
        value = reading.value(metric)
        if isinstance(value, (int, float)) and value == value:
            yield reading, float(value)


def aggregate(history: Iterable[Reading], metric: Metric, tz: Optional[tzinfo] = None) -> List[DailyBucket]:
    """Group readings by local calendar day and average each group.

    Groups are collected in traversal order and returned reversed, so a
    newest-first history yields oldest-first buckets. Readings without a
    timestamp cannot be placed on a day and are skipped.
    """
    sums: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    days: Dict[str, date] = {}
    for reading, value in _numeric_samples(history, metric):
        if reading.timestamp is None:
            continue
        key = day_key(reading.timestamp, tz)
        if key not in sums:
            sums[key] = 0.0
            counts[key] = 0
            days[key] = local_day(reading.timestamp, tz)
        sums[key] += value
        counts[key] += 1

    buckets = [
        DailyBucket(date_key=key, day=days[key], average=sums[key] / counts[key], sample_count=counts[key])
        for key in sums
    ]
    buckets.reverse()
    return buckets


def find_extreme(history: Iterable[Reading], metric: Metric, mode: ExtremeMode) -> Optional[ExtremePoint]:
    """Linear scan for the min/max numeric value; the first occurrence wins ties."""
    best: Optional[Reading] = None
    best_value = 0.0
    for reading, value in _numeric_samples(history, metric):
        if reading.timestamp is None:
            continue
        if best is None:
            best, best_value = reading, value
        elif mode is ExtremeMode.MAX and value > best_value:
            best, best_value = reading, value
        elif mode is ExtremeMode.MIN and value < best_value:
            best, best_value = reading, value
    if best is None:
        return None
    return ExtremePoint(reading=best, metric_key=metric)
