"""Chart geometry for the detail panel and the popup sparkline.

Everything here is a pure function from data to coordinates inside a fixed
``width`` x ``height`` box whose origin is the top-left corner (y grows down).
Drawing the result is left to the widgets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, tzinfo
from typing import List, Optional, Sequence, Tuple, Union

from twin_dashboard.telemetry.aggregation import DailyBucket, ExtremeMode, ExtremePoint
from twin_dashboard.telemetry.series import ErrorKind, Metric, Reading

Point = Tuple[float, float]

DEFAULT_WIDTH = 600.0
DEFAULT_HEIGHT = 240.0
DEFAULT_SPARKLINE_SAMPLES = 20
INSUFFICIENT_DATA_TEXT = "Insufficient data"


@dataclass(frozen=True)
class ChartPlaceholder:
    """Rendered instead of a chart when there are fewer than two data points."""

    message: str = INSUFFICIENT_DATA_TEXT
    kind: ErrorKind = ErrorKind.INSUFFICIENT_CHART_DATA


@dataclass(frozen=True)
class BucketMarker:
    """Labelled point plus dashed vertical guide for one daily bucket."""

    point: Point
    guide: Tuple[Point, Point]
    value_label: str
    date_label: str


@dataclass(frozen=True)
class ExtremeMarker:
    mode: ExtremeMode
    point: Point
    label: str
    reading: Reading


@dataclass(frozen=True)
class DailyChart:
    width: float
    height: float
    plot_min: float
    plot_max: float
    trend: List[Point]
    area: List[Point]
    buckets: List[BucketMarker]
    extremes: List[ExtremeMarker] = field(default_factory=list)


@dataclass(frozen=True)
class Sparkline:
    width: float
    height: float
    line: List[Point]
    terminal: Point


def _y(value: float, plot_min: float, value_range: float, height: float) -> float:
    return height - ((value - plot_min) / value_range) * height


def _day_start(bucket: DailyBucket, tz: Optional[tzinfo]) -> datetime:
    if tz is None:
        return datetime.combine(bucket.day, time.min).astimezone()
    return datetime.combine(bucket.day, time.min, tzinfo=tz)


def build_daily_chart(
    buckets: Sequence[DailyBucket],
    minimum: Optional[ExtremePoint],
    maximum: Optional[ExtremePoint],
    width: float = DEFAULT_WIDTH,
    height: float = DEFAULT_HEIGHT,
    tz: Optional[tzinfo] = None,
) -> Union[DailyChart, ChartPlaceholder]:
    """Lay out daily averages and the raw extremes on one chart.

    The value axis spans both the averages and the raw extremes so outliers are
    never clipped. The trend line uses evenly spaced bucket positions while the
    extremes are placed by timestamp between the first and last bucket's local
    midnight; the two x scales need not agree for the same day.
    """
    n = len(buckets)
    if n < 2:
        return ChartPlaceholder()

    averages = [bucket.average for bucket in buckets]
    lows = list(averages)
    highs = list(averages)
    if minimum is not None:
        lows.append(minimum.value)
    if maximum is not None:
        highs.append(maximum.value)
    plot_min = min(lows)
    plot_max = max(highs)
    value_range = max(plot_max - plot_min, 1.0)

    trend: List[Point] = []
    markers: List[BucketMarker] = []
    for index, bucket in enumerate(buckets):
        x = (index / (n - 1)) * width
        y = _y(bucket.average, plot_min, value_range, height)
        trend.append((x, y))
        markers.append(BucketMarker(
            point=(x, y),
            guide=((x, y), (x, height)),
            value_label=f"{bucket.average:.1f}",
            date_label=bucket.date_key,
        ))
    area = [(0.0, height)] + trend + [(width, height)]

    time_start = _day_start(buckets[0], tz)
    time_end = _day_start(buckets[-1], tz)
    span_s = (time_end - time_start).total_seconds()

    extremes: List[ExtremeMarker] = []
    for mode, extreme in ((ExtremeMode.MIN, minimum), (ExtremeMode.MAX, maximum)):
        if extreme is None or extreme.reading.timestamp is None:
            continue
        if span_s > 0:
            offset_s = (extreme.reading.timestamp - time_start).total_seconds()
            x = min(max((offset_s / span_s) * width, 0.0), width)
        else:
            x = 0.0
        extremes.append(ExtremeMarker(
            mode=mode,
            point=(x, _y(extreme.value, plot_min, value_range, height)),
            label=f"{mode.name} {extreme.value:.1f}",
            reading=extreme.reading,
        ))

    return DailyChart(
        width=width,
        height=height,
        plot_min=plot_min,
        plot_max=plot_max,
        trend=trend,
        area=area,
        buckets=markers,
        extremes=extremes,
    )


def build_sparkline(
    history: Sequence[Reading],
    metric: Metric,
    samples: int = DEFAULT_SPARKLINE_SAMPLES,
    width: float = DEFAULT_WIDTH,
    height: float = DEFAULT_HEIGHT,
) -> Union[Sparkline, ChartPlaceholder]:
    """Polyline over the most recent ``samples`` raw readings, oldest on the left."""
    recent = [r.value(metric) for r in history[:samples]]
    values = [v for v in recent if v is not None]
    values.reverse()
    if len(values) < 2:
        return ChartPlaceholder()

    low = min(values) - 1
    high = max(values) + 1
    value_range = high - low
    count = len(values)
    line = [
        ((index / (count - 1)) * width, _y(value, low, value_range, height))
        for index, value in enumerate(values)
    ]
    return Sparkline(width=width, height=height, line=line, terminal=line[-1])
