from datetime import date, datetime, timedelta, timezone

import pytest

from twin_dashboard.charts import ChartPlaceholder, DailyChart, Sparkline, build_daily_chart, build_sparkline
from twin_dashboard.telemetry import (
    DailyBucket,
    ErrorKind,
    ExtremeMode,
    ExtremePoint,
    Metric,
    Reading,
)

UTC = timezone.utc
W, H = 600.0, 240.0


def bucket(day: int, average: float) -> DailyBucket:
    return DailyBucket(date_key=f"01/{day:02d}/24", day=date(2024, 1, day), average=average, sample_count=1)


def extreme(value: float, when: datetime) -> ExtremePoint:
    return ExtremePoint(reading=Reading(temperature=value, timestamp=when), metric_key=Metric.TEMPERATURE)


def test_value_axis_covers_raw_extremes():
    buckets = [bucket(1, 10.0), bucket(2, 20.0), bucket(3, 15.0)]
    low = extreme(5.0, datetime(2024, 1, 2, 12, tzinfo=UTC))
    high = extreme(20.0, datetime(2024, 1, 2, 15, tzinfo=UTC))

    chart = build_daily_chart(buckets, low, high, width=W, height=H, tz=UTC)

    assert isinstance(chart, DailyChart)
    assert chart.plot_min <= 5.0
    assert chart.plot_max == 20.0
    ys = [p[1] for p in chart.trend] + [m.point[1] for m in chart.extremes]
    assert all(0.0 <= y <= H for y in ys)
    min_marker = next(m for m in chart.extremes if m.mode is ExtremeMode.MIN)
    assert min_marker.point[1] == pytest.approx(H)
    assert min_marker.label == "MIN 5.0"


def test_trend_uses_bucket_index_while_extremes_use_time():
    buckets = [bucket(1, 10.0), bucket(2, 20.0), bucket(3, 15.0)]
    low = extreme(5.0, datetime(2024, 1, 2, 12, tzinfo=UTC))

    chart = build_daily_chart(buckets, low, None, width=W, height=H, tz=UTC)

    assert [p[0] for p in chart.trend] == [0.0, W / 2, W]
    # 36 h into a 48 h span, not aligned with the day-2 guide at W / 2
    assert chart.extremes[0].point[0] == pytest.approx(0.75 * W)
    assert chart.buckets[1].guide == ((W / 2, chart.trend[1][1]), (W / 2, H))


def test_extreme_outside_bucket_span_is_clamped():
    buckets = [bucket(1, 10.0), bucket(2, 12.0)]
    late = extreme(30.0, datetime(2024, 1, 2, 18, tzinfo=UTC))
    early = extreme(1.0, datetime(2023, 12, 31, 23, tzinfo=UTC))

    chart = build_daily_chart(buckets, early, late, width=W, height=H, tz=UTC)

    xs = {m.mode: m.point[0] for m in chart.extremes}
    assert xs[ExtremeMode.MAX] == W
    assert xs[ExtremeMode.MIN] == 0.0


def test_area_closes_on_the_baseline_and_labels_buckets():
    buckets = [bucket(1, 10.0), bucket(2, 20.0)]
    chart = build_daily_chart(buckets, None, None, width=W, height=H, tz=UTC)
    assert chart.area[0] == (0.0, H)
    assert chart.area[-1] == (W, H)
    assert chart.area[1:-1] == chart.trend
    assert [m.value_label for m in chart.buckets] == ["10.0", "20.0"]
    assert [m.date_label for m in chart.buckets] == ["01/01/24", "01/02/24"]


def test_flat_data_uses_unit_range():
    buckets = [bucket(1, 50.0), bucket(2, 50.0)]
    flat = extreme(50.0, datetime(2024, 1, 1, 9, tzinfo=UTC))
    chart = build_daily_chart(buckets, flat, flat, width=W, height=H, tz=UTC)
    assert all(p[1] == H for p in chart.trend)


def test_fewer_than_two_buckets_is_a_placeholder():
    one = build_daily_chart([bucket(1, 10.0)], None, None, tz=UTC)
    none = build_daily_chart([], None, None, tz=UTC)
    assert isinstance(one, ChartPlaceholder)
    assert isinstance(none, ChartPlaceholder)
    assert one.kind is ErrorKind.INSUFFICIENT_CHART_DATA


def test_sparkline_plots_recent_samples_oldest_left():
    now = datetime(2024, 1, 1, tzinfo=UTC)
    history = [
        Reading(temperature=3.0, timestamp=now),
        Reading(temperature=2.0, timestamp=now - timedelta(minutes=1)),
        Reading(temperature=1.0, timestamp=now - timedelta(minutes=2)),
    ]
    spark = build_sparkline(history, Metric.TEMPERATURE, samples=10, width=W, height=H)

    assert isinstance(spark, Sparkline)
    assert [p[0] for p in spark.line] == [0.0, W / 2, W]
    # padded range is [0, 4]
    assert spark.line[0][1] == pytest.approx(0.75 * H)
    assert spark.terminal == pytest.approx((W, 0.25 * H))


def test_sparkline_limits_samples_and_skips_missing_values():
    now = datetime(2024, 1, 1, tzinfo=UTC)
    history = [Reading(temperature=float(i), timestamp=now - timedelta(minutes=i)) for i in range(30)]
    assert len(build_sparkline(history, Metric.TEMPERATURE, samples=20).line) == 20

    sparse = [Reading(temperature=None, timestamp=now), Reading(temperature=5.0, timestamp=now)]
    assert isinstance(build_sparkline(sparse, Metric.TEMPERATURE), ChartPlaceholder)
