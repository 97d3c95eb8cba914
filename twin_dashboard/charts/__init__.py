"""Chart layout for daily trends and sparklines."""

from .geometry import (
    BucketMarker,
    ChartPlaceholder,
    DailyChart,
    ExtremeMarker,
    Sparkline,
    build_daily_chart,
    build_sparkline,
)

__all__ = [
    "BucketMarker",
    "ChartPlaceholder",
    "DailyChart",
    "ExtremeMarker",
    "Sparkline",
    "build_daily_chart",
    "build_sparkline",
]
