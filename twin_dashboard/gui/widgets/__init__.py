"""Custom Qt widgets."""

from .telemetry_plot import DailyTrendChart, SparklineChart
from .viewer_canvas import ViewerCanvas

__all__ = ["DailyTrendChart", "SparklineChart", "ViewerCanvas"]
