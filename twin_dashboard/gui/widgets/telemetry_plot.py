"""Matplotlib widgets that draw precomputed chart geometry inside Qt."""

from __future__ import annotations

from typing import Optional, Union

from PySide6.QtWidgets import QSizePolicy, QVBoxLayout, QWidget
from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.figure import Figure

from twin_dashboard.charts import ChartPlaceholder, DailyChart, Sparkline
from twin_dashboard.telemetry.aggregation import ExtremeMode

TREND_COLOR = "#00f7ff"
GUIDE_COLOR = "#555555"
EXTREME_COLORS = {ExtremeMode.MIN: "tab:blue", ExtremeMode.MAX: "tab:red"}


def _prepare_axes(ax, width: float, height: float) -> None:
    ax.clear()
    ax.set_axis_on()
    ax.set_xlim(0, width)
    # geometry uses screen coordinates, y grows downward
    ax.set_ylim(height, 0)
    ax.set_xticks([])
    ax.set_yticks([])
    for spine in ax.spines.values():
        spine.set_visible(False)


def _draw_placeholder(ax, placeholder: ChartPlaceholder) -> None:
    ax.clear()
    ax.set_axis_off()
    ax.text(0.5, 0.5, placeholder.message, ha="center", va="center", transform=ax.transAxes, color="#aaaaaa")


class _ChartCanvas(QWidget):
    def __init__(self, figsize, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._figure = Figure(figsize=figsize)
        self._canvas = FigureCanvas(self._figure)
        self._canvas.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._canvas)
        self.setLayout(layout)
        self._ax = self._figure.add_subplot(111)


class DailyTrendChart(_ChartCanvas):
    """Daily averages with per-day guides and the raw min/max markers."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(figsize=(8, 3), parent=parent)

    def set_chart(self, chart: Union[DailyChart, ChartPlaceholder]) -> None:
        ax = self._ax
        if isinstance(chart, ChartPlaceholder):
            _draw_placeholder(ax, chart)
            self._canvas.draw_idle()
            return

        _prepare_axes(ax, chart.width, chart.height)
        xs = [p[0] for p in chart.area]
        ys = [p[1] for p in chart.area]
        ax.fill(xs, ys, color=TREND_COLOR, alpha=0.15, linewidth=0)
        ax.plot([p[0] for p in chart.trend], [p[1] for p in chart.trend], color=TREND_COLOR, linewidth=2)

        for marker in chart.buckets:
            (x0, y0), (x1, y1) = marker.guide
            ax.plot([x0, x1], [y0, y1], color=GUIDE_COLOR, linestyle="--", linewidth=0.8)
            ax.plot([marker.point[0]], [marker.point[1]], "o", color=TREND_COLOR, markersize=4)
            ax.annotate(marker.value_label, marker.point, textcoords="offset points", xytext=(0, 8), ha="center", fontsize=8)
            ax.annotate(marker.date_label, (x1, y1), textcoords="offset points", xytext=(0, -12), ha="center", fontsize=7, color="#888888", annotation_clip=False)

        for extreme in chart.extremes:
            color = EXTREME_COLORS[extreme.mode]
            ax.plot([extreme.point[0]], [extreme.point[1]], marker="D", color=color, markersize=6)
            ax.annotate(extreme.label, extreme.point, textcoords="offset points", xytext=(6, -4), fontsize=8, color=color)

        self._figure.tight_layout()
        self._canvas.draw_idle()


class SparklineChart(_ChartCanvas):
    """Compact trend of the latest raw samples for the popup."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(figsize=(2.4, 0.7), parent=parent)
        self.setMinimumHeight(48)

    def set_sparkline(self, sparkline: Union[Sparkline, ChartPlaceholder]) -> None:
        ax = self._ax
        if isinstance(sparkline, ChartPlaceholder):
            _draw_placeholder(ax, sparkline)
        else:
            _prepare_axes(ax, sparkline.width, sparkline.height)
            ax.plot([p[0] for p in sparkline.line], [p[1] for p in sparkline.line], color=TREND_COLOR, linewidth=1.5)
            ax.plot([sparkline.terminal[0]], [sparkline.terminal[1]], "o", color=TREND_COLOR, markersize=4)
        self._figure.subplots_adjust(left=0.02, right=0.98, top=0.95, bottom=0.05)
        self._canvas.draw_idle()
