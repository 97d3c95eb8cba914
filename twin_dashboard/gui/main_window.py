"""Qt main window: 3D viewer, live data card, history panel and report link."""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Callable, Optional, Tuple

from PySide6.QtCore import Qt, Signal, Slot
from PySide6.QtWidgets import (
    QApplication,
    QComboBox,
    QFrame,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QStackedWidget,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from twin_dashboard.charts import build_daily_chart, build_sparkline
from twin_dashboard.gui.model import SensorCard, ViewState, ViewStateController
from twin_dashboard.gui.timers import QtIntervalTimer
from twin_dashboard.gui.widgets import DailyTrendChart, SparklineChart
from twin_dashboard.io.settings import DashboardSettings
from twin_dashboard.spatial import (
    AnchorPoint,
    FocusOptions,
    MarkerStyle,
    ScreenPoint,
    SpatialAnchorSynchronizer,
    ViewerEngine,
)
from twin_dashboard.telemetry import (
    ExtremeMode,
    Metric,
    TelemetryPoller,
    TelemetrySnapshot,
    aggregate,
    find_extreme,
)
from twin_dashboard.workers import BackgroundRunner, InlineRunner

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Layout constants
WINDOW_DEFAULT_SIZE = (1500, 950)
WINDOW_TITLE = "SENSOR DASHBOARD"
AUTHENTICATING_TEXT = "AUTHENTICATING SECURE VIEWER..."
LOADING_TEXT = "Loading Data..."
POPUP_OFFSET_PX = 12
VIEWER_STRETCH = 2
DATA_STRETCH = 1

METRIC_LABELS = {
    Metric.TEMPERATURE: "Temperature (°F)",
    Metric.HUMIDITY: "Humidity (%)",
    Metric.PRESSURE: "Pressure (hPa)",
}

ViewerFactory = Callable[[str], Tuple[ViewerEngine, QWidget]]
TokenProvider = Callable[[], Optional[str]]


class Banner(QFrame):
    """Dismissible connection-error banner."""

    def __init__(self) -> None:
        super().__init__()
        self.setFrameShape(QFrame.StyledPanel)
        self.setStyleSheet("background: #5a1e1e; color: #ffd0d0;")
        self.label = QLabel()
        dismiss = QPushButton("Dismiss")
        dismiss.clicked.connect(self._dismiss)
        layout = QHBoxLayout()
        layout.addWidget(self.label)
        layout.addStretch()
        layout.addWidget(dismiss)
        self.setLayout(layout)
        self._dismissed = False
        self.setVisible(False)

    def _dismiss(self) -> None:
        self._dismissed = True
        self.setVisible(False)

    def set_message(self, message: Optional[str]) -> None:
        if message is None:
            # cleared by a successful poll; the next failure shows again
            self._dismissed = False
            self.setVisible(False)
            return
        self.label.setText(f"⚠️ {message}")
        self.setVisible(not self._dismissed)


class DataCard(QGroupBox):
    """Live reading of the sensor."""

    def __init__(self) -> None:
        super().__init__()
        self.device_label = QLabel()
        self.device_label.setStyleSheet("font-weight: bold; font-size: 16px;")
        self.status_label = QLabel()
        self.temperature_label = QLabel()
        self.humidity_label = QLabel()
        self.pressure_label = QLabel()
        self.last_sync_label = QLabel()

        layout = QVBoxLayout()
        layout.addWidget(self.device_label)
        layout.addWidget(self.status_label)
        for caption, label in (
            ("🌡️ TEMPERATURE", self.temperature_label),
            ("💧 HUMIDITY", self.humidity_label),
            ("⏲️ PRESSURE", self.pressure_label),
        ):
            row = QHBoxLayout()
            row.addWidget(QLabel(caption))
            row.addStretch()
            row.addWidget(label)
            layout.addLayout(row)
        layout.addWidget(self.last_sync_label)
        self.setLayout(layout)

    def update_card(self, card: SensorCard) -> None:
        self.device_label.setText(card.device_name)
        color = "#ff5555" if card.stale else "#55ff88"
        self.status_label.setText(f"● {card.status_text}")
        self.status_label.setStyleSheet(f"color: {color};")
        self.temperature_label.setText(card.temperature)
        self.humidity_label.setText(card.humidity)
        self.pressure_label.setText(card.pressure)
        self.last_sync_label.setText(f"LAST SYNC: {card.last_sync}")


class HistoryTable(QGroupBox):
    """Most recent raw readings."""

    def __init__(self, rows: int) -> None:
        super().__init__(f"LOGS (LAST {rows})")
        self.table = QTableWidget(0, 4)
        self.table.setHorizontalHeaderLabels(["Time", "Temp", "Hum", "hPa"])
        self.table.verticalHeader().setVisible(False)
        self.table.setEditTriggers(QTableWidget.NoEditTriggers)
        self.table.setSelectionMode(QTableWidget.NoSelection)
        layout = QVBoxLayout()
        layout.addWidget(self.table)
        self.setLayout(layout)

    def update_rows(self, card: SensorCard) -> None:
        self.table.setRowCount(len(card.log_rows))
        for idx, row in enumerate(card.log_rows):
            for col, text in enumerate(row):
                item = QTableWidgetItem(text)
                item.setTextAlignment(Qt.AlignCenter)
                self.table.setItem(idx, col, item)
        self.table.resizeColumnsToContents()


class MiniPopup(QFrame):
    """Small overlay anchored to the sensor marker."""

    detail_requested = Signal()
    close_requested = Signal()

    def __init__(self, parent: QWidget) -> None:
        super().__init__(parent)
        self.setFrameShape(QFrame.StyledPanel)
        self.setStyleSheet("background: rgba(10, 20, 30, 220); color: #e0f7ff; border-radius: 6px;")
        self.title_label = QLabel()
        self.status_label = QLabel()
        self.values_label = QLabel()
        self.sparkline = SparklineChart()
        detail_btn = QPushButton("Details")
        close_btn = QPushButton("×")
        close_btn.setFixedWidth(24)
        detail_btn.clicked.connect(self.detail_requested.emit)
        close_btn.clicked.connect(self.close_requested.emit)

        header = QHBoxLayout()
        header.addWidget(self.title_label)
        header.addStretch()
        header.addWidget(close_btn)

        layout = QVBoxLayout()
        layout.addLayout(header)
        layout.addWidget(self.status_label)
        layout.addWidget(self.values_label)
        layout.addWidget(self.sparkline)
        layout.addWidget(detail_btn)
        self.setLayout(layout)
        self.setFixedSize(260, 210)
        self.setVisible(False)

    def update_popup(self, card: SensorCard, snapshot: TelemetrySnapshot, samples: int) -> None:
        self.title_label.setText(card.device_name)
        self.status_label.setText(card.status_text)
        self.values_label.setText(f"{card.temperature}   {card.humidity}   {card.pressure}")
        self.sparkline.set_sparkline(build_sparkline(snapshot.history, Metric.TEMPERATURE, samples=samples))

    def place_at(self, point: ScreenPoint) -> None:
        parent = self.parentWidget()
        x = int(point.x) + POPUP_OFFSET_PX
        y = int(point.y) - self.height() - POPUP_OFFSET_PX
        if parent is not None:
            x = max(0, min(x, parent.width() - self.width()))
            y = max(0, min(y, parent.height() - self.height()))
        self.move(x, y)
        self.raise_()


class DetailPanel(QGroupBox):
    """Daily averages with raw extremes for one metric."""

    close_requested = Signal()

    def __init__(self, width: float, height: float, tz: Optional[tzinfo]) -> None:
        super().__init__("HISTORY")
        self._width = width
        self._height = height
        self._tz = tz
        self._snapshot = TelemetrySnapshot()

        self.metric_combo = QComboBox()
        for metric, label in METRIC_LABELS.items():
            self.metric_combo.addItem(label, metric)
        self.metric_combo.currentIndexChanged.connect(lambda _: self.refresh())
        close_btn = QPushButton("Close")
        close_btn.clicked.connect(self.close_requested.emit)
        self.chart = DailyTrendChart()

        header = QHBoxLayout()
        header.addWidget(self.metric_combo)
        header.addStretch()
        header.addWidget(close_btn)
        layout = QVBoxLayout()
        layout.addLayout(header)
        layout.addWidget(self.chart)
        self.setLayout(layout)
        self.setVisible(False)

    def show_history(self, snapshot: TelemetrySnapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def refresh(self) -> None:
        metric = self.metric_combo.currentData()
        history = self._snapshot.history
        buckets = aggregate(history, metric, tz=self._tz)
        chart = build_daily_chart(
            buckets,
            find_extreme(history, metric, ExtremeMode.MIN),
            find_extreme(history, metric, ExtremeMode.MAX),
            width=self._width,
            height=self._height,
            tz=self._tz,
        )
        self.chart.set_chart(chart)


class ViewerPane(QWidget):
    """Holds the authenticating placeholder until a viewer widget is installed."""

    toggle_markers_requested = Signal()

    def __init__(self) -> None:
        super().__init__()
        self.stack = QStackedWidget()
        placeholder = QLabel(AUTHENTICATING_TEXT)
        placeholder.setAlignment(Qt.AlignCenter)
        placeholder.setStyleSheet("background: #000; color: #00f7ff; font-family: monospace;")
        self.stack.addWidget(placeholder)
        self.viewer: Optional[QWidget] = None

        self.sensor_btn = QPushButton("Show/Hide Sensors")
        self.sensor_btn.setCheckable(True)
        self.sensor_btn.setChecked(True)
        self.sensor_btn.setEnabled(False)
        self.sensor_btn.clicked.connect(self.toggle_markers_requested.emit)

        toolbar = QHBoxLayout()
        toolbar.addStretch()
        toolbar.addWidget(self.sensor_btn)

        layout = QVBoxLayout()
        layout.addWidget(self.stack)
        layout.addLayout(toolbar)
        self.setLayout(layout)

    def install_viewer(self, viewer: QWidget) -> None:
        self.viewer = viewer
        self.stack.addWidget(viewer)
        self.stack.setCurrentWidget(viewer)


class ReportPane(QGroupBox):
    """Link to the externally hosted historical report."""

    def __init__(self, title: str, url: Optional[str]) -> None:
        super().__init__(title)
        if url:
            label = QLabel(f'<a href="{url}">Open historical analysis report</a>')
            label.setOpenExternalLinks(True)
        else:
            label = QLabel("No report configured.")
        layout = QVBoxLayout()
        layout.addWidget(label)
        self.setLayout(layout)


class MainWindow(QMainWindow):
    """Main UI window coordinating panes, the poller and the anchor synchronizer."""

    snapshot_received = Signal(object)

    def __init__(
        self,
        settings: DashboardSettings,
        poller: TelemetryPoller,
        token_provider: TokenProvider,
        viewer_factory: ViewerFactory,
        view_state: Optional[ViewStateController] = None,
        runner: Optional[BackgroundRunner] = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle(WINDOW_TITLE)
        self.resize(*WINDOW_DEFAULT_SIZE)

        self.settings = settings
        self.poller = poller
        self.view_state = view_state or ViewStateController()
        self._token_provider = token_provider
        self._viewer_factory = viewer_factory
        self._runner = runner or InlineRunner()
        self._closed = False
        self._tz = settings.display.tzinfo()
        self._snapshot = poller.snapshot
        self.synchronizer: Optional[SpatialAnchorSynchronizer] = None
        self.popup: Optional[MiniPopup] = None

        title = QLabel(WINDOW_TITLE)
        title.setStyleSheet("font-size: 20px; font-weight: bold;")
        self.loading_label = QLabel(LOADING_TEXT)
        self.loading_label.setStyleSheet("color: #aaa;")
        self.banner = Banner()

        header = QHBoxLayout()
        header.addWidget(title)
        header.addStretch()
        header.addWidget(self.loading_label)

        self.viewer_pane = ViewerPane()
        self.data_card = DataCard()
        self.history_table = HistoryTable(settings.display.history_rows)
        self.detail_panel = DetailPanel(settings.display.chart_width, settings.display.chart_height, self._tz)
        self.report_pane = ReportPane(settings.report.title, settings.report.url)

        data_widget = QWidget()
        data_layout = QVBoxLayout()
        data_layout.addWidget(self.data_card)
        data_layout.addWidget(self.history_table)
        data_widget.setLayout(data_layout)

        split = QHBoxLayout()
        split.addWidget(self.viewer_pane, stretch=VIEWER_STRETCH)
        split.addWidget(data_widget, stretch=DATA_STRETCH)

        central = QWidget()
        central_layout = QVBoxLayout()
        central_layout.addLayout(header)
        central_layout.addWidget(self.banner)
        central_layout.addLayout(split, stretch=1)
        central_layout.addWidget(self.detail_panel)
        central_layout.addWidget(self.report_pane)
        central.setLayout(central_layout)
        self.setCentralWidget(central)

        self.snapshot_received.connect(self.update_snapshot)
        self._unsubscribe = poller.subscribe(self.snapshot_received.emit)
        self.view_state.subscribe(self._on_view_state)
        self.viewer_pane.toggle_markers_requested.connect(self._toggle_markers)
        self.detail_panel.close_requested.connect(self.view_state.close)

        self._render()

    # ------------------------------------------------------------------
    def start(self) -> None:
        """Kick off the token fetch and the telemetry polling loop."""
        self._runner.submit(self._token_provider, self._on_token)
        self.poller.start(self.settings.poll_interval_ms)

    def closeEvent(self, event) -> None:  # noqa: N802 - Qt API
        self.shutdown()
        super().closeEvent(event)

    def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.poller.stop()
        self._unsubscribe()
        if self.synchronizer is not None:
            self.synchronizer.dispose()
        viewer = self.viewer_pane.viewer
        if viewer is not None and hasattr(viewer, "detach"):
            viewer.detach()

    # ------------------------------------------------------------------
    def _on_token(self, token: Optional[str]) -> None:
        if self._closed:
            return
        if token is None:
            log.error("Viewer stays unauthenticated for this session")
            return
        engine, viewer = self._viewer_factory(token)
        self.viewer_pane.install_viewer(viewer)

        self.popup = MiniPopup(viewer)
        self.popup.detail_requested.connect(self.view_state.toggle_detail)
        self.popup.close_requested.connect(self.view_state.close)

        viewer_cfg = self.settings.viewer
        anchor_cfg = viewer_cfg.anchor
        self.synchronizer = SpatialAnchorSynchronizer(
            engine=engine,
            anchor=AnchorPoint.above(anchor_cfg.object_id, anchor_cfg.position, anchor_cfg.lift),
            view_state=self.view_state,
            timer=QtIntervalTimer(self),
            marker=MarkerStyle(
                frames=tuple(viewer_cfg.marker.frames),
                size=viewer_cfg.marker.size,
                frame_period_ms=viewer_cfg.marker.frame_period_ms,
            ),
            focus=FocusOptions(
                initial_zoom=viewer_cfg.initial_zoom,
                distance_factor=viewer_cfg.focus_distance_factor,
            ),
        )
        self.synchronizer.subscribe_popup(self.popup.place_at)
        self.synchronizer.subscribe_ready(self.viewer_pane.sensor_btn.setEnabled)
        self.synchronizer.attach(viewer_cfg.model_urn)

    def _toggle_markers(self) -> None:
        if self.synchronizer is None:
            return
        visible = self.synchronizer.toggle_markers()
        self.viewer_pane.sensor_btn.setChecked(visible)

    @Slot(object)
    def update_snapshot(self, snapshot: TelemetrySnapshot) -> None:
        self._snapshot = snapshot
        self.view_state.set_snapshot(snapshot)
        self._render()

    def _render(self) -> None:
        card = SensorCard.from_snapshot(
            self.settings.device_name,
            self._snapshot,
            tz=self._tz,
            stale_after_ms=self.settings.stale_after_ms,
            history_rows=self.settings.display.history_rows,
        )
        self.loading_label.setVisible(card.loading)
        self.banner.set_message(card.banner)
        self.data_card.update_card(card)
        self.history_table.update_rows(card)
        if self.popup is not None and self.popup.isVisible():
            self.popup.update_popup(card, self._snapshot, self.settings.display.sparkline_samples)

    def _on_view_state(self, state: ViewState) -> None:
        if self.popup is not None:
            if state is ViewState.MINI_POPUP:
                self.popup.setVisible(True)
                self._render()
                position = self.synchronizer.screen_position if self.synchronizer else None
                if position is not None:
                    self.popup.place_at(position)
            else:
                self.popup.setVisible(False)
        if state is ViewState.DETAIL_PANEL:
            self.detail_panel.show_history(self._snapshot)
            self.detail_panel.setVisible(True)
        else:
            self.detail_panel.setVisible(False)


def run_gui(
    settings: DashboardSettings,
    poller: TelemetryPoller,
    token_provider: TokenProvider,
    viewer_factory: ViewerFactory,
    runner: Optional[BackgroundRunner] = None,
) -> None:
    app = QApplication.instance() or QApplication([])
    window = MainWindow(settings, poller, token_provider, viewer_factory, runner=runner)
    window.show()
    window.start()
    app.exec()
