"""Qt canvas that draws the demo scene engine and forwards mouse input to it."""

from __future__ import annotations

import itertools
from typing import Optional

from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QColor, QPainter, QPen
from PySide6.QtWidgets import QWidget

from twin_dashboard.gui.mock import MockViewerEngine
from twin_dashboard.spatial.engine import CAMERA_CHANGED

BACKGROUND = QColor("#000000")
WIREFRAME = QColor("#3a4a5a")
MARKER_IDLE = QColor("#ffffff")
MARKER_ALERT = QColor("#ff4040")
CLICK_SLOP_PX = 4
ORBIT_DEG_PER_PX = 0.4

# corner index pairs differing in exactly one axis
_BOX_EDGES = [
    (a, b)
    for a, b in itertools.combinations(range(8), 2)
    if bin(a ^ b).count("1") == 1
]


class ViewerCanvas(QWidget):
    """Wireframe view with orbit (drag), dolly (wheel) and click picking."""

    def __init__(self, engine: MockViewerEngine, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.engine = engine
        self._press_pos: Optional[QPointF] = None
        self._last_pos: Optional[QPointF] = None
        self.setMinimumSize(320, 240)
        self.setMouseTracking(False)
        engine.set_redraw_callback(self.update)
        engine.add_listener(CAMERA_CHANGED, self.update)

    def detach(self) -> None:
        self.engine.set_redraw_callback(None)
        self.engine.remove_listener(CAMERA_CHANGED, self.update)

    # ------------------------------------------------------------------
    def resizeEvent(self, event) -> None:  # noqa: N802 - Qt API
        self.engine.resize(self.width(), self.height())
        super().resizeEvent(event)

    def paintEvent(self, event) -> None:  # noqa: N802 - Qt API
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)
        painter.fillRect(self.rect(), BACKGROUND)

        painter.setPen(QPen(WIREFRAME, 1))
        for low, high in self.engine.objects.values():
            corners = [
                self.engine.world_to_screen((
                    high[0] if i & 1 else low[0],
                    high[1] if i & 2 else low[1],
                    high[2] if i & 4 else low[2],
                ))
                for i in range(8)
            ]
            for a, b in _BOX_EDGES:
                painter.drawLine(QPointF(*corners[a]), QPointF(*corners[b]))

        layer = self.engine.marker_layer
        if layer is not None and layer.visible:
            for position, icon, size in layer.markers.values():
                x, y = self.engine.world_to_screen(position)
                color = MARKER_ALERT if "red" in icon else MARKER_IDLE
                painter.setPen(QPen(color, 2))
                painter.setBrush(color.darker(200))
                radius = size / 4.0
                painter.drawEllipse(QPointF(x, y), radius, radius)
        painter.end()

    def mousePressEvent(self, event) -> None:  # noqa: N802 - Qt API
        if event.button() == Qt.LeftButton:
            self._press_pos = event.position()
            self._last_pos = event.position()

    def mouseMoveEvent(self, event) -> None:  # noqa: N802 - Qt API
        if self._last_pos is None:
            return
        pos = event.position()
        dx = pos.x() - self._last_pos.x()
        dy = pos.y() - self._last_pos.y()
        self._last_pos = pos
        self.engine.orbit(-dx * ORBIT_DEG_PER_PX, dy * ORBIT_DEG_PER_PX)

    def mouseReleaseEvent(self, event) -> None:  # noqa: N802 - Qt API
        if event.button() != Qt.LeftButton or self._press_pos is None:
            return
        pos = event.position()
        moved = abs(pos.x() - self._press_pos.x()) + abs(pos.y() - self._press_pos.y())
        self._press_pos = None
        self._last_pos = None
        if moved <= CLICK_SLOP_PX:
            self.engine.click(pos.x(), pos.y())

    def wheelEvent(self, event) -> None:  # noqa: N802 - Qt API
        self.engine.dolly(0.9 if event.angleDelta().y() > 0 else 1.1)
