"""Mock collaborators for running the dashboard without the cloud services."""

from __future__ import annotations

import math
import random
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

import numpy as np

from twin_dashboard.spatial.engine import (
    CAMERA_CHANGED,
    LEVELS_EXTENSION,
    MARKER_EXTENSION,
    OBJECT_CLICKED,
    CameraPose,
    ExtensionLoadError,
    Vector3,
)


# ---------------------------------------------------------------------------
# Telemetry feed

class MockResponse:
    """Just enough of ``requests.Response`` for the poller."""

    def __init__(self, status_code: int, body=None) -> None:
        self.status_code = status_code
        self._body = body

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


def _mock_reading(moment: datetime, counter: float) -> Dict[str, object]:
    return {
        "temp": round(71.0 + 3.0 * math.sin(counter / 6.0) + random.uniform(-0.4, 0.4), 2),
        "humidity": round(42.0 + 5.0 * math.sin(counter / 9.0 + 0.5), 2),
        "pressure": round(1013.0 + 4.0 * math.sin(counter / 15.0), 1),
        "lastUpdated": moment.isoformat().replace("+00:00", "Z"),
    }


class MockTelemetrySession:
    """Stands in for ``requests.Session`` against the token and telemetry endpoints."""

    def __init__(self, days: int = 7, step_hours: int = 3, failure_rate: float = 0.0) -> None:
        self.days = days
        self.step_hours = step_hours
        self.failure_rate = failure_rate
        self.requests: List[str] = []

    def get(self, url: str, timeout: Optional[float] = None) -> MockResponse:
        self.requests.append(url)
        if random.random() < self.failure_rate:
            return MockResponse(500)
        if "token" in url:
            return MockResponse(200, {"access_token": "mock-access-token"})
        return MockResponse(200, self.telemetry_document())

    def telemetry_document(self, now: Optional[datetime] = None) -> Dict[str, object]:
        now = now or datetime.now(timezone.utc)
        history = []
        steps = self.days * 24 // self.step_hours
        for index in range(steps):
            moment = now - timedelta(hours=index * self.step_hours)
            history.append(_mock_reading(moment, steps - index))
        return {"current": _mock_reading(now, steps), "history": history}


# ---------------------------------------------------------------------------
# Viewer engine

class MockMarkerLayer:
    """In-memory sprite markers."""

    def __init__(self) -> None:
        self.markers: Dict[int, Tuple[Vector3, str, int]] = {}
        self.visible = True

    def add_marker(self, object_id: int, position: Vector3, icon: str, size: int) -> None:
        self.markers[object_id] = (tuple(position), icon, size)

    def set_marker_icon(self, object_id: int, icon: str) -> None:
        position, _, size = self.markers[object_id]
        self.markers[object_id] = (position, icon, size)

    def set_visible(self, visible: bool) -> None:
        self.visible = visible


class MockViewerEngine:
    """Tiny perspective-camera scene of axis-aligned boxes.

    Implements :class:`twin_dashboard.spatial.engine.ViewerEngine` so the
    dashboard can run end to end without the real viewer.
    """

    UP = np.array([0.0, 0.0, 1.0])

    def __init__(
        self,
        objects: Optional[Dict[int, Tuple[Vector3, Vector3]]] = None,
        viewport: Tuple[int, int] = (800, 600),
        fov_deg: float = 45.0,
        unavailable_extensions: Optional[Set[str]] = None,
    ) -> None:
        self.objects = dict(objects or {})
        self.viewport = viewport
        self.fov_deg = fov_deg
        self.unavailable_extensions = set(unavailable_extensions or ())
        self.camera = CameraPose(position=(10.0, 10.0, 10.0), target=(0.0, 0.0, 0.0))
        self.marker_layer: Optional[MockMarkerLayer] = None
        self.loaded_extensions: List[str] = []
        self._listeners: Dict[str, List[Callable[..., None]]] = {CAMERA_CHANGED: [], OBJECT_CLICKED: []}
        self._redraw: Optional[Callable[[], None]] = None

    # -- ViewerEngine ----------------------------------------------------
    def load_model(self, model_urn, on_loaded, on_error=None) -> None:
        if not self.objects:
            if on_error is not None:
                on_error(f"Model {model_urn} has no geometry")
            return
        on_loaded()

    def load_extension(self, name: str):
        if name in self.unavailable_extensions:
            raise ExtensionLoadError(f"Extension '{name}' is not available")
        self.loaded_extensions.append(name)
        if name == MARKER_EXTENSION:
            if self.marker_layer is None:
                self.marker_layer = MockMarkerLayer()
            return self.marker_layer
        if name == LEVELS_EXTENSION:
            return object()
        raise ExtensionLoadError(f"Unknown extension '{name}'")

    def add_listener(self, event: str, callback) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def remove_listener(self, event: str, callback) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def world_to_screen(self, point: Vector3) -> Tuple[float, float]:
        width, height = self.viewport
        eye = np.asarray(self.camera.position, dtype=float)
        forward = np.asarray(self.camera.target, dtype=float) - eye
        forward /= np.linalg.norm(forward)
        right = np.cross(forward, self.UP)
        if np.linalg.norm(right) < 1e-9:
            right = np.array([1.0, 0.0, 0.0])
        right /= np.linalg.norm(right)
        up = np.cross(right, forward)

        relative = np.asarray(point, dtype=float) - eye
        depth = float(np.dot(relative, forward))
        if depth <= 1e-6:
            return (-1.0, -1.0)
        focal = (height / 2.0) / math.tan(math.radians(self.fov_deg) / 2.0)
        x = width / 2.0 + focal * float(np.dot(relative, right)) / depth
        y = height / 2.0 - focal * float(np.dot(relative, up)) / depth
        return (x, y)

    def get_camera(self) -> CameraPose:
        return self.camera

    def set_camera(self, pose: CameraPose) -> None:
        self.camera = pose
        self._emit(CAMERA_CHANGED)
        self.invalidate()

    def fit_to_view(self) -> None:
        if not self.objects:
            return
        corners = np.array([c for bounds in self.objects.values() for c in bounds], dtype=float)
        low, high = corners.min(axis=0), corners.max(axis=0)
        center = (low + high) / 2.0
        radius = float(np.linalg.norm(high - low)) / 2.0
        distance = radius / math.tan(math.radians(self.fov_deg) / 2.0)
        direction = np.array([1.0, -1.0, 0.8])
        direction /= np.linalg.norm(direction)
        self.set_camera(CameraPose(position=tuple((center + direction * distance).tolist()), target=tuple(center.tolist())))

    def object_bounds(self, object_id: int) -> Optional[Tuple[Vector3, Vector3]]:
        return self.objects.get(object_id)

    def invalidate(self) -> None:
        if self._redraw is not None:
            self._redraw()

    # -- interaction used by the canvas ----------------------------------
    def set_redraw_callback(self, callback: Optional[Callable[[], None]]) -> None:
        self._redraw = callback

    def resize(self, width: int, height: int) -> None:
        self.viewport = (max(width, 1), max(height, 1))
        self._emit(CAMERA_CHANGED)

    def orbit(self, yaw_deg: float, pitch_deg: float) -> None:
        target = np.asarray(self.camera.target, dtype=float)
        offset = np.asarray(self.camera.position, dtype=float) - target
        radius = float(np.linalg.norm(offset))
        yaw = math.atan2(offset[1], offset[0]) + math.radians(yaw_deg)
        pitch = math.asin(max(-1.0, min(1.0, offset[2] / radius))) + math.radians(pitch_deg)
        pitch = max(math.radians(-85.0), min(math.radians(85.0), pitch))
        offset = radius * np.array([
            math.cos(pitch) * math.cos(yaw),
            math.cos(pitch) * math.sin(yaw),
            math.sin(pitch),
        ])
        self.set_camera(CameraPose(position=tuple((target + offset).tolist()), target=self.camera.target))

    def dolly(self, factor: float) -> None:
        target = np.asarray(self.camera.target, dtype=float)
        offset = np.asarray(self.camera.position, dtype=float) - target
        self.set_camera(CameraPose(position=tuple((target + offset * factor).tolist()), target=self.camera.target))

    def click(self, x: float, y: float) -> Optional[int]:
        """Pick the marker under ``(x, y)`` and notify click listeners."""
        hit = None
        layer = self.marker_layer
        if layer is not None and layer.visible:
            for object_id, (position, _, size) in layer.markers.items():
                sx, sy = self.world_to_screen(position)
                if math.hypot(sx - x, sy - y) <= size / 2.0:
                    hit = object_id
                    break
        self._emit(OBJECT_CLICKED, hit)
        return hit

    def _emit(self, event: str, *args) -> None:
        for callback in list(self._listeners.get(event, [])):
            callback(*args)


def build_demo_engine(anchor_object_id: int, anchor_base: Vector3, **kwargs) -> MockViewerEngine:
    """Demo scene: a house-sized box with a desk at the sensor location."""
    x, y, z = anchor_base
    objects = {
        1: ((x - 12.0, y - 10.0, z - 4.0), (x + 12.0, y + 10.0, z + 5.0)),
        anchor_object_id: ((x - 1.0, y - 0.6, z - 0.8), (x + 1.0, y + 0.6, z)),
    }
    return MockViewerEngine(objects=objects, **kwargs)
