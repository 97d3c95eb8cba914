"""Keeps the sensor marker and its popup glued to a point in the 3D model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Optional, Sequence

import numpy as np

from twin_dashboard.gui.model import ViewState, ViewStateController
from twin_dashboard.spatial.engine import (
    CAMERA_CHANGED,
    LEVELS_EXTENSION,
    MARKER_EXTENSION,
    OBJECT_CLICKED,
    CameraPose,
    ExtensionLoadError,
    MarkerLayer,
    Vector3,
    ViewerEngine,
)
from twin_dashboard.telemetry.series import ErrorKind
from twin_dashboard.timers import IntervalTimer

log = logging.getLogger(__name__)


class ScreenPoint(NamedTuple):
    x: float
    y: float


@dataclass(frozen=True)
class AnchorPoint:
    """World-space location of the sensor, attached to a model object."""

    object_id: int
    position: Vector3

    @classmethod
    def above(cls, object_id: int, base: Sequence[float], lift: float = 1.5) -> "AnchorPoint":
        x, y, z = (float(v) for v in base)
        return cls(object_id=object_id, position=(x, y, z + lift))


@dataclass(frozen=True)
class MarkerStyle:
    frames: Sequence[str] = ("sprites/thermostat.svg", "sprites/thermostat_red.svg")
    size: int = 48
    frame_period_ms: int = 500


@dataclass(frozen=True)
class FocusOptions:
    """Camera moves applied on load and when the marker is clicked."""

    initial_zoom: float = 0.8
    distance_factor: float = 30.0
    focus_on_click: bool = True


def zoom_pose(pose: CameraPose, factor: float) -> CameraPose:
    """Scale the eye-to-target distance by ``factor``, keeping the view direction."""
    target = np.asarray(pose.target, dtype=float)
    offset = np.asarray(pose.position, dtype=float) - target
    return CameraPose(position=tuple((target + offset * factor).tolist()), target=pose.target)


def focus_pose(pose: CameraPose, bounds_min: Vector3, bounds_max: Vector3, distance_factor: float) -> CameraPose:
    """Centre the camera on a bounding box, backing off along the current view direction."""
    low = np.asarray(bounds_min, dtype=float)
    high = np.asarray(bounds_max, dtype=float)
    center = (low + high) / 2.0
    size = float(np.linalg.norm(high - low))
    direction = np.asarray(pose.position, dtype=float) - np.asarray(pose.target, dtype=float)
    norm = float(np.linalg.norm(direction))
    if norm == 0.0:
        direction = np.array([0.0, 0.0, 1.0])
    else:
        direction = direction / norm
    position = center + direction * size * distance_factor
    return CameraPose(position=tuple(position.tolist()), target=tuple(center.tolist()))


class SpatialAnchorSynchronizer:
    """Places the sensor marker, animates it and tracks its screen projection.

    Popup observers receive the anchor's screen position each time the camera
    moves while the mini popup is open. Nothing is reported once
    :meth:`dispose` has run.
    """

    def __init__(
        self,
        engine: ViewerEngine,
        anchor: AnchorPoint,
        view_state: ViewStateController,
        timer: IntervalTimer,
        marker: MarkerStyle = MarkerStyle(),
        focus: FocusOptions = FocusOptions(),
    ) -> None:
        self.engine = engine
        self.anchor = anchor
        self.view_state = view_state
        self.marker = marker
        self.focus = focus
        self._timer = timer
        self._markers: Optional[MarkerLayer] = None
        self._frame_index = 0
        self._markers_visible = True
        self._screen: Optional[ScreenPoint] = None
        self._popup_listeners: List[Callable[[ScreenPoint], None]] = []
        self._ready_listeners: List[Callable[[bool], None]] = []
        self._listening = False
        self._active = False
        self._model_ready = False
        self.error: Optional[ErrorKind] = None

    # ------------------------------------------------------------------
    @property
    def active(self) -> bool:
        return self._active

    @property
    def model_ready(self) -> bool:
        return self._model_ready

    @property
    def annotations_available(self) -> bool:
        return self._markers is not None

    @property
    def markers_visible(self) -> bool:
        return self._markers_visible

    @property
    def frame_index(self) -> int:
        return self._frame_index

    @property
    def screen_position(self) -> Optional[ScreenPoint]:
        if not self._active or not self._model_ready:
            return None
        return self._screen

    def subscribe_popup(self, callback: Callable[[ScreenPoint], None]) -> Callable[[], None]:
        self._popup_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._popup_listeners:
                self._popup_listeners.remove(callback)

        return unsubscribe

    def subscribe_ready(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        """Called once the model has loaded, with whether annotations are available."""
        self._ready_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._ready_listeners:
                self._ready_listeners.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    def attach(self, model_urn: str) -> None:
        self._active = True
        log.info("Loading model %s", model_urn)
        self.engine.load_model(model_urn, self._on_model_loaded, self._on_model_error)

    def dispose(self) -> None:
        """Stop the animation and detach from the engine before it is discarded."""
        if not self._active and not self._listening:
            return
        self._active = False
        self._timer.stop()
        if self._listening:
            self.engine.remove_listener(CAMERA_CHANGED, self.on_camera_changed)
            self.engine.remove_listener(OBJECT_CLICKED, self.on_object_clicked)
            self._listening = False
        self._popup_listeners.clear()
        self._ready_listeners.clear()
        self._screen = None
        self._model_ready = False
        log.debug("Anchor synchronizer disposed")

    def toggle_markers(self) -> bool:
        """Show or hide the markers without removing them. Returns the new visibility."""
        self._markers_visible = not self._markers_visible
        if self._markers is not None and self._active:
            self._markers.set_visible(self._markers_visible)
            self.engine.invalidate()
        return self._markers_visible

    # ------------------------------------------------------------------
    def _on_model_error(self, message: str) -> None:
        log.error("Model load failed: %s", message)

    def _on_model_loaded(self) -> None:
        if not self._active:
            return
        self._model_ready = True
        self._apply_initial_zoom()
        self.engine.add_listener(CAMERA_CHANGED, self.on_camera_changed)
        self._listening = True
        self._screen = self._project()

        try:
            self._load_optional_extension(LEVELS_EXTENSION)
            markers = self.engine.load_extension(MARKER_EXTENSION)
        except ExtensionLoadError as exc:
            log.warning("Marker extension unavailable, continuing without annotations: %s", exc)
            self.error = ErrorKind.EXTENSION_LOAD_FAILED
            self._notify_ready()
            return
        if not self._active:
            return

        self._markers = markers
        markers.add_marker(self.anchor.object_id, self.anchor.position, self.marker.frames[0], self.marker.size)
        markers.set_visible(self._markers_visible)
        self.engine.add_listener(OBJECT_CLICKED, self.on_object_clicked)
        self.engine.invalidate()
        if len(self.marker.frames) > 1:
            self._timer.start(self.marker.frame_period_ms, self.advance_frame)
        self._notify_ready()

    def _load_optional_extension(self, name: str) -> None:
        try:
            self.engine.load_extension(name)
        except ExtensionLoadError as exc:
            log.info("Optional extension %s not loaded: %s", name, exc)

    def _apply_initial_zoom(self) -> None:
        self.engine.fit_to_view()
        if self.focus.initial_zoom != 1.0:
            self.engine.set_camera(zoom_pose(self.engine.get_camera(), self.focus.initial_zoom))

    def _project(self) -> ScreenPoint:
        x, y = self.engine.world_to_screen(self.anchor.position)
        return ScreenPoint(float(x), float(y))

    # ------------------------------------------------------------------
    def advance_frame(self) -> None:
        """Swap the marker icon to the next animation frame."""
        if not self._active or self._markers is None:
            return
        self._frame_index = (self._frame_index + 1) % len(self.marker.frames)
        self._markers.set_marker_icon(self.anchor.object_id, self.marker.frames[self._frame_index])
        self.engine.invalidate()

    def on_camera_changed(self) -> None:
        if not self._active or not self._model_ready:
            return
        self._screen = self._project()
        if self.view_state.state is ViewState.MINI_POPUP:
            self._notify_popup(self._screen)

    def on_object_clicked(self, object_id: Optional[int]) -> None:
        if not self._active:
            return
        if object_id != self.anchor.object_id:
            self.view_state.background_click()
            return
        self._screen = self._project()
        self.view_state.open_mini_popup()
        self._notify_popup(self._screen)
        if self.focus.focus_on_click:
            self._focus_anchor_object()

    def _focus_anchor_object(self) -> None:
        bounds = self.engine.object_bounds(self.anchor.object_id)
        if bounds is None:
            return
        pose = focus_pose(self.engine.get_camera(), bounds[0], bounds[1], self.focus.distance_factor)
        self.engine.set_camera(pose)

    def _notify_ready(self) -> None:
        for callback in list(self._ready_listeners):
            callback(self.annotations_available)

    def _notify_popup(self, point: ScreenPoint) -> None:
        for callback in list(self._popup_listeners):
            callback(point)
