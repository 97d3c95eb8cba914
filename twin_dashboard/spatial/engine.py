"""Interfaces the dashboard expects from a 3D viewer engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Tuple

Vector3 = Tuple[float, float, float]

CAMERA_CHANGED = "camera_changed"
OBJECT_CLICKED = "object_clicked"

MARKER_EXTENSION = "markers"
LEVELS_EXTENSION = "levels"


class ExtensionLoadError(RuntimeError):
    """Raised when an engine extension is unavailable."""


@dataclass(frozen=True)
class CameraPose:
    """Camera eye position and look-at target in world coordinates."""

    position: Vector3
    target: Vector3


class MarkerLayer(Protocol):
    """Sprite markers placed in world space by an engine extension."""

    def add_marker(self, object_id: int, position: Vector3, icon: str, size: int) -> None:
        ...

    def set_marker_icon(self, object_id: int, icon: str) -> None:
        ...

    def set_visible(self, visible: bool) -> None:
        ...


class ViewerEngine(Protocol):
    """Minimal 3D viewer surface used by the anchor synchronizer.

    ``OBJECT_CLICKED`` listeners receive the clicked object id, or ``None``
    when the click hit empty space. ``CAMERA_CHANGED`` listeners take no
    arguments.
    """

    def load_model(
        self,
        model_urn: str,
        on_loaded: Callable[[], None],
        on_error: Optional[Callable[[str], None]] = None,
    ) -> None:
        ...

    def load_extension(self, name: str):
        """Return the extension object or raise :class:`ExtensionLoadError`."""
        ...

    def add_listener(self, event: str, callback: Callable[..., None]) -> None:
        ...

    def remove_listener(self, event: str, callback: Callable[..., None]) -> None:
        ...

    def world_to_screen(self, point: Vector3) -> Tuple[float, float]:
        ...

    def get_camera(self) -> CameraPose:
        ...

    def set_camera(self, pose: CameraPose) -> None:
        ...

    def fit_to_view(self) -> None:
        ...

    def object_bounds(self, object_id: int) -> Optional[Tuple[Vector3, Vector3]]:
        ...

    def invalidate(self) -> None:
        ...
