"""Screen-space annotation of the 3D model."""

from .anchor import (
    AnchorPoint,
    FocusOptions,
    MarkerStyle,
    ScreenPoint,
    SpatialAnchorSynchronizer,
    focus_pose,
    zoom_pose,
)
from .engine import (
    CAMERA_CHANGED,
    OBJECT_CLICKED,
    CameraPose,
    ExtensionLoadError,
    MarkerLayer,
    ViewerEngine,
)

__all__ = [
    "AnchorPoint",
    "CAMERA_CHANGED",
    "CameraPose",
    "ExtensionLoadError",
    "FocusOptions",
    "MarkerLayer",
    "MarkerStyle",
    "OBJECT_CLICKED",
    "ScreenPoint",
    "SpatialAnchorSynchronizer",
    "ViewerEngine",
    "focus_pose",
    "zoom_pose",
]
