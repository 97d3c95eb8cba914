import logging
import os
from dataclasses import dataclass, field
from datetime import tzinfo
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

PROJECT_MARKERS: Iterable[str] = (".git", "pyproject.toml", "config")
DEFAULT_SETTINGS_PATH = Path("config/settings.yml")

PathLike = Union[str, os.PathLike]


class SettingsError(RuntimeError):
    """Raised when the settings file is missing keys or holds invalid values."""


def find_project_root(markers: Iterable[str] = PROJECT_MARKERS) -> Path:
    """Attempt to locate the repository root by walking up until a marker file/dir appears."""
    start = Path(__file__).resolve().parent
    for candidate in [start] + list(start.parents):
        for marker in markers:
            if (candidate / marker).exists():
                return candidate
    return start


def _resolve(path: PathLike, project_root: Path) -> Path:
    target = Path(path)
    if not target.is_absolute():
        target = project_root / target
    return target


def _load_yaml(target: Path) -> Dict[str, Any]:
    if not target.exists():
        raise FileNotFoundError(f"settings file not found: {target}")
    with open(target, "r", encoding="utf-8") as handle:
        try:
            return yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise SettingsError(f"Invalid YAML in settings file {target}: {exc}") from exc


def load_settings(path: Optional[PathLike] = None) -> Dict[str, Any]:
    """Load the YAML settings file, defaulting to ``config/settings.yml`` under the project root."""
    project_root = find_project_root()
    target = _resolve(path or DEFAULT_SETTINGS_PATH, project_root)
    return _load_yaml(target)


@dataclass
class EndpointSettings:
    token_url: str
    telemetry_url: str
    timeout_s: float = 10.0


@dataclass
class AnchorSettings:
    object_id: int
    position: Tuple[float, float, float]
    lift: float = 1.5


@dataclass
class MarkerSettings:
    frames: List[str] = field(default_factory=lambda: ["sprites/thermostat.svg", "sprites/thermostat_red.svg"])
    size: int = 48
    frame_period_ms: int = 500


@dataclass
class ViewerSettings:
    model_urn: str
    anchor: AnchorSettings
    marker: MarkerSettings = field(default_factory=MarkerSettings)
    initial_zoom: float = 0.8
    focus_distance_factor: float = 30.0


@dataclass
class DisplaySettings:
    timezone: Optional[str] = None
    history_rows: int = 10
    sparkline_samples: int = 20
    chart_width: float = 600.0
    chart_height: float = 240.0

    def tzinfo(self) -> Optional[tzinfo]:
        """Zone used for day buckets and clock labels; None means the machine's local zone."""
        if not self.timezone:
            return None
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError as exc:
            raise SettingsError(f"Unknown display timezone '{self.timezone}'") from exc


@dataclass
class ReportSettings:
    title: str = "HISTORICAL ANALYSIS"
    url: Optional[str] = None


@dataclass
class DashboardSettings:
    device_name: str
    endpoints: EndpointSettings
    viewer: ViewerSettings
    poll_interval_ms: int = 30_000
    stale_after_ms: int = 300_000
    display: DisplaySettings = field(default_factory=DisplaySettings)
    report: ReportSettings = field(default_factory=ReportSettings)
    log_level: str = "INFO"


def _require_keys(obj: Any, keys: Sequence[str], context: str) -> None:
    if not isinstance(obj, dict):
        raise SettingsError(f"{context} must be a mapping")
    for key in keys:
        if key not in obj:
            raise SettingsError(f"Missing required key '{key}' in {context}")


def _vector3(value: Any, context: str) -> Tuple[float, float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise SettingsError(f"{context} must be a list of three numbers")
    try:
        x, y, z = (float(v) for v in value)
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"{context} must be a list of three numbers") from exc
    return (x, y, z)


def parse_dashboard_settings(data: Dict[str, Any]) -> DashboardSettings:
    """Build typed settings from the raw YAML mapping."""
    _require_keys(data, ["device", "endpoints", "viewer"], "settings")
    device = data["device"]
    endpoints = data["endpoints"]
    viewer = data["viewer"]
    _require_keys(device, ["name"], "device")
    _require_keys(endpoints, ["token_url", "telemetry_url"], "endpoints")
    _require_keys(viewer, ["model_urn", "anchor"], "viewer")
    anchor = viewer["anchor"]
    _require_keys(anchor, ["object_id", "position"], "viewer.anchor")

    marker_raw = viewer.get("marker", {}) or {}
    marker = MarkerSettings(
        frames=list(marker_raw.get("frames", MarkerSettings().frames)),
        size=int(marker_raw.get("size", 48)),
        frame_period_ms=int(marker_raw.get("frame_period_ms", 500)),
    )
    if not marker.frames:
        raise SettingsError("viewer.marker.frames must list at least one icon")

    polling = data.get("polling", {}) or {}
    display_raw = data.get("display", {}) or {}
    chart_raw = display_raw.get("chart", {}) or {}
    report_raw = data.get("report", {}) or {}
    logging_raw = data.get("logging", {}) or {}

    log_level = str(logging_raw.get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise SettingsError(f"Unknown logging level '{log_level}'")

    return DashboardSettings(
        device_name=str(device["name"]),
        endpoints=EndpointSettings(
            token_url=str(endpoints["token_url"]),
            telemetry_url=str(endpoints["telemetry_url"]),
            timeout_s=float(endpoints.get("timeout_s", 10.0)),
        ),
        viewer=ViewerSettings(
            model_urn=str(viewer["model_urn"]),
            anchor=AnchorSettings(
                object_id=int(anchor["object_id"]),
                position=_vector3(anchor["position"], "viewer.anchor.position"),
                lift=float(anchor.get("lift", 1.5)),
            ),
            marker=marker,
            initial_zoom=float(viewer.get("initial_zoom", 0.8)),
            focus_distance_factor=float(viewer.get("focus_distance_factor", 30.0)),
        ),
        poll_interval_ms=int(polling.get("interval_ms", 30_000)),
        stale_after_ms=int(polling.get("stale_after_ms", 300_000)),
        display=DisplaySettings(
            timezone=display_raw.get("timezone"),
            history_rows=int(display_raw.get("history_rows", 10)),
            sparkline_samples=int(display_raw.get("sparkline_samples", 20)),
            chart_width=float(chart_raw.get("width", 600.0)),
            chart_height=float(chart_raw.get("height", 240.0)),
        ),
        report=ReportSettings(
            title=str(report_raw.get("title", "HISTORICAL ANALYSIS")),
            url=report_raw.get("url"),
        ),
        log_level=log_level,
    )


def load_dashboard_settings(path: Optional[PathLike] = None) -> DashboardSettings:
    """Load ``config/settings.yml`` and validate it into :class:`DashboardSettings`."""
    return parse_dashboard_settings(load_settings(path))
