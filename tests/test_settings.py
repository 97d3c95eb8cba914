from pathlib import Path

import pytest
import yaml

from twin_dashboard.io import (
    SettingsError,
    load_dashboard_settings,
    load_settings,
    parse_dashboard_settings,
)

MINIMAL = {
    "device": {"name": "MXCHIP-TEST"},
    "endpoints": {"token_url": "https://example.test/token", "telemetry_url": "https://example.test/telemetry"},
    "viewer": {"model_urn": "urn:house", "anchor": {"object_id": 7, "position": [1, 2, 3]}},
}


def test_default_settings_structure():
    data = load_settings()
    assert "device" in data
    assert "endpoints" in data and "telemetry_url" in data["endpoints"]
    assert "viewer" in data and len(data["viewer"]["anchor"]["position"]) == 3
    assert "polling" in data


def test_default_settings_parse():
    settings = load_dashboard_settings()
    assert settings.device_name == "MXCHIP-NELSON"
    assert settings.poll_interval_ms == 30_000
    assert settings.stale_after_ms == 300_000
    assert settings.viewer.anchor.object_id == 5685
    assert settings.viewer.anchor.position == pytest.approx((-16.870, -27.031, -1.257))
    assert len(settings.viewer.marker.frames) == 2
    assert settings.display.tzinfo() is None


def test_minimal_settings_fill_defaults():
    settings = parse_dashboard_settings(MINIMAL)
    assert settings.endpoints.timeout_s == 10.0
    assert settings.viewer.anchor.lift == 1.5
    assert settings.viewer.initial_zoom == 0.8
    assert settings.display.history_rows == 10
    assert settings.log_level == "INFO"


def test_missing_key_is_reported():
    broken = {**MINIMAL, "endpoints": {"token_url": "https://example.test/token"}}
    with pytest.raises(SettingsError, match="telemetry_url"):
        parse_dashboard_settings(broken)


def test_anchor_position_must_be_three_numbers():
    broken = {**MINIMAL, "viewer": {"model_urn": "urn:house", "anchor": {"object_id": 7, "position": [1, "x", 3]}}}
    with pytest.raises(SettingsError):
        parse_dashboard_settings(broken)


def test_unknown_timezone_and_log_level():
    settings = parse_dashboard_settings({**MINIMAL, "display": {"timezone": "Not/AZone"}})
    with pytest.raises(SettingsError):
        settings.display.tzinfo()

    with pytest.raises(SettingsError):
        parse_dashboard_settings({**MINIMAL, "logging": {"level": "chatty"}})


def test_load_from_explicit_path(tmp_path: Path):
    settings_path = tmp_path / "settings.yml"
    settings_path.write_text(yaml.safe_dump({**MINIMAL, "display": {"timezone": "UTC", "chart": {"width": 300}}}))

    settings = load_dashboard_settings(settings_path)

    assert settings.device_name == "MXCHIP-TEST"
    assert settings.display.chart_width == 300.0
    assert settings.display.tzinfo() is not None


def test_invalid_yaml_raises_settings_error(tmp_path: Path):
    settings_path = tmp_path / "settings.yml"
    settings_path.write_text("device: [unclosed\n")
    with pytest.raises(SettingsError):
        load_settings(settings_path)
