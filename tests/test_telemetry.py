from datetime import datetime, timedelta, timezone
from pathlib import Path

from twin_dashboard.telemetry import (
    Reading,
    TelemetryLogger,
    TelemetrySnapshot,
    is_stale,
    parse_reading,
    parse_timestamp,
)
from twin_dashboard.telemetry.series import sort_newest_first

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_parse_reading_maps_feed_fields():
    reading = parse_reading(
        {"temp": 72.5, "humidity": "40", "pressure": 1013, "lastUpdated": "2024-01-01T00:00:00Z"}
    )
    assert reading.temperature == 72.5
    assert reading.humidity == 40.0
    assert reading.pressure == 1013.0
    assert reading.timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_parse_reading_filters_non_numeric_values():
    reading = parse_reading({"temp": "n/a", "humidity": None, "pressure": True, "lastUpdated": "garbage"})
    assert reading == Reading()


def test_parse_timestamp_accepts_epoch_seconds_and_millis():
    assert parse_timestamp(1704067200) == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp(1704067200000) == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("1704067200") == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("2024-01-01T05:00:00+05:00") == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_staleness_boundaries():
    def reading_aged(ms: int) -> Reading:
        return Reading(temperature=70.0, timestamp=NOW - timedelta(milliseconds=ms))

    assert is_stale(reading_aged(301_000), now=NOW)
    assert not is_stale(reading_aged(299_000), now=NOW)
    # exactly at the threshold still counts as fresh
    assert not is_stale(reading_aged(300_000), now=NOW)
    assert is_stale(None, now=NOW)
    assert is_stale(Reading(temperature=70.0), now=NOW)


def test_sort_newest_first_puts_undated_last():
    old = Reading(temperature=1.0, timestamp=NOW - timedelta(hours=2))
    new = Reading(temperature=2.0, timestamp=NOW)
    undated = Reading(temperature=3.0)
    assert sort_newest_first([old, undated, new]) == (new, old, undated)


def test_telemetry_logger(tmp_path: Path):
    log_path = tmp_path / "log.csv"
    logger = TelemetryLogger(log_path)
    with logger:
        logger.log(Reading(temperature=72.5, humidity=None, pressure=1013.0, timestamp=NOW))
        logger.log_many(
            [
                Reading(temperature=70.0, humidity=41.0, pressure=1012.0, timestamp=NOW),
                Reading(temperature=None, humidity=42.0, pressure=None, timestamp=None),
            ]
        )

    text = log_path.read_text().strip().splitlines()
    assert text[0] == "timestamp,temperature,humidity,pressure"
    assert text[1].startswith("2024-01-01T12:00:00+00:00,72.50,,1013.0")
    assert text[-1].split(",")[0] == ""


def test_record_snapshot_skips_repeated_current(tmp_path: Path):
    log_path = tmp_path / "session.csv"
    current = Reading(temperature=72.5, timestamp=NOW)
    with TelemetryLogger(log_path) as logger:
        logger.record_snapshot(TelemetrySnapshot(current=current, is_loading=False))
        logger.record_snapshot(TelemetrySnapshot(current=current, is_loading=False))
        logger.record_snapshot(TelemetrySnapshot(current=None, is_loading=False))

    assert len(log_path.read_text().strip().splitlines()) == 2


def test_parse_timestamp_rejects_non_ascii_digits():
    assert parse_timestamp("²") is None
    assert parse_timestamp(float("nan")) is None
    assert parse_timestamp(10**400) is None
    reading = parse_reading({"temp": 70, "lastUpdated": "²"})
    assert reading.temperature == 70.0
    assert reading.timestamp is None


def test_parse_timestamp_accepts_seven_digit_fractions():
    parsed = parse_timestamp("2024-01-01T00:00:00.1234567Z")
    assert parsed == datetime(2024, 1, 1, 0, 0, 0, 123456, tzinfo=timezone.utc)
    assert parse_timestamp("2024-01-01T00:00:00.5Z") == datetime(2024, 1, 1, 0, 0, 0, 500000, tzinfo=timezone.utc)
