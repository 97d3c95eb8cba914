"""CSV recorder for telemetry readings seen during a dashboard session."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import IO, Iterable, List, Optional

from twin_dashboard.telemetry.series import Reading, TelemetrySnapshot

HEADER = ["timestamp", "temperature", "humidity", "pressure"]


def _cell(value: Optional[float], decimals: int) -> str:
    return "" if value is None else f"{value:.{decimals}f}"


def reading_row(reading: Reading) -> List[str]:
    stamp = "" if reading.timestamp is None else reading.timestamp.isoformat()
    return [
        stamp,
        _cell(reading.temperature, 2),
        _cell(reading.humidity, 2),
        _cell(reading.pressure, 1),
    ]


class TelemetryLogger:
    """Appends readings to a CSV file, one row per new reading.

    The file is opened lazily on the first write and flushed after every row
    so a crashed session still leaves a usable log.
    """

    def __init__(self, path: Path, write_header: bool = True) -> None:
        self.path = Path(path)
        self._write_header = write_header
        self._handle: Optional[IO[str]] = None
        self._writer = None
        self._last_logged: Optional[Reading] = None

    def __enter__(self) -> "TelemetryLogger":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def open(self) -> None:
        if self.is_open:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fresh = not self.path.exists() or self.path.stat().st_size == 0
        self._handle = self.path.open("a", newline="", encoding="utf-8")
        self._writer = csv.writer(self._handle)
        if self._write_header and fresh:
            self._writer.writerow(HEADER)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
        self._handle = None
        self._writer = None

    def log(self, reading: Reading) -> None:
        if not self.is_open:
            self.open()
        self._writer.writerow(reading_row(reading))
        self._handle.flush()
        self._last_logged = reading

    def log_many(self, readings: Iterable[Reading]) -> None:
        for reading in readings:
            self.log(reading)

    def record_snapshot(self, snapshot: TelemetrySnapshot) -> None:
        """Poller subscriber: log the current reading unless it is a repeat."""
        reading = snapshot.current
        if reading is None or reading == self._last_logged:
            return
        self.log(reading)
