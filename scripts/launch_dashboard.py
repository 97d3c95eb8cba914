#!/usr/bin/env python3
"""Launch the sensor dashboard, against the live endpoints or with mock data."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from PySide6.QtWidgets import QApplication

from twin_dashboard.gui.main_window import run_gui
from twin_dashboard.gui.mock import MockTelemetrySession, build_demo_engine
from twin_dashboard.gui.timers import QtIntervalTimer
from twin_dashboard.gui.widgets import ViewerCanvas
from twin_dashboard.gui.workers import QtBackgroundRunner
from twin_dashboard.io import load_dashboard_settings
from twin_dashboard.telemetry import TelemetryLogger, TelemetryPoller, fetch_access_token


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Path to settings.yml (default: config/settings.yml under the project root).",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Serve telemetry and the viewer token from an in-process mock feed.",
    )
    parser.add_argument(
        "--failure-rate",
        type=float,
        default=0.0,
        help="Fraction of mock requests answered with HTTP 500 (default: 0).",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Telemetry poll interval in milliseconds (default: from settings).",
    )
    parser.add_argument(
        "--record",
        action="store_true",
        help="Record every new current reading to output/telemetry/*.csv.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: from settings).",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = load_dashboard_settings(args.settings)
    if args.interval is not None:
        settings.poll_interval_ms = args.interval
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QApplication(sys.argv)
    runner = QtBackgroundRunner()
    session = MockTelemetrySession(failure_rate=args.failure_rate) if args.mock else None
    poller = TelemetryPoller(
        settings.endpoints.telemetry_url,
        timer=QtIntervalTimer(),
        session=session,
        timeout_s=settings.endpoints.timeout_s,
        runner=runner,
    )

    logger: Optional[TelemetryLogger] = None
    if args.record:
        log_dir = Path("output/telemetry")
        log_dir.mkdir(parents=True, exist_ok=True)
        logger = TelemetryLogger(log_dir / f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv")
        poller.subscribe(logger.record_snapshot)

    def token_provider() -> Optional[str]:
        return fetch_access_token(
            settings.endpoints.token_url,
            session=session,
            timeout_s=settings.endpoints.timeout_s,
        )

    def viewer_factory(token: str):
        anchor = settings.viewer.anchor
        engine = build_demo_engine(anchor.object_id, anchor.position)
        return engine, ViewerCanvas(engine)

    try:
        run_gui(settings, poller, token_provider, viewer_factory, runner=runner)
    finally:
        if logger is not None:
            logger.close()


if __name__ == "__main__":
    main()
