"""Graphical user interface components for the sensor dashboard."""

from __future__ import annotations

from .model import (
    SensorCard,
    ViewState,
    ViewStateController,
)

__all__ = [
    "SensorCard",
    "ViewState",
    "ViewStateController",
]
