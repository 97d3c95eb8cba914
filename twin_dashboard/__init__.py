"""Sensor telemetry dashboard anchored to a 3D building model."""

__all__ = ["charts", "gui", "io", "spatial", "telemetry"]
__version__ = "0.1.0"
