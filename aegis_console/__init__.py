"""Aegis Console - live telemetry client for the Aegis monitoring backend."""

__version__ = "0.1.0"
