"""Telemetry Archive - durable position store and JSON log archival pipeline."""

__version__ = "0.1.0"
