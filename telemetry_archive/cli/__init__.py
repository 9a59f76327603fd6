"""CLI for Telemetry Archive."""
