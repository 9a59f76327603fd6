"""Configuration module for Telemetry Archive."""
from pydantic import ValidationError

from .loader import load_config
from .schemas import ENV_VARS, TelemetryConfig

__all__ = [
    "ENV_VARS",
    "TelemetryConfig",
    "ValidationError",
    "load_config",
]
