"""Exception types raised by the telemetry archive core.

Database failures surface as ``duckdb.Error`` and query argument problems as
``ValueError``; the types below cover the rest.
"""


class TelemetryArchiveError(Exception):
    """Base exception for telemetry archive failures."""


class SourceFileError(TelemetryArchiveError):
    """Raised when a producer JSON file cannot be read or normalized.

    The ingestion pipeline catches this per file, so one bad file never
    blocks the rest of its family.
    """

    def __init__(self, path: object, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ConfigurationError(TelemetryArchiveError, ValueError):
    """Raised for invalid or missing runtime configuration."""
