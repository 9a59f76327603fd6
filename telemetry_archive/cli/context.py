"""Shared CLI state: configuration and the service container."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import typer
import yaml

from telemetry_archive.cli.output import log_error
from telemetry_archive.config import TelemetryConfig, load_config
from telemetry_archive.services import ServiceContainer


@dataclass
class CliState:
    config_path: Optional[Path] = None
    _config: Optional[TelemetryConfig] = field(default=None, repr=False)

    @property
    def config(self) -> TelemetryConfig:
        if self._config is None:
            self._config = self._load()
        return self._config

    def _load(self) -> TelemetryConfig:
        try:
            if self.config_path is not None:
                return load_config(self.config_path)
            return TelemetryConfig.from_env()
        except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
            log_error(f"Error loading configuration: {e}")
            raise typer.Exit(code=1)


def get_state(ctx: typer.Context) -> CliState:
    """Return the state set up by the root callback."""
    root = ctx.find_root()
    if not isinstance(root.obj, CliState):
        root.obj = CliState()
    return root.obj


def get_services(ctx: typer.Context) -> ServiceContainer:
    """Open a service container that is closed when the command ends."""
    services = ServiceContainer(get_state(ctx).config)
    ctx.call_on_close(services.close)
    return services
