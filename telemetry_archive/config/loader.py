"""YAML configuration loader."""
from pathlib import Path

import yaml

from ..errors import ConfigurationError
from .schemas import TelemetryConfig


def load_config(config_path: str | Path) -> TelemetryConfig:
    """
    Load and validate telemetry configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated TelemetryConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigurationError: If config is empty or invalid (a ValueError)
        yaml.YAMLError: If YAML parsing fails
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config_dict = yaml.safe_load(f)

    if config_dict is None:
        raise ConfigurationError(f"Empty configuration file: {config_path}")

    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Configuration must be a mapping: {config_path}")

    # Validate and create config
    try:
        config = TelemetryConfig.from_dict(config_dict)
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    return config
