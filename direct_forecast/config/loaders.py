"""YAML configuration loading functions."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from direct_forecast.exceptions import ConfigurationError

from .settings import ForecastConfig

logger = logging.getLogger(__name__)


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Dictionary with configuration values (empty for an empty file)

    Raises:
        ConfigurationError: If the file is missing, unreadable or not a mapping
    """
    path = Path(path)

    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {path.absolute()}\n"
            f"Suggestion: Check that the file exists and the path is correct."
        )

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration from {path.absolute()}\n"
            f"Error: {e}\n"
            f"Suggestion: Check that the file contains valid YAML syntax."
        ) from e

    if config is None:
        logger.warning(f"Empty config file: {path}")
        return {}

    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Expected a mapping at the top of {path.absolute()}, got {type(config).__name__}"
        )

    logger.debug(f"Loaded config from {path}: {len(config)} keys")
    return config


def load_forecast_config(
    path: str | Path,
    overrides: dict[str, Any] | None = None,
) -> ForecastConfig:
    """
    Build a ForecastConfig from YAML, with optional top-level overrides.

    Expected layout::

        lags:
          outcome_name: sales
          horizons: [1, 3, 6]
          lookback: [1, 2, 3, 6, 12]
        windows:
          window_length: 12
        metrics: [mae, smape]
        n_jobs: 4

    Args:
        path: Path to YAML file
        overrides: Keys replacing top-level values from the file

    Returns:
        Validated ForecastConfig
    """
    raw = load_yaml_config(path)
    if overrides:
        raw = {**raw, **overrides}

    if "lags" not in raw:
        raise ConfigurationError(
            f"Missing 'lags' section in {Path(path).absolute()}\n"
            f"Suggestion: Add outcome_name, horizons and lookback under 'lags'."
        )

    try:
        return ForecastConfig.from_dict(raw)
    except TypeError as e:
        raise ConfigurationError(f"Invalid forecast configuration in {path}: {e}") from e


def save_forecast_config(config: ForecastConfig, path: str | Path) -> Path:
    """Write a ForecastConfig to YAML."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)
    logger.debug(f"Saved forecast config to {path}")
    return path


__all__ = [
    "load_yaml_config",
    "load_forecast_config",
    "save_forecast_config",
]
