"""
Run configuration - dataclasses and YAML loading.

Precedence: explicit overrides > YAML file > dataclass defaults
"""
from .settings import (
    DEFAULT_METRICS,
    LAGGED_TABLE_TYPES,
    SUPPORTED_METRICS,
    ForecastConfig,
    LagConfig,
    WindowConfig,
    normalize_offsets,
    validate_metrics,
)
from .loaders import load_forecast_config, load_yaml_config, save_forecast_config

__all__ = [
    # Constants
    "DEFAULT_METRICS", "LAGGED_TABLE_TYPES", "SUPPORTED_METRICS",
    # Dataclasses
    "ForecastConfig", "LagConfig", "WindowConfig",
    # Validation
    "normalize_offsets", "validate_metrics",
    # Loaders
    "load_yaml_config", "load_forecast_config", "save_forecast_config",
]
