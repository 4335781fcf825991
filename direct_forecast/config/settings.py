"""Configuration dataclasses for lagging, outer-loop windows and full runs."""
from __future__ import annotations

import operator
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from direct_forecast.exceptions import ConfigurationError

LAGGED_TABLE_TYPES = ("train", "forecast")
SUPPORTED_METRICS = ("mae", "mape", "smape", "rmse", "mdape")
DEFAULT_METRICS = ("mae", "mape", "smape")


def normalize_offsets(values: Iterable[Any], name: str) -> tuple[int, ...]:
    """Sort and de-duplicate a collection of positive integer offsets."""
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        raise ConfigurationError(f"{name} must be a collection of integers, got {values!r}")

    offsets = []
    for value in values:
        # bool is an int subclass; True as a lag is always a mistake
        if isinstance(value, bool):
            raise ConfigurationError(f"{name} must contain integers, got {value!r}")
        try:
            value = operator.index(value)
        except TypeError:
            raise ConfigurationError(f"{name} must contain integers, got {value!r}") from None
        if value < 1:
            raise ConfigurationError(f"{name} must contain positive integers, got {value}")
        offsets.append(value)

    return tuple(sorted(set(offsets)))


@dataclass
class LagConfig:
    """
    Configuration for building lagged design matrices.

    Attributes:
        outcome_name: Name of the single outcome column
        horizons: Forecast horizons (steps ahead), one model per horizon
        lookback: Lags applied to every predictor, or a mapping of
            predictor name -> lags. Predictors absent from a mapping are unused.
        type: "train" keeps the outcome label, "forecast" builds future rows
        lag_outcome: Whether the outcome's own lags are predictors
        dynamic_features: Columns used unlagged (known in advance)

    Example:
        >>> config = LagConfig(outcome_name="sales", horizons=[1, 6, 12], lookback=range(1, 16))
        >>> config.max_lag
        15
    """
    outcome_name: str
    horizons: list[int]
    lookback: Any = field(default_factory=lambda: [1])
    type: str = "train"
    lag_outcome: bool = True
    dynamic_features: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate and normalize configuration values."""
        if not isinstance(self.outcome_name, str) or not self.outcome_name:
            raise ConfigurationError(f"outcome_name must be a non-empty string, got {self.outcome_name!r}")

        horizons = normalize_offsets(self.horizons if self.horizons is not None else (), "horizons")
        if not horizons:
            raise ConfigurationError("horizons cannot be empty")
        self.horizons = list(horizons)

        if isinstance(self.lookback, Mapping):
            if not self.lookback:
                raise ConfigurationError("lookback mapping cannot be empty")
            self.lookback = {
                name: normalize_offsets(lags, f"lookback[{name!r}]")
                for name, lags in self.lookback.items()
            }
            if not any(self.lookback.values()):
                raise ConfigurationError("lookback mapping has no lags")
        else:
            self.lookback = normalize_offsets(self.lookback, "lookback")
            if not self.lookback:
                raise ConfigurationError("lookback cannot be empty")

        if self.type not in LAGGED_TABLE_TYPES:
            raise ConfigurationError(
                f"type must be one of {LAGGED_TABLE_TYPES}, got '{self.type}'"
            )

        self.dynamic_features = list(self.dynamic_features or [])
        if self.outcome_name in self.dynamic_features:
            raise ConfigurationError(
                f"outcome '{self.outcome_name}' cannot also be a dynamic feature"
            )

    @property
    def max_lag(self) -> int:
        if isinstance(self.lookback, dict):
            return max(max(lags) for lags in self.lookback.values() if lags)
        return max(self.lookback)

    def lags_for(self, predictor: str) -> tuple[int, ...]:
        """Requested lags for one predictor (empty if it is not lagged)."""
        if isinstance(self.lookback, dict):
            return tuple(self.lookback.get(predictor, ()))
        return tuple(self.lookback)

    def to_dict(self) -> dict[str, Any]:
        lookback = (
            {name: list(lags) for name, lags in self.lookback.items()}
            if isinstance(self.lookback, dict)
            else list(self.lookback)
        )
        return {
            "outcome_name": self.outcome_name,
            "horizons": list(self.horizons),
            "lookback": lookback,
            "type": self.type,
            "lag_outcome": self.lag_outcome,
            "dynamic_features": list(self.dynamic_features),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LagConfig":
        return cls(**data)


@dataclass
class WindowConfig:
    """
    Configuration for outer-loop validation windows.

    Attributes:
        window_length: Rows per held-out window (0 = no holdout, train on all)
        skip: Rows left between consecutive windows
        window_start: First row eligible for a window (default: row 0)
        window_stop: Exclusive upper bound on window rows (default: row count)
        include_partial_window: Keep a trailing window shorter than window_length
    """
    window_length: int = 12
    skip: int = 0
    window_start: int | None = None
    window_stop: int | None = None
    include_partial_window: bool = True

    def __post_init__(self) -> None:
        if self.window_length < 0:
            raise ConfigurationError(f"window_length must be >= 0, got {self.window_length}")
        if self.skip < 0:
            raise ConfigurationError(f"skip must be >= 0, got {self.skip}")
        if self.window_start is not None and self.window_start < 0:
            raise ConfigurationError(f"window_start must be >= 0, got {self.window_start}")
        if (
            self.window_start is not None
            and self.window_stop is not None
            and self.window_start >= self.window_stop
        ):
            raise ConfigurationError(
                f"window_start ({self.window_start}) must be < window_stop ({self.window_stop})"
            )

    @property
    def is_null(self) -> bool:
        return self.window_length == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_length": self.window_length,
            "skip": self.skip,
            "window_start": self.window_start,
            "window_stop": self.window_stop,
            "include_partial_window": self.include_partial_window,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WindowConfig":
        return cls(**data)


@dataclass
class ForecastConfig:
    """Settings for one end-to-end nested cross-validation run."""
    lags: LagConfig
    windows: WindowConfig = field(default_factory=WindowConfig)
    metrics: list[str] = field(default_factory=lambda: list(DEFAULT_METRICS))
    n_jobs: int = 1
    keep_models: bool = True
    show_progress: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.lags, dict):
            self.lags = LagConfig.from_dict(self.lags)
        if isinstance(self.windows, dict):
            self.windows = WindowConfig.from_dict(self.windows)
        if self.lags.type != "train":
            raise ConfigurationError("ForecastConfig.lags must describe a 'train' table")
        self.metrics = validate_metrics(self.metrics)
        if self.n_jobs < 1:
            raise ConfigurationError(f"n_jobs must be >= 1, got {self.n_jobs}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "lags": self.lags.to_dict(),
            "windows": self.windows.to_dict(),
            "metrics": list(self.metrics),
            "n_jobs": self.n_jobs,
            "keep_models": self.keep_models,
            "show_progress": self.show_progress,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ForecastConfig":
        return cls(**data)


def validate_metrics(metrics: Iterable[str]) -> list[str]:
    """Check metric names against SUPPORTED_METRICS, preserving order."""
    if isinstance(metrics, str):
        metrics = [metrics]
    metrics = list(dict.fromkeys(m.lower() for m in metrics))
    if not metrics:
        raise ConfigurationError("At least one error metric is required")
    unknown = [m for m in metrics if m not in SUPPORTED_METRICS]
    if unknown:
        raise ConfigurationError(
            f"Unsupported metric(s) {unknown}. Supported: {list(SUPPORTED_METRICS)}"
        )
    return metrics


__all__ = [
    "DEFAULT_METRICS",
    "LAGGED_TABLE_TYPES",
    "SUPPORTED_METRICS",
    "ForecastConfig",
    "LagConfig",
    "WindowConfig",
    "normalize_offsets",
    "validate_metrics",
]
