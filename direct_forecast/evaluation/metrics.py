"""
Forecast error metrics.

Pointwise errors are computed first and then summarized per group. A
pointwise value whose denominator is zero (mape/mdape when actual == 0,
smape when actual and predicted are both 0) is undefined: it becomes NaN and
is left out of the group summary instead of counting as zero or poisoning
the mean. Missing actuals or predictions are excluded the same way.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np


def absolute_error(actual: np.ndarray, predicted: np.ndarray) -> np.ndarray:
    return np.abs(actual - predicted)


def absolute_percentage_error(actual: np.ndarray, predicted: np.ndarray) -> np.ndarray:
    """|a - p| / |a| * 100, NaN where actual == 0."""
    denominator = np.abs(actual)
    with np.errstate(divide="ignore", invalid="ignore"):
        values = np.abs(actual - predicted) / denominator * 100.0
    return np.where(denominator == 0, np.nan, values)


def symmetric_absolute_percentage_error(actual: np.ndarray, predicted: np.ndarray) -> np.ndarray:
    """2|a - p| / (|a| + |p|) * 100, NaN where both are 0."""
    denominator = np.abs(actual) + np.abs(predicted)
    with np.errstate(divide="ignore", invalid="ignore"):
        values = 2.0 * np.abs(actual - predicted) / denominator * 100.0
    return np.where(denominator == 0, np.nan, values)


def squared_error(actual: np.ndarray, predicted: np.ndarray) -> np.ndarray:
    return (actual - predicted) ** 2


def _defined(values: np.ndarray) -> np.ndarray:
    return values[~np.isnan(values)]


def _mean(values: np.ndarray) -> float:
    values = _defined(values)
    return float(values.mean()) if len(values) else float("nan")


def _median(values: np.ndarray) -> float:
    values = _defined(values)
    return float(np.median(values)) if len(values) else float("nan")


def _root_mean(values: np.ndarray) -> float:
    mean = _mean(values)
    return float(np.sqrt(mean)) if not np.isnan(mean) else float("nan")


# metric name -> (pointwise error, summary over defined values)
METRICS: dict[str, tuple[Callable[[np.ndarray, np.ndarray], np.ndarray], Callable[[np.ndarray], float]]] = {
    "mae": (absolute_error, _mean),
    "mape": (absolute_percentage_error, _mean),
    "smape": (symmetric_absolute_percentage_error, _mean),
    "rmse": (squared_error, _root_mean),
    "mdape": (absolute_percentage_error, _median),
}


def pointwise_error(metric: str, actual: np.ndarray, predicted: np.ndarray) -> np.ndarray:
    """Per-row error values (NaN where undefined)."""
    error_fn, _ = METRICS[metric]
    return error_fn(np.asarray(actual, dtype=float), np.asarray(predicted, dtype=float))


def compute_metric(metric: str, actual: np.ndarray, predicted: np.ndarray) -> float:
    """
    Summarize one metric over a group of rows.

    Returns:
        Metric value, or NaN if no row has a defined pointwise value
    """
    _, summary_fn = METRICS[metric]
    return summary_fn(pointwise_error(metric, actual, predicted))


def compute_metrics(
    metrics: list[str],
    actual: np.ndarray,
    predicted: np.ndarray,
) -> dict[str, float]:
    return {metric: compute_metric(metric, actual, predicted) for metric in metrics}


__all__ = [
    "METRICS",
    "absolute_error",
    "absolute_percentage_error",
    "symmetric_absolute_percentage_error",
    "squared_error",
    "pointwise_error",
    "compute_metric",
    "compute_metrics",
]
