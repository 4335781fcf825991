"""Error and hyperparameter summaries of direct forecasting runs."""
from direct_forecast.evaluation.metrics import (
    METRICS,
    compute_metric,
    compute_metrics,
    pointwise_error,
)
from direct_forecast.evaluation.errors import ErrorAggregator, ErrorResult
from direct_forecast.evaluation.hyperparameters import (
    HyperparameterCollector,
    HyperparameterResult,
)

__all__ = [
    # Metrics
    "METRICS",
    "compute_metric",
    "compute_metrics",
    "pointwise_error",
    # Errors
    "ErrorAggregator",
    "ErrorResult",
    # Hyperparameters
    "HyperparameterCollector",
    "HyperparameterResult",
]
