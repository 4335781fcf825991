"""
Model ports for direct forecasting grids.

Any learning algorithm plugs in through ForecastModel: a training port, a
prediction port and an optional hyperparameter-extraction port.
"""
from .base import ForecastModel, FunctionModel, split_outcome
from .sklearn_model import SklearnRegressorModel

__all__ = [
    "ForecastModel",
    "FunctionModel",
    "SklearnRegressorModel",
    "split_outcome",
]
