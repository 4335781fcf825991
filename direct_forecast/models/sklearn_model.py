"""
Scikit-learn regressor adapter.

Clones the template estimator for every grid cell so cells never share a
fitted object. Categorical lag columns are not encoded here; pass numeric
series or wrap the estimator in a Pipeline that handles them.
"""
from __future__ import annotations

import logging
import numbers
from collections.abc import Mapping
from typing import Any

import numpy as np
import pandas as pd
from sklearn.base import RegressorMixin, clone

from .base import ForecastModel, split_outcome

logger = logging.getLogger(__name__)


class SklearnRegressorModel(ForecastModel):
    """
    ForecastModel around any scikit-learn regressor.

    Args:
        name: Model variant name used to tag predictions
        estimator: Unfitted regressor (cloned per cell)
        hyperparameters: get_params() keys to report. Defaults to every
            scalar parameter.

    Example:
        >>> from sklearn.linear_model import Ridge
        >>> model = SklearnRegressorModel("ridge", Ridge(alpha=1.0))
    """

    def __init__(
        self,
        name: str,
        estimator: RegressorMixin,
        hyperparameters: list[str] | None = None,
    ) -> None:
        super().__init__(name)
        if not hasattr(estimator, "fit") or not hasattr(estimator, "predict"):
            raise TypeError(f"estimator must implement fit/predict, got {type(estimator).__name__}")
        self.estimator = estimator
        self.hyperparameters = hyperparameters

    def train(self, data: pd.DataFrame, outcome_column_index: int) -> RegressorMixin:
        X, y = split_outcome(data, outcome_column_index)
        model = clone(self.estimator)
        model.fit(X.to_numpy(dtype=float), y.to_numpy(dtype=float))
        return model

    def predict(self, model: RegressorMixin, features: pd.DataFrame) -> np.ndarray:
        return np.asarray(model.predict(features.to_numpy(dtype=float)), dtype=float).ravel()

    def extract_hyperparameters(self, model: RegressorMixin) -> Mapping[str, Any]:
        params = model.get_params(deep=False)
        if self.hyperparameters is not None:
            return {name: params.get(name) for name in self.hyperparameters}
        return {
            name: value
            for name, value in params.items()
            if isinstance(value, (numbers.Number, str, bool)) or value is None
        }


__all__ = ["SklearnRegressorModel"]
