"""
ForecastModel interface: the three ports the grid calls into.

The core never inspects a fitted model. It only hands it back to the same
ForecastModel's `predict` and `extract_hyperparameters`. A model variant is
therefore either a ForecastModel subclass or a FunctionModel wrapping three
plain callables.

Example:
    >>> def train(data, outcome_column_index):
    ...     y = data.iloc[:, outcome_column_index]
    ...     return float(y.mean())
    ...
    >>> def predict(model, features):
    ...     return np.full(len(features), model)
    ...
    >>> mean_model = FunctionModel("mean", train, predict)
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

import pandas as pd

TrainFn = Callable[[pd.DataFrame, int], Any]
PredictFn = Callable[[Any, pd.DataFrame], Any]
HyperFn = Callable[[Any], Mapping[str, Any]]


class ForecastModel(ABC):
    """
    Abstract base class for model variants in a direct forecasting grid.

    Subclasses must implement:
        - train(): Fit on one cell's training rows and return a fitted handle
        - predict(): Predict from a fitted handle and feature rows

    Optionally override:
        - extract_hyperparameters(): Scalars describing a fitted handle
    """

    def __init__(self, name: str) -> None:
        if not name:
            raise ValueError("Model name cannot be empty")
        self.name = name

    @abstractmethod
    def train(self, data: pd.DataFrame, outcome_column_index: int) -> Any:
        """
        Fit one model.

        Args:
            data: Outcome column plus lagged feature columns for the training rows
            outcome_column_index: Position of the outcome column in `data`

        Returns:
            Opaque fitted model handle
        """
        pass

    @abstractmethod
    def predict(self, model: Any, features: pd.DataFrame) -> Any:
        """
        Predict with a fitted handle.

        Returns:
            One prediction per feature row: a 1-D array, a Series, or a
            single-column DataFrame
        """
        pass

    def extract_hyperparameters(self, model: Any) -> Mapping[str, Any]:
        """Scalar hyperparameters of a fitted handle (none by default)."""
        return {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name='{self.name}')"


class FunctionModel(ForecastModel):
    """ForecastModel built from plain training, prediction and extraction callables."""

    def __init__(
        self,
        name: str,
        train_fn: TrainFn,
        predict_fn: PredictFn,
        hyper_fn: HyperFn | None = None,
    ) -> None:
        super().__init__(name)
        self.train_fn = train_fn
        self.predict_fn = predict_fn
        self.hyper_fn = hyper_fn

    def train(self, data: pd.DataFrame, outcome_column_index: int) -> Any:
        return self.train_fn(data, outcome_column_index)

    def predict(self, model: Any, features: pd.DataFrame) -> Any:
        return self.predict_fn(model, features)

    def extract_hyperparameters(self, model: Any) -> Mapping[str, Any]:
        if self.hyper_fn is None:
            return {}
        return self.hyper_fn(model)


def split_outcome(data: pd.DataFrame, outcome_column_index: int) -> tuple[pd.DataFrame, pd.Series]:
    """Separate a training table into (features, outcome)."""
    outcome = data.iloc[:, outcome_column_index]
    features = data.drop(columns=data.columns[outcome_column_index])
    return features, outcome


__all__ = [
    "ForecastModel",
    "FunctionModel",
    "split_outcome",
    "TrainFn",
    "PredictFn",
    "HyperFn",
]
