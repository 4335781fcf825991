"""
Shared fixtures for direct forecasting tests.

Provides:
- Deterministic and random-walk series
- A mean-level FunctionModel (trivial, inspectable fitted handles)
- Helpers to recover a cell's horizon from its training columns
"""
from typing import Any, Dict

import numpy as np
import pandas as pd
import pytest

from direct_forecast.cross_validation import create_windows
from direct_forecast.data import create_lagged_df
from direct_forecast.models import FunctionModel


# =============================================================================
# SERIES FIXTURES
# =============================================================================

@pytest.fixture
def ramp_series() -> pd.DataFrame:
    """24-row series where y[t] == t, so lagged values are easy to check."""
    return pd.DataFrame({"y": np.arange(24, dtype=float)})


@pytest.fixture
def two_column_series() -> pd.DataFrame:
    """40-row series with outcome y and predictor x = 100 + t."""
    t = np.arange(40, dtype=float)
    return pd.DataFrame({"y": t, "x": 100.0 + t})


@pytest.fixture
def random_walk_series() -> pd.DataFrame:
    """
    Random-walk outcome with one exogenous predictor.

    Returns DataFrame (120, 2) with a DatetimeIndex (monthly), which the
    builder must ignore in favour of row positions.
    """
    np.random.seed(42)
    n_samples = 120
    dates = pd.date_range("2015-01-01", periods=n_samples, freq="MS")
    x = np.random.randn(n_samples).cumsum()
    y = 50.0 + 0.5 * x + np.random.randn(n_samples).cumsum()
    return pd.DataFrame({"y": y, "x": x}, index=dates)


# =============================================================================
# MODEL FIXTURES
# =============================================================================

def train_mean(data: pd.DataFrame, outcome_column_index: int) -> float:
    return float(data.iloc[:, outcome_column_index].mean())


def predict_mean(model: float, features: pd.DataFrame) -> np.ndarray:
    return np.full(len(features), model)


def hyper_mean(model: float) -> Dict[str, Any]:
    return {"level": model}


@pytest.fixture
def mean_model() -> FunctionModel:
    """Predicts the training-set mean of the outcome."""
    return FunctionModel("mean", train_mean, predict_mean, hyper_mean)


def cell_horizon(data: pd.DataFrame) -> int:
    """
    Horizon of the table a training frame came from.

    Valid when the lookback contains every lag from 1 upward: the smallest
    surviving lag then equals the horizon.
    """
    lags = [int(c.rsplit("_lag", 1)[1]) for c in data.columns if "_lag" in c]
    return min(lags)


@pytest.fixture
def horizon_of():
    """The cell_horizon helper, for use inside test closures."""
    return cell_horizon


# =============================================================================
# 60-ROW TABLE AND WINDOW FIXTURES (shared by cross_validation and evaluation)
# =============================================================================

@pytest.fixture
def series_60() -> pd.DataFrame:
    np.random.seed(7)
    return pd.DataFrame({"y": 10.0 + np.random.randn(60).cumsum()})


@pytest.fixture
def tables_60(series_60):
    """Train tables: rows 4..59 for every horizon."""
    return create_lagged_df(series_60, "y", horizons=[1, 2, 3], lookback=[1, 2, 3, 4])


@pytest.fixture
def windows_60():
    """[0,10), [10,20), ..., [50,60)."""
    return create_windows(60, window_length=10)
