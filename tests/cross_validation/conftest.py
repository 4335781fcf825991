"""
Shared fixtures for grid and prediction tests.

Provides (series_60, tables_60, windows_60 live in tests/conftest.py):
- The 168-cell grid (14 horizons x 12 windows)
"""
from typing import Any, Dict

import numpy as np
import pandas as pd
import pytest

from direct_forecast.cross_validation import create_windows
from direct_forecast.data import create_lagged_df


@pytest.fixture
def large_grid_inputs() -> Dict[str, Any]:
    """
    Inputs for a 14-horizon x 12-window grid.

    The series has 164 rows; lags 1..20 leave table rows 20..163, and the
    twelve 12-row windows tile exactly that range.
    """
    np.random.seed(42)
    series = pd.DataFrame({"y": 100.0 + np.random.randn(164).cumsum()})
    tables = create_lagged_df(series, "y", horizons=list(range(1, 15)), lookback=range(1, 21))
    windows = create_windows(len(series), window_length=12, window_start=20)
    return {"series": series, "tables": tables, "windows": windows}
