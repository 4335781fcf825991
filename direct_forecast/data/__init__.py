"""Lagged design matrices for direct forecasting."""
from direct_forecast.data.lagged import (
    LaggedTable,
    LagMatrixBuilder,
    create_lagged_df,
    lag_column_name,
)

__all__ = [
    "LaggedTable",
    "LagMatrixBuilder",
    "create_lagged_df",
    "lag_column_name",
]
