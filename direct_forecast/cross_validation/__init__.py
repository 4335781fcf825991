"""
Nested cross-validation for direct forecasting.

The outer loop holds out contiguous time blocks (windows); inner-loop
tuning, if any, lives inside the user's training closure.

Main components:
- WindowPartitioner: Contiguous outer-loop validation windows
- TrainingGrid: One model per (horizon, window) cell with partial-failure handling
- PredictionAssembler: Long-format held-out or forward predictions

Usage:
    from direct_forecast.cross_validation import (
        PredictionAssembler,
        TrainingGrid,
        create_windows,
    )

    windows = create_windows(len(series), window_length=12)
    grid = TrainingGrid(n_jobs=4).train(tables, windows, model)
    result = PredictionAssembler().predict(grid, tables)
"""
from direct_forecast.cross_validation.windows import (
    Window,
    WindowPartitioner,
    create_windows,
    windows_to_frame,
)
from direct_forecast.cross_validation.grid import CellKey, GridResult, TrainingGrid
from direct_forecast.cross_validation.predictions import (
    PredictionAssembler,
    PredictionResult,
    combine_forecasts,
    prediction_column,
)

__all__ = [
    # Windows
    "Window",
    "WindowPartitioner",
    "create_windows",
    "windows_to_frame",
    # Grid
    "CellKey",
    "GridResult",
    "TrainingGrid",
    # Predictions
    "PredictionAssembler",
    "PredictionResult",
    "combine_forecasts",
    "prediction_column",
]
