"""
direct_forecast: multi-horizon direct forecasting with nested time-series CV.

One model is trained per forecast horizon on lagged predictors, and every
model is evaluated over contiguous outer-loop validation windows.

Usage:
    from direct_forecast import (
        DirectForecastRunner,
        ForecastConfig,
        LagConfig,
        SklearnRegressorModel,
        WindowConfig,
    )

    config = ForecastConfig(
        lags=LagConfig(outcome_name="sales", horizons=[1, 6, 12], lookback=range(1, 16)),
        windows=WindowConfig(window_length=12),
    )
    result = DirectForecastRunner(config).run(series, SklearnRegressorModel("ridge", Ridge()))
    result.errors.error_by_horizon
    result.forecast(series)
"""
from direct_forecast.exceptions import (
    CellError,
    ConfigurationError,
    DataAlignmentError,
    DirectForecastError,
    GridTrainingError,
    ModelTrainingError,
    PredictionError,
    SchemaMismatchError,
)
from direct_forecast.config import (
    ForecastConfig,
    LagConfig,
    WindowConfig,
    load_forecast_config,
)
from direct_forecast.data import LaggedTable, LagMatrixBuilder, create_lagged_df
from direct_forecast.models import ForecastModel, FunctionModel, SklearnRegressorModel
from direct_forecast.cross_validation import (
    CellKey,
    GridResult,
    PredictionAssembler,
    PredictionResult,
    TrainingGrid,
    Window,
    WindowPartitioner,
    combine_forecasts,
    create_windows,
)
from direct_forecast.evaluation import (
    ErrorAggregator,
    ErrorResult,
    HyperparameterCollector,
    HyperparameterResult,
)
from direct_forecast.runner import DirectForecastRunner, RunResult

__version__ = "0.1.0"

__all__ = [
    # Exceptions
    "DirectForecastError",
    "ConfigurationError",
    "DataAlignmentError",
    "CellError",
    "ModelTrainingError",
    "PredictionError",
    "SchemaMismatchError",
    "GridTrainingError",
    # Config
    "ForecastConfig",
    "LagConfig",
    "WindowConfig",
    "load_forecast_config",
    # Lagged tables
    "LaggedTable",
    "LagMatrixBuilder",
    "create_lagged_df",
    # Models
    "ForecastModel",
    "FunctionModel",
    "SklearnRegressorModel",
    # Cross-validation
    "Window",
    "WindowPartitioner",
    "create_windows",
    "CellKey",
    "GridResult",
    "TrainingGrid",
    "PredictionAssembler",
    "PredictionResult",
    "combine_forecasts",
    # Evaluation
    "ErrorAggregator",
    "ErrorResult",
    "HyperparameterCollector",
    "HyperparameterResult",
    # Runner
    "DirectForecastRunner",
    "RunResult",
]
