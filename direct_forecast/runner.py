"""
End-to-end nested cross-validation run.

Chains the stages for one or more model variants:

    series -> lagged tables -> windows -> training grid -> predictions
           -> errors + hyperparameters

and keeps the fitted models (unless keep_models=False) so the same grid can
produce forward forecasts afterwards.
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any

import pandas as pd

from direct_forecast.config.settings import ForecastConfig
from direct_forecast.cross_validation.grid import GridResult, TrainingGrid
from direct_forecast.cross_validation.predictions import PredictionAssembler, PredictionResult
from direct_forecast.cross_validation.windows import Window, WindowPartitioner
from direct_forecast.data.lagged import LaggedTable, LagMatrixBuilder
from direct_forecast.evaluation.errors import ErrorAggregator, ErrorResult
from direct_forecast.evaluation.hyperparameters import HyperparameterCollector, HyperparameterResult
from direct_forecast.exceptions import ConfigurationError
from direct_forecast.models.base import ForecastModel

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """
    Everything one nested cross-validation run produced.

    Attributes:
        config: Configuration used
        tables: Train-mode lagged tables by horizon
        windows: Outer-loop windows
        grids: Training grid per model name
        predictions: Held-out predictions of all models
        errors: Error tables
        hyperparameters: Hyperparameter tables per model name
        total_time: Wall-clock seconds for the run
    """
    config: ForecastConfig
    tables: dict[int, LaggedTable]
    windows: list[Window]
    grids: dict[str, GridResult]
    predictions: PredictionResult
    errors: ErrorResult
    hyperparameters: dict[str, HyperparameterResult] = field(default_factory=dict)
    total_time: float = 0.0

    def forecast(
        self,
        series: pd.DataFrame,
        models: Sequence[str] | None = None,
    ) -> PredictionResult:
        """
        Forecast past the end of `series` with the retained grid models.

        Args:
            series: Series to forecast from (usually the training series)
            models: Model names to use (default: all)

        Returns:
            Forecast-mode PredictionResult
        """
        names = list(models) if models is not None else list(self.grids)
        unknown = [n for n in names if n not in self.grids]
        if unknown:
            raise ConfigurationError(f"Unknown model(s) {unknown}. Available: {list(self.grids)}")

        forecast_lags = replace(self.config.lags, type="forecast")
        data_forecast = LagMatrixBuilder(forecast_lags).build(series)
        assembler = PredictionAssembler(n_jobs=self.config.n_jobs)
        return assembler.predict([self.grids[n] for n in names], data_forecast=data_forecast)

    def summary(self) -> dict[str, Any]:
        """Cell counts per model plus global errors."""
        failed_predictions: dict[str, int] = {}
        for error in self.predictions.failed_cells:
            failed_predictions[error.model_name] = failed_predictions.get(error.model_name, 0) + 1
        cancelled_predictions: dict[str, int] = {}
        for key in self.predictions.cancelled_cells:
            cancelled_predictions[key.model_name] = cancelled_predictions.get(key.model_name, 0) + 1

        models = {}
        for name, grid in self.grids.items():
            hyper = self.hyperparameters.get(name)
            models[name] = {
                **grid.summary(),
                "n_prediction_failures": failed_predictions.get(name, 0),
                "n_prediction_cancelled": cancelled_predictions.get(name, 0),
                "n_hyperparameter_exclusions": hyper.n_excluded if hyper is not None else 0,
            }

        return {
            "n_horizons": len(self.tables),
            "n_windows": len(self.windows),
            "models": models,
            "error_global": self.errors.error_global.to_dict(orient="records"),
            "total_time": self.total_time,
        }


class DirectForecastRunner:
    """
    Runs nested cross-validation for one or more model variants.

    Example:
        >>> config = ForecastConfig(
        ...     lags=LagConfig(outcome_name="y", horizons=[1, 3, 6], lookback=range(1, 13)),
        ...     windows=WindowConfig(window_length=12),
        ... )
        >>> result = DirectForecastRunner(config).run(series, [ridge, forest])
        >>> result.errors.error_by_horizon
    """

    def __init__(self, config: ForecastConfig) -> None:
        self.config = config

    def run(
        self,
        series: pd.DataFrame,
        models: ForecastModel | Sequence[ForecastModel],
        cancel_event: threading.Event | None = None,
    ) -> RunResult:
        """
        Train, predict and evaluate every model over the horizon x window grid.

        Raises:
            ConfigurationError: On invalid configuration or inputs
            GridTrainingError: If every cell of a model's grid failed
        """
        models = [models] if isinstance(models, ForecastModel) else list(models)
        if not models:
            raise ConfigurationError("At least one model is required")
        names = [m.name for m in models]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Model names must be unique, got {names}")

        start = time.perf_counter()
        tables = LagMatrixBuilder(self.config.lags).build(series)
        windows = WindowPartitioner(self.config.windows).partition(len(series))
        logger.info(
            f"Nested CV: {len(models)} models x {len(tables)} horizons x {len(windows)} windows"
        )

        trainer = TrainingGrid(n_jobs=self.config.n_jobs, show_progress=self.config.show_progress)
        grids: dict[str, GridResult] = {}
        for model in models:
            grids[model.name] = trainer.train(tables, windows, model, cancel_event=cancel_event)

        assembler = PredictionAssembler(
            n_jobs=self.config.n_jobs, show_progress=self.config.show_progress
        )
        predictions = assembler.predict(list(grids.values()), tables, cancel_event=cancel_event)
        errors = ErrorAggregator(self.config.metrics).aggregate(predictions)

        collector = HyperparameterCollector()
        hyperparameters = {
            name: collector.collect(grid, errors=errors) for name, grid in grids.items()
        }

        if not self.config.keep_models:
            for grid in grids.values():
                grid.discard_models()

        result = RunResult(
            config=self.config,
            tables=tables,
            windows=windows,
            grids=grids,
            predictions=predictions,
            errors=errors,
            hyperparameters=hyperparameters,
            total_time=time.perf_counter() - start,
        )
        self._log_summary(result)
        return result

    @staticmethod
    def _log_summary(result: RunResult) -> None:
        for name, grid in result.grids.items():
            logger.info(
                f"{name}: {grid.n_succeeded}/{grid.n_cells} cells trained, "
                f"{grid.n_failed} failed, {len(grid.cancelled_cells)} cancelled"
            )
        if result.predictions.n_failed:
            logger.info(f"Prediction failures: {result.predictions.n_failed} cells")
        if result.predictions.cancelled_cells:
            logger.info(f"Prediction cancelled: {len(result.predictions.cancelled_cells)} cells")
        logger.info(f"Run completed in {result.total_time:.1f}s")


__all__ = [
    "DirectForecastRunner",
    "RunResult",
]
