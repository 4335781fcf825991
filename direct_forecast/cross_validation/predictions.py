"""
Prediction assembly across training grids.

Training mode: each cell predicts the rows of its own held-out window, so
for a fixed (model, horizon) the windows' predictions tile the validation
rows without overlap. Under the null window each cell predicts every row
in-sample.

Forecast mode: each cell's model predicts the forward rows of a forecast
table built for its horizon. A horizon-6 model yields steps 1..6, tagged
model_forecast_horizon=6 and horizon=1..6.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from direct_forecast.cross_validation.executor import run_cells
from direct_forecast.cross_validation.grid import CellKey, GridResult
from direct_forecast.data.lagged import LaggedTable
from direct_forecast.exceptions import ConfigurationError, PredictionError

logger = logging.getLogger(__name__)

TRAIN_COLUMNS = [
    "model", "horizon", "window_id", "window_length", "window_start", "window_stop", "valid_indices",
]
FORECAST_COLUMNS = [
    "model", "model_forecast_horizon", "horizon", "window_id", "window_length", "valid_indices",
]


def prediction_column(outcome_name: str) -> str:
    return f"{outcome_name}_pred"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class PredictionResult:
    """
    Long-format predictions of one or more model variants.

    Attributes:
        predictions: One row per (model, horizon, window, row index)
        outcome_name: Name of the outcome column
        mode: "train" (held-out windows) or "forecast" (future rows)
        failed_cells: Cells whose prediction closure failed (gaps in output)
        cancelled_cells: Cells skipped because the run was cancelled
        n_cells: Cells that were asked to predict
    """
    predictions: pd.DataFrame
    outcome_name: str
    mode: str = "train"
    failed_cells: list[PredictionError] = field(default_factory=list)
    cancelled_cells: list[CellKey] = field(default_factory=list)
    n_cells: int = 0

    @property
    def prediction_column(self) -> str:
        return prediction_column(self.outcome_name)

    @property
    def n_failed(self) -> int:
        return len(self.failed_cells)

    @property
    def n_succeeded(self) -> int:
        return self.n_cells - self.n_failed - len(self.cancelled_cells)

    @property
    def model_names(self) -> list[str]:
        return list(pd.unique(self.predictions["model"])) if len(self.predictions) else []

    def summary(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "n_rows": len(self.predictions),
            "n_cells": self.n_cells,
            "n_succeeded": self.n_succeeded,
            "n_failed": self.n_failed,
            "n_cancelled": len(self.cancelled_cells),
            "failed_cells": [e.to_dict() for e in self.failed_cells],
            "cancelled_cells": [(k.model_name, k.horizon, k.window_id) for k in self.cancelled_cells],
        }


@dataclass
class _CellPredictions:
    key: CellKey
    frame: pd.DataFrame | None = None
    error: PredictionError | None = None


# =============================================================================
# PREDICTION ASSEMBLER
# =============================================================================

class PredictionAssembler:
    """
    Runs every fitted cell's prediction closure and stacks the results.

    Example:
        >>> result = PredictionAssembler().predict([ridge_grid, forest_grid], tables)
        >>> result.predictions.groupby("model").size()
    """

    def __init__(self, n_jobs: int = 1, show_progress: bool = False) -> None:
        if n_jobs < 1:
            raise ConfigurationError(f"n_jobs must be >= 1, got {n_jobs}")
        self.n_jobs = n_jobs
        self.show_progress = show_progress

    def predict(
        self,
        grids: GridResult | Sequence[GridResult],
        tables: dict[int, LaggedTable] | None = None,
        data_forecast: dict[int, LaggedTable] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> PredictionResult:
        """
        Predict with every successfully trained cell.

        Args:
            grids: One GridResult or several (one per model variant)
            tables: Train-mode lagged tables (training mode)
            data_forecast: Forecast-mode lagged tables; switches to forecast mode

        Returns:
            PredictionResult with predictions and failed cells

        Raises:
            ConfigurationError: On missing tables, duplicate model names or
                discarded models
        """
        grids = [grids] if isinstance(grids, GridResult) else list(grids)
        mode = "forecast" if data_forecast is not None else "train"
        source = data_forecast if data_forecast is not None else tables
        outcome_name = self._validate(grids, source, mode)

        tasks = [(grid, key) for grid in grids for key in sorted(grid.models)]
        logger.info(f"Predicting ({mode} mode): {len(tasks)} cells across {len(grids)} models")

        results, skipped = run_cells(
            tasks,
            lambda task: self._predict_cell(task[0], task[1], source[task[1].horizon], mode),
            n_jobs=self.n_jobs,
            cancel_event=cancel_event,
            show_progress=self.show_progress,
            desc="predict",
        )

        frames: list[pd.DataFrame] = []
        failed: list[PredictionError] = []
        for position in sorted(results):
            outcome: _CellPredictions = results[position]
            if outcome.error is not None:
                failed.append(outcome.error)
            elif outcome.frame is not None and len(outcome.frame):
                frames.append(outcome.frame)

        columns = self._columns(mode, outcome_name)
        if frames:
            predictions = pd.concat(frames, ignore_index=True)[columns]
        else:
            predictions = pd.DataFrame(columns=columns)

        if failed:
            logger.warning(
                f"Prediction failed for {len(failed)} of {len(tasks)} cells: "
                + ", ".join(f"({e.model_name}, h={e.horizon}, w={e.window_id})" for e in failed)
            )
        if skipped:
            logger.warning(f"Prediction cancelled: {len(skipped)} of {len(tasks)} cells never ran")
        if mode == "train":
            self._check_coverage(predictions)

        return PredictionResult(
            predictions=predictions,
            outcome_name=outcome_name,
            mode=mode,
            failed_cells=failed,
            cancelled_cells=[tasks[p][1] for p in skipped],
            n_cells=len(tasks),
        )

    # -------------------------------------------------------------------------
    # helpers
    # -------------------------------------------------------------------------

    def _validate(
        self,
        grids: list[GridResult],
        source: dict[int, LaggedTable] | None,
        mode: str,
    ) -> str:
        if not grids:
            raise ConfigurationError("No grids to predict with")
        if not source:
            raise ConfigurationError(
                "Lagged tables are required: pass `tables` (training mode) "
                "or `data_forecast` (forecast mode)"
            )

        names = [g.model_name for g in grids]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Model names must be unique across grids, got {names}")

        for grid in grids:
            if grid.models_discarded:
                raise ConfigurationError(
                    f"Fitted models for '{grid.model_name}' were discarded; "
                    "re-run training with keep_models=True"
                )
            missing = [h for h in grid.horizons if h not in source]
            if missing:
                raise ConfigurationError(
                    f"No {mode} table for horizon(s) {missing} of model '{grid.model_name}'"
                )

        wrong = [h for h, t in source.items() if t.type != mode]
        if wrong:
            raise ConfigurationError(f"Tables for horizons {wrong} are not {mode}-mode tables")

        outcomes = {t.outcome_name for t in source.values()}
        if len(outcomes) != 1:
            raise ConfigurationError(f"Tables disagree on the outcome column: {sorted(outcomes)}")
        return outcomes.pop()

    @staticmethod
    def _columns(mode: str, outcome_name: str) -> list[str]:
        if mode == "train":
            return TRAIN_COLUMNS + [outcome_name, prediction_column(outcome_name)]
        return FORECAST_COLUMNS + [prediction_column(outcome_name)]

    def _predict_cell(
        self,
        grid: GridResult,
        key: CellKey,
        table: LaggedTable,
        mode: str,
    ) -> _CellPredictions:
        window = grid.window(key.window_id)
        if mode == "train" and not window.is_null:
            positions = np.flatnonzero(window.contains(table.row_index_map))
        else:
            positions = np.arange(table.n_rows)

        if len(positions) == 0:
            logger.debug(f"{key}: window holds no rows of the horizon-{key.horizon} table")
            return _CellPredictions(key=key)

        features = table.features(positions).copy()
        try:
            output = grid.model.predict(grid.models[key], features)
            values = _coerce_predictions(output, len(positions))
        except Exception as e:
            logger.debug(f"{key} prediction raised", exc_info=True)
            error = PredictionError(key.horizon, key.window_id, cause=e, model_name=key.model_name)
            return _CellPredictions(key=key, error=error)

        indices = table.row_index_map[positions]
        pred_col = prediction_column(table.outcome_name)
        if mode == "train":
            frame = pd.DataFrame({
                "model": key.model_name,
                "horizon": key.horizon,
                "window_id": key.window_id,
                "window_length": window.length,
                "window_start": window.start,
                "window_stop": window.stop,
                "valid_indices": indices,
                table.outcome_name: table.outcome(positions).to_numpy(),
                pred_col: values,
            })
        else:
            frame = pd.DataFrame({
                "model": key.model_name,
                "model_forecast_horizon": key.horizon,
                "horizon": table.steps[positions],
                "window_id": key.window_id,
                "window_length": window.length,
                "valid_indices": indices,
                pred_col: values,
            })
        return _CellPredictions(key=key, frame=frame)

    @staticmethod
    def _check_coverage(predictions: pd.DataFrame) -> None:
        """Warn if any (model, horizon) predicts the same row in two windows."""
        if predictions.empty or (predictions["window_length"] == 0).all():
            return
        held_out = predictions[predictions["window_length"] > 0]
        dupes = held_out.duplicated(subset=["model", "horizon", "valid_indices"])
        if dupes.any():
            logger.warning(f"{int(dupes.sum())} rows were predicted by more than one window")


def _coerce_predictions(output: Any, n_rows: int) -> np.ndarray:
    """Flatten a closure's output to one value per input row."""
    if isinstance(output, pd.DataFrame):
        if output.shape[1] != 1:
            raise ValueError(
                f"Prediction table must have exactly one column, got {output.shape[1]}"
            )
        values = output.iloc[:, 0].to_numpy()
    elif isinstance(output, pd.Series):
        values = output.to_numpy()
    else:
        values = np.asarray(output)
        if values.ndim == 2 and values.shape[1] == 1:
            values = values[:, 0]
        if values.ndim != 1:
            raise ValueError(f"Predictions must be one-dimensional, got shape {values.shape}")

    if len(values) != n_rows:
        raise ValueError(f"Expected {n_rows} predictions, got {len(values)}")
    return values


# =============================================================================
# FORECAST COMBINATION
# =============================================================================

def combine_forecasts(
    predictions: PredictionResult | pd.DataFrame,
    method: str = "horizon",
) -> pd.DataFrame:
    """
    Stitch direct forecasts into a single path per model and window.

    With method="horizon", each forward step is taken from the shortest-horizon
    model that covers it: steps 1..h1 from the horizon-h1 model, steps
    h1+1..h2 from the horizon-h2 model, and so on.

    Args:
        predictions: Forecast-mode PredictionResult or its predictions table
        method: Combination method ("horizon")

    Returns:
        Forecast table with one row per (model, window_id, horizon)
    """
    frame = predictions.predictions if isinstance(predictions, PredictionResult) else predictions
    if method != "horizon":
        raise ConfigurationError(f"Unsupported combination method '{method}'. Supported: ['horizon']")
    if "model_forecast_horizon" not in frame.columns:
        raise ConfigurationError("combine_forecasts requires forecast-mode predictions")

    combined = (
        frame.sort_values(["model", "window_id", "horizon", "model_forecast_horizon"], kind="stable")
        .groupby(["model", "window_id", "horizon"], sort=False)
        .head(1)
        .reset_index(drop=True)
    )
    logger.debug(f"Combined {len(frame)} forecast rows into {len(combined)}")
    return combined


__all__ = [
    "PredictionAssembler",
    "PredictionResult",
    "combine_forecasts",
    "prediction_column",
]
