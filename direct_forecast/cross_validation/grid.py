"""
Training grid: one fitted model per (horizon, outer-loop window) cell.

For the cell (h, w) the model is trained on every row of the horizon-h
lagged table whose original index lies outside window w (all rows for the
null window). Cells are independent, so they run on a worker pool and a
failing cell is recorded rather than raised:

                 window 1   window 2   window 3
    horizon 1    model      model      model
    horizon 6    model      FAILED     model
    horizon 12   model      model      model
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from direct_forecast.cross_validation.executor import run_cells
from direct_forecast.cross_validation.windows import Window
from direct_forecast.data.lagged import LaggedTable
from direct_forecast.exceptions import ConfigurationError, GridTrainingError, ModelTrainingError
from direct_forecast.models.base import ForecastModel

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True, order=True)
class CellKey:
    """Identity of one grid cell."""
    model_name: str
    horizon: int
    window_id: int


@dataclass
class GridResult:
    """
    Fitted models of one model variant across the horizon x window grid.

    Attributes:
        model: Model ports that produced (and will consume) the fitted handles
        horizons: Horizons in the grid
        windows: Outer-loop windows in the grid
        models: Flat arena of fitted handles keyed by CellKey
        failed_cells: Training errors of failed cells
        cancelled_cells: Cells never started because the run was cancelled
        training_time: Wall-clock seconds spent training
    """
    model: ForecastModel
    horizons: list[int]
    windows: list[Window]
    models: dict[CellKey, Any] = field(default_factory=dict)
    failed_cells: list[ModelTrainingError] = field(default_factory=list)
    cancelled_cells: list[CellKey] = field(default_factory=list)
    training_time: float = 0.0
    models_discarded: bool = False

    @property
    def model_name(self) -> str:
        return self.model.name

    @property
    def n_cells(self) -> int:
        return len(self.horizons) * len(self.windows)

    @property
    def n_succeeded(self) -> int:
        return len(self.successful_keys)

    @property
    def n_failed(self) -> int:
        return len(self.failed_cells)

    @property
    def is_complete(self) -> bool:
        """True when every cell trained successfully."""
        return self.n_succeeded == self.n_cells

    @property
    def successful_keys(self) -> list[CellKey]:
        failed = {(e.horizon, e.window_id) for e in self.failed_cells}
        cancelled = {(k.horizon, k.window_id) for k in self.cancelled_cells}
        return [
            CellKey(self.model_name, h, w.window_id)
            for h in self.horizons
            for w in self.windows
            if (h, w.window_id) not in failed and (h, w.window_id) not in cancelled
        ]

    def window(self, window_id: int) -> Window:
        for window in self.windows:
            if window.window_id == window_id:
                return window
        raise KeyError(f"No window with id {window_id}")

    def get_model(self, horizon: int, window_id: int) -> Any:
        """Fitted handle of a cell; KeyError if the cell failed or models were discarded."""
        key = CellKey(self.model_name, horizon, window_id)
        if key not in self.models:
            if self.models_discarded:
                raise KeyError(f"Models for '{self.model_name}' were discarded after prediction")
            raise KeyError(f"No fitted model for {key}")
        return self.models[key]

    def discard_models(self) -> None:
        """Release fitted handles, keeping the bookkeeping."""
        self.models.clear()
        self.models_discarded = True
        logger.debug(f"{self.model_name}: discarded fitted models")

    def summary(self) -> dict[str, Any]:
        return {
            "model": self.model_name,
            "n_horizons": len(self.horizons),
            "n_windows": len(self.windows),
            "n_cells": self.n_cells,
            "n_succeeded": self.n_succeeded,
            "n_failed": self.n_failed,
            "n_cancelled": len(self.cancelled_cells),
            "failed_cells": [e.to_dict() for e in self.failed_cells],
            "training_time": self.training_time,
        }


@dataclass
class _CellOutcome:
    key: CellKey
    model: Any = None
    error: ModelTrainingError | None = None
    n_train: int = 0


# =============================================================================
# TRAINING GRID
# =============================================================================

class TrainingGrid:
    """
    Trains one model per (horizon, window) cell.

    Example:
        >>> grid = TrainingGrid(n_jobs=4).train(tables, windows, model)
        >>> grid.n_succeeded, grid.n_failed
        (167, 1)
    """

    def __init__(self, n_jobs: int = 1, show_progress: bool = False) -> None:
        if n_jobs < 1:
            raise ConfigurationError(f"n_jobs must be >= 1, got {n_jobs}")
        self.n_jobs = n_jobs
        self.show_progress = show_progress

    def train(
        self,
        tables: dict[int, LaggedTable],
        windows: list[Window],
        model: ForecastModel,
        cancel_event: threading.Event | None = None,
    ) -> GridResult:
        """
        Train every cell of the grid.

        Args:
            tables: Train-mode lagged tables keyed by horizon
            windows: Outer-loop windows
            model: Model ports supplying the training closure
            cancel_event: Set to stop scheduling new cells

        Returns:
            GridResult with fitted models and failed/cancelled cells

        Raises:
            ConfigurationError: On invalid inputs (before any training)
            GridTrainingError: If every cell failed
        """
        self._validate(tables, windows, model)

        horizons = sorted(tables)
        tasks = [(h, w) for h in horizons for w in windows]
        logger.info(
            f"Training {model.name}: {len(horizons)} horizons x {len(windows)} windows "
            f"= {len(tasks)} cells (n_jobs={self.n_jobs})"
        )

        start = time.perf_counter()
        results, skipped = run_cells(
            tasks,
            lambda task: self._train_cell(model, tables[task[0]], task[1]),
            n_jobs=self.n_jobs,
            cancel_event=cancel_event,
            show_progress=self.show_progress,
            desc=f"train {model.name}",
        )
        elapsed = time.perf_counter() - start

        grid = GridResult(model=model, horizons=horizons, windows=list(windows), training_time=elapsed)
        for position in sorted(results):
            outcome: _CellOutcome = results[position]
            if outcome.error is not None:
                grid.failed_cells.append(outcome.error)
            else:
                grid.models[outcome.key] = outcome.model
        grid.cancelled_cells = [
            CellKey(model.name, tasks[p][0], tasks[p][1].window_id) for p in skipped
        ]

        if grid.failed_cells:
            logger.warning(
                f"{model.name}: {grid.n_failed} of {grid.n_cells} cells failed: "
                + ", ".join(f"(h={e.horizon}, w={e.window_id})" for e in grid.failed_cells)
            )
        if grid.n_failed == grid.n_cells:
            raise GridTrainingError(model.name, grid.failed_cells)

        logger.info(
            f"{model.name}: trained {len(grid.models)}/{grid.n_cells} cells in {elapsed:.1f}s"
        )
        return grid

    def _validate(
        self,
        tables: dict[int, LaggedTable],
        windows: list[Window],
        model: ForecastModel,
    ) -> None:
        if not isinstance(model, ForecastModel):
            raise ConfigurationError(
                f"model must be a ForecastModel, got {type(model).__name__}. "
                "Wrap plain callables in FunctionModel."
            )
        if not tables:
            raise ConfigurationError("No lagged tables to train on")
        if not windows:
            raise ConfigurationError("No windows to train on")
        not_train = [h for h, t in tables.items() if t.type != "train"]
        if not_train:
            raise ConfigurationError(f"Tables for horizons {not_train} are not train-mode tables")
        ids = [w.window_id for w in windows]
        if len(set(ids)) != len(ids):
            raise ConfigurationError(f"Duplicate window ids: {ids}")

    def _train_cell(self, model: ForecastModel, table: LaggedTable, window: Window) -> _CellOutcome:
        key = CellKey(model.name, table.horizon, window.window_id)
        positions = np.flatnonzero(~window.contains(table.row_index_map))

        if len(positions) == 0:
            error = ModelTrainingError(
                table.horizon, window.window_id, model_name=model.name,
                message="no training rows outside the window",
            )
            return _CellOutcome(key=key, error=error)

        data = table.rows(positions)
        try:
            fitted = model.train(data, table.outcome_column_index)
        except Exception as e:
            logger.debug(f"{key} training raised", exc_info=True)
            error = ModelTrainingError(table.horizon, window.window_id, cause=e, model_name=model.name)
            return _CellOutcome(key=key, error=error, n_train=len(positions))

        logger.debug(f"{key}: trained on {len(positions)} rows")
        return _CellOutcome(key=key, model=fitted, n_train=len(positions))


__all__ = [
    "CellKey",
    "GridResult",
    "TrainingGrid",
]
