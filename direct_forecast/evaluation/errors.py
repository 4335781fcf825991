"""
Error aggregation over prediction tables.

Training mode rolls errors up in three steps:

    error_by_window   metric per (model, horizon, window_id) from pointwise errors
    error_by_horizon  mean of the per-window values per (model, horizon)
    error_global      mean of the per-window values per model

Averaging per-window values (rather than pooling pointwise errors) keeps a
long window from outweighing a short one. Windows with no defined value for
a metric are left out of its averages. n_windows / n_cells count every
record in a group; n_windows_<metric> / n_cells_<metric> count the records
each metric's average actually covers.

Forecast mode joins forecasts to held-out actuals by original row index and
reports error_by_horizon / error_global keyed additionally by
model_forecast_horizon.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from direct_forecast.config.settings import DEFAULT_METRICS, validate_metrics
from direct_forecast.cross_validation.predictions import PredictionResult, prediction_column
from direct_forecast.evaluation.metrics import compute_metrics
from direct_forecast.exceptions import ConfigurationError, DataAlignmentError

logger = logging.getLogger(__name__)

WINDOW_KEYS = ["model", "horizon", "window_id"]
HORIZON_KEYS = ["model", "horizon"]
GLOBAL_KEYS = ["model"]
FORECAST_WINDOW_KEYS = ["model", "model_forecast_horizon", "horizon", "window_id"]
FORECAST_HORIZON_KEYS = ["model", "model_forecast_horizon", "horizon"]
FORECAST_GLOBAL_KEYS = ["model", "model_forecast_horizon"]


@dataclass
class ErrorResult:
    """
    Aggregated forecast errors.

    Attributes:
        metrics: Metric columns present in every table
        mode: "train" or "forecast"
        error_by_window: Per-cell errors (training mode only)
        error_by_horizon: Mean of per-window errors per horizon
        error_global: Mean of per-window errors per model
    """
    metrics: list[str]
    mode: str
    error_by_horizon: pd.DataFrame
    error_global: pd.DataFrame
    error_by_window: pd.DataFrame | None = None
    n_unmatched: int = 0
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out = {
            "mode": self.mode,
            "metrics": list(self.metrics),
            "error_by_horizon": self.error_by_horizon.to_dict(orient="records"),
            "error_global": self.error_global.to_dict(orient="records"),
        }
        if self.error_by_window is not None:
            out["error_by_window"] = self.error_by_window.to_dict(orient="records")
        return out


class ErrorAggregator:
    """
    Computes error tables from a PredictionResult.

    Example:
        >>> errors = ErrorAggregator(["mae", "smape"]).aggregate(result)
        >>> errors.error_by_horizon
    """

    def __init__(self, metrics: list[str] | tuple[str, ...] = DEFAULT_METRICS) -> None:
        self.metrics = validate_metrics(metrics)

    def aggregate(
        self,
        predictions: PredictionResult | pd.DataFrame,
        data_test: pd.DataFrame | None = None,
        outcome_name: str | None = None,
    ) -> ErrorResult:
        """
        Aggregate errors at window, horizon and global level.

        Args:
            predictions: PredictionResult, or a prediction table plus outcome_name
            data_test: Actuals for forecast-mode predictions, with the outcome
                column and original row indices as a `valid_indices` column
                or as the index
            outcome_name: Outcome column (only needed for a bare table)

        Returns:
            ErrorResult

        Raises:
            ConfigurationError: If the outcome name is unknown
            DataAlignmentError: If forecasts cannot be joined to data_test
        """
        frame, outcome_name = self._unpack(predictions, outcome_name)
        pred_col = prediction_column(outcome_name)
        if pred_col not in frame.columns:
            raise ConfigurationError(f"Prediction column '{pred_col}' not found")

        if "model_forecast_horizon" in frame.columns:
            return self._aggregate_forecast(frame, outcome_name, data_test)

        if data_test is not None:
            logger.warning("data_test is only used for forecast-mode predictions; ignoring it")
        if outcome_name not in frame.columns:
            raise ConfigurationError(f"Outcome column '{outcome_name}' not found in predictions")

        by_window = self._error_table(frame, WINDOW_KEYS, outcome_name, pred_col)
        window_bounds = (
            frame.groupby(WINDOW_KEYS, sort=True)[["window_start", "window_stop"]].first().reset_index()
        )
        by_window = by_window.merge(window_bounds, on=WINDOW_KEYS, how="left")
        by_window = by_window[WINDOW_KEYS + ["window_start", "window_stop", "n_obs"] + self.metrics]

        by_horizon = self._average(by_window, HORIZON_KEYS, "n_windows")
        global_errors = self._average(by_window, GLOBAL_KEYS, "n_cells")

        logger.info(
            f"Aggregated {len(frame)} predictions into {len(by_window)} window errors "
            f"({', '.join(self.metrics)})"
        )
        return ErrorResult(
            metrics=list(self.metrics),
            mode="train",
            error_by_window=by_window,
            error_by_horizon=by_horizon,
            error_global=global_errors,
        )

    # -------------------------------------------------------------------------
    # helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _unpack(
        predictions: PredictionResult | pd.DataFrame,
        outcome_name: str | None,
    ) -> tuple[pd.DataFrame, str]:
        if isinstance(predictions, PredictionResult):
            return predictions.predictions, outcome_name or predictions.outcome_name
        if outcome_name is None:
            raise ConfigurationError("outcome_name is required when aggregating a bare table")
        return predictions, outcome_name

    def _error_table(
        self,
        frame: pd.DataFrame,
        keys: list[str],
        outcome_name: str,
        pred_col: str,
    ) -> pd.DataFrame:
        """Metric values per group computed from pointwise errors."""
        rows = []
        for group_key, group in frame.groupby(keys, sort=True):
            if not isinstance(group_key, tuple):
                group_key = (group_key,)
            row = dict(zip(keys, group_key))
            row["n_obs"] = len(group)
            row.update(
                compute_metrics(
                    self.metrics,
                    group[outcome_name].to_numpy(dtype=float),
                    group[pred_col].to_numpy(dtype=float),
                )
            )
            rows.append(row)
        return pd.DataFrame(rows, columns=keys + ["n_obs"] + self.metrics)

    def _average(self, table: pd.DataFrame, keys: list[str], count_name: str) -> pd.DataFrame:
        """
        Mean of lower-level metric values (NaN values excluded) per group.

        `count_name` counts every record in the group; `{count_name}_{metric}`
        counts only the records with a defined value for that metric, i.e. the
        records its mean actually covers.
        """
        metric_counts = [f"{count_name}_{m}" for m in self.metrics]
        columns = keys + [count_name] + self.metrics + metric_counts
        if table.empty:
            return pd.DataFrame(columns=columns)
        grouped = table.groupby(keys, sort=True)
        averaged = grouped[self.metrics].mean()
        averaged.insert(0, count_name, grouped.size())
        counts = grouped[self.metrics].count()
        counts.columns = metric_counts
        return averaged.join(counts).reset_index()[columns]

    def _aggregate_forecast(
        self,
        frame: pd.DataFrame,
        outcome_name: str,
        data_test: pd.DataFrame | None,
    ) -> ErrorResult:
        if data_test is None:
            raise ConfigurationError("data_test is required to compute forecast-mode errors")

        truth = self._actuals(data_test, outcome_name)
        forecasts = frame.drop(columns=[outcome_name], errors="ignore")
        joined = forecasts.merge(truth, on="valid_indices", how="inner")
        if joined.empty:
            raise DataAlignmentError(
                f"None of the {len(forecasts)} forecast rows share an index with data_test "
                f"(forecast indices {forecasts['valid_indices'].min()}..{forecasts['valid_indices'].max()})"
            )

        n_unmatched = len(forecasts) - len(joined)
        if n_unmatched:
            logger.warning(f"{n_unmatched} forecast rows have no actual in data_test and are excluded")

        pred_col = prediction_column(outcome_name)
        by_cell = self._error_table(joined, FORECAST_WINDOW_KEYS, outcome_name, pred_col)
        by_horizon = self._average(by_cell, FORECAST_HORIZON_KEYS, "n_windows")
        global_errors = self._average(by_cell, FORECAST_GLOBAL_KEYS, "n_cells")

        return ErrorResult(
            metrics=list(self.metrics),
            mode="forecast",
            error_by_horizon=by_horizon,
            error_global=global_errors,
            n_unmatched=n_unmatched,
        )

    @staticmethod
    def _actuals(data_test: pd.DataFrame, outcome_name: str) -> pd.DataFrame:
        """Actuals as (valid_indices, outcome) with a unique integer key."""
        if outcome_name not in data_test.columns:
            raise DataAlignmentError(f"data_test has no '{outcome_name}' column")

        if "valid_indices" in data_test.columns:
            truth = data_test[["valid_indices", outcome_name]].copy()
        else:
            truth = pd.DataFrame({
                "valid_indices": data_test.index.to_numpy(),
                outcome_name: data_test[outcome_name].to_numpy(),
            })

        if not pd.api.types.is_integer_dtype(truth["valid_indices"]):
            raise DataAlignmentError(
                "data_test row indices must be integers matching the original series rows, "
                f"got dtype {truth['valid_indices'].dtype}"
            )
        if truth["valid_indices"].duplicated().any():
            raise DataAlignmentError("data_test has duplicated row indices; cannot join forecasts")

        truth["valid_indices"] = truth["valid_indices"].astype(np.int64)
        return truth


__all__ = [
    "ErrorAggregator",
    "ErrorResult",
]
