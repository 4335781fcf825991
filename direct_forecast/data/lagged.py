"""
Lagged design matrices for direct multi-horizon forecasting.

A direct forecast trains one model per horizon. The model for horizon h
predicts the outcome at row t from information available at row t - h, so
any predictor lag L < h would leak values that are not yet observed when the
forecast is issued. LagMatrixBuilder materializes one table per horizon and
prunes those lags.

Train tables:
    row t holds the outcome at t and {predictor}_lag{L} = predictor[t - L]
    for every surviving lag. Rows whose lags reach before the start of the
    series (or hit a missing value) are dropped.

Forecast tables:
    h rows, one per forward step s = 1..h after the last observed row n - 1.
    The target row is n - 1 + s and every lag L >= h >= s points at an
    observed row, so no outcome column is produced.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from direct_forecast.config.settings import LagConfig
from direct_forecast.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

INDEX_NAME = "index"


def lag_column_name(predictor: str, lag: int) -> str:
    """Column name of a lagged predictor, e.g. sales_lag3."""
    return f"{predictor}_lag{lag}"


# =============================================================================
# LAGGED TABLE
# =============================================================================

@dataclass(frozen=True)
class LaggedTable:
    """
    Design matrix for a single forecast horizon.

    Attributes:
        horizon: Steps ahead the table's model forecasts
        data: Outcome (train tables only) followed by feature columns,
            indexed by original row index
        outcome_name: Name of the outcome column
        feature_names: Predictor columns in order
        row_index_map: Original Series row of each table row
        retained_lags: Lags kept per predictor (all >= horizon)
        dropped_lags: Requested lags pruned per predictor (all < horizon)
        type: "train" or "forecast"
        steps: Forward step (1..horizon) of each row, forecast tables only
    """
    horizon: int
    data: pd.DataFrame
    outcome_name: str
    feature_names: tuple[str, ...]
    row_index_map: np.ndarray
    retained_lags: dict[str, tuple[int, ...]]
    dropped_lags: dict[str, tuple[int, ...]] = field(default_factory=dict)
    type: str = "train"
    steps: np.ndarray | None = None

    def __post_init__(self) -> None:
        if len(self.row_index_map) != len(self.data):
            raise ValueError(
                f"row_index_map length ({len(self.row_index_map)}) "
                f"!= table length ({len(self.data)})"
            )
        self.row_index_map.setflags(write=False)
        if self.steps is not None:
            self.steps.setflags(write=False)

    @property
    def n_rows(self) -> int:
        return len(self.data)

    @property
    def outcome_column_index(self) -> int | None:
        """Position of the outcome column in `data` (None for forecast tables)."""
        return 0 if self.type == "train" else None

    @property
    def is_forecast(self) -> bool:
        return self.type == "forecast"

    def features(self, positions: np.ndarray | None = None) -> pd.DataFrame:
        """Predictor columns, optionally restricted to table row positions."""
        frame = self.data.loc[:, list(self.feature_names)]
        if positions is None:
            return frame
        return frame.iloc[positions]

    def outcome(self, positions: np.ndarray | None = None) -> pd.Series:
        if self.is_forecast:
            raise ValueError("Forecast tables carry no outcome column")
        values = self.data[self.outcome_name]
        if positions is None:
            return values
        return values.iloc[positions]

    def rows(self, positions: np.ndarray) -> pd.DataFrame:
        """Full rows (outcome + features) at table positions, as an independent copy."""
        return self.data.iloc[positions].copy()

    def to_dict(self) -> dict[str, Any]:
        return {
            "horizon": self.horizon,
            "type": self.type,
            "n_rows": self.n_rows,
            "feature_names": list(self.feature_names),
            "retained_lags": {k: list(v) for k, v in self.retained_lags.items()},
            "dropped_lags": {k: list(v) for k, v in self.dropped_lags.items()},
            "first_index": int(self.row_index_map[0]) if self.n_rows else None,
            "last_index": int(self.row_index_map[-1]) if self.n_rows else None,
        }


# =============================================================================
# BUILDER
# =============================================================================

class LagMatrixBuilder:
    """
    Builds one lagged table per forecast horizon.

    Example:
        >>> config = LagConfig(outcome_name="y", horizons=[1, 2], lookback=[1, 2, 3])
        >>> tables = LagMatrixBuilder(config).build(series)
        >>> tables[2].retained_lags["y"]
        (2, 3)
    """

    def __init__(self, config: LagConfig) -> None:
        self.config = config

    def build(self, series: pd.DataFrame) -> dict[int, LaggedTable]:
        """
        Build lagged tables for every configured horizon.

        Args:
            series: Time-ordered DataFrame; row order is the time order

        Returns:
            Dict mapping horizon -> LaggedTable

        Raises:
            ConfigurationError: If the outcome is missing, a horizon keeps no
                lagged predictor, or the series is too short for a horizon
        """
        values = self._validate_series(series)
        predictors = self._resolve_predictors(values)
        dynamic = list(self.config.dynamic_features)

        tables: dict[int, LaggedTable] = {}
        for horizon in self.config.horizons:
            retained, dropped = self._prune_lags(predictors, horizon)
            if self.config.type == "train":
                table = self._build_train_table(values, horizon, retained, dropped, dynamic)
            else:
                table = self._build_forecast_table(values, horizon, retained, dropped, dynamic)
            tables[horizon] = table

            logger.debug(
                f"Horizon {horizon}: {table.n_rows} rows, {len(table.feature_names)} features "
                f"({sum(len(v) for v in dropped.values())} lags pruned)"
            )

        logger.info(
            f"Built {len(tables)} {self.config.type} tables for horizons {list(tables)}"
        )
        return tables

    # -------------------------------------------------------------------------
    # validation
    # -------------------------------------------------------------------------

    def _validate_series(self, series: pd.DataFrame) -> pd.DataFrame:
        if not isinstance(series, pd.DataFrame):
            raise ConfigurationError(
                f"series must be a pandas DataFrame, got {type(series).__name__}"
            )
        if series.columns.duplicated().any():
            dupes = list(series.columns[series.columns.duplicated()])
            raise ConfigurationError(f"series has duplicated columns: {dupes}")
        if self.config.outcome_name not in series.columns:
            raise ConfigurationError(
                f"Outcome column '{self.config.outcome_name}' not found. "
                f"Available: {list(series.columns)}"
            )
        missing = [c for c in self.config.dynamic_features if c not in series.columns]
        if missing:
            raise ConfigurationError(f"Dynamic feature columns not found: {missing}")
        if len(series) == 0:
            raise ConfigurationError("series is empty")

        # positional index; the caller's frame is never modified
        return series.reset_index(drop=True)

    def _resolve_predictors(self, values: pd.DataFrame) -> list[str]:
        """Columns to lag, in series column order."""
        outcome = self.config.outcome_name
        dynamic = set(self.config.dynamic_features)

        if isinstance(self.config.lookback, dict):
            unknown = [name for name in self.config.lookback if name not in values.columns]
            if unknown:
                raise ConfigurationError(
                    f"lookback names unknown column(s) {unknown}. "
                    f"Available: {list(values.columns)}"
                )
            candidates = [c for c in values.columns if c in self.config.lookback]
        else:
            candidates = list(values.columns)

        predictors = []
        for column in candidates:
            if column in dynamic:
                continue
            if column == outcome and not self.config.lag_outcome:
                continue
            predictors.append(column)

        # outcome lags lead the feature block
        if outcome in predictors:
            predictors.remove(outcome)
            predictors.insert(0, outcome)
        return predictors

    def _prune_lags(
        self,
        predictors: list[str],
        horizon: int,
    ) -> tuple[dict[str, tuple[int, ...]], dict[str, tuple[int, ...]]]:
        """Split requested lags into retained (L >= horizon) and dropped."""
        retained: dict[str, tuple[int, ...]] = {}
        dropped: dict[str, tuple[int, ...]] = {}
        for predictor in predictors:
            lags = self.config.lags_for(predictor)
            keep = tuple(lag for lag in lags if lag >= horizon)
            drop = tuple(lag for lag in lags if lag < horizon)
            if keep:
                retained[predictor] = keep
            if drop:
                dropped[predictor] = drop

        if not retained:
            raise ConfigurationError(
                f"Horizon {horizon} has no predictors: every requested lag is < {horizon}. "
                f"Add lags >= {horizon} or remove the horizon."
            )
        return retained, dropped

    # -------------------------------------------------------------------------
    # table construction
    # -------------------------------------------------------------------------

    def _build_train_table(
        self,
        values: pd.DataFrame,
        horizon: int,
        retained: dict[str, tuple[int, ...]],
        dropped: dict[str, tuple[int, ...]],
        dynamic: list[str],
    ) -> LaggedTable:
        outcome = self.config.outcome_name
        columns: dict[str, pd.Series] = {outcome: values[outcome]}
        for predictor, lags in retained.items():
            for lag in lags:
                columns[lag_column_name(predictor, lag)] = values[predictor].shift(lag)
        for name in dynamic:
            columns[name] = values[name]

        frame = pd.DataFrame(columns)
        feature_names = tuple(c for c in frame.columns if c != outcome)

        # rows before the deepest lag reference pre-series values
        max_lag = max(max(lags) for lags in retained.values())
        frame = frame.iloc[max_lag:]
        defined = frame.loc[:, list(feature_names)].notna().all(axis=1)
        n_missing = int((~defined).sum())
        if n_missing:
            logger.debug(f"Horizon {horizon}: dropped {n_missing} rows with missing predictor values")
        frame = frame.loc[defined]

        if frame.empty:
            raise ConfigurationError(
                f"Horizon {horizon}: no rows left after lagging {len(values)} rows "
                f"(deepest lag {max_lag}). Provide a longer series or shorter lags."
            )

        row_index_map = frame.index.to_numpy(dtype=np.int64, copy=True)
        frame.index = pd.Index(row_index_map, name=INDEX_NAME)

        return LaggedTable(
            horizon=horizon,
            data=frame,
            outcome_name=outcome,
            feature_names=feature_names,
            row_index_map=row_index_map,
            retained_lags=retained,
            dropped_lags=dropped,
            type="train",
        )

    def _build_forecast_table(
        self,
        values: pd.DataFrame,
        horizon: int,
        retained: dict[str, tuple[int, ...]],
        dropped: dict[str, tuple[int, ...]],
        dynamic: list[str],
    ) -> LaggedTable:
        n = len(values)
        steps = np.arange(1, horizon + 1, dtype=np.int64)
        targets = (n - 1) + steps

        columns: dict[str, np.ndarray] = {}
        for predictor, lags in retained.items():
            source = values[predictor].to_numpy()
            for lag in lags:
                positions = targets - lag
                if positions.min() < 0:
                    raise ConfigurationError(
                        f"Horizon {horizon}: lag {lag} of '{predictor}' reaches before the "
                        f"start of a {n}-row series"
                    )
                columns[lag_column_name(predictor, lag)] = source[positions]
        for name in dynamic:
            # future values of dynamic features are filled in by the caller
            columns[name] = np.full(horizon, np.nan)

        frame = pd.DataFrame(columns, index=pd.Index(targets, name=INDEX_NAME))
        feature_names = tuple(frame.columns)

        lagged = [c for c in feature_names if c not in dynamic]
        n_missing = int(frame.loc[:, lagged].isna().any(axis=1).sum())
        if n_missing:
            logger.warning(
                f"Horizon {horizon}: {n_missing} forecast rows have missing lagged values"
            )

        return LaggedTable(
            horizon=horizon,
            data=frame,
            outcome_name=self.config.outcome_name,
            feature_names=feature_names,
            row_index_map=targets.copy(),
            retained_lags=retained,
            dropped_lags=dropped,
            type="forecast",
            steps=steps,
        )


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_lagged_df(
    series: pd.DataFrame,
    outcome_name: str,
    horizons: list[int],
    lookback: Any,
    type: str = "train",
    lag_outcome: bool = True,
    dynamic_features: list[str] | None = None,
) -> dict[int, LaggedTable]:
    """
    Build horizon-specific lagged tables in one call.

    Args:
        series: Time-ordered DataFrame
        outcome_name: Name of the outcome column
        horizons: Forecast horizons
        lookback: Uniform lags, or a mapping of predictor -> lags
        type: "train" or "forecast"
        lag_outcome: Whether outcome lags are predictors
        dynamic_features: Columns used unlagged

    Returns:
        Dict mapping horizon -> LaggedTable
    """
    config = LagConfig(
        outcome_name=outcome_name,
        horizons=horizons,
        lookback=lookback,
        type=type,
        lag_outcome=lag_outcome,
        dynamic_features=list(dynamic_features or []),
    )
    return LagMatrixBuilder(config).build(series)


__all__ = [
    "LaggedTable",
    "LagMatrixBuilder",
    "create_lagged_df",
    "lag_column_name",
]
