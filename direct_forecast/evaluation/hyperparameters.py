"""
Hyperparameter collection for stability analysis across grid cells.

Inner-loop tuning happens inside the user's training closure, so each cell
can settle on different hyperparameters. Collecting them per
(model, horizon, window) and joining them to the per-window errors shows
whether the chosen values are stable across time.
"""
from __future__ import annotations

import logging
import numbers
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from direct_forecast.cross_validation.grid import CellKey, GridResult
from direct_forecast.evaluation.errors import ErrorResult
from direct_forecast.exceptions import SchemaMismatchError

logger = logging.getLogger(__name__)

KEY_COLUMNS = ["model", "horizon", "window_id"]


@dataclass
class HyperparameterResult:
    """
    Hyperparameters per grid cell.

    Attributes:
        table: One row per collected cell
        names: Hyperparameter names shared by every collected cell
        diagnostics: Cells excluded because their schema did not match
    """
    table: pd.DataFrame
    names: list[str] = field(default_factory=list)
    diagnostics: list[SchemaMismatchError] = field(default_factory=list)

    @property
    def n_excluded(self) -> int:
        return len(self.diagnostics)


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (numbers.Number, str, bool, np.generic))


class HyperparameterCollector:
    """
    Extracts hyperparameters from every successfully trained cell.

    The first cell (in horizon, window order) fixes the expected names; cells
    returning a different name set are excluded with a warning.
    """

    def collect(
        self,
        grid: GridResult,
        hyper_fn: Callable[[Any], Mapping[str, Any]] | None = None,
        errors: ErrorResult | pd.DataFrame | None = None,
    ) -> HyperparameterResult:
        """
        Collect hyperparameters for one model's grid.

        Args:
            grid: Trained grid (fitted models must still be held)
            hyper_fn: Extraction closure; defaults to the grid model's
                extract_hyperparameters port
            errors: ErrorResult or error_by_window table to join on
                (model, horizon, window_id)

        Returns:
            HyperparameterResult
        """
        extract = hyper_fn if hyper_fn is not None else grid.model.extract_hyperparameters

        rows: list[dict[str, Any]] = []
        names: list[str] | None = None
        diagnostics: list[SchemaMismatchError] = []

        for key in sorted(grid.models):
            try:
                params = self._extract(extract, grid.models[key], key)
            except SchemaMismatchError as e:
                diagnostics.append(e)
                continue

            if names is None:
                names = list(params)
            elif set(params) != set(names):
                diagnostics.append(
                    SchemaMismatchError(
                        key.horizon, key.window_id, model_name=key.model_name,
                        message=f"expected {sorted(names)}, got {sorted(params)}",
                    )
                )
                continue

            row = {"model": key.model_name, "horizon": key.horizon, "window_id": key.window_id}
            row.update({name: params[name] for name in names})
            rows.append(row)

        for diagnostic in diagnostics:
            logger.warning(f"Excluded from hyperparameter table: {diagnostic}")

        names = names or []
        table = pd.DataFrame(rows, columns=KEY_COLUMNS + names)
        if errors is not None:
            table = self._join_errors(table, errors)

        logger.info(
            f"{grid.model_name}: collected hyperparameters for {len(rows)} cells "
            f"({len(diagnostics)} excluded)"
        )
        return HyperparameterResult(table=table, names=names, diagnostics=diagnostics)

    @staticmethod
    def _extract(
        extract: Callable[[Any], Mapping[str, Any]],
        model: Any,
        key: CellKey,
    ) -> Mapping[str, Any]:
        try:
            params = extract(model)
        except Exception as e:
            raise SchemaMismatchError(key.horizon, key.window_id, cause=e, model_name=key.model_name) from e

        if not isinstance(params, Mapping):
            raise SchemaMismatchError(
                key.horizon, key.window_id, model_name=key.model_name,
                message=f"expected a mapping, got {type(params).__name__}",
            )
        non_scalar = [name for name, value in params.items() if not _is_scalar(value)]
        if non_scalar:
            raise SchemaMismatchError(
                key.horizon, key.window_id, model_name=key.model_name,
                message=f"non-scalar hyperparameters {non_scalar}",
            )
        return params

    @staticmethod
    def _join_errors(table: pd.DataFrame, errors: ErrorResult | pd.DataFrame) -> pd.DataFrame:
        by_window = errors.error_by_window if isinstance(errors, ErrorResult) else errors
        if by_window is None:
            logger.warning("No per-window errors to join (forecast-mode errors)")
            return table
        return table.merge(by_window, on=KEY_COLUMNS, how="left", suffixes=("", "_error"))


__all__ = [
    "HyperparameterCollector",
    "HyperparameterResult",
]
