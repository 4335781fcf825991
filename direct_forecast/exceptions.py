"""
Exception taxonomy for direct forecasting runs.

Configuration and alignment errors abort the operation that raised them.
Per-cell errors (training, prediction, hyperparameter schema) are captured
and returned alongside partial results so one bad cell never sinks a grid.
"""
from __future__ import annotations

from typing import Any


class DirectForecastError(Exception):
    """Base class for all package errors."""
    pass


class ConfigurationError(DirectForecastError):
    """Raised when static arguments are invalid. Always fatal."""
    pass


class DataAlignmentError(DirectForecastError):
    """Raised when predictions cannot be joined to ground truth by row index."""
    pass


class CellError(DirectForecastError):
    """
    Error attached to a single (model, horizon, window) grid cell.

    Attributes:
        horizon: Forecast horizon of the cell
        window_id: Outer-loop window of the cell
        model_name: Model variant that owned the cell
        cause: Underlying exception raised by the user closure (if any)
    """
    stage = "cell"

    def __init__(
        self,
        horizon: int,
        window_id: int,
        cause: BaseException | None = None,
        model_name: str | None = None,
        message: str | None = None,
    ) -> None:
        self.horizon = horizon
        self.window_id = window_id
        self.cause = cause
        self.model_name = model_name
        detail = message or (f"{type(cause).__name__}: {cause}" if cause else "unknown error")
        prefix = f"{model_name} " if model_name else ""
        super().__init__(
            f"{prefix}{self.stage} failed for horizon={horizon}, window={window_id}: {detail}"
        )

    @property
    def key(self) -> tuple[str | None, int, int]:
        return (self.model_name, self.horizon, self.window_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model_name,
            "horizon": self.horizon,
            "window_id": self.window_id,
            "stage": self.stage,
            "error": str(self.cause) if self.cause is not None else str(self),
            "error_type": type(self.cause).__name__ if self.cause is not None else None,
        }


class ModelTrainingError(CellError):
    """Training closure failed for one cell."""
    stage = "training"


class PredictionError(CellError):
    """Prediction closure failed (or returned a malformed table) for one cell."""
    stage = "prediction"


class SchemaMismatchError(CellError):
    """Hyperparameter extraction returned a different schema than its siblings."""
    stage = "hyperparameter extraction"


class GridTrainingError(DirectForecastError):
    """Raised when every cell of a training grid failed."""

    def __init__(self, model_name: str, failures: list[ModelTrainingError]) -> None:
        self.model_name = model_name
        self.failures = failures
        first = failures[0] if failures else None
        super().__init__(
            f"All {len(failures)} training cells failed for model '{model_name}'"
            + (f" (first error: {first})" if first is not None else "")
        )


__all__ = [
    "DirectForecastError",
    "ConfigurationError",
    "DataAlignmentError",
    "CellError",
    "ModelTrainingError",
    "PredictionError",
    "SchemaMismatchError",
    "GridTrainingError",
]
