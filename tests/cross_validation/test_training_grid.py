"""
Tests for TrainingGrid.

Tests:
- One training call per cell on the complement of the window
- Null-window training on every row
- Partial-failure semantics (including the 168-cell scenario)
- Parallel execution and cancellation
- Input validation
"""
import threading

import numpy as np
import pytest

from direct_forecast.cross_validation import CellKey, TrainingGrid, create_windows
from direct_forecast.exceptions import ConfigurationError, GridTrainingError, ModelTrainingError
from direct_forecast.models import FunctionModel


def recording_model(calls, horizon_of):
    """Mean model that records (horizon, training row indices) per call."""
    lock = threading.Lock()

    def train(data, outcome_column_index):
        with lock:
            calls.append((horizon_of(data), set(data.index)))
        return float(data.iloc[:, outcome_column_index].mean())

    def predict(model, features):
        return np.full(len(features), model)

    return FunctionModel("recorder", train, predict)


# =============================================================================
# CELL TRAINING
# =============================================================================

class TestGridTraining:
    """Tests for per-cell training."""

    def test_one_call_per_cell(self, tables_60, windows_60, horizon_of):
        calls = []
        grid = TrainingGrid().train(tables_60, windows_60, recording_model(calls, horizon_of))

        assert len(calls) == 3 * 6
        assert grid.n_cells == 18
        assert grid.n_succeeded == 18
        assert grid.is_complete
        assert set(grid.models) == {
            CellKey("recorder", h, w.window_id) for h in (1, 2, 3) for w in windows_60
        }

    def test_training_rows_exclude_window(self, tables_60, windows_60, horizon_of):
        calls = []
        TrainingGrid().train(tables_60, windows_60, recording_model(calls, horizon_of))

        all_rows = set(range(4, 60))
        for window in windows_60:
            held_out = set(range(window.start, window.stop))
            expected = all_rows - held_out
            assert sum(1 for _, rows in calls if rows == expected) == 3

    def test_null_window_trains_on_everything(self, tables_60, horizon_of):
        calls = []
        windows = create_windows(60, window_length=0)
        grid = TrainingGrid().train(tables_60, windows, recording_model(calls, horizon_of))

        assert grid.n_cells == 3
        assert all(rows == set(range(4, 60)) for _, rows in calls)

    def test_model_handles_are_opaque(self, tables_60, windows_60):
        """Whatever the closure returns is stored untouched."""
        sentinel = object()
        model = FunctionModel("opaque", lambda data, idx: sentinel, lambda m, f: np.zeros(len(f)))
        grid = TrainingGrid().train(tables_60, windows_60, model)

        assert grid.get_model(2, 3) is sentinel

    def test_training_receives_outcome_index(self, tables_60, windows_60):
        seen = []

        def train(data, outcome_column_index):
            seen.append(data.columns[outcome_column_index])
            return 0.0

        TrainingGrid().train(tables_60, windows_60, FunctionModel("m", train, lambda m, f: f))
        assert set(seen) == {"y"}


# =============================================================================
# PARTIAL FAILURE
# =============================================================================

class TestPartialFailure:
    """Tests for per-cell failure capture."""

    def test_single_cell_failure_168(self, large_grid_inputs, mean_model, horizon_of):
        """Window 3 of horizon 2 raises; the other 167 cells still train."""
        window_3 = large_grid_inputs["windows"][2]
        assert (window_3.start, window_3.stop) == (44, 56)

        def train(data, outcome_column_index):
            if horizon_of(data) == 2 and 50 not in data.index:
                raise RuntimeError("singular matrix")
            return mean_model.train(data, outcome_column_index)

        model = FunctionModel("flaky", train, mean_model.predict)
        grid = TrainingGrid().train(large_grid_inputs["tables"], large_grid_inputs["windows"], model)

        assert grid.n_cells == 168
        assert grid.n_succeeded == 167
        assert grid.n_failed == 1

        failure = grid.failed_cells[0]
        assert isinstance(failure, ModelTrainingError)
        assert (failure.horizon, failure.window_id) == (2, 3)
        assert failure.model_name == "flaky"
        assert isinstance(failure.cause, RuntimeError)
        assert CellKey("flaky", 2, 3) not in grid.models
        with pytest.raises(KeyError):
            grid.get_model(2, 3)

    def test_all_cells_failed_is_fatal(self, tables_60, windows_60):
        def train(data, outcome_column_index):
            raise ValueError("bad data")

        with pytest.raises(GridTrainingError) as exc_info:
            TrainingGrid().train(tables_60, windows_60, FunctionModel("broken", train, lambda m, f: f))

        assert len(exc_info.value.failures) == 18

    def test_summary_reports_failures(self, tables_60, windows_60, horizon_of):
        def train(data, outcome_column_index):
            if horizon_of(data) == 3:
                raise RuntimeError("no convergence")
            return 1.0

        grid = TrainingGrid().train(tables_60, windows_60, FunctionModel("m", train, lambda m, f: f))
        summary = grid.summary()

        assert summary["n_succeeded"] == 12
        assert summary["n_failed"] == 6
        assert {cell["horizon"] for cell in summary["failed_cells"]} == {3}
        assert summary["failed_cells"][0]["error_type"] == "RuntimeError"


# =============================================================================
# CONCURRENCY
# =============================================================================

class TestConcurrency:
    """Tests for worker pool execution and cancellation."""

    def test_parallel_matches_sequential(self, large_grid_inputs, mean_model):
        tables, windows = large_grid_inputs["tables"], large_grid_inputs["windows"]

        sequential = TrainingGrid(n_jobs=1).train(tables, windows, mean_model)
        parallel = TrainingGrid(n_jobs=4).train(tables, windows, mean_model)

        assert sequential.models.keys() == parallel.models.keys()
        for key, value in sequential.models.items():
            assert parallel.models[key] == pytest.approx(value)

    def test_cancellation_stops_scheduling(self, tables_60, windows_60):
        cancel = threading.Event()

        def train(data, outcome_column_index):
            cancel.set()
            return 0.0

        grid = TrainingGrid(n_jobs=1).train(
            tables_60, windows_60, FunctionModel("m", train, lambda m, f: f), cancel_event=cancel
        )

        assert len(grid.models) == 1
        assert len(grid.cancelled_cells) == 17
        assert grid.n_failed == 0
        assert not grid.is_complete

    def test_discard_models(self, tables_60, windows_60, mean_model):
        grid = TrainingGrid().train(tables_60, windows_60, mean_model)
        grid.discard_models()

        assert grid.models == {}
        assert grid.n_succeeded == 18
        with pytest.raises(KeyError, match="discarded"):
            grid.get_model(1, 1)


# =============================================================================
# VALIDATION
# =============================================================================

class TestGridValidation:
    """Tests for invalid grid inputs."""

    def test_plain_callable_rejected(self, tables_60, windows_60):
        with pytest.raises(ConfigurationError, match="FunctionModel"):
            TrainingGrid().train(tables_60, windows_60, lambda data, idx: 0.0)

    def test_empty_tables(self, windows_60, mean_model):
        with pytest.raises(ConfigurationError):
            TrainingGrid().train({}, windows_60, mean_model)

    def test_forecast_tables_rejected(self, series_60, windows_60, mean_model):
        from direct_forecast.data import create_lagged_df

        tables = create_lagged_df(series_60, "y", horizons=[1], lookback=[1], type="forecast")
        with pytest.raises(ConfigurationError, match="train-mode"):
            TrainingGrid().train(tables, windows_60, mean_model)

    def test_invalid_n_jobs(self):
        with pytest.raises(ConfigurationError):
            TrainingGrid(n_jobs=0)
