"""
End-to-end tests for DirectForecastRunner.

Tests:
- Full nested CV run with several model variants
- Summary, hyperparameter join and forward forecasts
- keep_models=False and partial failures
"""
import numpy as np
import pytest
from sklearn.linear_model import Ridge

from direct_forecast import (
    ConfigurationError,
    DirectForecastRunner,
    ErrorAggregator,
    ForecastConfig,
    FunctionModel,
    LagConfig,
    SklearnRegressorModel,
    WindowConfig,
    combine_forecasts,
)


@pytest.fixture
def config():
    return ForecastConfig(
        lags=LagConfig(outcome_name="y", horizons=[1, 3], lookback=[1, 2, 3, 4]),
        windows=WindowConfig(window_length=12),
        metrics=["mae", "smape"],
    )


@pytest.fixture
def models(mean_model):
    return [SklearnRegressorModel("ridge", Ridge(alpha=1.0), hyperparameters=["alpha"]), mean_model]


@pytest.fixture
def run_result(config, models, random_walk_series):
    return DirectForecastRunner(config).run(random_walk_series, models)


class TestRunner:
    """Tests for a complete run."""

    def test_grids_complete(self, run_result):
        assert set(run_result.grids) == {"ridge", "mean"}
        assert len(run_result.windows) == 10
        for grid in run_result.grids.values():
            assert grid.n_cells == 20
            assert grid.is_complete

    def test_predictions_cover_every_table_row(self, run_result):
        predictions = run_result.predictions.predictions

        # table rows 4..119, for 2 horizons and 2 models
        assert len(predictions) == 2 * 2 * 116
        counts = predictions.groupby(["model", "horizon"])["valid_indices"].nunique()
        assert (counts == 116).all()

    def test_error_tables(self, run_result):
        errors = run_result.errors

        assert len(errors.error_by_window) == 2 * 2 * 10
        assert len(errors.error_by_horizon) == 4
        assert set(errors.error_global["model"]) == {"ridge", "mean"}
        assert errors.metrics == ["mae", "smape"]

    def test_errors_reproducible_from_predictions(self, run_result):
        again = ErrorAggregator(["mae", "smape"]).aggregate(run_result.predictions)

        np.testing.assert_allclose(
            again.error_global["mae"].to_numpy(), run_result.errors.error_global["mae"].to_numpy()
        )

    def test_hyperparameters_joined(self, run_result):
        ridge = run_result.hyperparameters["ridge"].table

        assert len(ridge) == 20
        assert (ridge["alpha"] == 1.0).all()
        assert "mae" in ridge.columns
        assert not ridge["mae"].isna().any()

    def test_summary(self, run_result):
        summary = run_result.summary()

        assert summary["n_horizons"] == 2
        assert summary["n_windows"] == 10
        assert summary["models"]["ridge"]["n_succeeded"] == 20
        assert summary["models"]["mean"]["n_prediction_failures"] == 0
        assert len(summary["error_global"]) == 2

    def test_forecast(self, run_result, random_walk_series):
        forecasts = run_result.forecast(random_walk_series)
        predictions = forecasts.predictions

        assert forecasts.mode == "forecast"
        # per model: 10 windows x (1 + 3) steps
        assert len(predictions) == 2 * 10 * 4
        assert predictions["valid_indices"].min() == 120
        assert predictions["valid_indices"].max() == 122

        combined = combine_forecasts(forecasts)
        assert len(combined) == 2 * 10 * 3

    def test_forecast_single_model(self, run_result, random_walk_series):
        predictions = run_result.forecast(random_walk_series, models=["mean"]).predictions

        assert set(predictions["model"]) == {"mean"}

    def test_forecast_unknown_model(self, run_result, random_walk_series):
        with pytest.raises(ConfigurationError, match="Unknown"):
            run_result.forecast(random_walk_series, models=["lasso"])


class TestRunnerOptions:
    """Tests for run options and failure handling."""

    def test_discarded_models_cannot_forecast(self, config, models, random_walk_series):
        config.keep_models = False
        result = DirectForecastRunner(config).run(random_walk_series, models)

        assert result.grids["ridge"].models == {}
        assert len(result.hyperparameters["ridge"].table) == 20
        with pytest.raises(ConfigurationError, match="discarded"):
            result.forecast(random_walk_series)

    def test_single_model_argument(self, config, mean_model, random_walk_series):
        result = DirectForecastRunner(config).run(random_walk_series, mean_model)

        assert list(result.grids) == ["mean"]

    def test_duplicate_model_names(self, config, mean_model, random_walk_series):
        with pytest.raises(ConfigurationError, match="unique"):
            DirectForecastRunner(config).run(random_walk_series, [mean_model, mean_model])

    def test_no_models(self, config, random_walk_series):
        with pytest.raises(ConfigurationError):
            DirectForecastRunner(config).run(random_walk_series, [])

    def test_partial_failure_surfaces_in_summary(self, config, mean_model, random_walk_series):
        def train(data, outcome_column_index):
            if "y_lag1" not in data.columns:
                raise RuntimeError("horizon 3 unsupported")
            return mean_model.train(data, outcome_column_index)

        flaky = FunctionModel("flaky", train, mean_model.predict)
        result = DirectForecastRunner(config).run(random_walk_series, [flaky])

        grid = result.grids["flaky"]
        assert grid.n_failed == 10
        assert set(result.predictions.predictions["horizon"]) == {1}
        assert result.summary()["models"]["flaky"]["n_failed"] == 10

    def test_parallel_run(self, config, models, random_walk_series, run_result):
        config.n_jobs = 3
        parallel = DirectForecastRunner(config).run(random_walk_series, models)

        np.testing.assert_allclose(
            parallel.errors.error_by_window["mae"].to_numpy(),
            run_result.errors.error_by_window["mae"].to_numpy(),
        )
