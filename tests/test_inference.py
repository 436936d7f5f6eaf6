import numpy as np
import pytest

from finance_forecast.config import ModelConfiguration
from finance_forecast.errors import BusyError, MissingInputError
from finance_forecast.inference import denormalize_returns, predict, project_prices
from finance_forecast.models.builder import BackendArena, build
from finance_forecast.results import PredictionResult, ResultSource
from finance_forecast.state import ModelState


# --------------------------------------------------------------------------------------
# predict
# --------------------------------------------------------------------------------------


@pytest.mark.parametrize("shape", [(8,), (8, 1), (1, 8, 1)])
def test_predict_returns_horizon_length_for_any_window_shape(shape):
    state = build(ModelConfiguration(window_size=8, prediction_horizon=4), arena=BackendArena())

    result = predict(state, np.random.rand(*shape))

    assert isinstance(result, PredictionResult)
    assert len(result) == 4
    assert result.source is ResultSource.MEASURED
    assert all(isinstance(v, float) for v in result)


def test_predict_deep_variant_returns_single_value():
    cfg = ModelConfiguration(window_size=6, prediction_horizon=5, variant="deep")
    state = build(cfg, arena=BackendArena())

    result = predict(state, np.zeros(6))

    assert len(result) == 1


def test_predict_lazily_builds_untrained_model():
    state = ModelState(config=ModelConfiguration(window_size=5, prediction_horizon=2))

    result = predict(state, np.zeros(5), arena=BackendArena())

    assert state.model is not None
    assert state.is_trained is False
    assert len(result) == 2


def test_predict_without_window_raises():
    state = ModelState(config=ModelConfiguration(window_size=5, prediction_horizon=2))

    with pytest.raises(MissingInputError):
        predict(state, None)
    assert state.model is None


def test_predict_falls_back_to_zeros_on_failure():
    class BrokenModel:
        def predict(self, X, verbose=0):
            raise RuntimeError("backend exploded")

    state = ModelState(config=ModelConfiguration(window_size=5, prediction_horizon=3))
    state.model = BrokenModel()

    result = predict(state, np.zeros(5))

    assert list(result) == [0.0, 0.0, 0.0]
    assert result.is_fallback


def test_predict_wrong_window_length_falls_back_to_zeros():
    state = build(ModelConfiguration(window_size=8, prediction_horizon=2), arena=BackendArena())

    result = predict(state, np.zeros(5))

    assert list(result) == [0.0, 0.0]
    assert result.source is ResultSource.FALLBACK


def test_predict_while_busy_raises():
    state = build(ModelConfiguration(window_size=5, prediction_horizon=2), arena=BackendArena())

    with state.operation("train"):
        with pytest.raises(BusyError):
            predict(state, np.zeros(5))


# --------------------------------------------------------------------------------------
# Price projection
# --------------------------------------------------------------------------------------


def test_project_prices_compounds_returns():
    """
    100 -> +10% -> 110 -> -10% -> 99
    """
    points = project_prices([0.1, -0.1], last_price=100.0)

    assert [p.day for p in points] == [1, 2]
    assert points[0].price == pytest.approx(110.0)
    assert points[0].change == pytest.approx(10.0)
    assert points[1].price == pytest.approx(99.0)
    assert points[1].change == pytest.approx(-11.0)


def test_denormalize_returns_applies_function():
    assert denormalize_returns([0.0, 1.0], lambda v: v * 2 - 1) == [-1.0, 1.0]
