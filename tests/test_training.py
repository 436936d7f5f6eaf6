import numpy as np
import pytest

from finance_forecast.config import ModelConfiguration
from finance_forecast.data import Dataset
from finance_forecast.errors import (
    BusyError,
    DatasetMismatchError,
    EmptyDatasetError,
    MissingDataError,
    TrainingFailure,
)
from finance_forecast.models.builder import BackendArena, build
from finance_forecast.results import RecoveryPolicy, TrainingStatus
from finance_forecast.state import LifecycleState, ModelState
from finance_forecast.training import (
    CallbackSink,
    ProgressSink,
    clamp_epochs,
    split_validation,
    train,
)


# --------------------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------------------


def _make_dataset(n: int = 20, window: int = 8, horizon: int = 3) -> Dataset:
    """
    Small synthetic windowed dataset of shape (n, window, 1) -> (n, horizon).
    """
    rng = np.random.default_rng(0)
    X = rng.random((n, window, 1)).astype("float32")
    y = rng.random((n, horizon)).astype("float32")
    return Dataset(X, y)


def _make_state(window: int = 8, horizon: int = 3, variant: str = "lightweight") -> ModelState:
    cfg = ModelConfiguration(window_size=window, prediction_horizon=horizon, variant=variant)
    return ModelState(config=cfg)


class RecordingSink(ProgressSink):
    def __init__(self):
        self.events = []
        self.completed = []
        self.yields = 0

    def on_epoch_end(self, event):
        self.events.append(event)

    def on_train_end(self, event):
        self.completed.append(event)

    def yield_to_host(self):
        self.yields += 1


class FailingModel:
    """Stands in for a Keras model whose fit blows up after one epoch."""

    def fit(self, X, y, callbacks=None, **kwargs):
        for callback in callbacks or []:
            callback.on_epoch_end(0, {"loss": 0.5})
        raise RuntimeError("NaN encountered in gradients")


class RecordingModel:
    """Records the fit arguments and reports a fixed loss for every epoch."""

    def __init__(self):
        self.fit_kwargs = {}

    def fit(self, X, y, epochs=1, callbacks=None, **kwargs):
        self.fit_kwargs = dict(kwargs, epochs=epochs)
        for epoch in range(epochs):
            for callback in callbacks or []:
                callback.on_epoch_end(epoch, {"loss": 0.1, "val_loss": 0.2})


# --------------------------------------------------------------------------------------
# Preconditions
# --------------------------------------------------------------------------------------


def test_train_without_inputs_raises_before_mutation():
    state = _make_state()

    with pytest.raises(MissingDataError):
        train(state, Dataset(None, np.zeros((3, 3))), epoch_count=1)

    # No lazy build happened
    assert state.model is None
    assert state.lifecycle is LifecycleState.UNBUILT
    assert state.is_trained is False


def test_train_with_none_dataset_raises_missing_data():
    with pytest.raises(MissingDataError):
        train(_make_state(), None)


def test_train_with_empty_dataset_raises():
    state = _make_state()
    empty = Dataset(np.zeros((0, 8, 1)), np.zeros((0, 3)))

    with pytest.raises(EmptyDatasetError):
        train(state, empty, epoch_count=1)
    assert state.model is None


def test_train_with_mismatched_lengths_raises():
    state = _make_state()
    bad = Dataset(np.zeros((5, 8, 1)), np.zeros((4, 3)))

    with pytest.raises(DatasetMismatchError):
        train(state, bad, epoch_count=1)


# --------------------------------------------------------------------------------------
# Helpers: epochs and validation split
# --------------------------------------------------------------------------------------


@pytest.mark.parametrize(
    "requested, expected", [(0, 1), (-3, 1), (2.7, 2), (10, 10)]
)
def test_clamp_epochs(requested, expected):
    assert clamp_epochs(requested) == expected


def test_split_validation_holds_out_tail():
    X = np.arange(20).reshape(20, 1, 1)
    y = np.arange(20).reshape(20, 1)

    X_fit, y_fit, val = split_validation(X, y, 0.1)

    assert X_fit.shape[0] == 18
    assert val is not None
    np.testing.assert_array_equal(val[1].ravel(), [18, 19])


def test_split_validation_skipped_when_too_small():
    X = np.zeros((1, 4, 1))
    y = np.zeros((1, 1))

    X_fit, _, val = split_validation(X, y, 0.1)

    assert X_fit.shape[0] == 1
    assert val is None


# --------------------------------------------------------------------------------------
# Training runs (tiny real models)
# --------------------------------------------------------------------------------------


def test_train_lazily_builds_and_marks_trained():
    state = _make_state()
    sink = RecordingSink()

    outcome = train(state, _make_dataset(), epoch_count=2, progress_sink=sink, arena=BackendArena())

    assert state.model is not None
    assert state.is_trained is True
    assert state.lifecycle is LifecycleState.TRAINED
    assert outcome.status is TrainingStatus.COMPLETED
    assert outcome.epochs_run == 2
    assert len(state.training_history) == 2
    assert len(sink.completed) == 1


def test_progress_events_increase_to_completion():
    state = _make_state()
    sink = RecordingSink()

    train(state, _make_dataset(), epoch_count=4, progress_sink=sink, arena=BackendArena())

    percents = [e.progress_percent for e in sink.events]
    remaining = [e.epochs_remaining for e in sink.events]

    assert percents == pytest.approx([25.0, 50.0, 75.0, 100.0])
    assert all(b > a for a, b in zip(percents, percents[1:]))
    assert remaining == [3, 2, 1, 0]
    assert [e.epoch_index for e in sink.events] == [0, 1, 2, 3]
    # 20 samples -> 2 held out for validation
    assert all(e.validation_loss is not None for e in sink.events)
    # Lightweight variant yields every third epoch: epochs 0 and 3
    assert sink.yields == 2


def test_zero_epochs_runs_one_epoch_and_calls_train_end():
    state = _make_state()
    epoch_calls = []
    end_calls = []
    sink = CallbackSink(
        on_epoch_end=lambda epoch, logs: epoch_calls.append((epoch, logs)),
        on_train_end=lambda total: end_calls.append(total),
    )

    outcome = train(state, _make_dataset(), epoch_count=0, progress_sink=sink, arena=BackendArena())

    assert outcome.epochs_run == 1
    assert len(state.training_history) == 1
    assert len(epoch_calls) == 1
    assert epoch_calls[0][1]["progress"] == pytest.approx(100.0)
    assert epoch_calls[0][1]["epochs_remaining"] == 0
    assert len(end_calls) == 1
    assert end_calls[0] >= 0.0


def test_batch_size_capped_by_sample_count():
    state = _make_state()

    outcome = train(state, _make_dataset(n=10), epoch_count=1, arena=BackendArena())

    # lightweight batch size is 256; capped by all 10 samples, before the
    # validation tail is held out
    assert outcome.effective_batch_size == 10


@pytest.mark.parametrize(
    "variant, shuffle, batch_size, yields",
    [
        # every third epoch: 0 and 3
        ("lightweight", False, 20, 2),
        ("deep", True, 20, 4),
    ],
)
def test_fit_uses_variant_shuffle_and_yield_policy(variant, shuffle, batch_size, yields):
    state = _make_state(variant=variant)
    state.model = RecordingModel()
    sink = RecordingSink()

    outcome = train(state, _make_dataset(n=20), epoch_count=4, progress_sink=sink)

    assert state.model.fit_kwargs["shuffle"] is shuffle
    assert state.model.fit_kwargs["epochs"] == 4
    assert outcome.effective_batch_size == batch_size
    assert sink.yields == yields
    assert len(sink.events) == 4


def test_deep_batch_size_is_configured_value_when_enough_samples():
    state = _make_state(variant="deep")
    state.model = RecordingModel()

    outcome = train(state, _make_dataset(n=50), epoch_count=1)

    assert outcome.effective_batch_size == 32
    assert state.model.fit_kwargs["batch_size"] == 32


def test_deep_variant_accepts_multi_step_targets():
    state = _make_state(variant="deep")

    train(state, _make_dataset(horizon=3), epoch_count=1, arena=BackendArena())

    assert state.is_trained is True
    assert state.model.output_shape == (None, 1)


def test_retraining_resets_history():
    state = _make_state()
    arena = BackendArena()

    train(state, _make_dataset(), epoch_count=3, arena=arena)
    train(state, _make_dataset(), epoch_count=2, arena=arena)

    assert len(state.training_history) == 2


# --------------------------------------------------------------------------------------
# Failure recovery
# --------------------------------------------------------------------------------------


def test_training_failure_flags_model_trained_under_partial_policy():
    state = _make_state()
    state.model = FailingModel()
    sink = RecordingSink()

    with pytest.raises(TrainingFailure) as exc_info:
        train(state, _make_dataset(), epoch_count=5, progress_sink=sink)

    assert state.is_trained is True
    assert state.lifecycle is LifecycleState.TRAINED
    assert isinstance(exc_info.value.__cause__, RuntimeError)

    outcome = exc_info.value.outcome
    assert outcome.status is TrainingStatus.PARTIAL
    assert outcome.epochs_run == 1
    assert len(state.training_history) == 1
    # No completion event on failure
    assert sink.completed == []


def test_training_failure_under_strict_policy_leaves_model_untrained():
    state = _make_state()
    state.model = FailingModel()

    with pytest.raises(TrainingFailure):
        train(state, _make_dataset(), epoch_count=2, recovery_policy=RecoveryPolicy.STRICT)

    assert state.is_trained is False
    assert state.lifecycle is LifecycleState.BUILT


def test_failed_retrain_under_strict_policy_clears_trained_flag():
    state = _make_state()
    state.model = RecordingModel()
    train(state, _make_dataset(), epoch_count=1)
    assert state.is_trained is True

    state.model = FailingModel()
    with pytest.raises(TrainingFailure):
        train(state, _make_dataset(), epoch_count=2, recovery_policy=RecoveryPolicy.STRICT)

    assert state.is_trained is False
    assert state.lifecycle is LifecycleState.BUILT


# --------------------------------------------------------------------------------------
# Reentry
# --------------------------------------------------------------------------------------


def test_train_while_busy_raises():
    state = build(ModelConfiguration(window_size=8, prediction_horizon=3), arena=BackendArena())

    with state.operation("evaluate"):
        with pytest.raises(BusyError, match="evaluate"):
            train(state, _make_dataset(), epoch_count=1)
