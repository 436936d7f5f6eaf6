"""
Training engine: supervised training over windowed tensors.

- Validates the dataset before touching the model state.
- Lazily builds a model from the state's configuration when none exists.
- Holds out the temporal tail of the training set for validation.
- Reports a ``ProgressEvent`` after every epoch and periodically yields to
  the host through the progress sink.
- On a mid-training failure applies the configured ``RecoveryPolicy`` and
  raises ``TrainingFailure``.

Public helpers:
    - train()
    - ProgressSink / CallbackSink
"""

from __future__ import annotations

import math
import time
from typing import Callable, List, Optional, Tuple

import numpy as np
import structlog
import tensorflow as tf

from . import config
from .data import Dataset
from .errors import MissingDataError, TrainingFailure
from .models.builder import BackendArena, build_into
from .results import (
    EpochRecord,
    ProgressEvent,
    RecoveryPolicy,
    TrainingCompletedEvent,
    TrainingOutcome,
    TrainingStatus,
)
from .state import LifecycleState, ModelState

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Progress reporting
# ---------------------------------------------------------------------------


class ProgressSink:
    """
    Receiver for training progress. Subclass and override what you need.

    ``yield_to_host`` is the cooperative yield point; the default simply
    gives up the current time slice.
    """

    def on_epoch_end(self, event: ProgressEvent) -> None:
        pass

    def on_train_end(self, event: TrainingCompletedEvent) -> None:
        pass

    def yield_to_host(self) -> None:
        time.sleep(0)


class CallbackSink(ProgressSink):
    """
    Adapts plain callables to a ``ProgressSink``.

    ``on_epoch_end(epoch_index, metrics)`` receives a dict with ``loss``,
    ``val_loss``, ``elapsed``, ``progress`` and ``epochs_remaining``;
    ``on_train_end(total_seconds)`` receives the total training time.
    """

    def __init__(
        self,
        on_epoch_end: Optional[Callable[[int, dict], None]] = None,
        on_train_end: Optional[Callable[[float], None]] = None,
        yield_to_host: Optional[Callable[[], None]] = None,
    ):
        self._on_epoch_end = on_epoch_end
        self._on_train_end = on_train_end
        self._yield_to_host = yield_to_host

    def on_epoch_end(self, event: ProgressEvent) -> None:
        if self._on_epoch_end is None:
            return
        self._on_epoch_end(
            event.epoch_index,
            {
                "loss": event.training_loss,
                "val_loss": event.validation_loss,
                "elapsed": event.elapsed_seconds,
                "progress": event.progress_percent,
                "epochs_remaining": event.epochs_remaining,
            },
        )

    def on_train_end(self, event: TrainingCompletedEvent) -> None:
        if self._on_train_end is not None:
            self._on_train_end(event.total_elapsed_seconds)

    def yield_to_host(self) -> None:
        if self._yield_to_host is not None:
            self._yield_to_host()
        else:
            super().yield_to_host()


class ProgressCallback(tf.keras.callbacks.Callback):
    """Keras callback turning epoch logs into ``ProgressEvent`` values."""

    def __init__(
        self,
        state: ModelState,
        sink: ProgressSink,
        epochs: int,
        yield_every: int,
        start_time: float,
    ):
        super().__init__()
        self.state = state
        self.sink = sink
        self.epochs = epochs
        self.yield_every = max(1, yield_every)
        self.start_time = start_time
        self.events: List[ProgressEvent] = []

    def on_epoch_end(self, epoch, logs=None):
        logs = logs or {}
        loss = float(logs.get("loss", float("nan")))
        val_loss = logs.get("val_loss")
        val_loss = float(val_loss) if val_loss is not None else None

        event = ProgressEvent(
            epoch_index=epoch,
            training_loss=loss,
            validation_loss=val_loss,
            elapsed_seconds=time.perf_counter() - self.start_time,
            progress_percent=(epoch + 1) / self.epochs * 100.0,
            epochs_remaining=self.epochs - (epoch + 1),
        )
        self.events.append(event)
        self.state.training_history.append(EpochRecord(epoch, loss, val_loss))

        self.sink.on_epoch_end(event)
        if epoch % self.yield_every == 0:
            self.sink.yield_to_host()


# ---------------------------------------------------------------------------
# Training
# ---------------------------------------------------------------------------


def clamp_epochs(epoch_count) -> int:
    """Floor to an integer and clamp to at least one epoch."""
    if epoch_count is None:
        return config.DEFAULT_EPOCHS
    return max(1, int(math.floor(epoch_count)))


def split_validation(
    X: np.ndarray,
    y: np.ndarray,
    validation_fraction: float = config.VALIDATION_FRACTION,
) -> Tuple[np.ndarray, np.ndarray, Optional[Tuple[np.ndarray, np.ndarray]]]:
    """
    Hold out the last ``validation_fraction`` of samples, like Keras'
    ``validation_split``. Returns no validation data when either side of the
    split would be empty.
    """
    n_samples = X.shape[0]
    split_at = int(math.floor(n_samples * (1.0 - validation_fraction)))
    if split_at <= 0 or split_at >= n_samples:
        return X, y, None
    return X[:split_at], y[:split_at], (X[split_at:], y[split_at:])


def train(
    state: ModelState,
    dataset: Optional[Dataset],
    epoch_count=config.DEFAULT_EPOCHS,
    progress_sink: Optional[ProgressSink] = None,
    recovery_policy: RecoveryPolicy = RecoveryPolicy.PARTIAL_SUCCESS_ON_FAILURE,
    arena: Optional[BackendArena] = None,
) -> TrainingOutcome:
    """
    Train the state's model on ``dataset``.

    Args:
        state: Model state to train. A model is built from ``state.config``
            when the state holds none.
        dataset: Windowed inputs and targets.
        epoch_count: Requested epochs; floored and clamped to at least 1.
        progress_sink: Receives per-epoch and completion events.
        recovery_policy: What to do with ``is_trained`` when fit fails.
        arena: Backend arena used for a lazy build.

    Returns:
        TrainingOutcome with status COMPLETED.

    Raises:
        MissingDataError: inputs or targets are None.
        EmptyDatasetError: the dataset has zero samples.
        DatasetMismatchError: inputs/targets disagree in length or shape.
        BusyError: another operation is running on this state.
        TrainingFailure: the numeric computation failed mid-training.
    """
    if dataset is None:
        raise MissingDataError("Training data missing: dataset is None")

    model_config = state.config
    X, y = dataset.as_arrays(model_config.window_size, model_config.output_size)

    sink = progress_sink or ProgressSink()
    variant_cfg = model_config.variant_config
    epochs = clamp_epochs(epoch_count)

    with state.operation("train"):
        if state.model is None:
            logger.info("No model built yet, building from last configuration")
            build_into(state, arena)

        state.lifecycle = LifecycleState.TRAINING
        state.training_history = []

        effective_batch_size = max(
            1, min(model_config.configured_batch_size, X.shape[0])
        )
        X_fit, y_fit, validation_data = split_validation(
            X, y, config.VALIDATION_FRACTION
        )

        logger.info(
            "Starting training",
            variant=model_config.variant.value,
            epochs=epochs,
            batch_size=effective_batch_size,
            train_samples=int(X_fit.shape[0]),
            val_samples=0 if validation_data is None else int(validation_data[0].shape[0]),
            shuffle=variant_cfg["shuffle"],
        )

        start_time = time.perf_counter()
        callback = ProgressCallback(
            state=state,
            sink=sink,
            epochs=epochs,
            yield_every=variant_cfg["yield_every"],
            start_time=start_time,
        )

        try:
            state.model.fit(
                X_fit,
                y_fit,
                epochs=epochs,
                batch_size=effective_batch_size,
                validation_data=validation_data,
                shuffle=variant_cfg["shuffle"],
                callbacks=[callback],
                verbose=0,
            )
        except Exception as exc:
            outcome = TrainingOutcome(
                status=TrainingStatus.PARTIAL,
                epochs_requested=epochs,
                epochs_run=len(callback.events),
                effective_batch_size=effective_batch_size,
                total_elapsed_seconds=time.perf_counter() - start_time,
                events=list(callback.events),
            )
            if recovery_policy is RecoveryPolicy.PARTIAL_SUCCESS_ON_FAILURE:
                state.is_trained = True
                logger.warning(
                    "Training failed, model flagged as trained",
                    policy=recovery_policy.value,
                    epochs_run=outcome.epochs_run,
                    error=str(exc),
                )
            else:
                # weights may be partly overwritten by a retrain
                state.is_trained = False
                logger.error(
                    "Training failed",
                    policy=recovery_policy.value,
                    epochs_run=outcome.epochs_run,
                    error=str(exc),
                )
            raise TrainingFailure(
                f"Training failed after {outcome.epochs_run}/{epochs} epochs: {exc}",
                outcome,
            ) from exc

        total_elapsed = time.perf_counter() - start_time
        state.is_trained = True

        outcome = TrainingOutcome(
            status=TrainingStatus.COMPLETED,
            epochs_requested=epochs,
            epochs_run=len(callback.events),
            effective_batch_size=effective_batch_size,
            total_elapsed_seconds=total_elapsed,
            events=list(callback.events),
        )
        logger.info(
            "Training completed",
            total_seconds=round(total_elapsed, 1),
            final_loss=outcome.events[-1].training_loss if outcome.events else None,
        )
        sink.on_train_end(TrainingCompletedEvent(total_elapsed_seconds=total_elapsed))

    return outcome
