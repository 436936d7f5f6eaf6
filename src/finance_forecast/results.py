"""
Value objects produced by the engines.

Every result that may come from a fallback path carries a ``source`` tag so
callers can tell a real metric or forecast from a placeholder.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

import numpy as np

from . import config


class ResultSource(str, enum.Enum):
    """Where a result came from."""

    MEASURED = "measured"
    DEFAULT = "default"  # model untrained, nothing computed
    FALLBACK = "fallback"  # computation attempted and failed


class TrainingStatus(str, enum.Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"


class RecoveryPolicy(str, enum.Enum):
    """What the training engine does with ``is_trained`` when fit fails."""

    PARTIAL_SUCCESS_ON_FAILURE = "partial-success-on-failure"
    STRICT = "strict"


# ---------------------------------------------------------------------------
# Training
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProgressEvent:
    epoch_index: int
    training_loss: float
    validation_loss: Optional[float]
    elapsed_seconds: float
    progress_percent: float
    epochs_remaining: int


@dataclass(frozen=True)
class TrainingCompletedEvent:
    total_elapsed_seconds: float


@dataclass(frozen=True)
class EpochRecord:
    """One entry of ``ModelState.training_history``."""

    epoch: int
    loss: float
    val_loss: Optional[float] = None


@dataclass
class TrainingOutcome:
    status: TrainingStatus
    epochs_requested: int
    epochs_run: int
    effective_batch_size: int
    total_elapsed_seconds: float
    events: List[ProgressEvent] = field(default_factory=list)

    @property
    def history(self) -> dict:
        """Keras-style ``{"loss": [...], "val_loss": [...]}`` view of the events."""
        history = {"loss": [e.training_loss for e in self.events]}
        if any(e.validation_loss is not None for e in self.events):
            history["val_loss"] = [e.validation_loss for e in self.events]
        return history


# ---------------------------------------------------------------------------
# Inference / evaluation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PredictionResult(Sequence[float]):
    """Forecast of length ``output_size``; a read-only sequence of floats."""

    values: tuple
    source: ResultSource = ResultSource.MEASURED

    @classmethod
    def zeros(cls, length: int) -> "PredictionResult":
        return cls(values=tuple(0.0 for _ in range(length)), source=ResultSource.FALLBACK)

    @property
    def is_fallback(self) -> bool:
        return self.source is ResultSource.FALLBACK

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, index):
        return self.values[index]

    def __iter__(self) -> Iterator[float]:
        return iter(self.values)

    def to_numpy(self) -> np.ndarray:
        return np.asarray(self.values, dtype="float32")


@dataclass(frozen=True)
class EvaluationResult:
    loss: float
    mse: float
    rmse: float
    source: ResultSource = ResultSource.MEASURED

    @classmethod
    def measured(cls, loss: float, mse: float) -> "EvaluationResult":
        return cls(loss=float(loss), mse=float(mse), rmse=math.sqrt(float(mse)))

    @classmethod
    def placeholder(cls, source: ResultSource) -> "EvaluationResult":
        return cls(
            loss=config.DEFAULT_METRICS["loss"],
            mse=config.DEFAULT_METRICS["mse"],
            rmse=config.DEFAULT_METRICS["rmse"],
            source=source,
        )

    @property
    def is_measured(self) -> bool:
        return self.source is ResultSource.MEASURED

    def as_dict(self) -> dict:
        return {"loss": self.loss, "mse": self.mse, "rmse": self.rmse}


@dataclass(frozen=True)
class EvaluationArtifacts:
    """Per-window predictions and targets kept from the last evaluation."""

    predictions: np.ndarray
    actuals: np.ndarray


@dataclass(frozen=True)
class PricePoint:
    day: int
    predicted_return: float
    price: float
    change: float


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SaveOutcome:
    """Result of a best-effort weight snapshot; truthy only when saved."""

    saved: bool
    path: Optional[str] = None
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.saved
