"""
ForecastSession: the single owner of one model state.

Wraps the engine functions behind one object so a host application can
build, train, predict, evaluate, snapshot and dispose without handling the
state directly:

    with ForecastSession(ModelConfiguration(window_size=60)) as session:
        session.train(provider.train_dataset(), epoch_count=10)
        metrics = session.evaluate(provider.test_dataset())
        forecast = session.predict(provider.last_window())
"""

from __future__ import annotations

import pathlib
from typing import Callable, List, Optional

from . import evaluation, inference, lifecycle, training
from .config import ModelConfiguration
from .data import Dataset
from .models.builder import BackendArena, build
from .results import (
    EpochRecord,
    EvaluationArtifacts,
    EvaluationResult,
    PredictionResult,
    PricePoint,
    RecoveryPolicy,
    SaveOutcome,
    TrainingOutcome,
)
from .state import LifecycleState, ModelState


class ForecastSession:
    def __init__(
        self,
        model_config: Optional[ModelConfiguration] = None,
        recovery_policy: RecoveryPolicy = RecoveryPolicy.PARTIAL_SUCCESS_ON_FAILURE,
        arena: Optional[BackendArena] = None,
    ):
        self.state = ModelState(config=model_config or ModelConfiguration())
        self.recovery_policy = recovery_policy
        self.arena = arena

    def __enter__(self) -> "ForecastSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    # -- read-only views -----------------------------------------------------

    @property
    def config(self) -> ModelConfiguration:
        return self.state.config

    @property
    def is_trained(self) -> bool:
        return self.state.is_trained

    @property
    def lifecycle(self) -> LifecycleState:
        return self.state.lifecycle

    @property
    def training_history(self) -> List[EpochRecord]:
        return list(self.state.training_history)

    @property
    def eval_artifacts(self) -> Optional[EvaluationArtifacts]:
        return self.state.eval_artifacts

    # -- operations ----------------------------------------------------------

    def build(self, model_config: Optional[ModelConfiguration] = None) -> ModelState:
        return build(model_config, state=self.state, arena=self.arena)

    def train(
        self,
        dataset: Optional[Dataset],
        epoch_count=None,
        progress_sink: Optional[training.ProgressSink] = None,
    ) -> TrainingOutcome:
        return training.train(
            self.state,
            dataset,
            epoch_count,
            progress_sink=progress_sink,
            recovery_policy=self.recovery_policy,
            arena=self.arena,
        )

    def predict(self, window) -> PredictionResult:
        return inference.predict(self.state, window, arena=self.arena)

    def evaluate(self, test_dataset: Optional[Dataset]) -> EvaluationResult:
        return evaluation.evaluate(self.state, test_dataset)

    def save_weights(self, path: Optional[pathlib.Path] = None) -> SaveOutcome:
        return lifecycle.save_weights(self.state, path)

    def dispose(self) -> None:
        lifecycle.dispose(self.state, arena=self.arena)

    def forecast_prices(
        self,
        window,
        denormalize: Callable[[float], float],
        last_price: float,
    ) -> List[PricePoint]:
        """Predict, map back to raw returns and compound into prices."""
        prediction = self.predict(window)
        returns = inference.denormalize_returns(prediction, denormalize)
        return inference.project_prices(returns, last_price)
