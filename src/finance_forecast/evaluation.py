"""
Evaluation engine: held-out loss / MSE / RMSE.

- Untrained or missing model: the fixed placeholder metrics, tagged DEFAULT,
  without touching the backend.
- Trained model: ``model.evaluate`` in batches of at most
  ``config.EVAL_BATCH_CAP``; ``rmse = sqrt(mse)``.
- Any failure: the placeholder metrics tagged FALLBACK.

Variants with ``retain_eval_artifacts`` also keep the per-window predictions
and targets on the state for charting.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import structlog

from . import config
from .data import Dataset
from .errors import MissingDataError
from .results import EvaluationArtifacts, EvaluationResult, ResultSource
from .state import LifecycleState, ModelState

logger = structlog.get_logger(__name__)


def evaluate(state: ModelState, test_dataset: Optional[Dataset]) -> EvaluationResult:
    """Evaluate the state's model on ``test_dataset``."""
    if state.model is None or not state.is_trained:
        return EvaluationResult.placeholder(ResultSource.DEFAULT)

    model_config = state.config

    with state.operation("evaluate", running=LifecycleState.EVALUATING):
        state.eval_artifacts = None
        try:
            if test_dataset is None:
                raise MissingDataError("Test data missing: dataset is None")
            X_test, y_test = test_dataset.as_arrays(
                model_config.window_size, model_config.output_size
            )

            batch_size = min(config.EVAL_BATCH_CAP, X_test.shape[0])
            scores = state.model.evaluate(
                X_test, y_test, batch_size=batch_size, verbose=0, return_dict=True
            )
            loss = float(scores["loss"])
            mse = float(scores.get("mse", scores.get("mean_squared_error", loss)))
            result = EvaluationResult.measured(loss=loss, mse=mse)

            if model_config.variant_config["retain_eval_artifacts"]:
                predictions = np.asarray(
                    state.model.predict(X_test, batch_size=batch_size, verbose=0)
                )
                state.eval_artifacts = EvaluationArtifacts(
                    predictions=predictions.reshape(y_test.shape),
                    actuals=y_test,
                )
        except Exception as exc:
            logger.warning("Evaluation failed, returning default metrics", error=str(exc))
            return EvaluationResult.placeholder(ResultSource.FALLBACK)

    logger.info("Evaluation completed", loss=result.loss, mse=result.mse, rmse=result.rmse)
    return result
