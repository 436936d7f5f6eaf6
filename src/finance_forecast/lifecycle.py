"""
Teardown and persistence of a model state.

``dispose`` is idempotent. ``save_weights`` is best effort: it only writes
when the model is trained and never raises on I/O or backend errors.
"""

from __future__ import annotations

import pathlib
from typing import Optional

import structlog

from . import config
from .models.builder import DEFAULT_ARENA, BackendArena
from .results import SaveOutcome
from .state import LifecycleState, ModelState

logger = structlog.get_logger(__name__)


def default_weights_path(state: ModelState) -> pathlib.Path:
    return config.WEIGHTS_DIR / f"{state.config.variant.value}_forecaster.weights.h5"


def dispose(state: ModelState, arena: Optional[BackendArena] = None) -> None:
    """Release the model, reset training flags and drop evaluation artifacts."""
    arena = arena or DEFAULT_ARENA

    with state.operation("dispose"):
        released = arena.release(state)
        state.is_trained = False
        state.eval_artifacts = None
        state.lifecycle = LifecycleState.DISPOSED

    if released:
        logger.info("Model disposed", variant=state.config.variant.value)


def save_weights(
    state: ModelState, path: Optional[pathlib.Path] = None
) -> SaveOutcome:
    """
    Persist the model weights when the model is trained.

    Keras requires the file name to end in ``.weights.h5``.
    """
    if state.model is None or not state.is_trained:
        return SaveOutcome(saved=False)

    target = pathlib.Path(path) if path is not None else default_weights_path(state)

    with state.operation("save_weights"):
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            state.model.save_weights(str(target))
        except Exception as exc:
            logger.warning("Saving weights failed", path=str(target), error=str(exc))
            return SaveOutcome(saved=False, path=str(target), error=str(exc))

    logger.info("Weights saved", path=str(target))
    return SaveOutcome(saved=True, path=str(target))
