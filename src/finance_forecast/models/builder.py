"""
Model builder.

``build()`` drops whatever model a state currently holds, clears the
process-wide Keras backend state through the ``BackendArena`` and allocates a
fresh network. Repeated build/dispose cycles therefore do not accumulate
graph or variable state in the backend.
"""

from __future__ import annotations

from typing import Optional

import structlog
import tensorflow as tf

from ..config import ModelConfiguration
from ..state import LifecycleState, ModelState
from .architectures import build_network

logger = structlog.get_logger(__name__)


class BackendArena:
    """
    Owner of the process-wide TensorFlow/Keras resource pool.

    Keeps simple counters so resource lifetime can be audited from tests.
    """

    def __init__(self) -> None:
        self.reset_count = 0
        self.live_models = 0

    def reset(self) -> None:
        tf.keras.backend.clear_session()
        self.reset_count += 1

    def allocate(self, model_config: ModelConfiguration) -> tf.keras.Model:
        model = build_network(model_config)
        self.live_models += 1
        return model

    def release(self, state: ModelState) -> bool:
        """Drop the state's model reference. Returns False if there was none."""
        if state.model is None:
            return False
        state.model = None
        self.live_models = max(0, self.live_models - 1)
        return True


DEFAULT_ARENA = BackendArena()


def build_into(
    state: ModelState, arena: Optional[BackendArena] = None
) -> ModelState:
    """Rebuild ``state.model`` from ``state.config`` without taking the state lock."""
    arena = arena or DEFAULT_ARENA

    arena.release(state)
    arena.reset()

    state.model = arena.allocate(state.config)
    state.is_trained = False
    state.training_history = []
    state.eval_artifacts = None
    state.lifecycle = LifecycleState.BUILT

    logger.info(
        "Model built",
        variant=state.config.variant.value,
        window_size=state.config.window_size,
        output_size=state.config.output_size,
        params=state.model.count_params(),
    )
    return state


def build(
    model_config: Optional[ModelConfiguration] = None,
    state: Optional[ModelState] = None,
    arena: Optional[BackendArena] = None,
) -> ModelState:
    """
    Build a model for ``model_config`` and return its state.

    Parameters
    ----------
    model_config : ModelConfiguration | None
        Configuration to build. When None the state's existing configuration
        (or the module defaults for a new state) is used.
    state : ModelState | None
        Existing state to rebuild in place. Its previous model is released
        first. A new state is created when omitted.
    arena : BackendArena | None
        Backend resource owner; defaults to the process-wide arena.
    """
    if state is None:
        state = ModelState(config=model_config or ModelConfiguration())
        return build_into(state, arena)

    with state.operation("build"):
        if model_config is not None:
            state.config = model_config
        return build_into(state, arena)
