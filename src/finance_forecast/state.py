"""
Runtime state of one forecasting model.

A ``ModelState`` is exclusively owned by one forecasting session. Only the
builder (``models.builder.build``) and ``lifecycle.dispose`` create or drop
the Keras model it holds. Engine operations run one at a time: ``operation``
takes a non-blocking lock and raises ``BusyError`` on reentry.
"""

from __future__ import annotations

import contextlib
import enum
import threading
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional

from .config import ModelConfiguration
from .errors import BusyError
from .results import EpochRecord, EvaluationArtifacts


class LifecycleState(str, enum.Enum):
    UNBUILT = "unbuilt"
    BUILT = "built"
    TRAINING = "training"
    TRAINED = "trained"
    PREDICTING = "predicting"
    EVALUATING = "evaluating"
    DISPOSED = "disposed"


# States an operation may be running in
_BUSY_STATES = {
    LifecycleState.TRAINING,
    LifecycleState.PREDICTING,
    LifecycleState.EVALUATING,
}


@dataclass
class ModelState:
    config: ModelConfiguration = field(default_factory=ModelConfiguration)
    model: Any = None
    is_trained: bool = False
    training_history: List[EpochRecord] = field(default_factory=list)
    eval_artifacts: Optional[EvaluationArtifacts] = None
    lifecycle: LifecycleState = LifecycleState.UNBUILT
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _in_flight: Optional[str] = field(default=None, repr=False)

    @property
    def is_built(self) -> bool:
        return self.model is not None

    @property
    def resting_state(self) -> LifecycleState:
        """State to fall back to once an operation finishes."""
        if self.model is None:
            if self.lifecycle is LifecycleState.DISPOSED:
                return LifecycleState.DISPOSED
            return LifecycleState.UNBUILT
        return LifecycleState.TRAINED if self.is_trained else LifecycleState.BUILT

    @contextlib.contextmanager
    def operation(
        self, name: str, running: Optional[LifecycleState] = None
    ) -> Iterator["ModelState"]:
        """
        Serialize engine operations on this state.

        ``running`` is the lifecycle state reported while the body executes;
        afterwards the state settles on ``resting_state``.
        """
        if not self._lock.acquire(blocking=False):
            raise BusyError(name, self._in_flight or "unknown")
        self._in_flight = name
        try:
            if running is not None:
                self.lifecycle = running
            yield self
        finally:
            if self.lifecycle in _BUSY_STATES:
                self.lifecycle = self.resting_state
            self._in_flight = None
            self._lock.release()
