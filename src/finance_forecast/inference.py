"""
Inference engine: forecasts from a single window.

``predict`` never raises on numeric failure; it returns a zero-filled
forecast of the right length tagged as a fallback.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

import numpy as np
import structlog

from .errors import MissingInputError
from .models.builder import BackendArena, build_into
from .results import PredictionResult, PricePoint, ResultSource
from .state import LifecycleState, ModelState

logger = structlog.get_logger(__name__)


def predict(
    state: ModelState,
    window,
    arena: Optional[BackendArena] = None,
) -> PredictionResult:
    """
    Forecast the next ``output_size`` normalized values from one window.

    ``window`` may be shaped ``(W,)``, ``(W, 1)`` or ``(1, W, 1)``. An
    untrained model is allowed and simply produces arbitrary output.
    """
    if window is None:
        raise MissingInputError("Input data missing: window is None")

    output_size = state.config.output_size

    with state.operation("predict"):
        if state.model is None:
            logger.info("No model built yet, building from last configuration")
            build_into(state, arena)
        state.lifecycle = LifecycleState.PREDICTING

        try:
            X = np.asarray(window, dtype="float32").reshape(
                1, state.config.window_size, 1
            )
            raw = np.asarray(state.model.predict(X, verbose=0), dtype="float32")
            values = raw.reshape(-1)[:output_size]
            if values.shape[0] != output_size:
                raise ValueError(
                    f"Model produced {values.shape[0]} values, expected {output_size}"
                )
        except Exception as exc:
            logger.warning(
                "Prediction failed, returning zeros",
                output_size=output_size,
                error=str(exc),
            )
            return PredictionResult.zeros(output_size)

    return PredictionResult(
        values=tuple(float(v) for v in values), source=ResultSource.MEASURED
    )


def denormalize_returns(
    predictions: Iterable[float], denormalize: Callable[[float], float]
) -> List[float]:
    return [float(denormalize(p)) for p in predictions]


def project_prices(returns: Iterable[float], last_price: float) -> List[PricePoint]:
    """
    Compound predicted daily returns into a price path starting at
    ``last_price``.
    """
    points = []
    current = float(last_price)
    for day, ret in enumerate(returns, start=1):
        change = current * ret
        current = current + change
        points.append(
            PricePoint(day=day, predicted_return=float(ret), price=current, change=change)
        )
    return points
