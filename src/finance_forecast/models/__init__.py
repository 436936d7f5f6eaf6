"""
Models subpackage for the windowed return forecaster.

This subpackage contains:

- architectures: Keras layer stacks for the Lightweight (GRU) and Deep
  (stacked LSTM) variants.
- builder: ``build()`` plus the ``BackendArena`` that owns the process-wide
  Keras backend state.

Typical usage:

    from finance_forecast.models import build
    state = build(ModelConfiguration(window_size=60, prediction_horizon=5))
"""

from __future__ import annotations

from .architectures import build_network
from .builder import DEFAULT_ARENA, BackendArena, build, build_into

__all__ = [
    "BackendArena",
    "DEFAULT_ARENA",
    "build",
    "build_into",
    "build_network",
]
