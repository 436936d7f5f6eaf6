"""
Top-level package for the windowed return forecaster.

This package provides:

- config: Central configuration (window size, horizon, variant hyperparameters).
- models: Keras layer stacks and the model builder.
- training: Training loop with per-epoch progress events.
- inference: Single-window forecasts and price projection.
- evaluation: Held-out loss / MSE / RMSE.
- lifecycle: Disposal and best-effort weight snapshots.
- session: ForecastSession, the owner of one model state.
- data: Dataset container and a reference windowed series provider.
- pipeline: End-to-end orchestration for a price series.

Typical entry points:

    from finance_forecast import ForecastSession, ModelConfiguration
    from finance_forecast.pipeline import run_pipeline

"""

from __future__ import annotations

from . import config
from .config import ArchitectureVariant, ModelConfiguration
from .data import Dataset
from .session import ForecastSession

__version__ = "0.1.0"

__all__ = [
    "ArchitectureVariant",
    "Dataset",
    "ForecastSession",
    "ModelConfiguration",
    "config",
]
