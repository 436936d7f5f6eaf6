"""
Exceptions raised by the forecasting engine.

Only caller-contract violations, reentry and training failures are raised.
Prediction, evaluation and persistence failures are recovered internally and
reported through the ``source`` tag of their result objects.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ForecastError(Exception):
    """Base class for forecasting engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class MissingDataError(ForecastError, ValueError):
    """Raised when training inputs or targets are absent."""


class EmptyDatasetError(ForecastError, ValueError):
    """Raised when a dataset holds zero samples."""


class DatasetMismatchError(ForecastError, ValueError):
    """Raised when inputs and targets disagree in length or shape."""


class MissingInputError(ForecastError, ValueError):
    """Raised when predict is called without a window."""


class BusyError(ForecastError):
    """Raised when an operation is started while another one is in flight."""

    def __init__(self, requested: str, in_flight: str):
        super().__init__(
            f"Cannot start '{requested}' while '{in_flight}' is running",
            {"requested": requested, "in_flight": in_flight},
        )


class TrainingFailure(ForecastError):
    """
    Raised when the numeric computation fails mid-training.

    ``outcome`` holds whatever was recorded before the failure. Under the
    partial-success recovery policy the model is already flagged as trained
    when this is raised.
    """

    def __init__(self, message: str, outcome: Any = None):
        super().__init__(message)
        self.outcome = outcome
