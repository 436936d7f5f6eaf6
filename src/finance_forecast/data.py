"""
Datasets consumed by the engines, and a reference dataset provider.

The engines only need ``Dataset(inputs, targets)``. ``WindowedSeriesProvider``
shows one way to produce them from a raw price series:

- Compute simple daily returns from prices.
- Scale returns with MinMaxScaler (fit on the training portion only).
- Build sliding windows of shape (samples, window_size, 1) whose targets are
  the following ``prediction_horizon`` scaled returns.
- Split windows chronologically into train/test.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import MinMaxScaler

from . import config
from .errors import DatasetMismatchError, EmptyDatasetError, MissingDataError


@dataclass
class Dataset:
    """A batch of windows and their targets."""

    inputs: Any
    targets: Any

    def __len__(self) -> int:
        if self.inputs is None:
            return 0
        return len(self.inputs)

    def as_arrays(self, window_size: int, output_size: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Validate and reshape into ``(N, window_size, 1)`` inputs and
        ``(N, output_size)`` targets, both float32.

        Targets wider than ``output_size`` keep their leading columns, so an
        H-step dataset can train a one-step model.
        """
        if self.inputs is None or self.targets is None:
            raise MissingDataError("Training data missing: inputs and targets are required")

        X = np.asarray(self.inputs, dtype="float32")
        y = np.asarray(self.targets, dtype="float32")

        if X.shape[0] == 0 or y.shape[0] == 0:
            raise EmptyDatasetError("Dataset contains no samples")
        if X.shape[0] != y.shape[0]:
            raise DatasetMismatchError(
                f"inputs has {X.shape[0]} samples but targets has {y.shape[0]}",
                {"inputs": X.shape[0], "targets": y.shape[0]},
            )

        X = X.reshape(X.shape[0], -1)
        if X.shape[1] != window_size:
            raise DatasetMismatchError(
                f"Expected windows of length {window_size}, got {X.shape[1]}",
                {"window_size": window_size, "got": X.shape[1]},
            )
        X = X[..., np.newaxis]

        y = y.reshape(y.shape[0], -1)
        if y.shape[1] < output_size:
            raise DatasetMismatchError(
                f"Expected targets of length {output_size}, got {y.shape[1]}",
                {"output_size": output_size, "got": y.shape[1]},
            )
        return X, y[:, :output_size]


class DatasetProvider(Protocol):
    """What the engines and the pipeline expect from a data source."""

    @property
    def last_price(self) -> float: ...

    def train_dataset(self) -> Dataset: ...

    def test_dataset(self) -> Dataset: ...

    def denormalize(self, value: float) -> float: ...

    def last_window(self) -> np.ndarray: ...


# ---------------------------------------------------------------------------
# Windowing
# ---------------------------------------------------------------------------


def create_windows(
    values: np.ndarray,
    window_size: int,
    horizon: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build sliding windows over a 1-D series.

    For each i in [window_size, len(values) - horizon]:
      X[k] = values[i - window_size : i]
      y[k] = values[i : i + horizon]
    """
    X_seqs = []
    y_seqs = []

    for i in range(window_size, len(values) - horizon + 1):
        X_seqs.append(values[i - window_size : i])
        y_seqs.append(values[i : i + horizon])

    if not X_seqs:
        return (
            np.empty((0, window_size, 1), dtype="float32"),
            np.empty((0, horizon), dtype="float32"),
        )

    X = np.array(X_seqs, dtype="float32")[..., np.newaxis]
    y = np.array(y_seqs, dtype="float32")
    return X, y


class WindowedSeriesProvider:
    """
    Reference provider: price series -> normalized return windows.

    Parameters
    ----------
    prices : pd.Series | array-like
        Raw prices in chronological order.
    window_size, prediction_horizon : int
        Window and target lengths.
    train_fraction : float
        Share of windows (chronologically first) used for training.
    """

    def __init__(
        self,
        prices,
        window_size: int = config.WINDOW_SIZE,
        prediction_horizon: int = config.PREDICTION_HORIZON,
        train_fraction: float = config.TRAIN_FRACTION,
    ):
        prices = pd.Series(prices, dtype="float64").dropna()
        if len(prices) < window_size + prediction_horizon + 1:
            raise EmptyDatasetError(
                f"Need at least {window_size + prediction_horizon + 1} prices, "
                f"got {len(prices)}"
            )

        self.window_size = window_size
        self.prediction_horizon = prediction_horizon
        self.prices = prices
        self.returns = prices.pct_change().dropna()

        X, y = create_windows(
            self.returns.to_numpy(), window_size, prediction_horizon
        )
        split_at = max(1, int(len(X) * train_fraction))

        # Fit the scaler only on returns visible to the training windows
        train_returns_end = split_at + window_size + prediction_horizon - 1
        self.scaler = MinMaxScaler()
        self.scaler.fit(self.returns.to_numpy()[:train_returns_end].reshape(-1, 1))

        self._X_train = self._scale(X[:split_at])
        self._y_train = self._scale(y[:split_at])
        self._X_test = self._scale(X[split_at:])
        self._y_test = self._scale(y[split_at:])

        self.normalized = self._scale(self.returns.to_numpy())

    def _scale(self, values: np.ndarray) -> np.ndarray:
        if values.size == 0:
            return values.astype("float32")
        flat = values.reshape(-1, 1)
        return self.scaler.transform(flat).reshape(values.shape).astype("float32")

    @property
    def last_price(self) -> float:
        return float(self.prices.iloc[-1])

    def train_dataset(self) -> Dataset:
        return Dataset(self._X_train, self._y_train)

    def test_dataset(self) -> Dataset:
        return Dataset(self._X_test, self._y_test)

    def denormalize(self, value: float) -> float:
        return float(self.scaler.inverse_transform([[value]])[0, 0])

    def last_window(self, window_size: Optional[int] = None) -> np.ndarray:
        """Most recent normalized window, shaped ``(1, window_size, 1)``."""
        window_size = window_size or self.window_size
        window = self.normalized[-window_size:]
        return window.reshape(1, window_size, 1)
