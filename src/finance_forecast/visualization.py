"""
Visualization utilities for training and evaluation results.

This module provides functions to generate and save:
- Learning curves (training/validation loss over epochs)
- Predicted vs actual values retained by the evaluation engine

All plots are saved to data/results/ unless a path is given.
"""

from __future__ import annotations

import pathlib
from typing import Any, Mapping

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend for server environments
import matplotlib.pyplot as plt
import numpy as np

from . import config
from .results import EvaluationArtifacts


def _history_dict(history: Any) -> Mapping[str, list]:
    """Accept a Keras History, a TrainingOutcome or a plain dict."""
    if history is None:
        raise ValueError("Invalid history object: got None")
    if isinstance(history, Mapping):
        return history
    if hasattr(history, "history"):
        return history.history
    raise ValueError("Invalid history object: must have 'history' attribute")


def plot_learning_curves(
    history: Any,
    save_path: pathlib.Path | None = None,
) -> pathlib.Path:
    """
    Plot training (and, when present, validation) loss over epochs.

    Parameters
    ----------
    history : Any
        ``TrainingOutcome``, Keras ``History`` or dict with a ``loss`` key and
        optionally ``val_loss``.
    save_path : pathlib.Path | None, optional
        Where to save the plot. Defaults to data/results/learning_curves.png.

    Returns
    -------
    pathlib.Path
        Path of the saved figure.

    Raises
    ------
    ValueError
        If history is None or has no ``loss`` values.
    """
    curves = _history_dict(history)
    if not curves.get("loss"):
        raise ValueError("History missing required key: loss")

    if save_path is None:
        save_path = config.RESULTS_DIR / "learning_curves.png"
    save_path = pathlib.Path(save_path)
    save_path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(10, 5))

    epochs = range(1, len(curves["loss"]) + 1)
    ax.plot(epochs, curves["loss"], "b-", label="Training Loss (MSE)", linewidth=2)
    val_loss = curves.get("val_loss")
    if val_loss and any(v is not None for v in val_loss):
        val_loss = [np.nan if v is None else v for v in val_loss]
        ax.plot(epochs, val_loss, "r-", label="Validation Loss (MSE)", linewidth=2)

    ax.set_title("Model Loss (MSE) Over Epochs", fontsize=14, fontweight="bold")
    ax.set_xlabel("Epoch", fontsize=12)
    ax.set_ylabel("MSE", fontsize=12)
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    print(f"\nLearning curves saved to: {save_path.resolve()}")
    return save_path


def plot_predictions_vs_actuals(
    artifacts: EvaluationArtifacts,
    save_path: pathlib.Path | None = None,
    step: int = 0,
) -> pathlib.Path:
    """
    Plot predicted vs actual values for one forecast step across the test set.

    Raises
    ------
    ValueError
        If predictions and actuals have different shapes.
    """
    predictions = np.asarray(artifacts.predictions)
    actuals = np.asarray(artifacts.actuals)
    if predictions.shape != actuals.shape:
        raise ValueError(
            f"Shape mismatch: predictions {predictions.shape} vs actuals {actuals.shape}"
        )

    if save_path is None:
        save_path = config.RESULTS_DIR / "predictions_vs_actuals.png"
    save_path = pathlib.Path(save_path)
    save_path.parent.mkdir(parents=True, exist_ok=True)

    predictions = predictions.reshape(predictions.shape[0], -1)[:, step]
    actuals = actuals.reshape(actuals.shape[0], -1)[:, step]

    fig, ax = plt.subplots(figsize=(12, 5))
    ax.plot(actuals, color="#6495ed", label="Actual", linewidth=1.2)
    ax.plot(predictions, color="#ff6b81", label="Predicted", linewidth=1.2)
    ax.set_title(f"Predicted vs Actual (step +{step + 1})", fontsize=14, fontweight="bold")
    ax.set_xlabel("Test window", fontsize=12)
    ax.set_ylabel("Normalized return", fontsize=12)
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    print(f"Prediction chart saved to: {save_path.resolve()}")
    return save_path
