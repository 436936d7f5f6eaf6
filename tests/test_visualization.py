"""
Tests for the visualization module.

Tests cover:
- Learning curve plot generation from dicts and training outcomes
- Predicted vs actual chart generation
- Error handling for invalid inputs
"""

import numpy as np
import pytest

from finance_forecast.results import (
    EvaluationArtifacts,
    ProgressEvent,
    TrainingOutcome,
    TrainingStatus,
)
from finance_forecast.visualization import (
    plot_learning_curves,
    plot_predictions_vs_actuals,
)


class MockHistory:
    """Mock Keras History object for testing."""

    def __init__(self):
        self.history = {
            "loss": [0.5, 0.4, 0.3, 0.25, 0.2],
            "val_loss": [0.6, 0.5, 0.4, 0.35, 0.3],
        }


def test_plot_learning_curves_creates_file(tmp_path):
    save_path = tmp_path / "learning_curves.png"

    returned = plot_learning_curves(MockHistory(), save_path=save_path)

    assert returned == save_path
    assert save_path.exists()
    assert save_path.stat().st_size > 0


def test_plot_learning_curves_from_training_outcome(tmp_path):
    events = [
        ProgressEvent(i, 0.5 - 0.1 * i, None, float(i), (i + 1) * 50.0, 1 - i)
        for i in range(2)
    ]
    outcome = TrainingOutcome(
        status=TrainingStatus.COMPLETED,
        epochs_requested=2,
        epochs_run=2,
        effective_batch_size=4,
        total_elapsed_seconds=2.0,
        events=events,
    )
    save_path = tmp_path / "outcome.png"

    plot_learning_curves(outcome, save_path=save_path)

    assert save_path.exists()
    assert "val_loss" not in outcome.history


def test_plot_learning_curves_with_invalid_history():
    with pytest.raises(ValueError, match="Invalid history object"):
        plot_learning_curves(None)


def test_plot_learning_curves_with_missing_loss(tmp_path):
    with pytest.raises(ValueError, match="History missing required key"):
        plot_learning_curves({"val_loss": [0.1]}, save_path=tmp_path / "x.png")


def test_plot_predictions_vs_actuals_creates_file(tmp_path):
    artifacts = EvaluationArtifacts(
        predictions=np.linspace(0, 1, 20).reshape(20, 1),
        actuals=np.linspace(1, 0, 20).reshape(20, 1),
    )
    save_path = tmp_path / "preds.png"

    plot_predictions_vs_actuals(artifacts, save_path=save_path)

    assert save_path.exists()


def test_plot_predictions_vs_actuals_shape_mismatch(tmp_path):
    artifacts = EvaluationArtifacts(predictions=np.zeros((3, 1)), actuals=np.zeros((4, 1)))

    with pytest.raises(ValueError, match="Shape mismatch"):
        plot_predictions_vs_actuals(artifacts, save_path=tmp_path / "x.png")
