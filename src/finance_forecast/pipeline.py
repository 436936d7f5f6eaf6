"""
End-to-end forecasting run for a price series.

This module coordinates the main steps:

    1. Turn prices into normalized return windows (train/test).
    2. Build the model for the chosen architecture variant.
    3. Train it, showing per-epoch progress.
    4. Evaluate on the held-out windows.
    5. Forecast the next days from the most recent window and project prices.

Typical usage:

    from finance_forecast.pipeline import run_pipeline
    forecast_df = run_pipeline(prices, variant="lightweight", epochs=12)

Or from the command line with a CSV of prices:

    python -m finance_forecast.pipeline prices.csv --column Close
"""

from __future__ import annotations

import argparse
import random

import numpy as np
import pandas as pd
import tensorflow as tf
from tqdm import tqdm

from . import config
from .config import ArchitectureVariant, ModelConfiguration
from .data import WindowedSeriesProvider
from .errors import TrainingFailure
from .results import ProgressEvent, TrainingCompletedEvent
from .session import ForecastSession
from .training import ProgressSink
from .visualization import plot_learning_curves, plot_predictions_vs_actuals


class TqdmProgressSink(ProgressSink):
    """Shows training progress as a tqdm bar, one tick per epoch."""

    def __init__(self, total_epochs: int):
        self.bar = tqdm(total=total_epochs, desc="Training", unit="epoch")

    def on_epoch_end(self, event: ProgressEvent) -> None:
        postfix = {"loss": f"{event.training_loss:.6f}"}
        if event.validation_loss is not None:
            postfix["val_loss"] = f"{event.validation_loss:.6f}"
        self.bar.set_postfix(postfix)
        self.bar.update(1)

    def on_train_end(self, event: TrainingCompletedEvent) -> None:
        self.bar.close()

    def yield_to_host(self) -> None:
        self.bar.refresh()


def set_seeds(seed: int = config.RANDOM_SEED) -> None:
    random.seed(seed)
    np.random.seed(seed)
    tf.random.set_seed(seed)


def run_pipeline(
    prices,
    window_size: int = config.WINDOW_SIZE,
    prediction_horizon: int = config.PREDICTION_HORIZON,
    variant: str = ArchitectureVariant.LIGHTWEIGHT.value,
    epochs: int = config.DEFAULT_EPOCHS,
    save_plots: bool = True,
    save_weights: bool = False,
) -> pd.DataFrame:
    """Run the full forecasting workflow on a price series.

    Args:
        prices:
            Raw prices in chronological order (pandas Series or array-like).
        window_size:
            Number of past returns per input window.
        prediction_horizon:
            Number of future days to forecast (the Deep variant forecasts one).
        variant:
            "lightweight" or "deep".
        epochs:
            Training epochs (clamped to at least 1).
        save_plots:
            If True, save learning curves (and prediction charts when the
            variant retains them) under data/results/.
        save_weights:
            If True, snapshot the trained weights under data/weights/.

    Returns:
        A pandas DataFrame with one row per forecast day and the columns:
        predicted_return, price, change.
    """
    set_seeds()

    print("\n=== STEP 1: Build return windows ===")
    provider = WindowedSeriesProvider(
        prices, window_size=window_size, prediction_horizon=prediction_horizon
    )
    train_ds = provider.train_dataset()
    test_ds = provider.test_dataset()
    print(f"Train windows: {len(train_ds)} | Test windows: {len(test_ds)}")

    model_config = ModelConfiguration(
        window_size=window_size,
        prediction_horizon=prediction_horizon,
        variant=variant,
    )

    with ForecastSession(model_config) as session:
        print("\n=== STEP 2: Build model ===")
        session.build()

        print("\n=== STEP 3: Train ===")
        sink = TqdmProgressSink(total_epochs=max(1, int(epochs)))
        try:
            outcome = session.train(train_ds, epoch_count=epochs, progress_sink=sink)
            print(f"Training completed in {outcome.total_elapsed_seconds:.1f}s")
        except TrainingFailure as exc:
            sink.bar.close()
            outcome = exc.outcome
            print(f"WARNING: training completed in fallback mode ({exc})")

        print("\n=== STEP 4: Evaluate ===")
        metrics = session.evaluate(test_ds)
        label = "" if metrics.is_measured else f" ({metrics.source.value})"
        print(
            f"Test MSE: {metrics.mse:.6f} | RMSE: {metrics.rmse:.6f} "
            f"| Return error: {metrics.rmse * 100:.4f}%{label}"
        )

        if save_plots:
            if outcome is not None and outcome.events:
                plot_learning_curves(outcome)
            if session.eval_artifacts is not None:
                plot_predictions_vs_actuals(session.eval_artifacts)

        print("\n=== STEP 5: Forecast ===")
        points = session.forecast_prices(
            provider.last_window(), provider.denormalize, provider.last_price
        )

        if save_weights:
            saved = session.save_weights()
            print(f"Weights saved: {saved.path}" if saved else "Weights not saved")

    forecast_df = pd.DataFrame(
        [
            {
                "day": p.day,
                "predicted_return": p.predicted_return,
                "price": p.price,
                "change": p.change,
            }
            for p in points
        ]
    ).set_index("day")

    print(f"\nLast price: {provider.last_price:.2f}")
    print(forecast_df.to_string(float_format=lambda v: f"{v:.4f}"))
    print("\n=== PIPELINE COMPLETED SUCCESSFULLY ===")
    return forecast_df


def main() -> None:
    """Allow running this module directly:

    python -m finance_forecast.pipeline prices.csv --column Close
    """
    from .logging_config import configure_logging

    parser = argparse.ArgumentParser(description="Forecast short-horizon returns")
    parser.add_argument("csv_path", help="CSV file with a price column")
    parser.add_argument("--column", default="Close", help="Price column name")
    parser.add_argument("--variant", default="lightweight", choices=["lightweight", "deep"])
    parser.add_argument("--epochs", type=int, default=config.DEFAULT_EPOCHS)
    parser.add_argument("--window-size", type=int, default=config.WINDOW_SIZE)
    parser.add_argument("--horizon", type=int, default=config.PREDICTION_HORIZON)
    parser.add_argument("--save-weights", action="store_true")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    configure_logging(args.log_level)

    df = pd.read_csv(args.csv_path)
    run_pipeline(
        df[args.column],
        window_size=args.window_size,
        prediction_horizon=args.horizon,
        variant=args.variant,
        epochs=args.epochs,
        save_weights=args.save_weights,
    )


if __name__ == "__main__":
    main()
