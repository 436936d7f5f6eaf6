"""
Central configuration for the windowed return forecaster.

Module-level constants plus one hyperparameter block per architecture
variant. Each variant is plain data; the builder and the training loop read
from it instead of branching on the variant.
"""

from __future__ import annotations

import enum
import pathlib
from dataclasses import dataclass

# src/finance_forecast/config.py -> src -> project root
PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
DATA_DIR = PROJECT_ROOT / "data"
WEIGHTS_DIR = DATA_DIR / "weights"
RESULTS_DIR = DATA_DIR / "results"

RANDOM_SEED = 42

# Window of past normalized returns fed to the model
WINDOW_SIZE = 60

# Number of future steps predicted per call
PREDICTION_HORIZON = 5

DEFAULT_EPOCHS = 12

# Fraction of the training set held out (temporal tail) for validation
VALIDATION_FRACTION = 0.1

# Upper bound on the evaluation batch size, independent of the training batch
EVAL_BATCH_CAP = 128

# Placeholder metrics returned when no real evaluation can take place
DEFAULT_METRICS = {
    "loss": 0.001,
    "mse": 0.001,
    "rmse": 0.032,
}

# Fraction of windows used for training in the reference dataset provider
TRAIN_FRACTION = 0.8


class ArchitectureVariant(str, enum.Enum):
    """Supported recurrent architectures."""

    LIGHTWEIGHT = "lightweight"
    DEEP = "deep"


# Layer stacks are listed in order; "horizon" as units means the configured
# prediction horizon.
VARIANT_CONFIG = {
    ArchitectureVariant.LIGHTWEIGHT: {
        "layers": [
            {"type": "gru", "units": 16, "activation": "tanh"},
            {"type": "dense", "units": "horizon", "activation": "linear"},
        ],
        "optimizer": "sgd",
        "learning_rate": 0.01,
        "loss": "mse",
        "batch_size": 256,
        "shuffle": False,
        "yield_every": 3,
        "single_step": False,
        "retain_eval_artifacts": False,
    },
    ArchitectureVariant.DEEP: {
        "layers": [
            {"type": "lstm", "units": 64, "return_sequences": True},
            {"type": "dropout", "rate": 0.2},
            {"type": "lstm", "units": 32},
            {"type": "dropout", "rate": 0.2},
            {"type": "dense", "units": 16, "activation": "relu"},
            {"type": "dense", "units": 1, "activation": "linear"},
        ],
        "optimizer": "adam",
        "learning_rate": 1e-3,
        "loss": "mse",
        "batch_size": 32,
        "shuffle": True,
        "yield_every": 1,
        "single_step": True,
        "retain_eval_artifacts": True,
    },
}


@dataclass(frozen=True)
class ModelConfiguration:
    """
    Architecture + hyperparameters for one model instance.

    ``batch_size``, ``optimizer`` and ``loss`` default to the variant's values
    in ``VARIANT_CONFIG`` when left as None.
    """

    window_size: int = WINDOW_SIZE
    prediction_horizon: int = PREDICTION_HORIZON
    variant: ArchitectureVariant = ArchitectureVariant.LIGHTWEIGHT
    batch_size: int | None = None
    optimizer: str | None = None
    loss: str | None = None

    def __post_init__(self) -> None:
        if self.window_size <= 0:
            raise ValueError(f"window_size must be positive, got {self.window_size}")
        if self.prediction_horizon <= 0:
            raise ValueError(
                f"prediction_horizon must be positive, got {self.prediction_horizon}"
            )
        # Accept plain strings such as "deep"
        object.__setattr__(self, "variant", ArchitectureVariant(self.variant))

    @property
    def variant_config(self) -> dict:
        return VARIANT_CONFIG[self.variant]

    @property
    def output_size(self) -> int:
        """Length of one target / one prediction."""
        if self.variant_config["single_step"]:
            return 1
        return self.prediction_horizon

    @property
    def effective_optimizer(self) -> str:
        return self.optimizer or self.variant_config["optimizer"]

    @property
    def effective_loss(self) -> str:
        return self.loss or self.variant_config["loss"]

    @property
    def configured_batch_size(self) -> int:
        return self.batch_size or self.variant_config["batch_size"]
