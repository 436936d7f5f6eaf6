"""
Keras layer stacks for the supported architecture variants.

The stacks are described as data in ``config.VARIANT_CONFIG``; this module
turns one description into a compiled ``tf.keras.Sequential``.

Lightweight (fast convergence):
  - Input(shape=(window_size, 1))
  - GRU(16)
  - Dense(prediction_horizon, activation='linear')
  - SGD(lr=0.01)

Deep (smoother convergence, one step ahead):
  - Input(shape=(window_size, 1))
  - LSTM(64, return_sequences=True)
  - Dropout(0.2)
  - LSTM(32)
  - Dropout(0.2)
  - Dense(16, activation='relu')
  - Dense(1, activation='linear')
  - Adam(lr=1e-3)
"""

from __future__ import annotations

from typing import Any, Dict

import tensorflow as tf
from tensorflow.keras import Input, Sequential
from tensorflow.keras.layers import GRU, LSTM, Dense, Dropout

from ..config import ModelConfiguration

OPTIMIZERS = {
    "sgd": tf.keras.optimizers.SGD,
    "adam": tf.keras.optimizers.Adam,
    "rmsprop": tf.keras.optimizers.RMSprop,
}


def make_layer(spec: Dict[str, Any], prediction_horizon: int) -> tf.keras.layers.Layer:
    """Instantiate one layer from its ``VARIANT_CONFIG`` description."""
    kind = spec["type"]

    if kind == "dropout":
        return Dropout(spec["rate"])

    units = spec["units"]
    if units == "horizon":
        units = prediction_horizon

    if kind == "gru":
        return GRU(
            units,
            activation=spec.get("activation", "tanh"),
            return_sequences=spec.get("return_sequences", False),
            kernel_initializer="glorot_uniform",
        )
    if kind == "lstm":
        return LSTM(units, return_sequences=spec.get("return_sequences", False))
    if kind == "dense":
        return Dense(
            units,
            activation=spec.get("activation", "linear"),
            kernel_initializer="glorot_uniform",
        )

    raise ValueError(f"Unknown layer type: {kind}")


def make_optimizer(name: str, learning_rate: float) -> tf.keras.optimizers.Optimizer:
    try:
        optimizer_cls = OPTIMIZERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown optimizer '{name}'; expected one of {sorted(OPTIMIZERS)}"
        ) from None
    return optimizer_cls(learning_rate=learning_rate)


def build_network(model_config: ModelConfiguration) -> tf.keras.Model:
    """
    Build and compile the network for ``model_config.variant``.

    The model is compiled with the configured loss and an MSE metric so that
    evaluation can report both.
    """
    variant_cfg = model_config.variant_config

    layers = [Input(shape=(model_config.window_size, 1))]
    layers += [
        make_layer(layer_spec, model_config.prediction_horizon)
        for layer_spec in variant_cfg["layers"]
    ]
    model = Sequential(layers, name=f"{model_config.variant.value}_forecaster")

    model.compile(
        optimizer=make_optimizer(
            model_config.effective_optimizer, variant_cfg["learning_rate"]
        ),
        loss=model_config.effective_loss,
        metrics=["mse"],
    )
    return model
