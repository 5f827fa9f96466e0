"""Sequential neural networks built from layers, with JSON (de)serialization."""

from __future__ import annotations

import json
from os import PathLike
from typing import Any

import numpy as np

from .layers import (
    Convolution,
    Flatten,
    FullyConnected,
    Layer,
    MaxPool,
    Normalize,
    Relu,
    layer_from_json,
)

__all__ = [
    "NeuralNetwork",
    "create_neural_net",
    "log_nn_table",
    "deserialize_model_json",
    "serialize_model_json",
]

SEED = 694201337


class NeuralNetwork:
    """An ordered stack of layers applied one after another."""

    def __init__(self, layers: list[Layer] | None = None) -> None:
        self.layers: list[Layer] = list(layers) if layers else []

    def __len__(self) -> int:
        return len(self.layers)

    def __iter__(self):
        return iter(self.layers)

    def add_layer(self, layer: Layer) -> None:
        """Append ``layer`` to the end of the network."""
        self.layers.append(layer)

    def apply(self, input: Any, dim: int) -> np.ndarray | None:
        """Run the network on ``input``, printing a table row per layer.

        Only three-dimensional inputs are supported; for any other ``dim``
        nothing is computed and ``None`` is returned.
        """
        if dim != 3:
            return None
        output = np.array(input, dtype=np.float32)
        for layer in self.layers:
            output = layer.apply(output)
            print(layer)
        return output

    def to_json(self) -> dict[str, Any]:
        """JSON-compatible description of the whole network."""
        return {"layers": [layer.to_json() for layer in self.layers]}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> NeuralNetwork:
        """Build a network from the description produced by :meth:`to_json`."""
        try:
            layers = data["layers"]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"malformed network description: {exc}") from exc
        if not isinstance(layers, list):
            raise ValueError("network 'layers' must be a list")
        return cls([layer_from_json(layer) for layer in layers])


def _uniform(rng: np.random.Generator, shape: tuple[int, ...], low: float, high: float) -> np.ndarray:
    values = rng.random(shape, dtype=np.float32)
    return (values * np.float32(high - low) + np.float32(low)).astype(np.float32)


def create_neural_net() -> NeuralNetwork:
    """Build the reference CNN with deterministic random parameters."""
    rng = np.random.default_rng(SEED)
    net = NeuralNetwork()

    kernel = _uniform(rng, (32, 5, 5, 3), -10.0, 10.0)
    net.add_layer(Convolution(kernel, [120, 80, 3]))
    net.add_layer(MaxPool(2, [116, 76, 32]))
    net.add_layer(Relu([58, 38, 32]))

    kernel = _uniform(rng, (32, 5, 5, 32), -10.0, 10.0)
    net.add_layer(Convolution(kernel, [58, 38, 32]))
    net.add_layer(MaxPool(2, [54, 34, 32]))
    net.add_layer(Relu([27, 17, 32]))
    net.add_layer(Flatten([27, 17, 32]))

    weights = _uniform(rng, (1000, 14688), -10.0, 10.0)
    biases = _uniform(rng, (1000,), -10.0, 10.0)
    net.add_layer(FullyConnected(weights, biases))
    net.add_layer(Relu([1000]))

    weights = _uniform(rng, (5, 1000), -10.0, 10.0)
    biases = _uniform(rng, (5,), -10.0, 10.0)
    net.add_layer(FullyConnected(weights, biases))
    net.add_layer(Normalize([5]))

    return net


def log_nn_table() -> None:
    """Print the header of the per-layer summary table."""
    print(f"{'layer':<20} | {'output shape':<15} | {'#parameters':<15} | {'#ops':<15}")
    print("-" * 77)


def deserialize_model_json(path: str | PathLike[str]) -> NeuralNetwork:
    """Load a network from the JSON file at ``path``."""
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    return NeuralNetwork.from_json(data)


def serialize_model_json(path: str | PathLike[str], model: NeuralNetwork) -> None:
    """Write ``model`` as JSON to ``path``."""
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(model.to_json(), handle)