"""Neural network layers operating on float32 numpy arrays."""

from __future__ import annotations

from abc import ABC, abstractmethod
from math import prod
from typing import Any

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

__all__ = [
    "Layer",
    "Convolution",
    "MaxPool",
    "FullyConnected",
    "Flatten",
    "Relu",
    "Normalize",
    "layer_from_json",
]


def _as_f32(values: Any) -> np.ndarray:
    return np.asarray(values, dtype=np.float32)


def _array_to_json(array: np.ndarray) -> dict[str, Any]:
    return {
        "v": 1,
        "dim": [int(d) for d in array.shape],
        "data": [float(x) for x in array.ravel()],
    }


def _array_from_json(obj: dict[str, Any], ndim: int) -> np.ndarray:
    try:
        dim = [int(d) for d in obj["dim"]]
        data = _as_f32(obj["data"])
    except (KeyError, TypeError) as exc:
        raise ValueError(f"malformed array: {exc}") from exc
    if len(dim) != ndim:
        raise ValueError(f"expected a {ndim}-dimensional array, got dim {dim}")
    if data.ndim != 1 or data.size != prod(dim):
        raise ValueError(f"array data of length {data.size} does not fit dim {dim}")
    return data.reshape(dim)


def _require_ndim(array: np.ndarray, ndim: int) -> None:
    if array.ndim != ndim:
        raise ValueError(f"expected a {ndim}-dimensional input, got {array.ndim} dimensions")


class Layer(ABC):
    """A network layer with a name, an input shape and shape/cost accounting."""

    name: str
    input_shape: list[int]

    @abstractmethod
    def apply(self, input: Any) -> np.ndarray:
        """Run the layer on ``input`` and return the result."""

    @abstractmethod
    def output_shape(self) -> list[int]:
        """Shape of the layer's output for its declared input shape."""

    @abstractmethod
    def num_params(self) -> int:
        """Number of parameters of the layer."""

    @abstractmethod
    def num_muls(self) -> int:
        """Number of multiplications the layer performs."""

    @abstractmethod
    def to_json(self) -> dict[str, Any]:
        """JSON-compatible description of the layer, tagged by ``layer_type``."""

    def __str__(self) -> str:
        return (
            f"{self.name:<20} | {self.output_shape()}{'':<5} | "
            f"{self.num_params():<5} | {self.num_muls():<5}"
        )


class Convolution(Layer):
    """Valid 2D convolution with kernel shaped (out channels, height, width, in channels)."""

    def __init__(self, kernel: Any, input_shape: list[int]) -> None:
        self.kernel = _as_f32(kernel)
        _require_ndim(self.kernel, 4)
        c_out, hf, wf, c_in = self.kernel.shape
        self.name = f"conv {c_out}x{hf}x{wf}x{c_in}"
        self.input_shape = list(input_shape)

    def _check(self, h: int, w: int, c: int) -> tuple[int, int, int]:
        c_out, hf, wf, c_in = self.kernel.shape
        if c != c_in:
            raise ValueError("input channels must match")
        if hf % 2 != 1:
            raise ValueError("height of the kernel must be an odd number")
        if wf % 2 != 1:
            raise ValueError("width of the kernel must be an odd number")
        if h < hf or w < wf:
            raise ValueError("input is smaller than the kernel")
        return h - hf + 1, w - wf + 1, c_out

    def apply(self, input: Any) -> np.ndarray:
        data = _as_f32(input)
        _require_ndim(data, 3)
        self._check(*data.shape)
        _, hf, wf, c_in = self.kernel.shape
        windows = sliding_window_view(data, (hf, wf, c_in))
        return np.einsum("ijkabc,oabc->ijo", windows, self.kernel).astype(np.float32)

    def output_shape(self) -> list[int]:
        h, w, c = self.input_shape[:3]
        return list(self._check(h, w, c))

    def num_params(self) -> int:
        return int(self.kernel.size)

    def num_muls(self) -> int:
        c_out, hf, wf, _ = self.kernel.shape
        out = self.output_shape()
        return out[0] * out[1] * c_out * hf * wf

    def to_json(self) -> dict[str, Any]:
        return {
            "layer_type": "convolution",
            "kernel": _array_to_json(self.kernel),
            "input_shape": list(self.input_shape),
        }


class MaxPool(Layer):
    """Non-overlapping max pooling over square windows."""

    def __init__(self, kernel_side: int, input_shape: list[int]) -> None:
        self.name = "max-pool"
        self.kernel_side = int(kernel_side)
        self.input_shape = list(input_shape)

    def _check(self, h: int, w: int) -> None:
        if self.kernel_side <= 0:
            raise ValueError("kernel side must be positive")
        if h % self.kernel_side != 0:
            raise ValueError("Height must be divisible by s!")
        if w % self.kernel_side != 0:
            raise ValueError("Width must be divisible by s!")

    def apply(self, input: Any) -> np.ndarray:
        data = _as_f32(input)
        _require_ndim(data, 3)
        h, w, c = data.shape
        self._check(h, w)
        s = self.kernel_side
        return data.reshape(h // s, s, w // s, s, c).max(axis=(1, 3))

    def output_shape(self) -> list[int]:
        h, w, c = self.input_shape[:3]
        self._check(h, w)
        return [w // self.kernel_side, h // self.kernel_side, c]

    def num_params(self) -> int:
        return 0

    def num_muls(self) -> int:
        return prod(self.input_shape)

    def to_json(self) -> dict[str, Any]:
        return {
            "layer_type": "max_pool",
            "window": self.kernel_side,
            "input_shape": list(self.input_shape),
        }


class FullyConnected(Layer):
    """Affine layer computing ``weights @ input + biases``."""

    def __init__(self, weights: Any, biases: Any) -> None:
        self.weights = _as_f32(weights)
        self.biases = _as_f32(biases)
        _require_ndim(self.weights, 2)
        _require_ndim(self.biases, 1)
        self.name = "full"

    @property
    def input_shape(self) -> list[int]:  # type: ignore[override]
        return [int(self.weights.shape[1])]

    def _check_output(self) -> None:
        if self.weights.shape[0] != self.biases.shape[0]:
            raise ValueError("Output shapes must match!")

    def apply(self, input: Any) -> np.ndarray:
        data = _as_f32(input)
        if data.ndim != 1:
            raise ValueError("Input must be a flattenened array!")
        if self.weights.shape[1] != data.shape[0]:
            raise ValueError("Input shapes must match (for the dot product to work)!")
        self._check_output()
        return (self.weights @ data + self.biases).astype(np.float32)

    def output_shape(self) -> list[int]:
        self._check_output()
        return [int(self.weights.shape[0])]

    def num_params(self) -> int:
        return int(self.weights.size + self.biases.size)

    def num_muls(self) -> int:
        return int(self.weights.size)

    def to_json(self) -> dict[str, Any]:
        return {
            "layer_type": "fully_connected",
            "weights": _array_to_json(self.weights),
            "biases": _array_to_json(self.biases),
        }


class Flatten(Layer):
    """Flattens its input into one dimension in row-major order."""

    def __init__(self, input_shape: list[int]) -> None:
        self.name = "flatten"
        self.input_shape = list(input_shape)

    def apply(self, input: Any) -> np.ndarray:
        return _as_f32(input).ravel().copy()

    def output_shape(self) -> list[int]:
        return [prod(self.input_shape)]

    def num_params(self) -> int:
        return 0

    def num_muls(self) -> int:
        return 0

    def to_json(self) -> dict[str, Any]:
        return {"layer_type": "flatten", "input_shape": list(self.input_shape)}


class Relu(Layer):
    """Element-wise ``max(0, x)``."""

    def __init__(self, input_shape: list[int]) -> None:
        self.name = "relu"
        self.input_shape = list(input_shape)

    def apply(self, input: Any) -> np.ndarray:
        return np.maximum(_as_f32(input), np.float32(0.0))

    def output_shape(self) -> list[int]:
        return list(self.input_shape)

    def num_params(self) -> int:
        return prod(self.input_shape)

    def num_muls(self) -> int:
        return 0

    def to_json(self) -> dict[str, Any]:
        return {"layer_type": "relu", "input_shape": list(self.input_shape)}


class Normalize(Layer):
    """Truncates values to integers and divides them by their Euclidean norm."""

    def __init__(self, input_shape: list[int]) -> None:
        self.name = "normalize"
        self.input_shape = list(input_shape)

    def apply(self, input: Any) -> np.ndarray:
        data = _as_f32(input)
        integers = [int(value) for value in data.ravel()]
        total = sum(value * value for value in integers)
        norm = np.sqrt(np.float32(float(total)))
        truncated = np.array([float(v) for v in integers], dtype=np.float64).astype(np.float32)
        return (truncated / norm).astype(np.float32).reshape(data.shape)

    def output_shape(self) -> list[int]:
        return list(self.input_shape)

    def num_params(self) -> int:
        return 0

    def num_muls(self) -> int:
        return 1 + prod(self.input_shape)

    def to_json(self) -> dict[str, Any]:
        return {"layer_type": "normalize", "input_shape": list(self.input_shape)}


def _shape(data: dict[str, Any]) -> list[int]:
    return [int(d) for d in data["input_shape"]]


def layer_from_json(data: dict[str, Any]) -> Layer:
    """Build a layer from its JSON description."""
    try:
        layer_type = data["layer_type"]
        match layer_type:
            case "convolution":
                return Convolution(_array_from_json(data["kernel"], 4), _shape(data))
            case "max_pool":
                return MaxPool(int(data["window"]), _shape(data))
            case "fully_connected":
                return FullyConnected(
                    _array_from_json(data["weights"], 2),
                    _array_from_json(data["biases"], 1),
                )
            case "relu":
                return Relu(_shape(data))
            case "flatten":
                return Flatten(_shape(data))
            case "normalize":
                return Normalize(_shape(data))
    except (KeyError, TypeError) as exc:
        raise ValueError(f"malformed layer description: {exc}") from exc
    raise ValueError(f"unknown layer type: {layer_type!r}")