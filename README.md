# neuralzkp

A compact inference engine for small convolutional neural networks, built on
NumPy. Every layer reports its output shape, its number of parameters and its
number of multiplications, which makes it easy to estimate what a network
would cost to express as an arithmetic circuit. Models are stored in a plain
JSON format and can be written and read back.

## Installation

```
pip install .
pip install ".[test]"   # with pytest, to run the tests
```

## Layers

`neuralzkp.layers` provides the building blocks. Each is a subclass of
`Layer` and has `apply(input)`, `output_shape()`, `num_params()`,
`num_muls()` and `to_json()`. All computation is done in `float32`.

| Layer                             | What it does                                                      |
|-----------------------------------|-------------------------------------------------------------------|
| `Convolution(kernel, input_shape)`| valid 2-D convolution of a height × width × channels input        |
| `MaxPool(kernel_side, input_shape)`| non-overlapping max pooling with a square window                 |
| `Relu(input_shape)`               | element-wise `max(0, x)`                                          |
| `Flatten(input_shape)`            | flattens any input into a one-dimensional array (row-major)       |
| `FullyConnected(weights, biases)` | `weights @ input + biases` on a one-dimensional input             |
| `Normalize(input_shape)`          | truncates values to integers, then divides them by their Euclidean norm |

Convolution kernels have the shape `(c_out, kernel_height, kernel_width, c_in)`
and must have odd height and width. Inputs that do not fit a layer (wrong
number of dimensions, mismatched channels, sizes not divisible by the pooling
window, a kernel larger than the input) raise `ValueError`.

`str(layer)` gives a one-line summary: name, output shape, number of
parameters and number of multiplications.

```python
import numpy as np
from neuralzkp.layers import Convolution, MaxPool, Relu

image = np.random.default_rng(0).uniform(-5, 5, (120, 80, 3)).astype(np.float32)
kernel = np.random.default_rng(1).uniform(-10, 10, (32, 5, 5, 3)).astype(np.float32)

conv = Convolution(kernel, [120, 80, 3])
features = conv.apply(image)                          # shape (116, 76, 32)
pooled = MaxPool(2, [116, 76, 32]).apply(features)    # shape (58, 38, 32)
activated = Relu([58, 38, 32]).apply(pooled)

print(conv.output_shape(), conv.num_params(), conv.num_muls())
```

## Networks

`neuralzkp.network.NeuralNetwork` chains layers. `add_layer(layer)` appends
one; `apply(input, dim)` runs the input through every layer in order and
prints one summary row per layer. It only accepts three-dimensional inputs
(`dim == 3`) and returns `None` for any other `dim`. `log_nn_table()` prints
the header for those rows.

`create_neural_net()` builds a reference network with fixed-seed random
parameters: two convolution / max-pool / ReLU stages, a flatten, a
14688 → 1000 fully connected layer with ReLU, a 1000 → 5 fully connected
layer and a final normalisation. It expects a `120 × 80 × 3` input.

```python
from neuralzkp.network import create_neural_net, log_nn_table

net = create_neural_net()
log_nn_table()
scores = net.apply(image, 3)
```

## Saving and loading models

A model is a JSON object with a `layers` list. Each entry has a `layer_type`
of `convolution`, `max_pool`, `fully_connected`, `relu`, `flatten` or
`normalize`, plus the fields that layer needs (`kernel` and `input_shape`,
`window` and `input_shape`, `weights` and `biases`, or just `input_shape`).
Arrays are stored as objects with `v`, `dim` and flat row-major `data`.

```python
from neuralzkp.network import deserialize_model_json, serialize_model_json

serialize_model_json("model.json", net)
restored = deserialize_model_json("model.json")
```

`NeuralNetwork.to_json()` and `NeuralNetwork.from_json(data)` work on the
in-memory form, and `neuralzkp.layers.layer_from_json(data)` rebuilds a
single layer. Malformed descriptions and unknown layer types raise
`ValueError`.

## Logging

`neuralzkp.logconfig` sets up logging to standard error.

`parse_log_options(argv)` reads these options from an argument list, ignoring
any others:

- `-v` / `--verbose`, repeatable. No flag logs at info; `-v` lets the
  `neuralzkp` loggers log debug, `-vv` trace, `-vvv` also sets debug for all
  other loggers, and four or more logs everything at trace.
- `--log-filter`, a comma-separated list of `target=level` directives
  (levels `trace`, `debug`, `info`, `warn`, `error`, `off`, or `5` … `0`);
  a bare target enables all levels for it. Defaults to the `LOG_FILTER`
  environment variable.
- `--log-format`, one of `compact`, `pretty` or `json` (`LogFormat`).
  Defaults to the `LOG_FORMAT` environment variable, then `compact`.

`LogOptions.init()` installs the handler on the root logger and returns it.
It raises `ValueError` for a malformed filter and `RuntimeError` if called a
second time. The module also registers the `TRACE` and `OFF` levels.

```python
from neuralzkp.logconfig import parse_log_options

parse_log_options(["-vv", "--log-format", "json"]).init()
```

## What this package does not do

- There is no command-line program: nothing is installed to run, and the
  logging options are parsed from an argument list you pass in.
- It runs inference and counts parameters and multiplications; it does not
  build arithmetic circuits, produce or verify proofs, or time them.