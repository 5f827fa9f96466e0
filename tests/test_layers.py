import json

import numpy as np
import pytest

from neuralzkp.layers import (
    Convolution,
    Flatten,
    FullyConnected,
    MaxPool,
    Normalize,
    Relu,
    layer_from_json,
)

F32_EPS = float(np.finfo(np.float32).eps)


@pytest.fixture
def rng():
    return np.random.default_rng(694201337)


def _uniform(rng, shape, low, high):
    return rng.uniform(low, high, size=shape).astype(np.float32)


def test_conv_small():
    data = np.array(
        [
            [[0.51682377], [-2.3552072], [-0.120499134], [2.3132505], [-3.470844]],
            [[-1.1741579], [3.4295654], [-1.2318683], [-1.9749749], [-0.8161392]],
            [[4.7562046], [-2.8918338], [2.308525], [2.6111293], [-1.0765815]],
            [[-4.1224194], [3.022316], [-4.5339823], [4.2970715], [2.6773367]],
            [[-4.289216], [-3.3795083], [-2.651745], [-1.1392272], [3.9378529]],
        ],
        dtype=np.float32,
    )
    kernel = np.array(
        [
            [[1.0336475], [-4.7104144], [-0.24099827]],
            [[4.626501], [-6.941688], [-2.3483157]],
            [[6.859131], [-2.4637365], [-3.9499497]],
        ],
        dtype=np.float32,
    ).reshape(1, 3, 3, 1)
    expected = np.array(
        [
            [[15.940444], [-9.205237], [13.396301]],
            [[1.7727833], [-10.784569], [-48.952152]],
            [[-22.043327], [8.725433], [-97.68271]],
        ],
        dtype=np.float32,
    )
    conv = Convolution(kernel, [1, 5, 5, 1])
    result = conv.apply(data)
    assert result.shape == (3, 3, 1)
    np.testing.assert_allclose(result, expected, rtol=1e-5, atol=1e-4)


def test_conv_shapes_and_counts(rng):
    data = _uniform(rng, (120, 80, 3), -5.0, 5.0)
    kernel = _uniform(rng, (32, 5, 5, 3), -10.0, 10.0)
    conv = Convolution(kernel, [120, 80, 3])
    result = conv.apply(data)
    assert conv.output_shape() == [116, 76, 32]
    assert result.shape == (116, 76, 32)
    assert conv.num_params() == 2400
    assert conv.num_muls() == 116 * 76 * 32 * 5 * 5
    assert conv.name == "conv 32x5x5x3"


def test_conv_single_position_matches_elementwise_sum(rng):
    data = _uniform(rng, (6, 7, 2), -1.0, 1.0)
    kernel = _uniform(rng, (3, 3, 3, 2), -1.0, 1.0)
    result = Convolution(kernel, [6, 7, 2]).apply(data)
    window = data[2:5, 1:4, :]
    assert result[2, 1, 1] == pytest.approx(float((window * kernel[1]).sum()), rel=1e-5)


def test_conv_channel_mismatch():
    conv = Convolution(np.zeros((1, 3, 3, 2)), [5, 5, 3])
    with pytest.raises(ValueError, match="channels"):
        conv.apply(np.zeros((5, 5, 3)))
    with pytest.raises(ValueError, match="channels"):
        conv.output_shape()


def test_conv_even_kernel_rejected():
    conv = Convolution(np.zeros((1, 2, 3, 1)), [5, 5, 1])
    with pytest.raises(ValueError, match="odd"):
        conv.apply(np.zeros((5, 5, 1)))


def test_flatten(rng):
    data = _uniform(rng, (27, 17, 32), -5.0, 5.0)
    flat = Flatten([27, 17, 32])
    output = flat.apply(data)
    assert output.shape == (14688,)
    assert flat.output_shape() == [14688]
    assert flat.num_params() == 0
    assert flat.num_muls() == 0
    assert output[17 * 32 + 5] == data[1, 0, 5]


def test_fully_connected(rng):
    data = _uniform(rng, 14688, -10.0, 10.0)
    weights = _uniform(rng, (1000, 14688), -10.0, 10.0)
    biases = _uniform(rng, 1000, -10.0, 10.0)
    fc = FullyConnected(weights, biases)
    output = fc.apply(data)
    assert output.shape == (1000,)
    assert fc.num_params() == 1000 * 14688 + 1000
    assert fc.num_muls() == 1000 * 14688
    assert fc.output_shape() == [1000]
    assert fc.input_shape == [14688]


def test_fully_connected_values():
    fc = FullyConnected([[1.0, 2.0], [3.0, 4.0]], [1.0, -1.0])
    assert fc.apply([1.0, 1.0]).tolist() == [4.0, 6.0]


def test_fully_connected_errors():
    fc = FullyConnected(np.zeros((2, 3)), np.zeros(2))
    with pytest.raises(ValueError, match="flattenened"):
        fc.apply(np.zeros((3, 1)))
    with pytest.raises(ValueError, match="Input shapes"):
        fc.apply(np.zeros(4))
    bad = FullyConnected(np.zeros((2, 3)), np.zeros(3))
    with pytest.raises(ValueError, match="Output shapes"):
        bad.output_shape()


def test_maxpool(rng):
    data = _uniform(rng, (116, 76, 32), -5.0, 5.0)
    pool = MaxPool(2, [126, 76, 32])
    output = pool.apply(data)
    assert output.shape == (58, 38, 32)
    assert pool.num_params() == 0
    assert pool.num_muls() == 126 * 76 * 32
    assert output[3, 4, 7] == data[6:8, 8:10, 7].max()


def test_maxpool_small_values():
    data = np.arange(16, dtype=np.float32).reshape(4, 4, 1)
    output = MaxPool(2, [4, 4, 1]).apply(data)
    assert output[:, :, 0].tolist() == [[5.0, 7.0], [13.0, 15.0]]


def test_maxpool_output_shape_order():
    assert MaxPool(2, [116, 76, 32]).output_shape() == [38, 58, 32]


def test_maxpool_indivisible():
    with pytest.raises(ValueError, match="Height"):
        MaxPool(2, [5, 4, 1]).apply(np.zeros((5, 4, 1)))
    with pytest.raises(ValueError, match="Width"):
        MaxPool(2, [4, 5, 1]).output_shape()


def test_normalize():
    data = np.array(
        [-6276474000.0, 8343393300.0, 8266027500.0, -7525360600.0, 7814137000.0],
        dtype=np.float32,
    )
    norm = Normalize([5])
    output = norm.apply(data)
    expected = np.array([-0.36541474, 0.4857503, 0.48124605, -0.43812463, 0.4549371])
    assert float(np.abs(output - expected).max()) < 10.0 * F32_EPS
    assert norm.num_muls() == 6
    assert norm.output_shape() == [5]


def test_normalize_truncates():
    output = Normalize([2]).apply([3.9, -4.2])
    np.testing.assert_allclose(output, [0.6, -0.8], rtol=1e-6)


def test_relu_3d():
    data = np.array(
        [[[1.2, -4.3], [-2.1, 4.3]], [[5.2, 6.1], [7.6, -1.8]], [[9.3, 0.0], [1.2, 3.4]]],
        dtype=np.float32,
    )
    relu = Relu([3, 2, 2])
    output = relu.apply(data)
    expected = np.array(
        [[[1.2, 0.0], [0.0, 4.3]], [[5.2, 6.1], [7.6, 0.0]], [[9.3, 0.0], [1.2, 3.4]]],
        dtype=np.float32,
    )
    np.testing.assert_array_equal(output, expected)
    assert output.shape == (3, 2, 2)
    assert relu.num_params() == 12
    assert relu.num_muls() == 0


def test_relu_1d():
    relu = Relu([6])
    output = relu.apply([-4.0, -3.4, 6.0, 7.0, 1.0, -3.0])
    assert output.tolist() == [0.0, 0.0, 6.0, 7.0, 1.0, 0.0]
    assert len(output) == 6


def test_display_row():
    row = str(Relu([6]))
    assert row == f"{'relu':<20} | [6]{'':<5} | {6:<5} | {0:<5}"


@pytest.mark.parametrize(
    "layer",
    [
        Convolution(np.arange(2 * 3 * 3 * 1, dtype=np.float32).reshape(2, 3, 3, 1), [5, 5, 1]),
        MaxPool(2, [4, 4, 3]),
        FullyConnected([[1.5, -2.0], [0.25, 3.0]], [0.5, -0.5]),
        Relu([3, 2]),
        Flatten([2, 3]),
        Normalize([4]),
    ],
)
def test_json_round_trip(layer):
    encoded = json.dumps(layer.to_json())
    restored = layer_from_json(json.loads(encoded))
    assert type(restored) is type(layer)
    assert restored.to_json() == layer.to_json()
    assert restored.output_shape() == layer.output_shape()


def test_json_tags_and_array_format():
    fc = FullyConnected([[1.0, 2.0]], [3.0])
    data = fc.to_json()
    assert data["layer_type"] == "fully_connected"
    assert data["weights"] == {"v": 1, "dim": [1, 2], "data": [1.0, 2.0]}
    assert MaxPool(2, [4, 4, 1]).to_json() == {
        "layer_type": "max_pool",
        "window": 2,
        "input_shape": [4, 4, 1],
    }


def test_layer_from_json_errors():
    with pytest.raises(ValueError, match="unknown layer type"):
        layer_from_json({"layer_type": "dropout"})
    with pytest.raises(ValueError):
        layer_from_json({"layer_type": "relu"})
    with pytest.raises(ValueError):
        layer_from_json(
            {
                "layer_type": "fully_connected",
                "weights": {"v": 1, "dim": [2, 2], "data": [1.0]},
                "biases": {"v": 1, "dim": [2], "data": [1.0, 2.0]},
            }
        )