"""Binding lifecycle, copying and persistence of :class:`FFN`."""

from __future__ import annotations

import copy
import logging
import pickle

import numpy as np
import pytest

from ffnet import (
    FFN,
    ConstInitialization,
    DimensionMismatchError,
    Dropout,
    LayerMemoryError,
    Linear,
    MeanSquaredError,
    NetworkState,
    RandomInitialization,
    SGDOptimizer,
    Tanh,
)


def _short_sgd() -> SGDOptimizer:
    return SGDOptimizer(step_size=0.01, batch_size=4, max_iterations=80, seed=0)


def _fresh_net(init=None) -> FFN:
    net = FFN(MeanSquaredError(), init or RandomInitialization(-0.5, 0.5, seed=3))
    net.add(Linear(3)).add(Tanh()).add(Linear(2))
    net.input_dimensions = [4]
    return net


def test_state_transitions() -> None:
    net = FFN(MeanSquaredError(), ConstInitialization(0.5))
    net.add(Linear(2))
    net.input_dimensions = [4]
    assert net.state is NetworkState.UNBOUND

    net.weight_size()
    assert net.state is NetworkState.DIMENSIONS_BOUND
    assert net.parameters.size == 0

    net.check_network("test", 4)
    assert net.state is NetworkState.READY

    net.add(Tanh())
    assert net.state is NetworkState.UNBOUND

    net.check_network("test", 0)
    assert net.state is NetworkState.READY
    net.input_dimensions = [4]
    assert not net.input_dimensions_are_set


def test_weight_size_requires_known_input_shape() -> None:
    net = FFN()
    net.add(Linear(2))
    with pytest.raises(DimensionMismatchError):
        net.weight_size()
    with pytest.raises(DimensionMismatchError):
        net.update_dimensions("test", 0)


def test_update_dimensions_infers_flat_input() -> None:
    net = FFN()
    net.add(Linear(2))
    net.update_dimensions("test", 6)
    assert net.input_dimensions == [6]
    assert net.weight_size() == 14
    with pytest.raises(DimensionMismatchError):
        net.update_dimensions("test", 5)


def test_input_dimensions_must_be_positive() -> None:
    net = FFN()
    with pytest.raises(ValueError):
        net.input_dimensions = [3, 0]


def test_layers_alias_parameter_buffer(rng) -> None:
    net = _fresh_net()
    x = rng.standard_normal((4, 5))
    net.predict(x)
    first = net.layers[0]
    assert np.shares_memory(first.weights, net.parameters)

    net.parameters[: first.weight_size()] = 0.0
    hidden = net.forward(x, 0, 0)
    np.testing.assert_array_equal(hidden, np.zeros((3, 5)))


def test_linear_weight_layout() -> None:
    net = FFN(MeanSquaredError(), ConstInitialization(0.0))
    net.add(Linear(2))
    net.input_dimensions = [4]
    net.check_network("test", 4)
    net.parameters[:] = np.arange(10.0)

    layer = net.layers[0]
    np.testing.assert_array_equal(layer.weight, np.arange(8.0).reshape(2, 4))
    np.testing.assert_array_equal(layer.bias, [8.0, 9.0])
    out = net.forward(np.ones((4, 1)))
    np.testing.assert_array_equal(out, [[14.0], [31.0]])


def test_parameters_assignment(rng, caplog) -> None:
    net = _fresh_net()
    x = rng.standard_normal((4, 2))
    net.predict(x)
    buffer = net.parameters

    net.parameters = np.full(buffer.size, 0.25)
    assert net.parameters is buffer
    assert net.layer_memory_is_set

    net.parameters = np.zeros(3)
    assert not net.layer_memory_is_set
    with pytest.raises(LayerMemoryError):
        net.set_layer_memory()

    with caplog.at_level(logging.INFO, logger="ffnet.training.ffn"):
        net.predict(x)
    assert "reinitializing weights" in caplog.text
    assert net.parameters.size == net.weight_size()


def test_reshaping_input_keeps_parameters_of_same_size(rng) -> None:
    net = FFN(MeanSquaredError(), RandomInitialization(seed=0))
    net.add(Linear(3))
    net.input_dimensions = [2, 2]
    assert net.weight_size() == 15
    assert net.forward(np.ones((4, 5))).shape == (3, 5)
    before = net.parameters.copy()

    net.input_dimensions = [4]
    net.forward(rng.standard_normal((4, 2)))
    np.testing.assert_array_equal(net.parameters, before)
    assert net.state is NetworkState.READY

    net.input_dimensions = [5]
    net.forward(rng.standard_normal((5, 2)))
    assert net.parameters.size == 18


def test_partial_forward_ranges(rng) -> None:
    net = _fresh_net()
    x = rng.standard_normal((4, 6))
    full = net.forward(x)
    hidden = net.forward(x, 0, 0)
    assert hidden.shape == (3, 6)
    tail = net.forward(np.tanh(hidden), 2)
    np.testing.assert_allclose(tail, full)

    sentinel = np.full((2, 6), 7.0)
    assert net.forward(x, 2, 1, out=sentinel) is sentinel
    assert net.forward(x, 2, 1) is None
    np.testing.assert_array_equal(sentinel, 7.0)


def test_forward_writes_into_out(rng) -> None:
    net = _fresh_net()
    x = rng.standard_normal((4, 3))
    out = np.empty((2, 3))
    result = net.forward(x, out=out)
    assert result is out
    np.testing.assert_allclose(out, net.forward(x))


def test_backward_after_partial_forward_fails(rng) -> None:
    net = _fresh_net()
    x = rng.standard_normal((4, 3))
    net.forward(x, 0, 1)
    with pytest.raises(RuntimeError):
        net.backward(x, np.zeros((2, 3)))


def test_backward_rejects_partial_pass_with_matching_shape(rng) -> None:
    net = FFN(MeanSquaredError(), RandomInitialization(seed=0))
    net.add(Linear(2)).add(Tanh()).add(Linear(2))
    x = rng.standard_normal((4, 3))
    y = rng.standard_normal((2, 3))
    net.forward(x)
    loss, _ = net.backward(x, y)
    error = net._error

    # The hidden output has the same shape as the targets.
    net.forward(x, 0, 1)
    with pytest.raises(RuntimeError):
        net.backward(x, y)
    assert net._error is error

    net.forward(x)
    assert net.backward(x, y)[0] == pytest.approx(loss)


def test_adding_a_layer_discards_the_last_pass(rng) -> None:
    net = _fresh_net()
    x = rng.standard_normal((4, 3))
    net.forward(x)
    net.add(Tanh())
    with pytest.raises(RuntimeError):
        net.backward(x, np.zeros((2, 3)))


def test_gradient_buffer_shape_is_checked(rng) -> None:
    net = _fresh_net()
    x = rng.standard_normal((4, 3))
    net.forward(x)
    with pytest.raises(ValueError):
        net.backward(x, np.zeros((2, 3)), out=np.zeros(5))


def test_stored_data_access_errors(rng) -> None:
    net = _fresh_net()
    with pytest.raises(ValueError):
        net.evaluate_batch(net.parameters)
    with pytest.raises(ValueError):
        net.reset_data(np.zeros((4, 3)), np.zeros((2, 4)))

    net.reset_data(rng.standard_normal((4, 3)), rng.standard_normal((2, 3)))
    with pytest.raises(IndexError):
        net.evaluate_batch(net.parameters, 2, 2)
    assert net.num_functions() == 3


def test_shuffle_keeps_pairs_aligned(rng) -> None:
    net = _fresh_net()
    x = np.arange(24.0).reshape(4, 6)
    y = x[:2] * 10
    net.reset_data(x, y)
    net.shuffle(np.random.default_rng(5))
    np.testing.assert_array_equal(net.responses, net.predictors[:2] * 10)
    assert sorted(net.predictors[0]) == list(x[0])


def test_predict_rejects_bad_batch_size(rng) -> None:
    net = _fresh_net()
    with pytest.raises(ValueError):
        net.predict(rng.standard_normal((4, 2)), batch_size=0)


def test_network_mode_reaches_layers(rng) -> None:
    net = FFN()
    dropout = Dropout(0.5, seed=0)
    net.add(Linear(4)).add(dropout).add(Linear(1))
    net.input_dimensions = [2]

    net.set_network_mode(True)
    assert net.training and all(layer.training for layer in net.layers)

    x = rng.standard_normal((2, 8))
    first = net.predict(x)
    assert not net.training
    assert not dropout.training
    np.testing.assert_array_equal(first, net.predict(x))


def test_reset_rebuilds_parameters(rng) -> None:
    net = _fresh_net()
    net.train(rng.standard_normal((4, 8)), rng.standard_normal((2, 8)), _short_sgd())
    size = net.parameters.size
    old = net.parameters

    net.reset()
    assert net.parameters is not old
    assert net.parameters.size == size
    assert net.state is NetworkState.READY
    assert not net.training


def test_deepcopy_owns_its_parameters(rng) -> None:
    net = _fresh_net()
    x = rng.standard_normal((4, 5))
    expected = net.predict(x)

    for clone in (copy.deepcopy(net), copy.copy(net)):
        assert clone.state is NetworkState.UNBOUND
        assert not np.shares_memory(clone.parameters, net.parameters)
        np.testing.assert_allclose(clone.predict(x), expected)
        assert np.shares_memory(clone.layers[0].weights, clone.parameters)

        clone.parameters[:] = 0.0
        np.testing.assert_allclose(net.predict(x), expected)


def test_pickle_round_trip_drops_data(rng) -> None:
    net = _fresh_net()
    x = rng.standard_normal((4, 5))
    net.train(x, rng.standard_normal((2, 5)), _short_sgd())
    expected = net.predict(x)

    restored = pickle.loads(pickle.dumps(net))
    assert restored.state is NetworkState.UNBOUND
    assert restored.predictors.size == 0
    np.testing.assert_allclose(restored.predict(x), expected)


def test_state_dict_round_trip(rng) -> None:
    net = _fresh_net()
    x = rng.standard_normal((4, 5))
    expected = net.predict(x)

    other = _fresh_net(ConstInitialization(0.0))
    other.input_dimensions = [1]
    other.load_state_dict(net.state_dict())
    assert other.input_dimensions == [4]
    np.testing.assert_allclose(other.predict(x), expected)

    with pytest.raises(KeyError):
        other.load_state_dict({"parameters": np.zeros(3)})


def test_train_logs_final_objective(rng, caplog) -> None:
    net = _fresh_net()
    with caplog.at_level(logging.INFO, logger="ffnet.training.ffn"):
        net.train(rng.standard_normal((4, 8)), rng.standard_normal((2, 8)), _short_sgd())
    assert "final objective" in caplog.text
