from __future__ import annotations

import numpy as np
import pytest

from ffnet.training.losses import (
    REGISTRY,
    BinaryCrossEntropyWithLogits,
    HuberLoss,
    MeanAbsoluteError,
    MeanSquaredError,
    SoftmaxCrossEntropy,
)


def _numeric_grad(loss, prediction, target, eps=1e-6):
    grad = np.zeros_like(prediction)
    for idx in np.ndindex(prediction.shape):
        shifted = prediction.copy()
        shifted[idx] += eps
        plus = loss.forward(shifted, target)
        shifted[idx] -= 2 * eps
        minus = loss.forward(shifted, target)
        grad[idx] = (plus - minus) / (2 * eps)
    return grad


@pytest.mark.parametrize(
    "loss",
    [
        MeanSquaredError(),
        MeanSquaredError(reduction="mean"),
        HuberLoss(delta=0.5),
        SoftmaxCrossEntropy(),
        SoftmaxCrossEntropy(reduction="mean"),
        BinaryCrossEntropyWithLogits(),
    ],
)
def test_backward_matches_finite_differences(loss) -> None:
    rng = np.random.default_rng(0)
    prediction = rng.standard_normal((3, 4))
    if isinstance(loss, SoftmaxCrossEntropy):
        target = np.eye(3)[:, [0, 2, 1, 2]]
    elif isinstance(loss, BinaryCrossEntropyWithLogits):
        target = (rng.random((3, 4)) > 0.5).astype(float)
    else:
        target = rng.standard_normal((3, 4))
    np.testing.assert_allclose(
        loss.backward(prediction, target), _numeric_grad(loss, prediction, target), rtol=1e-5, atol=1e-7
    )


def test_sum_reduction_is_additive_over_examples() -> None:
    rng = np.random.default_rng(1)
    prediction = rng.standard_normal((2, 5))
    target = rng.standard_normal((2, 5))
    loss = MeanSquaredError()
    total = sum(loss.forward(prediction[:, [i]], target[:, [i]]) for i in range(5))
    assert loss.forward(prediction, target) == pytest.approx(total)
    assert MeanSquaredError(reduction="mean").forward(prediction, target) == pytest.approx(total / 10)


def test_mean_absolute_error() -> None:
    loss = MeanAbsoluteError()
    assert loss.forward(np.array([[1.0, -2.0]]), np.array([[0.0, 0.0]])) == 3.0
    np.testing.assert_array_equal(loss.backward(np.array([[1.0, -2.0]]), np.zeros((1, 2))), [[1.0, -1.0]])


def test_cross_entropy_accepts_label_targets() -> None:
    logits = np.array([[2.0, 0.1], [0.5, 1.5], [0.0, -1.0]])
    labels = np.array([[0.0, 1.0]])
    one_hot = np.eye(3)[:, [0, 1]]
    loss = SoftmaxCrossEntropy()
    assert loss.forward(logits, labels) == pytest.approx(loss.forward(logits, one_hot))


def test_bce_is_finite_for_large_logits() -> None:
    loss = BinaryCrossEntropyWithLogits()
    value = loss.forward(np.array([[500.0, -500.0]]), np.array([[0.0, 1.0]]))
    assert value == pytest.approx(1000.0)


def test_invalid_reduction() -> None:
    with pytest.raises(ValueError):
        MeanSquaredError(reduction="max")


def test_registry_resolution() -> None:
    assert isinstance(REGISTRY.resolve("auto", task_type="regression"), MeanSquaredError)
    assert isinstance(REGISTRY.resolve("auto", task_type="multiclass"), SoftmaxCrossEntropy)
    assert isinstance(REGISTRY.resolve("auto", task_type="binary"), BinaryCrossEntropyWithLogits)
    huber = REGISTRY.get("huber", delta=0.25)
    assert isinstance(huber, HuberLoss) and huber.delta == 0.25
    assert "bcewithlogits" in REGISTRY.names()
    with pytest.raises(KeyError, match="Available losses"):
        REGISTRY.get("hinge")
    with pytest.raises(ValueError):
        REGISTRY.resolve("auto", task_type="ranking")
