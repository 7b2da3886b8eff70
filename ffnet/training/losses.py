"""Output layers and the loss registry.

An output layer turns the network output and the targets into a scalar
objective (``forward``) and its gradient with respect to the network output
(``backward``).  Predictions and targets are column-major.  With the default
``reduction="sum"`` the loss of a batch equals the sum of the losses of its
examples.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable

import numpy as np

from ..core.activations import log_softmax, sigmoid, softmax
from ..core.types import Array

_REDUCTIONS = {"sum", "mean"}


class OutputLayer:
    """Base class for output layers."""

    name = "base"

    def __init__(self, reduction: str = "sum") -> None:
        if reduction not in _REDUCTIONS:
            raise ValueError(f"reduction must be one of {sorted(_REDUCTIONS)}, got {reduction!r}")
        self.reduction = reduction

    def _reduce(self, values: Array, count: int) -> float:
        total = float(np.sum(values))
        return total / count if self.reduction == "mean" else total

    def _scale(self, count: int) -> float:
        return 1.0 / count if self.reduction == "mean" else 1.0

    def forward(self, prediction: Array, target: Array) -> float:
        raise NotImplementedError

    def backward(self, prediction: Array, target: Array) -> Array:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(reduction={self.reduction!r})"


class MeanSquaredError(OutputLayer):
    name = "mse"

    def forward(self, prediction: Array, target: Array) -> float:
        return self._reduce(np.square(prediction - target), prediction.size)

    def backward(self, prediction: Array, target: Array) -> Array:
        return 2.0 * (prediction - target) * self._scale(prediction.size)


class MeanAbsoluteError(OutputLayer):
    name = "mae"

    def forward(self, prediction: Array, target: Array) -> float:
        return self._reduce(np.abs(prediction - target), prediction.size)

    def backward(self, prediction: Array, target: Array) -> Array:
        return np.sign(prediction - target) * self._scale(prediction.size)


class HuberLoss(OutputLayer):
    name = "huber"

    def __init__(self, delta: float = 1.0, reduction: str = "sum") -> None:
        super().__init__(reduction)
        self.delta = float(delta)

    def forward(self, prediction: Array, target: Array) -> float:
        abs_diff = np.abs(prediction - target)
        quadratic = np.minimum(abs_diff, self.delta)
        linear = abs_diff - quadratic
        return self._reduce(0.5 * quadratic**2 + self.delta * linear, prediction.size)

    def backward(self, prediction: Array, target: Array) -> Array:
        diff = prediction - target
        grad = np.where(np.abs(diff) <= self.delta, diff, self.delta * np.sign(diff))
        return grad * self._scale(prediction.size)


def _ensure_one_hot(target: Array, num_classes: int) -> Array:
    if target.ndim == 2 and target.shape[0] == num_classes:
        return target.astype(np.float64)
    indices = np.asarray(target).reshape(-1).astype(int)
    eye = np.eye(num_classes, dtype=np.float64)
    return eye[:, indices]


class SoftmaxCrossEntropy(OutputLayer):
    """Cross entropy on raw logits; targets are one-hot columns or labels."""

    name = "ce"

    def forward(self, prediction: Array, target: Array) -> float:
        one_hot = _ensure_one_hot(target, prediction.shape[0])
        return self._reduce(-(one_hot * log_softmax(prediction)), prediction.shape[1])

    def backward(self, prediction: Array, target: Array) -> Array:
        one_hot = _ensure_one_hot(target, prediction.shape[0])
        return (softmax(prediction) - one_hot) * self._scale(prediction.shape[1])


class BinaryCrossEntropyWithLogits(OutputLayer):
    name = "bce"

    def forward(self, prediction: Array, target: Array) -> float:
        z = prediction
        # log(1 + exp(-|z|)) keeps large logits finite.
        values = np.maximum(z, 0.0) - z * target + np.log1p(np.exp(-np.abs(z)))
        return self._reduce(values, prediction.size)

    def backward(self, prediction: Array, target: Array) -> Array:
        return (sigmoid(prediction) - target) * self._scale(prediction.size)


OutputLayerFactory = Callable[..., OutputLayer]


class LossRegistry:
    """Central registry for output layers."""

    def __init__(self) -> None:
        self._registry: Dict[str, OutputLayerFactory] = {}

    def register(self, name: str, factory: OutputLayerFactory) -> None:
        self._registry[name] = factory

    def get(self, name: str, **options: object) -> OutputLayer:
        try:
            factory = self._registry[name]
        except KeyError as exc:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}") from exc
        return factory(**options)

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: str, *, task_type: str, **options: object) -> OutputLayer:
        if name == "auto":
            if task_type == "regression":
                name = "mse"
            elif task_type == "multiclass":
                name = "ce"
            elif task_type in {"binary", "multilabel"}:
                name = "bce"
            else:
                raise ValueError(f"Unknown task type: {task_type}")
        return self.get(name, **options)


REGISTRY = LossRegistry()
REGISTRY.register("mse", MeanSquaredError)
REGISTRY.register("mae", MeanAbsoluteError)
REGISTRY.register("huber", HuberLoss)
REGISTRY.register("ce", SoftmaxCrossEntropy)
REGISTRY.register("bce", BinaryCrossEntropyWithLogits)
# Alias kept for configs written against the longer name
REGISTRY.register("bcewithlogits", BinaryCrossEntropyWithLogits)

__all__ = [
    "OutputLayer",
    "MeanSquaredError",
    "MeanAbsoluteError",
    "HuberLoss",
    "SoftmaxCrossEntropy",
    "BinaryCrossEntropyWithLogits",
    "LossRegistry",
    "REGISTRY",
]
