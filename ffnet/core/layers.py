"""Reference layers implementing the uniform layer contract.

Every layer works on column-major batches (``features x examples``).  A
layer learns its input shape from ``input_dimensions`` and reports its own
shape through :meth:`Layer.compute_output_dimensions`.  Trainable layers do
not own their weights: :meth:`Layer.set_weights` hands them a view into the
network's flat parameter buffer and every update to that buffer is visible
to the layer immediately.
"""

from __future__ import annotations

import math
from typing import List, Sequence

import numpy as np

from .activations import relu, sigmoid
from .types import Array


class Layer:
    """Base class for all layers.  Subclasses override as needed."""

    def __init__(self) -> None:
        self.input_dimensions: List[int] = []
        self.output_dimensions: List[int] = []
        self.training = False
        self._weights: Array | None = None

    # ------------------------------------------------------------------
    # Shape handling

    def compute_output_dimensions(self) -> None:
        self.output_dimensions = list(self.input_dimensions)

    def input_size(self) -> int:
        return int(math.prod(self.input_dimensions))

    def output_size(self) -> int:
        return int(math.prod(self.output_dimensions))

    # ------------------------------------------------------------------
    # Weights

    def weight_size(self) -> int:
        return 0

    def set_weights(self, weights: Array) -> None:
        """Point the layer at ``weights``, a view into the parameter buffer."""

        self._weights = weights

    @property
    def weights(self) -> Array | None:
        return self._weights

    # ------------------------------------------------------------------
    # Passes

    def forward(self, inputs: Array) -> Array:
        raise NotImplementedError

    def backward(self, inputs: Array, outputs: Array, gy: Array) -> Array:
        """Return the gradient with respect to the layer input."""

        raise NotImplementedError

    def gradient(self, inputs: Array, error: Array, gradient: Array) -> None:
        """Write the weight gradient into ``gradient`` (a buffer view)."""

    def loss(self) -> float:
        return 0.0

    # ------------------------------------------------------------------
    # Pickling

    def __getstate__(self):
        state = self.__dict__.copy()
        # Views are rebound by the owning network after loading.
        state["_weights"] = None
        return state

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Identity(Layer):
    """Pass inputs through unchanged."""

    def forward(self, inputs: Array) -> Array:
        return inputs.copy()

    def backward(self, inputs: Array, outputs: Array, gy: Array) -> Array:
        return gy.copy()


class Linear(Layer):
    """Affine layer ``W @ x + b`` with an optional L2 penalty on ``W``.

    The weight block is laid out as the ``out_size x in_size`` matrix
    followed by the ``out_size`` bias vector.
    """

    def __init__(self, out_size: int, l2: float = 0.0) -> None:
        super().__init__()
        if out_size <= 0:
            raise ValueError("out_size must be positive")
        self.out_size = int(out_size)
        self.l2 = float(l2)

    def compute_output_dimensions(self) -> None:
        self.output_dimensions = [self.out_size]

    def _matrix_size(self) -> int:
        return self.out_size * self.input_size()

    def weight_size(self) -> int:
        return self._matrix_size() + self.out_size

    @property
    def weight(self) -> Array:
        return self._weights[: self._matrix_size()].reshape(self.out_size, self.input_size())

    @property
    def bias(self) -> Array:
        return self._weights[self._matrix_size() :]

    def forward(self, inputs: Array) -> Array:
        return self.weight @ inputs + self.bias[:, None]

    def backward(self, inputs: Array, outputs: Array, gy: Array) -> Array:
        return self.weight.T @ gy

    def gradient(self, inputs: Array, error: Array, gradient: Array) -> None:
        n = self._matrix_size()
        grad_w = error @ inputs.T
        if self.l2:
            grad_w = grad_w + self.l2 * self.weight
        gradient[:n] = grad_w.ravel()
        gradient[n:] = error.sum(axis=1)

    def loss(self) -> float:
        if not self.l2 or self._weights is None:
            return 0.0
        return 0.5 * self.l2 * float(np.sum(self.weight**2))

    def __repr__(self) -> str:
        return f"Linear(out_size={self.out_size}, l2={self.l2})"


class LinearNoBias(Linear):
    """Linear layer without the bias term."""

    def weight_size(self) -> int:
        return self._matrix_size()

    def forward(self, inputs: Array) -> Array:
        return self.weight @ inputs

    def gradient(self, inputs: Array, error: Array, gradient: Array) -> None:
        grad_w = error @ inputs.T
        if self.l2:
            grad_w = grad_w + self.l2 * self.weight
        gradient[:] = grad_w.ravel()

    def __repr__(self) -> str:
        return f"LinearNoBias(out_size={self.out_size}, l2={self.l2})"


class ReLU(Layer):
    def forward(self, inputs: Array) -> Array:
        return relu(inputs)

    def backward(self, inputs: Array, outputs: Array, gy: Array) -> Array:
        return gy * (inputs > 0)


class LeakyReLU(Layer):
    def __init__(self, alpha: float = 0.03) -> None:
        super().__init__()
        self.alpha = float(alpha)

    def forward(self, inputs: Array) -> Array:
        return np.where(inputs > 0, inputs, self.alpha * inputs)

    def backward(self, inputs: Array, outputs: Array, gy: Array) -> Array:
        return gy * np.where(inputs > 0, 1.0, self.alpha)

    def __repr__(self) -> str:
        return f"LeakyReLU(alpha={self.alpha})"


class Sigmoid(Layer):
    def forward(self, inputs: Array) -> Array:
        return sigmoid(inputs)

    def backward(self, inputs: Array, outputs: Array, gy: Array) -> Array:
        return gy * outputs * (1.0 - outputs)


class Tanh(Layer):
    def forward(self, inputs: Array) -> Array:
        return np.tanh(inputs)

    def backward(self, inputs: Array, outputs: Array, gy: Array) -> Array:
        return gy * (1.0 - outputs**2)


class Dropout(Layer):
    """Inverted dropout; a no-op outside training mode."""

    def __init__(self, ratio: float = 0.5, seed: int | None = None) -> None:
        super().__init__()
        if not 0.0 <= ratio < 1.0:
            raise ValueError("ratio must be in [0, 1)")
        self.ratio = float(ratio)
        self.rng = np.random.default_rng(seed)
        self.mask: Array | None = None

    def forward(self, inputs: Array) -> Array:
        if not self.training or self.ratio == 0.0:
            self.mask = None
            return inputs.copy()
        keep = 1.0 - self.ratio
        self.mask = (self.rng.random(inputs.shape) < keep) / keep
        return inputs * self.mask

    def backward(self, inputs: Array, outputs: Array, gy: Array) -> Array:
        return gy.copy() if self.mask is None else gy * self.mask

    def __repr__(self) -> str:
        return f"Dropout(ratio={self.ratio})"


LAYER_TYPES = {
    "identity": Identity,
    "linear": Linear,
    "linear_no_bias": LinearNoBias,
    "relu": ReLU,
    "leaky_relu": LeakyReLU,
    "sigmoid": Sigmoid,
    "tanh": Tanh,
    "dropout": Dropout,
}


def total_weight_size(layers: Sequence[Layer]) -> int:
    return int(sum(layer.weight_size() for layer in layers))


__all__ = [
    "Layer",
    "Identity",
    "Linear",
    "LinearNoBias",
    "ReLU",
    "LeakyReLU",
    "Sigmoid",
    "Tanh",
    "Dropout",
    "LAYER_TYPES",
    "total_weight_size",
]
