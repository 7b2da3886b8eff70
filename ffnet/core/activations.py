"""Activation utilities for ffnet.

All helpers operate on column-major batches: features along axis 0,
examples along axis 1.
"""

from __future__ import annotations

import numpy as np

from .types import Array


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def sigmoid(x: Array) -> Array:
    return 1.0 / (1.0 + np.exp(-x))


def softmax(z: Array) -> Array:
    """Column-wise softmax."""

    shifted = z - z.max(axis=0, keepdims=True)
    e = np.exp(shifted)
    return e / e.sum(axis=0, keepdims=True)


def log_softmax(z: Array) -> Array:
    shifted = z - z.max(axis=0, keepdims=True)
    return shifted - np.log(np.exp(shifted).sum(axis=0, keepdims=True))


__all__ = ["relu", "sigmoid", "softmax", "log_softmax"]
