"""Core typing contracts for ffnet."""

from __future__ import annotations

import enum
from dataclasses import dataclass

import numpy as np

Array = np.ndarray


class NetworkState(enum.Enum):
    """Binding state of an :class:`~ffnet.training.ffn.FFN`.

    The state is derived from the two readiness flags of the network:
    dimensions are bound once input shapes have been propagated through the
    layer graph, weights are bound once every layer points into the shared
    parameter buffer.
    """

    UNBOUND = "unbound"
    DIMENSIONS_BOUND = "dimensions_bound"
    WEIGHTS_BOUND = "weights_bound"
    READY = "ready"

    @classmethod
    def from_flags(cls, dimensions_set: bool, memory_set: bool) -> "NetworkState":
        if dimensions_set and memory_set:
            return cls.READY
        if memory_set:
            return cls.WEIGHTS_BOUND
        if dimensions_set:
            return cls.DIMENSIONS_BOUND
        return cls.UNBOUND


@dataclass(frozen=True)
class WeightSlice:
    """Contiguous range of one layer's weights inside the parameter buffer."""

    offset: int
    size: int

    @property
    def stop(self) -> int:
        return self.offset + self.size

    def view(self, buffer: Array) -> Array:
        """Return a non-owning view of ``buffer`` covering this slice."""

        return buffer[self.offset : self.stop]


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`ffnet.training.pipelines.run_pipeline`.

    ``epochs`` is the number of epochs the optimizer finished.
    """

    epochs: int
    objective: float
    metrics_path: str
    manifest_path: str
    checkpoint_path: str = ""
    plot_path: str = ""


def as_matrix(values) -> Array:
    """Return ``values`` as a 2-D ``float64`` matrix with one example per column."""

    matrix = np.asarray(values, dtype=np.float64)
    if matrix.ndim == 0:
        matrix = matrix.reshape(1, 1)
    elif matrix.ndim == 1:
        matrix = matrix.reshape(-1, 1)
    elif matrix.ndim != 2:
        raise ValueError(f"Expected a 1-D or 2-D array, got {matrix.ndim} dimensions")
    return matrix
