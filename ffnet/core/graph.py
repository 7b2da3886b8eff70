"""Ordered layer graph driven by the network engine."""

from __future__ import annotations

import math
from typing import Iterator, List, Sequence

import numpy as np

from .layers import Layer, total_weight_size
from .types import Array, WeightSlice


class MultiLayer:
    """Sequential composition of layers.

    ``forward`` records each layer's input and output so that a following
    ``backward`` over the full graph can reuse them; ``backward`` in turn
    records the error arriving at each layer's output for ``gradient``.
    """

    def __init__(self, layers: Sequence[Layer] | None = None) -> None:
        self._layers: List[Layer] = list(layers or [])
        self._input_dimensions: List[int] = []
        self._training = False
        self._layer_inputs: List[Array] = []
        self._layer_outputs: List[Array] = []
        self._layer_errors: List[Array] = []

    # ------------------------------------------------------------------
    # Structure

    def add(self, layer: Layer) -> None:
        layer.training = self._training
        self._layers.append(layer)
        # New layer means the old shapes no longer describe the graph.
        self._input_dimensions = []
        self._layer_inputs = []
        self._layer_outputs = []
        self._layer_errors = []

    @property
    def layers(self) -> List[Layer]:
        return self._layers

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(self._layers)

    @property
    def input_dimensions(self) -> List[int]:
        return self._input_dimensions

    @input_dimensions.setter
    def input_dimensions(self, dims: Sequence[int]) -> None:
        self._input_dimensions = [int(d) for d in dims]

    def compute_output_dimensions(self) -> None:
        dims = list(self._input_dimensions)
        for layer in self._layers:
            layer.input_dimensions = dims
            layer.compute_output_dimensions()
            dims = list(layer.output_dimensions)

    @property
    def output_dimensions(self) -> List[int]:
        if not self._layers:
            return list(self._input_dimensions)
        return list(self._layers[-1].output_dimensions)

    def output_size(self) -> int:
        return int(math.prod(self.output_dimensions))

    # ------------------------------------------------------------------
    # Weights

    def weight_size(self) -> int:
        return total_weight_size(self._layers)

    def weight_slices(self) -> List[WeightSlice]:
        slices: List[WeightSlice] = []
        offset = 0
        for layer in self._layers:
            size = layer.weight_size()
            slices.append(WeightSlice(offset=offset, size=size))
            offset += size
        return slices

    def set_weights(self, buffer: Array) -> None:
        for layer, piece in zip(self._layers, self.weight_slices()):
            layer.set_weights(piece.view(buffer))

    def loss(self) -> float:
        return float(sum(layer.loss() for layer in self._layers))

    @property
    def training(self) -> bool:
        return self._training

    @training.setter
    def training(self, value: bool) -> None:
        self._training = bool(value)
        for layer in self._layers:
            layer.training = self._training

    # ------------------------------------------------------------------
    # Passes

    def forward(self, inputs: Array, begin: int = 0, end: int | None = None) -> Array:
        """Run layers ``begin`` through ``end`` (inclusive) on ``inputs``."""

        if end is None:
            end = len(self._layers) - 1
        if not 0 <= begin <= end < len(self._layers):
            raise IndexError(
                f"Layer range [{begin}, {end}] is invalid for {len(self._layers)} layers"
            )
        self._layer_inputs = []
        self._layer_outputs = []
        self._layer_errors = []
        x = inputs
        for layer in self._layers[begin : end + 1]:
            self._layer_inputs.append(x)
            x = layer.forward(x)
            self._layer_outputs.append(x)
        return x

    def has_full_pass(self) -> bool:
        """Whether the last forward ran every layer of the graph."""

        return bool(self._layers) and len(self._layer_outputs) == len(self._layers)

    def backward(self, outputs: Array, error: Array) -> Array:
        """Propagate ``error`` from the graph output back to its input."""

        if not self.has_full_pass():
            raise RuntimeError("backward() requires a forward() pass over the full graph")
        self._layer_errors = [np.empty(0)] * len(self._layers)
        gy = error
        for idx in reversed(range(len(self._layers))):
            self._layer_errors[idx] = gy
            gy = self._layers[idx].backward(
                self._layer_inputs[idx], self._layer_outputs[idx], gy
            )
        return gy

    def gradient(self, inputs: Array, error: Array, gradient: Array) -> None:
        """Fill ``gradient`` (flat, sized like the parameters) per layer."""

        if len(self._layer_errors) != len(self._layers):
            raise RuntimeError("gradient() requires a preceding backward() pass")
        for idx, (layer, piece) in enumerate(zip(self._layers, self.weight_slices())):
            if piece.size == 0:
                continue
            layer_input = inputs if idx == 0 else self._layer_inputs[idx]
            layer.gradient(layer_input, self._layer_errors[idx], piece.view(gradient))

    def __getstate__(self):
        state = self.__dict__.copy()
        state["_layer_inputs"] = []
        state["_layer_outputs"] = []
        state["_layer_errors"] = []
        return state


__all__ = ["MultiLayer"]
