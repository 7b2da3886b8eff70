"""Feed-forward network engine.

:class:`FFN` owns a flat parameter buffer and drives an ordered layer graph
through forward, backward and gradient passes.  Layers never own their
weights; after :meth:`FFN.set_layer_memory` each layer holds a view into
its slice of the buffer, so the optimizer updating the buffer in place
updates the layers too.

Binding happens lazily.  Every public numerical entry point first runs
:meth:`FFN.check_network`, which in order

1. rejects an empty graph,
2. propagates the input shape through the graph if that has not happened,
3. (re)initialises the parameter buffer if it is empty or the wrong size,
4. binds the layer views into the buffer if they are not bound,
5. optionally switches every layer between training and evaluation mode.

Shapes must be known before the weight count is, the buffer must exist
before views can point into it, and views must be bound before any layer
touches its weights.

Data is column-major: one example per column.
"""

from __future__ import annotations

import copy
import logging
import math
import time
import warnings
from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np

from ..core.errors import DimensionMismatchError, InvalidNetworkError, LayerMemoryError
from ..core.graph import MultiLayer
from ..core.init import InitializationRule, NetworkInitialization, RandomInitialization
from ..core.layers import Layer
from ..core.types import Array, NetworkState, as_matrix
from .losses import MeanSquaredError, OutputLayer
from .optimizers import SGDOptimizer

logger = logging.getLogger(__name__)


class FFN:
    """Feed-forward network over a :class:`~ffnet.core.graph.MultiLayer`."""

    def __init__(
        self,
        output_layer: OutputLayer | None = None,
        initialize_rule: InitializationRule | None = None,
    ) -> None:
        self.output_layer = output_layer if output_layer is not None else MeanSquaredError()
        self.initialize_rule = (
            initialize_rule if initialize_rule is not None else RandomInitialization()
        )
        self.network = MultiLayer()
        self._parameters: Array = np.empty(0)
        self._input_dimensions: List[int] = []
        self._predictors: Array = np.empty((0, 0))
        self._responses: Array = np.empty((0, 0))
        self._network_output: Array | None = None
        self._network_delta: Array | None = None
        self._error: Array | None = None
        self._training = False
        self._layer_memory_is_set = False
        self._input_dimensions_are_set = False

    # ------------------------------------------------------------------
    # Structure and accessors

    def add(self, layer: Layer) -> "FFN":
        """Append ``layer`` to the graph; shapes and weights are rebound lazily."""

        self.network.add(layer)
        self._input_dimensions_are_set = False
        self._layer_memory_is_set = False
        return self

    @property
    def layers(self) -> List[Layer]:
        return self.network.layers

    @property
    def input_dimensions(self) -> List[int]:
        return list(self._input_dimensions)

    @input_dimensions.setter
    def input_dimensions(self, dims: Sequence[int]) -> None:
        dims = [int(d) for d in dims]
        if any(d <= 0 for d in dims):
            raise ValueError(f"Input dimensions must be positive, got {dims}")
        self._input_dimensions = dims
        self._input_dimensions_are_set = False

    @property
    def parameters(self) -> Array:
        """The flat parameter buffer (not a copy)."""

        return self._parameters

    @parameters.setter
    def parameters(self, values) -> None:
        values = np.asarray(values, dtype=np.float64).ravel()
        if self._parameters.size and values.shape == self._parameters.shape:
            self._parameters[...] = values
            return
        self._parameters = values.copy()
        self._layer_memory_is_set = False

    @property
    def predictors(self) -> Array:
        return self._predictors

    @property
    def responses(self) -> Array:
        return self._responses

    @property
    def training(self) -> bool:
        return self._training

    @property
    def layer_memory_is_set(self) -> bool:
        return self._layer_memory_is_set

    @property
    def input_dimensions_are_set(self) -> bool:
        return self._input_dimensions_are_set

    @property
    def state(self) -> NetworkState:
        return NetworkState.from_flags(self._input_dimensions_are_set, self._layer_memory_is_set)

    # ------------------------------------------------------------------
    # Training and inference

    def train(
        self,
        predictors,
        responses,
        optimizer=None,
        callbacks: Sequence[object] | None = None,
    ) -> float:
        """Fit the network to ``predictors``/``responses`` and return the final objective."""

        self.reset_data(predictors, responses)
        if optimizer is None:
            optimizer = SGDOptimizer()
        self._warn_max_iterations(optimizer, self._predictors.shape[1])

        self.check_network("FFN.train()", self._predictors.shape[0], set_mode=True, training=True)

        start = time.perf_counter()
        objective = float(
            optimizer.optimize(self, self._parameters, callbacks=list(callbacks or []))
        )
        logger.info(
            "FFN.train(): final objective of trained model is %s (%.3fs).",
            objective,
            time.perf_counter() - start,
        )
        return objective

    def predict(self, predictors, batch_size: int = 128) -> Array:
        """Run the network in evaluation mode over ``predictors`` in chunks."""

        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        predictors = as_matrix(predictors)
        self.check_network("FFN.predict()", predictors.shape[0], set_mode=True, training=False)

        n_examples = predictors.shape[1]
        results = np.empty((self.network.output_size(), n_examples))
        for begin in range(0, n_examples, batch_size):
            stop = min(begin + batch_size, n_examples)
            self.forward(predictors[:, begin:stop], out=results[:, begin:stop])
        return results

    def forward(
        self,
        inputs,
        begin: int = 0,
        end: int | None = None,
        out: Array | None = None,
    ) -> Array | None:
        """Run layers ``begin`` through ``end`` (inclusive, default all).

        The raw output is always kept in an internal buffer because
        :meth:`backward` works from the last forward output.
        """

        if end is None:
            end = len(self.network) - 1
        elif end < begin:
            return out
        inputs = as_matrix(inputs)

        self.check_network("FFN.forward()", inputs.shape[0] if begin == 0 else 0)

        output = self.network.forward(inputs, begin, end)
        if self._network_output is not None and self._network_output.shape == output.shape:
            self._network_output[...] = output
        else:
            self._network_output = output

        if out is None:
            return self._network_output.copy()
        if out is not self._network_output:
            out[...] = self._network_output
        return out

    def backward(self, inputs, targets, out: Array | None = None) -> Tuple[float, Array]:
        """Return the loss and the parameter gradient for the last forward pass.

        ``forward`` must have been called over the full graph with the same
        ``inputs``.  No parameter update is performed.
        """

        if self._network_output is None or not self.network.has_full_pass():
            raise RuntimeError("FFN.backward(): forward() must first run over the full network")
        inputs = as_matrix(inputs)
        targets = as_matrix(targets)

        loss = self.output_layer.forward(self._network_output, targets) + self.network.loss()
        self._error = self.output_layer.backward(self._network_output, targets)
        self._network_delta = self.network.backward(self._network_output, self._error)

        gradients = out if out is not None else np.zeros_like(self._parameters)
        self._check_gradient(gradients)
        self.network.gradient(inputs, self._error, gradients)
        return float(loss), gradients

    def evaluate(self, predictors, responses) -> float:
        """Objective over a full dataset supplied by the caller."""

        predictors = as_matrix(predictors)
        responses = as_matrix(responses)
        self.check_network("FFN.evaluate()", predictors.shape[0])

        self._network_output = self.network.forward(predictors)
        return float(
            self.output_layer.forward(self._network_output, responses) + self.network.loss()
        )

    # ------------------------------------------------------------------
    # Separable objective used by optimizers

    def evaluate_batch(
        self, parameters: Array, begin: int = 0, batch_size: int | None = None
    ) -> float:
        """Objective over columns ``[begin, begin + batch_size)`` of the stored data.

        Without ``batch_size`` every stored example from ``begin`` on is
        evaluated on its own and the objectives are summed, so per-layer
        penalties count once per example.  ``parameters`` is only part of
        the optimizer interface: the layers already read the network's own
        buffer.
        """

        if batch_size is None:
            examples = self._each_example("FFN.evaluate_batch()", begin)
            return float(sum(self.evaluate_batch(parameters, i, 1) for i in examples))

        self.check_network("FFN.evaluate_batch()", self._predictors.shape[0])
        inputs, targets = self._batch(begin, batch_size)

        self._network_output = self.network.forward(inputs)
        return float(self.output_layer.forward(self._network_output, targets) + self.network.loss())

    def evaluate_with_gradient(
        self,
        parameters: Array,
        gradient: Array,
        begin: int = 0,
        batch_size: int | None = None,
    ) -> float:
        """Objective and gradient over a column range of the stored data.

        Without ``batch_size`` the objectives and gradients of the single
        examples from ``begin`` on are accumulated.  ``gradient`` is filled
        in place and must match the parameter buffer's shape.
        """

        if batch_size is None:
            examples = self._each_example("FFN.evaluate_with_gradient()", begin)
            self._check_gradient(gradient)
            gradient[...] = 0.0
            example_gradient = np.zeros_like(gradient)
            objective = 0.0
            for i in examples:
                objective += self.evaluate_with_gradient(parameters, example_gradient, i, 1)
                gradient += example_gradient
            return objective

        self.check_network("FFN.evaluate_with_gradient()", self._predictors.shape[0])
        inputs, targets = self._batch(begin, batch_size)

        self._network_output = self.network.forward(inputs)
        objective, _ = self.backward(inputs, targets, out=gradient)
        return objective

    def gradient(
        self,
        parameters: Array,
        gradient: Array,
        begin: int = 0,
        batch_size: int | None = None,
    ) -> None:
        self.evaluate_with_gradient(parameters, gradient, begin, batch_size)

    def num_functions(self) -> int:
        return int(self._predictors.shape[1])

    def shuffle(self, rng: np.random.Generator | None = None) -> None:
        """Apply one random column permutation to both predictors and responses."""

        rng = rng if rng is not None else np.random.default_rng()
        order = rng.permutation(self._predictors.shape[1])
        self._predictors = self._predictors[:, order]
        self._responses = self._responses[:, order]

    def reset_data(self, predictors, responses) -> None:
        predictors = as_matrix(predictors)
        responses = as_matrix(responses)
        if predictors.shape[1] != responses.shape[1]:
            raise ValueError(
                f"predictors have {predictors.shape[1]} examples but responses have "
                f"{responses.shape[1]}"
            )
        self._predictors = predictors
        self._responses = responses
        self.set_network_mode(True)

    # ------------------------------------------------------------------
    # Dimension and weight lifecycle

    def reset(self, input_dimensionality: int = 0) -> None:
        """Drop the parameters and rebuild shapes and weights from scratch."""

        self._parameters = np.empty(0)
        self._layer_memory_is_set = False
        self._input_dimensions_are_set = False
        if input_dimensionality == 0 and self._input_dimensions:
            input_dimensionality = math.prod(self._input_dimensions)
        self.check_network("FFN.reset()", int(input_dimensionality), set_mode=True, training=False)

    def set_network_mode(self, training: bool) -> None:
        self._training = bool(training)
        self.network.training = self._training

    def weight_size(self) -> int:
        """Number of parameters the graph needs, propagating shapes if required."""

        if not self._input_dimensions_are_set:
            self.update_dimensions("FFN.weight_size()")
        return self.network.weight_size()

    def check_network(
        self,
        caller: str,
        input_dimensionality: int,
        set_mode: bool = False,
        training: bool = False,
    ) -> None:
        if len(self.network) == 0:
            raise InvalidNetworkError(f"{caller}: cannot use network with no layers!")

        if not self._input_dimensions_are_set:
            self.update_dimensions(caller, input_dimensionality)
        elif input_dimensionality and input_dimensionality != math.prod(self._input_dimensions):
            raise DimensionMismatchError(
                f"{caller}: input size {input_dimensionality} does not match the network "
                f"input size {math.prod(self._input_dimensions)}"
            )

        weight_size = self.network.weight_size()
        if self._parameters.size == 0:
            self.initialize_weights()
        elif self._parameters.size != weight_size:
            logger.info(
                "%s: parameter size %d does not match network weight size %d; "
                "reinitializing weights.",
                caller,
                self._parameters.size,
                weight_size,
            )
            self._parameters = np.empty(0)
            self.initialize_weights()

        if not self._layer_memory_is_set:
            self.set_layer_memory()

        if set_mode:
            self.set_network_mode(training)

    def update_dimensions(self, caller: str, input_dimensionality: int = 0) -> None:
        if not self._input_dimensions:
            if input_dimensionality == 0:
                raise DimensionMismatchError(
                    f"{caller}: input dimensions are unknown; set input_dimensions or pass data"
                )
            self._input_dimensions = [int(input_dimensionality)]

        total = math.prod(self._input_dimensions)
        if input_dimensionality != 0 and total != input_dimensionality:
            raise DimensionMismatchError(
                f"{caller}: input size {input_dimensionality} does not match expected size "
                f"{total} set with input_dimensions {self._input_dimensions}!"
            )

        if self._input_dimensions == self.network.input_dimensions:
            self._input_dimensions_are_set = True
            return

        logger.debug("%s: propagating input dimensions %s", caller, self._input_dimensions)
        self.network.input_dimensions = self._input_dimensions
        self.network.compute_output_dimensions()
        self._input_dimensions_are_set = True
        # Slice boundaries follow the new shapes.
        self._layer_memory_is_set = False

    def initialize_weights(self) -> None:
        self.set_network_mode(False)
        self._parameters = np.zeros(self.network.weight_size())
        NetworkInitialization(self.initialize_rule).initialize(self.network.layers, self._parameters)
        self._layer_memory_is_set = False
        logger.debug("Initialized %d network parameters", self._parameters.size)

    def set_layer_memory(self) -> None:
        total = self.network.weight_size()
        if total != self._parameters.size:
            raise LayerMemoryError(
                "FFN.set_layer_memory(): total layer weight size does not match parameter size!"
            )
        self.network.set_weights(self._parameters)
        self._layer_memory_is_set = True

    # ------------------------------------------------------------------
    # Copying and persistence

    def __deepcopy__(self, memo) -> "FFN":
        clone = self.__class__.__new__(self.__class__)
        memo[id(self)] = clone
        for key, value in self.__dict__.items():
            setattr(clone, key, copy.deepcopy(value, memo))
        clone._network_output = None
        clone._network_delta = None
        clone._error = None
        # Copied views point into the old buffer until rebound.
        clone._layer_memory_is_set = False
        clone._input_dimensions_are_set = False
        return clone

    def __copy__(self) -> "FFN":
        # A shallow copy would share the parameter buffer.
        return copy.deepcopy(self)

    def __getstate__(self):
        state = self.__dict__.copy()
        state["_predictors"] = np.empty((0, 0))
        state["_responses"] = np.empty((0, 0))
        state["_network_output"] = None
        state["_network_delta"] = None
        state["_error"] = None
        state["_layer_memory_is_set"] = False
        state["_input_dimensions_are_set"] = False
        return state

    def state_dict(self) -> Dict[str, Array]:
        return {
            "parameters": self._parameters.copy(),
            "input_dimensions": np.asarray(self._input_dimensions, dtype=np.int64),
            "training": np.asarray(self._training),
        }

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        for key in ("parameters", "input_dimensions", "training"):
            if key not in state:
                raise KeyError(f"Missing {key} in state dict")
        self._parameters = np.asarray(state["parameters"], dtype=np.float64).ravel().copy()
        self._input_dimensions = [int(d) for d in np.asarray(state["input_dimensions"]).ravel()]
        self.set_network_mode(bool(np.asarray(state["training"])))
        self._predictors = np.empty((0, 0))
        self._responses = np.empty((0, 0))
        self._network_output = None
        self._network_delta = None
        self._error = None
        self._layer_memory_is_set = False
        self._input_dimensions_are_set = False

    # ------------------------------------------------------------------
    # Internal helpers

    def _batch(self, begin: int, batch_size: int | None) -> Tuple[Array, Array]:
        n_examples = self._predictors.shape[1]
        if n_examples == 0:
            raise ValueError("No training data is stored; call train() or reset_data() first")
        if batch_size is None:
            batch_size = n_examples - begin
        if begin < 0 or batch_size <= 0 or begin + batch_size > n_examples:
            raise IndexError(
                f"Batch [{begin}, {begin + batch_size}) is outside the {n_examples} stored examples"
            )
        stop = begin + batch_size
        return self._predictors[:, begin:stop], self._responses[:, begin:stop]

    def _each_example(self, caller: str, begin: int) -> range:
        self.check_network(caller, self._predictors.shape[0])
        self._batch(begin, None)
        return range(begin, self._predictors.shape[1])

    def _check_gradient(self, gradient: Array) -> None:
        if gradient.shape != self._parameters.shape:
            raise ValueError(
                f"Gradient buffer has shape {gradient.shape}, expected {self._parameters.shape}"
            )

    @staticmethod
    def _warn_max_iterations(optimizer, samples: int) -> None:
        if not hasattr(optimizer, "max_iterations"):
            return
        max_iterations = optimizer.max_iterations
        if max_iterations != 0 and max_iterations < samples:
            warnings.warn(
                "The optimizer's maximum number of iterations is less than the size of the "
                "dataset; the optimizer will not pass over the entire dataset. To fix this, "
                "modify the maximum number of iterations to be at least equal to the number "
                f"of points of your dataset ({samples}).",
                UserWarning,
                stacklevel=3,
            )


__all__ = ["FFN"]
