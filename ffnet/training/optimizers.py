"""Iterative optimizers driving a differentiable objective.

The optimizers work against any objective exposing the separable-function
interface used by :class:`~ffnet.training.ffn.FFN`:

* ``num_functions()`` - number of separable terms (examples),
* ``shuffle(rng)`` - reorder the terms,
* ``evaluate_with_gradient(parameters, gradient, begin, batch_size)``,
* ``evaluate_batch(parameters, begin, batch_size)``.

Parameters are always updated in place: the network's layers hold views
into the very array handed to :meth:`optimize`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

from ..core.types import Array


def _emit_step(callbacks: Sequence[object], step: int, metrics: Mapping[str, float]) -> None:
    for callback in callbacks:
        if hasattr(callback, "on_step"):
            callback.on_step(step, metrics)  # type: ignore[attr-defined]


def _emit_epoch(callbacks: Sequence[object], epoch: int, metrics: Mapping[str, float]) -> bool:
    """Notify callbacks of a finished epoch; return ``True`` to stop."""

    stop = False
    for callback in callbacks:
        if hasattr(callback, "on_epoch"):
            result = callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
        elif callable(callback):
            result = callback(epoch, metrics)
        else:
            continue
        stop = stop or bool(result)
    return stop


@dataclass
class SGDOptimizer:
    """Mini-batch stochastic gradient descent with optional momentum.

    ``max_iterations`` counts visited examples; ``0`` means no limit.  The
    run also ends when the epoch objective changes by less than
    ``tolerance`` or a callback asks to stop.
    """

    step_size: float = 0.01
    batch_size: int = 32
    max_iterations: int = 100000
    tolerance: float = 1e-5
    shuffle: bool = True
    momentum: float = 0.0
    exact_objective: bool = False
    seed: int | None = None
    rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.rng = np.random.default_rng(self.seed)

    def optimize(
        self,
        function,
        parameters: Array,
        callbacks: Sequence[object] | None = None,
    ) -> float:
        callbacks = list(callbacks or [])
        num_functions = int(function.num_functions())
        if num_functions == 0:
            raise ValueError("Cannot optimize an objective without any examples")
        max_iterations = self.max_iterations or math.inf

        gradient = np.zeros_like(parameters)
        velocity = np.zeros_like(parameters)
        if self.shuffle:
            function.shuffle(self.rng)

        overall = 0.0
        last = math.inf
        current = 0
        epoch = 0
        step = 0
        visited = 0
        while visited < max_iterations:
            batch = int(min(self.batch_size, num_functions - current, max_iterations - visited))
            objective = function.evaluate_with_gradient(parameters, gradient, current, batch)
            overall += objective
            if self.momentum:
                velocity *= self.momentum
                velocity -= self.step_size * gradient
                parameters += velocity
            else:
                parameters -= self.step_size * gradient
            _emit_step(callbacks, step, {"loss": objective})
            step += 1
            current += batch
            visited += batch

            if current < num_functions:
                continue
            epoch += 1
            if _emit_epoch(callbacks, epoch, {"loss": overall}):
                break
            if not math.isfinite(overall) or abs(last - overall) < self.tolerance:
                break
            if visited >= max_iterations:
                break
            last = overall
            overall = 0.0
            current = 0
            if self.shuffle:
                function.shuffle(self.rng)

        if self.exact_objective:
            overall = 0.0
            for begin in range(0, num_functions, self.batch_size):
                batch = min(self.batch_size, num_functions - begin)
                overall += function.evaluate_batch(parameters, begin, batch)
        return float(overall)


@dataclass
class GradientDescent:
    """Full-batch gradient descent."""

    step_size: float = 0.01
    max_iterations: int = 100000
    tolerance: float = 1e-5

    def optimize(
        self,
        function,
        parameters: Array,
        callbacks: Sequence[object] | None = None,
    ) -> float:
        callbacks = list(callbacks or [])
        gradient = np.zeros_like(parameters)
        last = math.inf
        objective = math.inf
        iteration = 0
        while self.max_iterations == 0 or iteration < self.max_iterations:
            objective = function.evaluate_with_gradient(parameters, gradient)
            iteration += 1
            if _emit_epoch(callbacks, iteration, {"loss": objective}):
                break
            if not math.isfinite(objective) or abs(last - objective) < self.tolerance:
                break
            last = objective
            parameters -= self.step_size * gradient
        return float(objective)


class EarlyStopping:
    """Stop when the monitored metric stops improving for ``patience`` epochs."""

    def __init__(self, patience: int = 5, min_delta: float = 0.0, monitor: str = "loss") -> None:
        self.patience = int(patience)
        self.min_delta = float(min_delta)
        self.monitor = monitor
        self.best: float | None = None
        self.best_epoch = -1
        self.wait = 0
        self.stopped = False

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> bool:
        value = float(metrics[self.monitor])
        if self.best is None or value < self.best - self.min_delta:
            self.best = value
            self.best_epoch = epoch
            self.wait = 0
            return False
        self.wait += 1
        if self.wait >= self.patience:
            self.stopped = True
        return self.stopped


OPTIMIZERS = {
    "sgd": SGDOptimizer,
    "gd": GradientDescent,
}


__all__ = ["SGDOptimizer", "GradientDescent", "EarlyStopping", "OPTIMIZERS"]
