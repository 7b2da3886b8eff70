"""Weight initialisation rules and the network-wide initializer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence

import numpy as np

from .layers import Layer, total_weight_size
from .types import Array


class InitializationRule(Protocol):
    """Protocol implemented by per-block initialisation rules."""

    def initialize(self, weights: Array) -> None:
        """Fill ``weights`` in place."""


@dataclass
class ConstInitialization:
    """Fill every weight with the same value."""

    value: float = 0.0

    def initialize(self, weights: Array) -> None:
        weights[...] = self.value


@dataclass
class RandomInitialization:
    """Uniform initialisation in ``[lower, upper)``."""

    lower: float = -1.0
    upper: float = 1.0
    seed: int | None = None
    rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.lower > self.upper:
            raise ValueError("lower bound must not exceed upper bound")
        self.rng = np.random.default_rng(self.seed)

    def initialize(self, weights: Array) -> None:
        weights[...] = self.rng.uniform(self.lower, self.upper, size=weights.shape)


@dataclass
class GaussianInitialization:
    mean: float = 0.0
    stddev: float = 1.0
    seed: int | None = None
    rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.rng = np.random.default_rng(self.seed)

    def initialize(self, weights: Array) -> None:
        weights[...] = self.rng.normal(self.mean, self.stddev, size=weights.shape)


@dataclass
class GlorotInitialization:
    """Glorot/Xavier initialisation for a flat ``size x 1`` block."""

    normal: bool = False
    seed: int | None = None
    rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.rng = np.random.default_rng(self.seed)

    def initialize(self, weights: Array) -> None:
        fan = weights.size + 1
        if self.normal:
            std = np.sqrt(2.0 / fan)
            weights[...] = self.rng.normal(0.0, std, size=weights.shape)
        else:
            bound = np.sqrt(6.0 / fan)
            weights[...] = self.rng.uniform(-bound, bound, size=weights.shape)


class NetworkInitialization:
    """Fill a flat parameter buffer layer by layer with ``rule``."""

    def __init__(self, rule: InitializationRule) -> None:
        self.rule = rule

    def initialize(self, layers: Sequence[Layer], parameters: Array) -> None:
        expected = total_weight_size(layers)
        if parameters.size != expected:
            raise ValueError(
                f"Parameter buffer holds {parameters.size} values but layers need {expected}"
            )
        offset = 0
        for layer in layers:
            size = layer.weight_size()
            if size:
                self.rule.initialize(parameters[offset : offset + size])
            offset += size


INIT_RULES = {
    "const": ConstInitialization,
    "random": RandomInitialization,
    "gaussian": GaussianInitialization,
    "glorot": GlorotInitialization,
}


__all__ = [
    "InitializationRule",
    "ConstInitialization",
    "RandomInitialization",
    "GaussianInitialization",
    "GlorotInitialization",
    "NetworkInitialization",
    "INIT_RULES",
]
