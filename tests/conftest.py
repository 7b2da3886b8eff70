from __future__ import annotations

import numpy as np
import pytest

from ffnet import FFN, Linear, MeanSquaredError, RandomInitialization, Tanh


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(0)


@pytest.fixture
def small_net() -> FFN:
    """4 -> 3 -> 2 tanh network with deterministic weights."""

    net = FFN(MeanSquaredError(), RandomInitialization(-0.5, 0.5, seed=3))
    net.add(Linear(3)).add(Tanh()).add(Linear(2))
    net.input_dimensions = [4]
    return net
