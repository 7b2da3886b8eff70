"""ffnet public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.errors import DimensionMismatchError, InvalidNetworkError, LayerMemoryError
from .core.graph import MultiLayer
from .core.init import (
    ConstInitialization,
    GaussianInitialization,
    GlorotInitialization,
    NetworkInitialization,
    RandomInitialization,
)
from .core.layers import Dropout, Identity, LeakyReLU, Linear, LinearNoBias, ReLU, Sigmoid, Tanh
from .core.types import NetworkState
from .training.ffn import FFN
from .training.losses import (
    BinaryCrossEntropyWithLogits,
    HuberLoss,
    MeanAbsoluteError,
    MeanSquaredError,
    SoftmaxCrossEntropy,
)
from .training.optimizers import EarlyStopping, GradientDescent, SGDOptimizer
from .training.pipelines import build_network, load_config, load_preset, presets, run_pipeline

__all__ = [
    "FFN",
    "MultiLayer",
    "NetworkState",
    "DimensionMismatchError",
    "InvalidNetworkError",
    "LayerMemoryError",
    "Identity",
    "Linear",
    "LinearNoBias",
    "ReLU",
    "LeakyReLU",
    "Sigmoid",
    "Tanh",
    "Dropout",
    "ConstInitialization",
    "RandomInitialization",
    "GaussianInitialization",
    "GlorotInitialization",
    "NetworkInitialization",
    "MeanSquaredError",
    "MeanAbsoluteError",
    "HuberLoss",
    "SoftmaxCrossEntropy",
    "BinaryCrossEntropyWithLogits",
    "SGDOptimizer",
    "GradientDescent",
    "EarlyStopping",
    "activations",
    "types",
    "build_network",
    "load_config",
    "load_preset",
    "presets",
    "run_pipeline",
]
