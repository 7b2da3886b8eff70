"""Training engine, output layers, optimizers and run pipelines."""

from .ffn import FFN
from .losses import REGISTRY as LOSS_REGISTRY
from .optimizers import EarlyStopping, GradientDescent, SGDOptimizer

__all__ = ["FFN", "LOSS_REGISTRY", "EarlyStopping", "GradientDescent", "SGDOptimizer"]
