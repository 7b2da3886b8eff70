"""Core numerical primitives for ffnet."""

from . import activations, errors, graph, init, layers, types

__all__ = ["activations", "errors", "graph", "init", "layers", "types"]
