"""Exceptions raised by the network engine."""

from __future__ import annotations


class InvalidNetworkError(ValueError):
    """Raised when a pass is attempted on a network without layers."""


class DimensionMismatchError(ValueError):
    """Raised when the caller's input size disagrees with the bound input shape."""


class LayerMemoryError(RuntimeError):
    """Layer weight sizes no longer add up to the parameter buffer.

    This signals a bug in the dimension/weight lifecycle rather than bad
    user input, so the library never catches it.
    """


__all__ = ["InvalidNetworkError", "DimensionMismatchError", "LayerMemoryError"]
