"""Core numerical primitives for mlpengine."""

from . import activations, errors, losses, network, optimizers, propagation, types

__all__ = ["activations", "errors", "losses", "network", "optimizers", "propagation", "types"]
