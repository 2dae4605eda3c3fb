"""Activation functions and their in-place derivatives."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict

import numpy as np

from .errors import InvalidHyperparameter
from .types import Array


class Activation(str, Enum):
    """Closed set of activations understood by the engine."""

    IDENTITY = "identity"
    LOGISTIC = "logistic"
    TANH = "tanh"
    RELU = "relu"
    SOFTMAX = "softmax"

    @classmethod
    def parse(cls, name: "str | Activation") -> "Activation":
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).lower())
        except ValueError:
            supported = ", ".join(a.value for a in cls)
            raise InvalidHyperparameter(
                f"The activation {name!r} is not supported. Supported activations are {supported}."
            ) from None


HIDDEN_ACTIVATIONS = frozenset(
    {Activation.IDENTITY, Activation.LOGISTIC, Activation.TANH, Activation.RELU}
)


def _identity(z: Array) -> None:
    return None


def _logistic(z: Array) -> None:
    np.negative(z, out=z)
    np.exp(z, out=z)
    z += 1.0
    np.reciprocal(z, out=z)


def _tanh(z: Array) -> None:
    np.tanh(z, out=z)


def _relu(z: Array) -> None:
    np.maximum(z, 0.0, out=z)


def _softmax(z: Array) -> None:
    z -= z.max(axis=1, keepdims=True)
    np.exp(z, out=z)
    z /= z.sum(axis=1, keepdims=True)


def _identity_derivative(a: Array, deltas: Array) -> None:
    return None


def _logistic_derivative(a: Array, deltas: Array) -> None:
    deltas *= a
    deltas *= 1.0 - a


def _tanh_derivative(a: Array, deltas: Array) -> None:
    deltas *= 1.0 - a * a


def _relu_derivative(a: Array, deltas: Array) -> None:
    deltas[a == 0] = 0.0


_ACTIVATIONS: Dict[Activation, Callable[[Array], None]] = {
    Activation.IDENTITY: _identity,
    Activation.LOGISTIC: _logistic,
    Activation.TANH: _tanh,
    Activation.RELU: _relu,
    Activation.SOFTMAX: _softmax,
}

_DERIVATIVES: Dict[Activation, Callable[[Array, Array], None]] = {
    Activation.IDENTITY: _identity_derivative,
    Activation.LOGISTIC: _logistic_derivative,
    Activation.TANH: _tanh_derivative,
    Activation.RELU: _relu_derivative,
}


def apply_activation(kind: Activation, z: Array) -> None:
    """Apply ``kind`` to ``z`` in place."""

    _ACTIVATIONS[kind](z)


def multiply_derivative(kind: Activation, activation: Array, deltas: Array) -> None:
    """Multiply ``deltas`` in place by the derivative of ``kind``.

    The derivative is evaluated from the activation *output*, which is what
    the forward pass leaves behind in the activation buffers.
    """

    try:
        derivative = _DERIVATIVES[kind]
    except KeyError:
        raise InvalidHyperparameter(f"{kind.value} cannot be used as a hidden activation") from None
    derivative(activation, deltas)


__all__ = [
    "Activation",
    "HIDDEN_ACTIVATIONS",
    "apply_activation",
    "multiply_derivative",
]
