"""Loss functions paired with the network's output activations."""

from __future__ import annotations

import math
from enum import Enum
from typing import Callable, Dict, Tuple

import numpy as np

from .activations import Activation
from .errors import InvalidHyperparameter, NumericalInstability
from .types import Array

_H_MIN = np.nextafter(0.0, 1.0)
_H_MAX = np.nextafter(1.0, 0.0)


class LossFunction(str, Enum):
    """Closed set of losses.  Each is normalised by the sample count."""

    SQUARE = "square_loss"
    LOG = "log_loss"
    BINARY_LOG = "binary_log_loss"

    @classmethod
    def parse(cls, name: "str | LossFunction") -> "LossFunction":
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).lower())
        except ValueError:
            raise InvalidHyperparameter(f"Unknown loss function: {name!r}") from None


def _square_loss(y: Array, h: Array) -> float:
    diff = h - y
    return float(np.sum(diff * diff) / 2.0 / h.shape[0])


def _log_loss(y: Array, h: Array) -> float:
    clipped = np.clip(h, _H_MIN, _H_MAX)
    mask = y != 0
    return float(-np.sum(y[mask] * np.log(clipped[mask])) / h.shape[0])


def _binary_log_loss(y: Array, h: Array) -> float:
    clipped = np.clip(h, _H_MIN, _H_MAX)
    total = np.sum(y * np.log(clipped) + (1.0 - y) * np.log1p(-clipped))
    return float(-total / h.shape[0])


_LOSSES: Dict[LossFunction, Callable[[Array, Array], float]] = {
    LossFunction.SQUARE: _square_loss,
    LossFunction.LOG: _log_loss,
    LossFunction.BINARY_LOG: _binary_log_loss,
}

# Output activation / loss pairs for which ``delta = h - y`` is exact.
_PAIRINGS: Dict[str, Tuple[Activation, LossFunction]] = {
    "regression": (Activation.IDENTITY, LossFunction.SQUARE),
    "binary": (Activation.LOGISTIC, LossFunction.BINARY_LOG),
    "multilabel": (Activation.LOGISTIC, LossFunction.BINARY_LOG),
    "multiclass": (Activation.SOFTMAX, LossFunction.LOG),
}


def compute_loss(kind: LossFunction, y: Array, h: Array) -> float:
    """Return the loss of predictions ``h`` against targets ``y``."""

    return _LOSSES[kind](y, h)


def check_finite(loss: float) -> float:
    if math.isnan(loss) or loss == math.inf:
        raise NumericalInstability(
            f"Loss evaluated to {loss}; lower the learning rate or rescale the data"
        )
    return loss


def output_pairing(task_type: str) -> Tuple[Activation, LossFunction]:
    try:
        return _PAIRINGS[task_type]
    except KeyError:
        raise ValueError(f"Unknown task type: {task_type}") from None


__all__ = ["LossFunction", "compute_loss", "check_finite", "output_pairing"]
