"""Error taxonomy for the training engine."""

from __future__ import annotations


class MLPError(Exception):
    """Base class for fatal training and inference errors."""


class InvalidHyperparameter(MLPError, ValueError):
    """A hyperparameter is out of range or names an unknown option."""


class NumericalInstability(MLPError, ArithmeticError):
    """A loss evaluated to NaN or +Infinity."""


class ShapeMismatch(MLPError, ValueError):
    """Inputs, targets or fitted buffers disagree on their shapes."""


class ConvergenceWarning(UserWarning):
    """The optimizer hit its iteration budget before meeting ``tol``."""


__all__ = [
    "MLPError",
    "InvalidHyperparameter",
    "NumericalInstability",
    "ShapeMismatch",
    "ConvergenceWarning",
]
