"""Stochastic optimizers updating the packed parameter arena in place."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

import numpy as np

from .errors import InvalidHyperparameter
from .types import Array

if TYPE_CHECKING:  # pragma: no cover
    from ..training.config import MLPConfig


class LearningRateSchedule(str, Enum):
    CONSTANT = "constant"
    INVSCALING = "invscaling"
    ADAPTIVE = "adaptive"

    @classmethod
    def parse(cls, name: "str | LearningRateSchedule") -> "LearningRateSchedule":
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).lower())
        except ValueError:
            raise InvalidHyperparameter(f"learning rate {name!r} is not supported.") from None


class Optimizer(Protocol):
    """Contract shared by the stochastic optimizers."""

    learning_rate: float

    def update_params(self, grads: Array) -> None:
        """Apply one in-place step to the parameter arena."""

    def iteration_ends(self, time_step: int) -> None:
        """Adjust the learning rate after ``time_step`` samples were seen."""

    def trigger_stopping(self, message: str, verbose: bool = False) -> bool:
        """Return True when training should stop now."""


@dataclass
class SGDOptimizer:
    """Momentum SGD with optional Nesterov lookahead."""

    params: Array
    learning_rate_init: float = 0.1
    lr_schedule: LearningRateSchedule = LearningRateSchedule.CONSTANT
    momentum: float = 0.9
    nesterov: bool = True
    power_t: float = 0.5
    learning_rate: float = field(init=False)
    velocities: Array = field(init=False, repr=False)
    _step: Array = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.lr_schedule = LearningRateSchedule.parse(self.lr_schedule)
        self.learning_rate = float(self.learning_rate_init)
        self.velocities = np.zeros_like(self.params)
        self._step = np.empty_like(self.params)

    def update_params(self, grads: Array) -> None:
        self.velocities *= self.momentum
        np.multiply(grads, self.learning_rate, out=self._step)
        self.velocities -= self._step
        if self.nesterov:
            self.params -= self._step
            self.params += self.momentum * self.velocities
        else:
            self.params += self.velocities

    def iteration_ends(self, time_step: int) -> None:
        if self.lr_schedule is LearningRateSchedule.INVSCALING:
            self.learning_rate = self.learning_rate_init / (time_step + 1) ** self.power_t

    def trigger_stopping(self, message: str, verbose: bool = False) -> bool:
        if self.lr_schedule is not LearningRateSchedule.ADAPTIVE:
            if verbose:
                print(message + " Stopping.")
            return True
        if self.learning_rate <= 1e-6:
            if verbose:
                print(message + " Learning rate too small. Stopping.")
            return True
        self.learning_rate /= 5.0
        if verbose:
            print(f"{message} Setting learning rate to {self.learning_rate:f}")
        return False


@dataclass
class AdamOptimizer:
    """Adam with bias correction folded into the per-step learning rate."""

    params: Array
    learning_rate_init: float = 0.001
    beta_1: float = 0.9
    beta_2: float = 0.999
    epsilon: float = 1e-8
    learning_rate: float = field(init=False)
    t: int = field(init=False, default=0)
    ms: Array = field(init=False, repr=False)
    vs: Array = field(init=False, repr=False)
    _beta_1_t: float = field(init=False, default=1.0, repr=False)
    _beta_2_t: float = field(init=False, default=1.0, repr=False)
    _scratch: Array = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.learning_rate = float(self.learning_rate_init)
        self.ms = np.zeros_like(self.params)
        self.vs = np.zeros_like(self.params)
        self._scratch = np.empty_like(self.params)

    def update_params(self, grads: Array) -> None:
        self.t += 1
        self._beta_1_t *= self.beta_1
        self._beta_2_t *= self.beta_2
        self.learning_rate = (
            self.learning_rate_init * np.sqrt(1.0 - self._beta_2_t) / (1.0 - self._beta_1_t)
        )

        self.ms *= self.beta_1
        self.ms += (1.0 - self.beta_1) * grads
        np.square(grads, out=self._scratch)
        self._scratch *= 1.0 - self.beta_2
        self.vs *= self.beta_2
        self.vs += self._scratch

        np.sqrt(self.vs, out=self._scratch)
        self._scratch += self.epsilon
        np.divide(self.ms, self._scratch, out=self._scratch)
        self._scratch *= self.learning_rate
        self.params -= self._scratch

    def iteration_ends(self, time_step: int) -> None:
        return None

    def trigger_stopping(self, message: str, verbose: bool = False) -> bool:
        if verbose:
            print(message + " Stopping.")
        return True


def build_optimizer(config: "MLPConfig", params: Array) -> Optimizer:
    """Instantiate the optimizer named by ``config.solver`` over ``params``."""

    solver = config.solver.lower()
    if solver == "sgd":
        return SGDOptimizer(
            params,
            learning_rate_init=config.learning_rate_init,
            lr_schedule=LearningRateSchedule.parse(config.learning_rate),
            momentum=config.momentum,
            nesterov=config.nesterovs_momentum,
            power_t=config.power_t,
        )
    if solver == "adam":
        return AdamOptimizer(
            params,
            learning_rate_init=config.learning_rate_init,
            beta_1=config.beta_1,
            beta_2=config.beta_2,
            epsilon=config.epsilon,
        )
    raise InvalidHyperparameter(f"The solver {config.solver!r} has no stochastic optimizer.")


__all__ = [
    "LearningRateSchedule",
    "Optimizer",
    "SGDOptimizer",
    "AdamOptimizer",
    "build_optimizer",
]
